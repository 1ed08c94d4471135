from enum import Enum

from sqlalchemy import (
    Table,
    Column,
    String,
    Text,
    Float,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)

from laundry_service.database import metadata


# -------------------------
# Enums
# -------------------------
class Role(str, Enum):
    customer = "customer"
    driver = "driver"
    admin = "admin"


class OrderStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    picked_up = "picked_up"
    in_progress = "in_progress"
    ready_for_delivery = "ready_for_delivery"
    delivered = "delivered"
    cancelled = "cancelled"


class DriverStatus(str, Enum):
    active = "active"
    offline = "offline"
    on_delivery = "on-delivery"


class StepStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class TrackingStep(str, Enum):
    """Timeline steps, in the order an order goes through them."""

    order_placed = "Order Placed"
    pickup_scheduled = "Pickup Scheduled"
    items_collected = "Items Collected"
    in_processing = "In Processing"
    ready_for_delivery = "Ready for Delivery"
    delivered = "Delivered"


# -------------------------
# Users
# -------------------------
users = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False, unique=True, index=True),
    Column("phone_number", String, nullable=False),
    Column("address", String, nullable=False),
    Column("password_hash", String, nullable=False),
    Column("role", String, nullable=False, default=Role.customer.value),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("member_since", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

# -------------------------
# Services (catalog)
# -------------------------
services = Table(
    "services",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("description", Text, nullable=False),
    Column("price_per_unit", Float, nullable=False),
    Column("icon", String, nullable=True),
    Column("available", Boolean, nullable=False, default=True),
    Column("estimated_time_hours", Float, nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

# -------------------------
# Orders
# -------------------------
orders = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_number", String, nullable=False, unique=True, index=True),
    Column("customer_id", String, ForeignKey("users.id"), nullable=False, index=True),
    Column("line_items", Text, nullable=False),
    Column("total_price", Float, nullable=False),
    Column("status", String, nullable=False, default=OrderStatus.pending.value),
    Column("progress", Integer, nullable=False, default=0),
    Column("pickup_date", DateTime, nullable=False),
    Column("pickup_time_slot", String, nullable=False),
    Column("delivery_date", DateTime, nullable=True),
    Column("estimated_delivery", String, nullable=True),
    Column("location_address", String, nullable=False),
    Column("location_lat", Float, nullable=True),
    Column("location_lon", Float, nullable=True),
    Column("special_instructions", Text, nullable=True),
    Column("items", Text, nullable=False),
    Column("qr_token", String, nullable=False, unique=True, index=True),
    Column("qr_token_verified", Boolean, nullable=False, default=False),
    Column("qr_verified_at", DateTime, nullable=True),
    Column("qr_verified_by", String, nullable=True),
    Column("driver_id", String, nullable=True, index=True),
    Column("version", Integer, nullable=False, default=1),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

# -------------------------
# Tracking timeline (1:1 with orders)
# -------------------------
trackings = Table(
    "trackings",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id"), nullable=False, unique=True),
    Column("current_step", String, nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

tracking_steps = Table(
    "tracking_steps",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id"), nullable=False, index=True),
    Column("position", Integer, nullable=False),
    Column("name", String, nullable=False),
    Column("status", String, nullable=False, default=StepStatus.pending.value),
    Column("completed", Boolean, nullable=False, default=False),
    Column("timestamp", DateTime, nullable=True),
    Column("description", String, nullable=True),
    UniqueConstraint("order_id", "name", name="uq_tracking_step_order_name"),
)

# -------------------------
# Drivers
# -------------------------
drivers = Table(
    "drivers",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, ForeignKey("users.id"), nullable=True, index=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False, unique=True),
    Column("phone", String, nullable=False),
    Column("vehicle_model", String, nullable=False),
    Column("vehicle_plate", String, nullable=False, unique=True),
    Column("vehicle_color", String, nullable=True),
    Column("vehicle_year", Integer, nullable=True),
    Column("status", String, nullable=False, default=DriverStatus.offline.value),
    Column("rating", Float, nullable=False, default=0),
    Column("delivery_count", Integer, nullable=False, default=0),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)
