# schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from laundry_service.models import Role, OrderStatus, DriverStatus, StepStatus, TrackingStep


class CamelModel(BaseModel):
    """Wire format is camelCase, python side stays snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------- AUTH -------------------------
class RegisterRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone_number: str = Field(min_length=3)
    address: str = Field(min_length=1)
    password: str = Field(min_length=6)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class User(CamelModel):
    id: str
    name: str
    email: EmailStr
    phone_number: str
    address: str
    role: Role
    is_active: bool
    member_since: datetime


class AuthResponse(CamelModel):
    token: str
    user: User


class UserStatusUpdate(CamelModel):
    is_active: Optional[bool] = None
    role: Optional[Role] = None


class AuthUser(CamelModel):
    """Identity resolved from the bearer token, passed explicitly into handlers."""

    id: str
    role: Role
    name: str
    email: str
    phone_number: str
    address: str
    trace_id: Optional[str] = None


# ------------------------- SERVICES -------------------------
class ServiceCreate(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    description: str
    price_per_unit: float = Field(ge=0)
    icon: Optional[str] = None
    available: bool = True
    estimated_time_hours: float = Field(gt=0)


class ServiceUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price_per_unit: Optional[float] = Field(default=None, ge=0)
    icon: Optional[str] = None
    available: Optional[bool] = None
    estimated_time_hours: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def no_null_required_fields(self):
        # icon is the only column that may be cleared
        nulled = [name for name in self.model_fields_set if name != "icon" and getattr(self, name) is None]
        if nulled:
            raise ValueError(f"{', '.join(sorted(nulled))} cannot be null")
        return self


class Service(ServiceCreate):
    id: str
    created_at: datetime
    updated_at: datetime


# ------------------------- ORDERS -------------------------
class LineItemRequest(CamelModel):
    service_id: str = Field(min_length=1)
    quantity: float = Field(gt=0)


class LineItem(CamelModel):
    service_id: str
    name: str
    unit_price: float
    quantity: float


class Location(CamelModel):
    address: str = Field(min_length=1)
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lon: Optional[float] = Field(default=None, ge=-180, le=180)


class PhysicalItem(CamelModel):
    name: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    weight: Optional[float] = Field(default=None, ge=0)


class OrderCreate(CamelModel):
    services: List[LineItemRequest] = Field(min_length=1)
    pickup_date: datetime
    pickup_time_slot: str = Field(min_length=1)
    location: Location
    special_instructions: Optional[str] = None
    items: List[PhysicalItem] = []


class Order(CamelModel):
    id: str
    order_number: str
    customer_id: str
    line_items: List[LineItem]
    total_price: float
    status: OrderStatus
    progress: int
    pickup_date: datetime
    pickup_time_slot: str
    delivery_date: Optional[datetime] = None
    estimated_delivery: Optional[str] = None
    location: Location
    special_instructions: Optional[str] = None
    items: List[PhysicalItem] = []
    qr_token_verified: bool
    qr_verified_at: Optional[datetime] = None
    qr_verified_by: Optional[str] = None
    driver_id: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


class OrderQr(CamelModel):
    qr_code_data: str
    qr_code_image: Optional[str] = None


class OrderCreated(Order):
    qr_code_data: str
    qr_code_image: Optional[str] = None


class OrderStatusUpdate(CamelModel):
    status: Optional[OrderStatus] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    driver_id: Optional[str] = None

    @model_validator(mode="after")
    def at_least_one_field(self):
        if self.status is None and self.progress is None and self.driver_id is None:
            raise ValueError("Provide at least one of status, progress or driverId")
        return self


class Pagination(CamelModel):
    total_pages: int
    current_page: int
    total: int
    has_next: bool
    has_prev: bool


class OrderPage(CamelModel):
    orders: List[Order]
    pagination: Pagination


class OrderStatusSummary(CamelModel):
    order_number: str
    status: OrderStatus
    progress: int
    pickup_verified: bool
    verified_at: Optional[datetime] = None
    created_at: datetime


# ------------------------- TRACKING -------------------------
class TrackingStepOut(CamelModel):
    name: TrackingStep
    status: StepStatus
    completed: bool
    timestamp: Optional[datetime] = None
    description: Optional[str] = None


class Tracking(CamelModel):
    id: str
    order_id: str
    current_step: TrackingStep
    steps: List[TrackingStepOut]
    created_at: datetime
    updated_at: datetime


class OrderDetail(CamelModel):
    order: Order
    tracking: Optional[Tracking] = None


class TrackingUpdate(CamelModel):
    step: TrackingStep
    status: Optional[StepStatus] = None
    completed: Optional[bool] = None
    description: Optional[str] = None


# ------------------------- QR -------------------------
class QRVerifyRequest(CamelModel):
    qr_data: str = Field(min_length=1)


class VerifiedLineItem(CamelModel):
    name: str
    unit_price: float
    quantity: float


class VerifiedOrder(CamelModel):
    order_number: str
    customer_name: str
    customer_address: str
    customer_phone: str
    services: List[VerifiedLineItem]


class QRVerifyResponse(CamelModel):
    success: bool = True
    message: str = "Pickup verified successfully"
    order: VerifiedOrder


# ------------------------- DRIVERS -------------------------
class Vehicle(CamelModel):
    model: str = Field(min_length=1)
    plate: str = Field(min_length=1)
    color: Optional[str] = None
    year: Optional[int] = None

    @field_validator("plate")
    @classmethod
    def upper_plate(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("year")
    @classmethod
    def check_year(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return value
        if value < 1990:
            raise ValueError("Vehicle year must be after 1990")
        if value > datetime.utcnow().year + 1:
            raise ValueError("Vehicle year cannot be in the future")
        return value


class DriverCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(pattern=r"^\+?[\d\s\-()]+$")
    vehicle: Vehicle
    user_id: Optional[str] = None


class DriverUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, pattern=r"^\+?[\d\s\-()]+$")
    vehicle: Optional[Vehicle] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    user_id: Optional[str] = None


class DriverStatusUpdate(CamelModel):
    status: DriverStatus


class Driver(CamelModel):
    id: str
    user_id: Optional[str] = None
    name: str
    email: str
    phone: str
    vehicle: Vehicle
    status: DriverStatus
    rating: float
    delivery_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class DriverPage(CamelModel):
    drivers: List[Driver]
    pagination: Pagination


class DriverStats(CamelModel):
    total_drivers: int
    active_drivers: int
    total_deliveries: int


# ------------------------- STATISTICS -------------------------
class QuickStat(CamelModel):
    label: str
    value: str
    icon: str
