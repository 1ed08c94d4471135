from prometheus_client import Counter

ORDERS_CREATED = Counter(
    "laundry_orders_created_total",
    "Total orders created"
)

ORDER_STATUS_UPDATES = Counter(
    "laundry_order_status_updates_total",
    "Order status changes by target status",
    ["status"]
)

QR_VERIFICATIONS = Counter(
    "laundry_qr_verifications_total",
    "Pickup QR verification attempts",
    ["result"]
)

NOTIFICATIONS_PUBLISHED = Counter(
    "laundry_notifications_published_total",
    "Realtime notifications published",
    ["event_type"]
)
