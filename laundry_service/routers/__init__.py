from laundry_service.routers import auth, services, orders, tracking, drivers, statistics, realtime

__all__ = ["auth", "services", "orders", "tracking", "drivers", "statistics", "realtime"]
