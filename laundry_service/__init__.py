"""QuickSpin laundry pickup and delivery service."""

__version__ = "1.0.0"
