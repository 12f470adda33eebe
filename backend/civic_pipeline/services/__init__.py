"""Service modules - Delivery and setup layer"""
from .push_gateway import PushGatewayClient
from .notification_service import NotificationFanout
from .seed_service import SeedService

__all__ = [
    "PushGatewayClient",
    "NotificationFanout",
    "SeedService",
]
