from .dispatcher import DeliveryReport, NotificationDispatcher
from .senders import DeliveryStatus, HttpEmailSender, WebPushGatewaySender
from .templates import RenderedEmail, render_email, render_push

__all__ = [
    "DeliveryReport",
    "DeliveryStatus",
    "HttpEmailSender",
    "NotificationDispatcher",
    "RenderedEmail",
    "WebPushGatewaySender",
    "render_email",
    "render_push",
]
