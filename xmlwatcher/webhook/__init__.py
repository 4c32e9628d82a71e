"""
Webhook delivery: payload, HTTP dispatch and response overwrite
"""
from .payload import NotificationPayload, PayloadBuilder, EVENT_NAME
from .client import WebhookDispatcher, DispatchResult
from .overwrite import OverwriteApplier

__all__ = [
    'NotificationPayload',
    'PayloadBuilder',
    'EVENT_NAME',
    'WebhookDispatcher',
    'DispatchResult',
    'OverwriteApplier',
]
