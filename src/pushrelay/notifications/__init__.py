from pushrelay.notifications.dispatcher import PushDispatcher
from pushrelay.notifications.push import PushNotifier
from pushrelay.notifications.store import PushSubscriptionStore
from pushrelay.notifications.vapid import VapidKeys, load_vapid_keys

__all__ = [
    "PushDispatcher",
    "PushNotifier",
    "PushSubscriptionStore",
    "VapidKeys",
    "load_vapid_keys",
]
