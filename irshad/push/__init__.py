"""Web Push delivery components."""

from irshad.push.delivery import (
    deliver_to_subscription,
    dispatch,
    send_notification,
)
from irshad.push.encryption import (
    derive_keys,
    encrypt_notification,
)
from irshad.push.subscription_manager import (
    count_subscriptions,
    get_all_subscriptions,
    list_eligible,
    record_success,
    register_subscription,
    remove_expired,
    unregister_subscription,
)
from irshad.push.vapid import (
    generate_vapid_keys,
    get_vapid_public_key,
    load_vapid_keys,
    sign_vapid_jwt,
)

__all__ = [
    "send_notification",
    "deliver_to_subscription",
    "dispatch",
    "derive_keys",
    "encrypt_notification",
    "register_subscription",
    "unregister_subscription",
    "get_all_subscriptions",
    "count_subscriptions",
    "list_eligible",
    "record_success",
    "remove_expired",
    "generate_vapid_keys",
    "get_vapid_public_key",
    "load_vapid_keys",
    "sign_vapid_jwt",
]
