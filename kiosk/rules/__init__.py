from kiosk.rules.loader import (
    apply_env_overrides,
    infer_collection_name,
    load_kiosk_rules,
    load_rules,
    resolve_rules,
    validate_rules,
)
from kiosk.rules.models import (
    AccessCookieRules,
    BillingRules,
    CollectionRules,
    GroupRules,
    I18nRules,
    KioskRules,
    LocalePath,
    SessionRules,
)

__all__ = [
    "apply_env_overrides",
    "infer_collection_name",
    "load_kiosk_rules",
    "load_rules",
    "resolve_rules",
    "validate_rules",
    "AccessCookieRules",
    "BillingRules",
    "CollectionRules",
    "GroupRules",
    "I18nRules",
    "KioskRules",
    "LocalePath",
    "SessionRules",
]
