from .legacy_user import LegacyUser, Transaction

__all__ = [
    "LegacyUser",
    "Transaction",
]
