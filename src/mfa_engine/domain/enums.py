"""MFA method and code purpose enums."""

from __future__ import annotations

from enum import Enum


class MfaMethod(str, Enum):
    """Second-factor method a user is enrolled with."""

    AUTHENTICATOR = "authenticator"
    SMS = "sms"
    EMAIL = "email"

    @property
    def is_out_of_band(self) -> bool:
        """True for methods whose codes are delivered (SMS, email)."""
        return self is not MfaMethod.AUTHENTICATOR


class CodePurpose(str, Enum):
    """Operation an issued code is scoped to."""

    LOGIN = "Login"
    ENABLE_2FA = "Enable2FA"
    DISABLE_2FA = "Disable2FA"
    REGENERATE_BACKUP_CODES = "RegenerateBackupCodes"
