"""Runtime configuration for the MFA engine.

Values are read from ``MFA_``-prefixed environment variables, or passed
explicitly::

    settings = MfaSettings(totp_skew_steps=0, verification_code_length=8)
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.enums import MfaMethod

MAX_SKEW_STEPS = 2


class MfaSettings(BaseSettings):
    """MFA configuration.

    Attributes:
        totp_time_step_seconds: Length of one TOTP time step.
        totp_skew_steps: Steps accepted on either side of the current one.
        verification_code_length: Digits in delivered (SMS/email) codes.
        verification_code_expiration_minutes: Lifetime of delivered codes.
        max_failed_attempts: Failed login verifications before lockout.
        lockout_minutes: Duration of a lockout.
        backup_code_count: Recovery codes generated per setup.
        issuer: Issuer label embedded in provisioning URIs.
        strict_secret_decoding: Reject malformed stored secrets instead of
            skipping unrecognised characters.
        enabled_methods: Methods this deployment offers.
    """

    model_config = SettingsConfigDict(env_prefix="MFA_", frozen=True, extra="ignore")

    totp_time_step_seconds: int = Field(default=30, gt=0)
    totp_skew_steps: int = 1
    verification_code_length: int = Field(default=6, ge=4, le=10)
    verification_code_expiration_minutes: int = Field(default=10, gt=0)
    max_failed_attempts: int = Field(default=5, gt=0)
    lockout_minutes: int = Field(default=15, gt=0)
    backup_code_count: int = Field(default=10, ge=1)
    issuer: str = "MergeECommerce"
    strict_secret_decoding: bool = False
    enabled_methods: frozenset[MfaMethod] = frozenset(MfaMethod)

    @field_validator("totp_skew_steps")
    @classmethod
    def check_skew(cls, value: int) -> int:
        if value < 0 or value > MAX_SKEW_STEPS:
            raise ValueError(
                f"totp_skew_steps must be between 0 and {MAX_SKEW_STEPS}, got {value}"
            )
        return value

    @field_validator("enabled_methods")
    @classmethod
    def check_methods(cls, value: frozenset[MfaMethod]) -> frozenset[MfaMethod]:
        if not value:
            raise ValueError("At least one MFA method must be enabled")
        return value


__all__: list[str] = ["MfaSettings", "MAX_SKEW_STEPS"]
