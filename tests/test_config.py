"""Tests for MfaSettings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mfa_engine import MfaMethod, MfaSettings


class TestMfaSettings:
    """Test defaults, validation and environment loading."""

    def test_defaults(self) -> None:
        """Test the documented defaults."""
        settings = MfaSettings()

        assert settings.totp_time_step_seconds == 30
        assert settings.totp_skew_steps == 1
        assert settings.verification_code_length == 6
        assert settings.verification_code_expiration_minutes == 10
        assert settings.max_failed_attempts == 5
        assert settings.lockout_minutes == 15
        assert settings.backup_code_count == 10
        assert settings.issuer == "MergeECommerce"
        assert not settings.strict_secret_decoding
        assert settings.enabled_methods == frozenset(MfaMethod)

    @pytest.mark.parametrize("skew", [-1, 3])
    def test_skew_bounds(self, skew: int) -> None:
        """Test skew is limited to 0..2 steps."""
        with pytest.raises(ValidationError, match="totp_skew_steps"):
            MfaSettings(totp_skew_steps=skew)

    @pytest.mark.parametrize("length", [3, 11])
    def test_code_length_bounds(self, length: int) -> None:
        """Test delivered codes are 4 to 10 digits."""
        with pytest.raises(ValidationError):
            MfaSettings(verification_code_length=length)

    def test_non_positive_expiration(self) -> None:
        """Test codes must have a positive lifetime."""
        with pytest.raises(ValidationError):
            MfaSettings(verification_code_expiration_minutes=0)

    def test_enabled_methods_cannot_be_empty(self) -> None:
        """Test at least one method stays available."""
        with pytest.raises(ValidationError, match="At least one MFA method"):
            MfaSettings(enabled_methods=frozenset())

    def test_frozen(self) -> None:
        """Test settings cannot be changed after construction."""
        settings = MfaSettings()

        with pytest.raises(ValidationError):
            settings.issuer = "Other"  # type: ignore[misc]

    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test MFA_* environment variables override defaults."""
        monkeypatch.setenv("MFA_TOTP_SKEW_STEPS", "2")
        monkeypatch.setenv("MFA_ISSUER", "Acme")
        monkeypatch.setenv("MFA_STRICT_SECRET_DECODING", "true")

        settings = MfaSettings()

        assert settings.totp_skew_steps == 2
        assert settings.issuer == "Acme"
        assert settings.strict_secret_decoding

    def test_invalid_environment_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test invalid environment values fail at load time."""
        monkeypatch.setenv("MFA_TOTP_SKEW_STEPS", "5")

        with pytest.raises(ValidationError):
            MfaSettings()
