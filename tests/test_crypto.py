"""Tests for the Base32 codec, TOTP engine and random code generation."""

from __future__ import annotations

import pyotp
import pytest

from mfa_engine.adapters.memory import ScriptedRandomSource
from mfa_engine.crypto import (
    IRandomSource,
    SystemRandomSource,
    TotpEngine,
    base32,
    random_digits,
    totp,
)

SECRET = "JBSWY3DPEHPK3PXP"
SECRET_BYTES = b"Hello!\xde\xad\xbe\xef"

# RFC 6238 appendix B seed for the SHA-256 vectors
RFC_SEED = b"12345678901234567890123456789012"

T0 = 1_700_000_000


class TestBase32:
    """Test the lenient/strict Base32 codec."""

    def test_decode_known_secret(self) -> None:
        """Test decoding the canonical authenticator example secret."""
        assert base32.decode(SECRET) == SECRET_BYTES

    def test_encode_known_secret(self) -> None:
        """Test encoding is unpadded upper-case."""
        assert base32.encode(SECRET_BYTES) == SECRET

    def test_decode_is_case_insensitive(self) -> None:
        """Test lower-case input decodes the same."""
        assert base32.decode(SECRET.lower()) == SECRET_BYTES

    def test_lenient_decode_skips_separators_and_padding(self) -> None:
        """Test whitespace, dashes and padding are ignored by default."""
        assert base32.decode("jbsw y3dp-ehpk 3pxp") == SECRET_BYTES
        assert base32.decode(SECRET + "====") == SECRET_BYTES

    def test_trailing_bits_are_discarded(self) -> None:
        """Test bits that do not fill a byte are dropped."""
        assert base32.decode("MY") == b"f"
        assert base32.decode("M") == b""

    def test_empty_input(self) -> None:
        """Test empty input decodes to empty bytes."""
        assert base32.decode("") == b""

    def test_strict_accepts_padding(self) -> None:
        """Test strict mode still accepts trailing padding."""
        assert base32.decode(SECRET + "====", strict=True) == SECRET_BYTES

    @pytest.mark.parametrize("value", ["JBSW Y3DP", "JBSW-Y3DP", "JBSWY3DP!", "JBSW1"])
    def test_strict_rejects_unknown_characters(self, value: str) -> None:
        """Test strict mode rejects anything outside the alphabet."""
        with pytest.raises(ValueError, match="Invalid Base32 character"):
            base32.decode(value, strict=True)


class TestTotp:
    """Test TOTP generation and verification."""

    @pytest.mark.parametrize(
        ("unix_time", "expected"),
        [
            (59, "119246"),
            (1_111_111_109, "084774"),
            (1_111_111_111, "062674"),
            (1_234_567_890, "819424"),
            (2_000_000_000, "698825"),
        ],
    )
    def test_rfc6238_sha256_vectors(self, unix_time: int, expected: str) -> None:
        """Test codes match the last six digits of the RFC 6238 SHA-256 vectors."""
        assert totp.generate(RFC_SEED, totp.time_step(unix_time)) == expected

    def test_time_step_floors(self) -> None:
        """Test the step is floor(unix_time / step_seconds)."""
        assert totp.time_step(59) == 1
        assert totp.time_step(60) == 2
        assert totp.time_step(T0) == 56_666_666
        assert totp.time_step(T0, step_seconds=60) == 28_333_333

    def test_time_step_rejects_non_positive_step(self) -> None:
        """Test a zero step length is rejected."""
        with pytest.raises(ValueError, match="step_seconds"):
            totp.time_step(T0, step_seconds=0)

    def test_generate_is_deterministic(self) -> None:
        """Test the same secret and step always give the same code."""
        key = base32.decode(SECRET)
        step = totp.time_step(T0)
        code = totp.generate(key, step)

        assert code == totp.generate(key, step)
        assert len(code) == 6
        assert code.isdigit()

    def test_generate_rejects_negative_step(self) -> None:
        """Test negative steps are invalid."""
        with pytest.raises(ValueError, match="negative"):
            totp.generate(base32.decode(SECRET), -1)

    def test_code_valid_within_step_and_rejected_later(self) -> None:
        """Test a code verifies later in its step but not two steps on."""
        key = base32.decode(SECRET)
        code = totp.generate(key, totp.time_step(T0))

        assert totp.verify(key, code, T0 + 29)
        assert not totp.verify(key, code, T0 + 91)

    def test_skew_window(self) -> None:
        """Test steps T-1 and T+1 are accepted and T-2/T+2 are not."""
        key = base32.decode(SECRET)
        code = totp.generate(key, totp.time_step(T0))

        assert totp.verify(key, code, T0 - 30)
        assert totp.verify(key, code, T0 + 30)
        assert not totp.verify(key, code, T0 - 60)
        assert not totp.verify(key, code, T0 + 60)

    def test_zero_skew_accepts_current_step_only(self) -> None:
        """Test skew 0 only matches the current step."""
        key = base32.decode(SECRET)
        code = totp.generate(key, totp.time_step(T0))

        assert totp.verify(key, code, T0, skew_steps=0)
        assert not totp.verify(key, code, T0 + 30, skew_steps=0)

    def test_negative_skew_rejected(self) -> None:
        """Test negative skew is a programming error."""
        with pytest.raises(ValueError, match="skew_steps"):
            totp.verify(base32.decode(SECRET), "123456", T0, skew_steps=-1)

    def test_steps_before_epoch_are_skipped(self) -> None:
        """Test the window near the epoch never tries a negative step."""
        key = base32.decode(SECRET)
        code = totp.generate(key, 0)

        assert totp.verify(key, code, 10)

    @pytest.mark.parametrize(
        "code", ["12345", "1234567", "12345a", "", " 12345", "¹²³456", "١٢٣٤٥٦"]
    )
    def test_malformed_codes_rejected(self, code: str) -> None:
        """Test anything other than six digits is rejected."""
        assert not totp.verify(base32.decode(SECRET), code, T0)

    def test_generate_secret(self) -> None:
        """Test secrets are 20 random bytes in Base32."""
        source = ScriptedRandomSource([bytes(range(20))])

        secret = totp.generate_secret(source)

        assert len(secret) == 32
        assert base32.decode(secret) == bytes(range(20))

    def test_provisioning_uri_advertises_sha256(self) -> None:
        """Test the URI tells apps to use SHA-256."""
        uri = totp.provisioning_uri(SECRET, "alice@example.com", "MergeECommerce")

        assert uri.startswith("otpauth://totp/")
        assert "secret=JBSWY3DPEHPK3PXP" in uri
        assert "issuer=MergeECommerce" in uri
        assert "algorithm=SHA256" in uri

    def test_provisioning_uri_carries_step_length(self) -> None:
        """Test an app parsing the URI derives the codes the server checks."""
        uri = totp.provisioning_uri(SECRET, "alice", "MergeECommerce", step_seconds=60)

        app = pyotp.parse_uri(uri)

        assert app.interval == 60
        assert app.at(T0) == totp.generate(base32.decode(SECRET), totp.time_step(T0, 60))

    def test_format_secret(self) -> None:
        """Test manual-entry keys are grouped by four."""
        assert totp.format_secret(SECRET) == "JBSW Y3DP EHPK 3PXP"


class TestTotpEngine:
    """Test the configured engine wrapper."""

    def test_engine_round_trip(self) -> None:
        """Test an engine accepts its own code within the window."""
        engine = TotpEngine(step_seconds=30, skew_steps=1)
        key = base32.decode(SECRET)

        code = engine.generate_at(key, T0)

        assert engine.verify(key, code, T0 + 29)
        assert not engine.verify(key, code, T0 + 91)

    def test_custom_step_length(self) -> None:
        """Test a 60s step keeps a code valid for longer."""
        engine = TotpEngine(step_seconds=60, skew_steps=0)
        key = base32.decode(SECRET)

        code = engine.generate_at(key, T0)

        assert engine.verify(key, code, T0 + 39)

    def test_non_ascii_digits_rejected(self) -> None:
        """Test look-alike digits are a plain rejection, not an error."""
        engine = TotpEngine()

        assert not engine.verify(base32.decode(SECRET), "¹²³456", T0)


class TestRandomDigits:
    """Test uniform numeric code generation."""

    def test_system_source_satisfies_protocol(self) -> None:
        """Test the production source matches the port."""
        source = SystemRandomSource()

        assert isinstance(source, IRandomSource)
        assert len(source.token_bytes(16)) == 16

    def test_keeps_leading_zeros(self) -> None:
        """Test small values are zero padded to the full length."""
        source = ScriptedRandomSource([b"\x00\x00\x00\x00\x07"])

        assert random_digits(source, 6) == "000007"

    def test_rejects_biased_samples(self) -> None:
        """Test samples above the largest multiple of 10**n are redrawn."""
        source = ScriptedRandomSource([b"\xff" * 5, b"\x00\x00\x00\x00\x2a"])

        assert random_digits(source, 6) == "000042"

    @pytest.mark.parametrize("length", [4, 6, 8, 10])
    def test_length(self, length: int) -> None:
        """Test the code has exactly the requested number of digits."""
        code = random_digits(SystemRandomSource(), length)

        assert len(code) == length
        assert code.isdigit()

    @pytest.mark.parametrize("length", [0, 11])
    def test_invalid_length(self, length: int) -> None:
        """Test lengths outside 1..10 are rejected."""
        with pytest.raises(ValueError, match="between 1 and 10"):
            random_digits(SystemRandomSource(), length)
