"""MfaChallengeCode aggregate: an issued out-of-band code (SMS/email)."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from ..exceptions import InvariantViolationError
from .aggregate import AggregateRoot
from .enums import CodePurpose, MfaMethod


class MfaChallengeCode(AggregateRoot):
    """A short-lived numeric code scoped to one user and one purpose.

    Mutated exactly once, when it is consumed. Expired and used rows are
    left for an external retention job.
    """

    user_id: str
    code: str = Field(repr=False)
    method: MfaMethod
    purpose: CodePurpose
    expires_at: datetime
    is_used: bool = False
    used_at: datetime | None = None
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_acceptable(self, purpose: CodePurpose, now: datetime) -> bool:
        return not self.is_used and not self.is_expired(now) and self.purpose is purpose

    def mark_used(self, *, now: datetime) -> None:
        if self.is_used:
            raise InvariantViolationError("Challenge code is already used")
        self.is_used = True
        self.used_at = now
