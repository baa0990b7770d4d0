"""Code Issuer: random numeric codes for the SMS/email channels."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from .config import MfaSettings
from .crypto.randomness import SystemRandomSource, random_digits
from .domain.challenge import MfaChallengeCode
from .exceptions import UnsupportedMethodError
from .ports.clock import SystemClock

if TYPE_CHECKING:
    from collections.abc import Callable

    from .crypto.randomness import IRandomSource
    from .domain.enums import CodePurpose, MfaMethod
    from .ports.clock import IClock
    from .ports.repository import IChallengeCodeRepository
    from .ports.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class CodeIssuer:
    """Issues and persists single-use verification codes.

    Issuing a new code does not invalidate earlier live codes for the same
    user and purpose; each expires on its own.

    Example:
        ```python
        issuer = CodeIssuer(repository, uow_factory=InMemoryUnitOfWork)
        challenge = await issuer.issue("user-1", MfaMethod.SMS, CodePurpose.LOGIN)
        ```
    """

    def __init__(
        self,
        repository: IChallengeCodeRepository,
        *,
        uow_factory: Callable[[], UnitOfWork] | None = None,
        random_source: IRandomSource | None = None,
        clock: IClock | None = None,
        settings: MfaSettings | None = None,
    ) -> None:
        self.repository = repository
        self._uow_factory = uow_factory
        self.random_source = random_source or SystemRandomSource()
        self.clock = clock or SystemClock()
        self.settings = settings or MfaSettings()

    async def issue(
        self,
        user_id: str,
        method: MfaMethod,
        purpose: CodePurpose,
        *,
        length: int | None = None,
        expiration_minutes: int | None = None,
        uow: UnitOfWork | None = None,
    ) -> MfaChallengeCode:
        """Generate a code and persist it.

        Args:
            user_id: Owner of the code.
            method: Delivery method (SMS or email).
            purpose: Operation the code is scoped to.
            length: Number of digits; defaults to the configured length.
            expiration_minutes: Lifetime; defaults to the configured lifetime.
            uow: Active unit of work. When omitted, the code is saved and
                committed in a unit of work of its own.

        Returns:
            The persisted challenge. Its ``code`` must only be handed to the
            delivery channel.

        Raises:
            UnsupportedMethodError: For authenticator enrollments.
        """
        if not method.is_out_of_band:
            raise UnsupportedMethodError(method, "Code issuance")

        length = length if length is not None else self.settings.verification_code_length
        minutes = (
            expiration_minutes
            if expiration_minutes is not None
            else self.settings.verification_code_expiration_minutes
        )
        if minutes <= 0:
            raise ValueError(f"expiration_minutes must be positive, got {minutes}")

        now = self.clock.now()
        challenge = MfaChallengeCode(
            user_id=user_id,
            code=random_digits(self.random_source, length),
            method=method,
            purpose=purpose,
            expires_at=now + timedelta(minutes=minutes),
            created_at=now,
        )

        if uow is not None:
            await self.repository.save(challenge, uow)
        else:
            if self._uow_factory is None:
                raise ValueError("No UnitOfWork provided or configured.")
            async with self._uow_factory() as own_uow:
                await self.repository.save(challenge, own_uow)

        logger.info(
            "Issued verification code",
            extra={"user_id": user_id, "purpose": purpose.value, "method": method.value},
        )
        return challenge


__all__: list[str] = ["CodeIssuer"]
