"""Explicit session context for the signed-in party."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from pydantic import SecretStr

from .enums import Actor, UserRole
from .exceptions import UnauthorizedError
from .models import PayerIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Credential plus cached profile of the signed-in user."""

    token: SecretStr
    user_id: str
    role: UserRole
    full_name: str = ""
    email: str = ""
    phone: str = ""

    @property
    def actor(self) -> Actor:
        return Actor.for_role(self.role)

    @property
    def is_seeker(self) -> bool:
        return self.role == UserRole.SEEKER

    @property
    def is_consultant(self) -> bool:
        return self.role == UserRole.CONSULTANT

    def bearer(self) -> str:
        token = self.token.get_secret_value().strip()
        if not token:
            raise UnauthorizedError("session_token_missing")
        return token

    def as_payer(self) -> PayerIdentity:
        return PayerIdentity(full_name=self.full_name, email=self.email, phone=self.phone)


class SessionManager:
    """Single init/teardown point for the session context."""

    def __init__(self) -> None:
        self._current: SessionContext | None = None

    def sign_in(
        self,
        *,
        token: str,
        user_id: str,
        role: UserRole | str,
        full_name: str = "",
        email: str = "",
        phone: str = "",
    ) -> SessionContext:
        self._current = SessionContext(
            token=SecretStr(token),
            user_id=user_id,
            role=UserRole(role),
            full_name=full_name,
            email=email,
            phone=phone,
        )
        logger.info("Signed in %s as %s", user_id, self._current.role.value)
        return self._current

    def sign_out(self) -> None:
        if self._current is not None:
            logger.info("Signed out %s", self._current.user_id)
        self._current = None

    @property
    def is_signed_in(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> SessionContext:
        if self._current is None:
            raise UnauthorizedError("not_signed_in")
        return self._current
