from __future__ import annotations

from consultspace.config import Settings
from consultspace.enums import UserRole
from consultspace.session import SessionContext
from pydantic import SecretStr
import pytest

from factories import API


@pytest.fixture
def settings() -> Settings:
    return Settings(api_base_url=API, api_token="svc", timezone="UTC")


@pytest.fixture
def seeker_session() -> SessionContext:
    return SessionContext(
        token=SecretStr("seeker-token"),
        user_id="seeker-1",
        role=UserRole.SEEKER,
        full_name="Asha Rao",
        email="asha@example.com",
        phone="9990001111",
    )


@pytest.fixture
def consultant_session() -> SessionContext:
    return SessionContext(
        token=SecretStr("consultant-token"),
        user_id="consultant-1",
        role=UserRole.CONSULTANT,
    )
