from consultspace.enums import Actor, UserRole
from consultspace.exceptions import UnauthorizedError
from consultspace.session import SessionContext, SessionManager
from pydantic import SecretStr
import pytest


def test_sign_in_and_out():
    manager = SessionManager()
    assert not manager.is_signed_in

    ctx = manager.sign_in(token="tok", user_id="u1", role="consultant", full_name="Dev Mehta")
    assert manager.current is ctx
    assert ctx.role == UserRole.CONSULTANT
    assert ctx.actor == Actor.CONSULTANT
    assert ctx.is_consultant and not ctx.is_seeker
    assert ctx.bearer() == "tok"

    manager.sign_out()
    with pytest.raises(UnauthorizedError):
        manager.current


def test_unknown_role_rejected():
    with pytest.raises(ValueError):
        SessionManager().sign_in(token="tok", user_id="u1", role="admin")


def test_blank_token_has_no_bearer():
    ctx = SessionContext(token=SecretStr("  "), user_id="u1", role=UserRole.SEEKER)
    with pytest.raises(UnauthorizedError) as excinfo:
        ctx.bearer()
    assert excinfo.value.user_message == "Your session has expired. Please sign in again."


def test_token_hidden_from_repr(seeker_session):
    assert "seeker-token" not in repr(seeker_session)
    assert seeker_session.as_payer().full_name == "Asha Rao"
