import pytest

from chirp.auth import SessionManager
from chirp.errors import AuthenticationError
from chirp.guards import require_session
from chirp.models.enums import AuthState
from conftest import make_session


@pytest.fixture
def session_state():
    return SessionManager()


def test_guard_refuses_while_loading(session_state):
    @require_session(session_state)
    def load_feed():
        return ["post"]

    with pytest.raises(AuthenticationError, match="LOADING"):
        load_feed()


def test_guard_allows_authenticated_calls(session_state):
    @require_session(session_state)
    def load_feed(limit):
        return ["post"] * limit

    session_state.set_authenticated(make_session(), None)

    assert load_feed(2) == ["post", "post"]
    assert load_feed.__name__ == "load_feed"


def test_guard_locks_after_sign_out(session_state):
    guarded = require_session(session_state)(lambda: "ok")
    session_state.set_authenticated(make_session(), None)
    assert guarded() == "ok"

    session_state.set_unauthenticated()

    with pytest.raises(AuthenticationError):
        guarded()


def test_session_manager_exposes_current_user(session_state):
    with pytest.raises(RuntimeError):
        session_state.get_current_user()
    assert session_state.is_token_expired

    session = make_session()
    session_state.set_authenticated(session, None)

    assert session_state.state == AuthState.AUTHENTICATED
    assert session_state.is_authenticated
    assert session_state.get_current_user() == session.user
    assert session_state.access_token == "access-token"
    assert not session_state.is_token_expired
