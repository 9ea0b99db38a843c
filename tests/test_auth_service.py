from types import SimpleNamespace

import pytest

from chirp.backend import BackendManager
from chirp.models.auth_models import ERROR_MESSAGES, TIMEOUT_MESSAGES, AuthErrorCode
from chirp.models.enums import ExchangeKind
from chirp.models.session import ExchangeResponse, UserIdentity
from chirp.services.auth_service import AuthService
from chirp.services.connectivity import ConnectivityService
from chirp.services.credential_exchange import CredentialExchangeService
from conftest import HANG, FakeAuthApiError


class FakeSocket:
    def close(self):
        pass


def online(address, timeout):
    return FakeSocket()


def offline(address, timeout):
    raise OSError("Network is unreachable")


@pytest.fixture
def backend(logger):
    return BackendManager(
        supabase_url="https://demo.supabase.co",
        supabase_key="anon-key",
        logger=logger,
        client=SimpleNamespace(),
    )


def build_service(provider, store, logger, clock, config, backend, connector=online):
    exchange = CredentialExchangeService(provider=provider, logger=logger, clock=clock)
    connectivity = ConnectivityService(
        backend=backend,
        store=store,
        logger=logger,
        probe_timeout_ms=100,
        connector=connector,
    )
    return AuthService(
        exchange=exchange,
        provider=provider,
        config=config,
        logger=logger,
        connectivity=connectivity,
    )


@pytest.fixture
def service(provider, store, logger, clock, config, backend):
    return build_service(provider, store, logger, clock, config, backend)


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------

def test_sign_in_success(service, provider):
    result = service.sign_in("  jane@example.com ", "hunter22")

    assert result.success
    assert result.error_code is None
    assert result.email == "jane@example.com"
    assert result.user_id == "8f14e45f-ceea-467f-a0e6-1c2a3b4d5e6f"
    assert result.attempts == 1
    assert provider.sign_in_calls == [("jane@example.com", "hunter22")]


@pytest.mark.parametrize(("email", "password"), [("", "pw"), ("jane@example.com", ""), ("   ", "pw")])
def test_sign_in_requires_both_fields(service, provider, email, password):
    result = service.sign_in(email, password)

    assert not result.success
    assert result.error_code == AuthErrorCode.VALIDATION_ERROR
    assert result.attempts == 0
    assert provider.sign_in_calls == []


def test_sign_in_invalid_credentials(service, provider):
    provider.sign_in_script = [FakeAuthApiError("Invalid login credentials")]

    result = service.sign_in("jane@example.com", "wrong")

    assert not result.success
    assert result.error_code == AuthErrorCode.INVALID_CREDENTIALS
    assert result.error_message == "Incorrect email or password."
    assert result.attempts == 1


def test_sign_in_unconfirmed_email_has_its_own_message(service, provider):
    provider.sign_in_script = [FakeAuthApiError("Email not confirmed")]

    result = service.sign_in("jane@example.com", "hunter22")

    assert result.error_code == AuthErrorCode.EMAIL_NOT_CONFIRMED
    assert result.error_message == ERROR_MESSAGES[AuthErrorCode.EMAIL_NOT_CONFIRMED]
    assert result.error_message != ERROR_MESSAGES[AuthErrorCode.INVALID_CREDENTIALS]


def test_sign_in_timeout_after_all_attempts(service, provider, clock):
    provider.sign_in_script = [HANG]

    result = service.sign_in("jane@example.com", "hunter22")

    assert result.error_code == AuthErrorCode.TIMEOUT
    assert result.error_message == TIMEOUT_MESSAGES[ExchangeKind.SIGN_IN]
    assert result.attempts == 3
    assert len(provider.sign_in_calls) == 3
    assert clock.sleeps == [1.0, 1.0]


def test_sign_in_offline_short_circuits(provider, store, logger, clock, config, backend):
    service = build_service(provider, store, logger, clock, config, backend, connector=offline)

    result = service.sign_in("jane@example.com", "hunter22")

    assert result.error_code == AuthErrorCode.NETWORK_UNAVAILABLE
    assert result.attempts == 0
    assert provider.sign_in_calls == []


def test_sign_in_provider_error_keeps_message(service, provider):
    provider.sign_in_script = [FakeAuthApiError("Database error querying schema")]

    result = service.sign_in("jane@example.com", "hunter22")

    assert result.error_code == AuthErrorCode.PROVIDER_ERROR
    assert result.error_message == "Database error querying schema"


def test_error_messages_are_distinct():
    messages = list(ERROR_MESSAGES.values()) + list(TIMEOUT_MESSAGES.values())

    assert len(messages) == len(set(messages))


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------

def sign_up(service, **overrides):
    fields = dict(
        email="jane@example.com",
        password="hunter22",
        confirm_password="hunter22",
        username="JaneDoe",
        display_name="Jane Doe",
    )
    fields.update(overrides)
    return service.sign_up(**fields)


def test_sign_up_with_session(service, provider):
    result = sign_up(service)

    assert result.success
    assert not result.requires_email_confirmation
    _, _, metadata = provider.sign_up_calls[0]
    assert metadata.username == "janedoe"
    assert metadata.display_name == "Jane Doe"


def test_sign_up_awaiting_confirmation(service, provider):
    provider.sign_up_script = [
        ExchangeResponse(user=UserIdentity(id="new-user", email="jane@example.com")),
    ]

    result = sign_up(service)

    assert result.success
    assert result.requires_email_confirmation
    assert result.user_id == "new-user"
    assert result.error_message


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": ""},
        {"username": "  "},
        {"display_name": ""},
        {"email": "not-an-email"},
        {"confirm_password": "hunter23"},
    ],
)
def test_sign_up_validation_errors(service, provider, overrides):
    result = sign_up(service, **overrides)

    assert not result.success
    assert result.error_code == AuthErrorCode.VALIDATION_ERROR
    assert provider.sign_up_calls == []


def test_sign_up_short_password_is_weak(service, provider):
    result = sign_up(service, password="abc", confirm_password="abc")

    assert result.error_code == AuthErrorCode.WEAK_PASSWORD
    assert provider.sign_up_calls == []


def test_sign_up_already_registered(service, provider):
    provider.sign_up_script = [FakeAuthApiError("User already registered")]

    result = sign_up(service)

    assert result.error_code == AuthErrorCode.EMAIL_ALREADY_REGISTERED
    assert result.attempts == 1
    assert len(provider.sign_up_calls) == 1


def test_sign_up_timeout_uses_sign_up_message(service, provider):
    provider.sign_up_script = [HANG]

    result = sign_up(service)

    assert result.error_code == AuthErrorCode.TIMEOUT
    assert result.error_message == TIMEOUT_MESSAGES[ExchangeKind.SIGN_UP]


# ---------------------------------------------------------------------------
# Sign-out and connectivity
# ---------------------------------------------------------------------------

def test_sign_out_delegates_to_provider(service, provider):
    service.sign_out()

    assert provider.sign_out_calls == 1


def test_sign_out_failure_is_not_raised(service, provider, log_stream):
    provider.sign_out_error = ConnectionError("offline")

    service.sign_out()

    assert "SIGN_OUT_FAILED" in log_stream.getvalue()


def test_backend_connection_check(service, store):
    assert service.check_backend_connection() is True

    store.probe_error = ConnectionError("refused")

    assert service.check_backend_connection() is False


def test_network_check_unknown_without_backend_url(provider, store, logger, clock, config):
    unconfigured = BackendManager(supabase_url="", supabase_key="", logger=logger)
    service = build_service(
        provider, store, logger, clock, config, unconfigured, connector=offline,
    )

    result = service.sign_in("jane@example.com", "hunter22")

    # No host to dial: the exchange itself decides.
    assert result.success
