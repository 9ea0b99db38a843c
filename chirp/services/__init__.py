"""
Auth-Core Services Package.

Services depend on the repository layer and the auth provider adapter
for I/O, and on ``SessionManager`` for published session state.

The ``create_services()`` factory wires every adapter and service
together, returning a typed dict the UI shell can consume without
knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from chirp.auth import SessionManager
from chirp.auth_provider import AuthProvider, SupabaseAuthProvider
from chirp.backend import BackendManager
from chirp.config import AppConfig
from chirp.logger import get_logger
from chirp.models.auth_models import RetryPolicy
from chirp.models.enums import BackoffStrategy
from chirp.repositories.profile_repository import ProfileRepository, ProfileStore
from chirp.services.auth_service import AuthService
from chirp.services.connectivity import ConnectivityService
from chirp.services.credential_exchange import CredentialExchangeService
from chirp.services.profile_provisioning import ProfileProvisioningService
from chirp.services.session_bootstrap import SessionBootstrapOrchestrator
from chirp.utils.clock import Clock


class ServiceContainer(TypedDict):
    """Typed container for all auth-core services."""

    auth_service: AuthService
    credential_exchange_service: CredentialExchangeService
    profile_provisioning_service: ProfileProvisioningService
    connectivity_service: ConnectivityService
    session_bootstrap: SessionBootstrapOrchestrator


def retry_policy_from_config(config: AppConfig) -> RetryPolicy:
    """Build the exchange backoff policy from the ``RETRY_*`` settings."""
    return RetryPolicy(
        backoff_ms=config.RETRY_BACKOFF_MS,
        strategy=BackoffStrategy(config.RETRY_BACKOFF_STRATEGY),
        max_backoff_ms=config.RETRY_MAX_BACKOFF_MS,
    )


def create_services(
    backend: BackendManager,
    config: AppConfig,
    session: SessionManager,
    provider: Optional[AuthProvider] = None,
    profile_store: Optional[ProfileStore] = None,
    clock: Optional[Clock] = None,
) -> ServiceContainer:
    """
    Wire all adapters and services together.

    This is the single composition root for the auth core.  The entry
    point calls it once at startup.

    Args:
        backend: Initialised BackendManager (may be unconfigured).
        config: Application configuration.
        session: The shared session state holder.
        provider: Auth provider override; Supabase-backed by default.
        profile_store: Profile store override; Supabase-backed by default.
        clock: Clock override for backoff sleeps and timestamps.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("chirp.services")

    # ------------------------------------------------------------------
    # 1. Adapters (I/O boundary)
    # ------------------------------------------------------------------
    auth_provider: AuthProvider = provider or SupabaseAuthProvider(
        backend=backend,
        logger=logger,
    )
    store: ProfileStore = profile_store or ProfileRepository(
        backend=backend,
        logger=logger,
        table=config.PROFILES_TABLE,
    )

    # ------------------------------------------------------------------
    # 2. Leaf services
    # ------------------------------------------------------------------
    credential_exchange_service = CredentialExchangeService(
        provider=auth_provider,
        logger=logger,
        retry_policy=retry_policy_from_config(config),
        clock=clock,
    )
    profile_provisioning_service = ProfileProvisioningService(
        store=store,
        logger=logger,
        clock=clock,
    )
    connectivity_service = ConnectivityService(
        backend=backend,
        store=store,
        logger=logger,
        network_timeout_s=config.NETWORK_CHECK_TIMEOUT_S,
        probe_timeout_ms=config.CONNECTION_PROBE_TIMEOUT_MS,
    )

    # ------------------------------------------------------------------
    # 3. Orchestration services
    # ------------------------------------------------------------------
    auth_service = AuthService(
        exchange=credential_exchange_service,
        provider=auth_provider,
        config=config,
        logger=logger,
        connectivity=connectivity_service,
    )
    session_bootstrap = SessionBootstrapOrchestrator(
        provider=auth_provider,
        provisioner=profile_provisioning_service,
        session=session,
        logger=logger,
        session_timeout_ms=config.SESSION_CHECK_TIMEOUT_MS,
        provision_timeout_ms=config.PROFILE_PROVISION_TIMEOUT_MS,
    )

    return ServiceContainer(
        auth_service=auth_service,
        credential_exchange_service=credential_exchange_service,
        profile_provisioning_service=profile_provisioning_service,
        connectivity_service=connectivity_service,
        session_bootstrap=session_bootstrap,
    )
