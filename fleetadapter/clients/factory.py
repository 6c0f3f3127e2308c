"""
Build backend clients from AdapterSettings and register them.

Usage:
    settings = load_settings()
    registry = create_transport_registry(settings)
    executor = ResourceExecutor(registry)
"""

from __future__ import annotations

import logging

from fleetadapter.clients.kubernetes import KubernetesClient, KubernetesConfig
from fleetadapter.clients.maestro import MaestroClient, MaestroConfig
from fleetadapter.config.settings import AdapterSettings
from fleetadapter.transports.registry import TransportRegistry, get_transport_registry

logger = logging.getLogger(__name__)


def create_kubernetes_client(settings: AdapterSettings) -> KubernetesClient:
    """
    Create a KubernetesClient.

    The kubeconfig comes from settings, then $KUBECONFIG, then the
    in-cluster service account.
    """
    config = KubernetesConfig.auto(
        settings.kubeconfig,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        deletion_timeout=settings.deletion_timeout,
    )
    return KubernetesClient(config)


def create_maestro_client(settings: AdapterSettings) -> MaestroClient:
    """
    Create a MaestroClient.

    Raises:
        ConfigurationError: If the broker settings are incomplete
    """
    config = MaestroConfig(
        base_url=settings.maestro_server,
        source_id=settings.maestro_source_id,
        token=settings.maestro_token.get_secret_value() if settings.maestro_token else None,
        token_file=settings.maestro_token_file,
        ca_file=settings.maestro_ca_file,
        client_cert_file=settings.maestro_client_cert_file,
        client_key_file=settings.maestro_client_key_file,
        insecure=settings.maestro_insecure,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        deletion_timeout=settings.deletion_timeout,
    )
    logger.info(
        f"[maestro] Creating client for {settings.maestro_server} "
        f"(sourceID={settings.maestro_source_id})"
    )
    return MaestroClient(config)


def create_transport_registry(
    settings: AdapterSettings,
    registry: TransportRegistry | None = None,
) -> TransportRegistry:
    """
    Create and register every backend enabled in settings.

    Uses the global registry unless one is given.
    """
    registry = registry if registry is not None else get_transport_registry()

    if settings.kubernetes_enabled:
        registry.register(create_kubernetes_client(settings))
    if settings.maestro_enabled:
        registry.register(create_maestro_client(settings))

    if not registry.registered_types:
        logger.warning("No transport clients configured")
    return registry
