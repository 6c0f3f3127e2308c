"""
Maestro broker backend (ManifestWork delivery to remote consumers).

Usage:
    from fleetadapter.clients.maestro import MaestroClient, MaestroConfig

    client = MaestroClient(MaestroConfig(
        base_url="https://maestro.example.com",
        source_id="fleet-adapter",
        ca_file="/etc/maestro/ca.crt",
    ))
"""

from fleetadapter.clients.maestro.client import MaestroClient
from fleetadapter.clients.maestro.config import MaestroConfig

__all__ = [
    "MaestroClient",
    "MaestroConfig",
]
