"""
REST path resolution for the Kubernetes API.

A kind alone does not determine its URL: the plural resource name and
whether it is namespaced come from API discovery. For apps/v1
Deployment, GET /apis/apps/v1 returns an APIResourceList containing

    {"name": "deployments", "namespaced": true, "kind": "Deployment"}

which resolves to

    /apis/apps/v1/namespaces/{ns}/deployments/{name}

The core group lives under /api/v1 instead of /apis/{group}/{version}.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fleetadapter.errors import NotFoundError, StructuralParseError, TransportError
from fleetadapter.manifest.objects import GroupVersionKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class APIResource:
    """One entry of an APIResourceList."""

    name: str
    kind: str
    namespaced: bool


def group_version_path(gvk: GroupVersionKind) -> str:
    if gvk.is_core:
        return f"/api/{gvk.version}"
    return f"/apis/{gvk.group}/{gvk.version}"


class ResourcePathResolver:
    """
    Maps a GroupVersionKind to REST paths, caching discovery per group-version.

    Args:
        fetch: Coroutine returning the decoded JSON body of a GET on the
            given path
    """

    def __init__(self, fetch: Callable[[str], Awaitable[dict[str, Any]]]):
        self._fetch = fetch
        self._cache: dict[str, dict[str, APIResource]] = {}

    async def resolve(self, gvk: GroupVersionKind) -> APIResource:
        """
        Raises:
            TransportError: If the API server serves no such kind
        """
        resources = await self._resources_for(gvk)
        resource = resources.get(gvk.kind)
        if resource is None:
            # Kinds installed later (CRDs) must be picked up on the next call
            self.invalidate(gvk)
            raise TransportError(f"no matches for kind {gvk.kind!r} in version {gvk.api_version!r}", "kubernetes")
        return resource

    async def _resources_for(self, gvk: GroupVersionKind) -> dict[str, APIResource]:
        key = gvk.api_version
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        path = group_version_path(gvk)
        try:
            body = await self._fetch(path)
        except NotFoundError as e:
            raise TransportError(f"API group version {key!r} is not served", "kubernetes") from e

        resources: dict[str, APIResource] = {}
        for entry in body.get("resources") or []:
            name = entry.get("name", "")
            # Subresources such as deployments/status share the parent kind
            if not name or "/" in name:
                continue
            resources.setdefault(
                entry.get("kind", ""),
                APIResource(name=name, kind=entry.get("kind", ""), namespaced=bool(entry.get("namespaced"))),
            )

        logger.debug(f"[kubernetes] Discovered {len(resources)} resource kinds for {key}")
        self._cache[key] = resources
        return resources

    def invalidate(self, gvk: GroupVersionKind | None = None) -> None:
        """Forget discovery for one group-version, or for all of them."""
        if gvk is None:
            self._cache.clear()
        else:
            self._cache.pop(gvk.api_version, None)

    # =========================================================================
    # Paths
    # =========================================================================

    async def collection_path(self, gvk: GroupVersionKind, namespace: str = "") -> str:
        """
        Collection path. An empty namespace lists across all namespaces.
        """
        resource = await self.resolve(gvk)
        base = group_version_path(gvk)
        if resource.namespaced and namespace:
            return f"{base}/namespaces/{namespace}/{resource.name}"
        return f"{base}/{resource.name}"

    async def item_path(self, gvk: GroupVersionKind, namespace: str, name: str) -> str:
        """
        Path of a single object.

        Raises:
            StructuralParseError: If the kind is namespaced and no namespace
                was given
        """
        resource = await self.resolve(gvk)
        if resource.namespaced and not namespace:
            raise StructuralParseError(f"{gvk.kind}/{name} is namespaced but no namespace was given")
        return f"{await self.collection_path(gvk, namespace)}/{name}"
