"""
Maestro Broker Client for fleetadapter.

Delivers resources to a remote consumer cluster by wrapping them in a
ManifestWork envelope and handing it to the Maestro broker. The remote
cluster's actual state is never observed here: a successful call means
the broker accepted the envelope, not that the consumer converged.

Usage:
    async with MaestroClient(config) as client:
        result = await client.apply_resource(
            rendered_work_bytes,
            ApplyOptions(),
            BrokerRouting(consumer="cluster-abc"),
        )

        # Inner manifests are discoverable by their own kind
        namespaces = await client.discover_resources(
            GroupVersionKind("", "v1", "Namespace"),
            DiscoveryConfig(by_name="cluster-abc"),
            BrokerRouting(consumer="cluster-abc"),
        )

Change detection happens on the envelope: its generation annotation is
compared with the stored envelope's, inner manifests are only validated.

API surface:
    /apis/work.open-cluster-management.io/v1/namespaces/{consumer}/manifestworks[/{name}]
"""

from __future__ import annotations

import logging
import ssl

import httpx

from fleetadapter.clients.base import APIClient
from fleetadapter.clients.maestro.config import MaestroConfig
from fleetadapter.constants import MANIFEST_WORK_GROUP, MANIFEST_WORK_KIND
from fleetadapter.errors import ConfigurationError, NotFoundError
from fleetadapter.manifest.discovery import (
    Discovery,
    discover_nested_manifest,
    matches_discovery_criteria,
)
from fleetadapter.manifest.generation import (
    Operation,
    apply_recreate_policy,
    compare_generations,
    validate_envelope_generation,
)
from fleetadapter.manifest.objects import (
    GroupVersionKind,
    Resource,
    get_api_version,
    get_kind,
    get_name,
    get_namespace,
)
from fleetadapter.manifest.work import ManifestWork
from fleetadapter.transports.protocol import (
    ApplyOptions,
    ApplyResult,
    BrokerRouting,
    TransportContext,
    TransportType,
)

logger = logging.getLogger(__name__)

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"
SOURCE_ID_HEADER = "X-Source-Id"


def _consumer_of(target: TransportContext | None) -> str:
    if isinstance(target, BrokerRouting):
        return target.consumer
    return ""


def _is_manifest_work(gvk: GroupVersionKind) -> bool:
    return gvk.kind == MANIFEST_WORK_KIND and gvk.group == MANIFEST_WORK_GROUP


class MaestroClient(APIClient):
    """
    Async client for the Maestro ManifestWork API.

    Provides:
    - ManifestWork CRUD scoped to a consumer
    - Generation-aware envelope apply
    - Discovery of envelopes and of manifests nested inside them
    """

    def __init__(
        self,
        config: MaestroConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config, transport=transport)
        self._config: MaestroConfig = config

    @property
    def name(self) -> str:
        return "maestro"

    @property
    def transport_type(self) -> TransportType:
        return TransportType.MAESTRO

    @property
    def source_id(self) -> str:
        return self._config.source_id

    def _get_auth_headers(self) -> dict[str, str]:
        headers = {SOURCE_ID_HEADER: self._config.source_id}
        token = self._config.resolve_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _get_verify(self) -> ssl.SSLContext | bool:
        if self._config.insecure:
            return False
        if not (self._config.ca_file or self._config.client_cert_file):
            return True

        context = ssl.create_default_context(cafile=self._config.ca_file)
        if self._config.client_cert_file:
            context.load_cert_chain(self._config.client_cert_file, self._config.client_key_file)
        return context

    @staticmethod
    def _works_path(consumer: str, name: str | None = None) -> str:
        path = f"/apis/{MANIFEST_WORK_GROUP}/v1/namespaces/{consumer}/manifestworks"
        if name:
            path = f"{path}/{name}"
        return path

    # =========================================================================
    # ManifestWork CRUD
    # =========================================================================

    async def create_manifest_work(self, consumer: str, work: ManifestWork) -> ManifestWork:
        """
        Create a ManifestWork for a consumer.

        Raises:
            InvalidGenerationError: If the envelope or an inner manifest
                has no valid generation
        """
        validate_envelope_generation(work)
        work = work.with_namespace(consumer)

        logger.debug(
            f"[maestro] Creating ManifestWork {consumer}/{work.name} "
            f"(generation={work.generation}, manifests={len(work.manifests)})"
        )
        response = await self._request("POST", self._works_path(consumer), json=work.to_dict())

        logger.info(f"[maestro] Created ManifestWork {consumer}/{work.name}")
        return ManifestWork.from_dict(response.json())

    async def get_manifest_work(self, consumer: str, name: str) -> ManifestWork:
        """
        Raises:
            NotFoundError: If the consumer has no such ManifestWork
        """
        logger.debug(f"[maestro] Getting ManifestWork {consumer}/{name}")
        try:
            response = await self._request("GET", self._works_path(consumer, name))
        except NotFoundError as e:
            raise NotFoundError(
                f"ManifestWork {consumer}/{name} not found",
                backend=self.name,
                kind=MANIFEST_WORK_KIND,
                name=name,
            ) from e
        return ManifestWork.from_dict(response.json())

    async def list_manifest_works(self, consumer: str, selector: str = "") -> list[ManifestWork]:
        logger.debug(f"[maestro] Listing ManifestWorks for {consumer} (labelSelector: {selector})")

        params = {"labelSelector": selector} if selector else None
        response = await self._request("GET", self._works_path(consumer), params=params)

        works = [ManifestWork.from_dict(item) for item in response.json().get("items") or []]
        logger.debug(f"[maestro] Listed {len(works)} ManifestWorks for {consumer}")
        return works

    async def patch_manifest_work(self, consumer: str, name: str, patch: dict) -> ManifestWork:
        """Apply a JSON merge patch to a ManifestWork."""
        logger.debug(f"[maestro] Patching ManifestWork {consumer}/{name}")

        response = await self._request(
            "PATCH",
            self._works_path(consumer, name),
            json=patch,
            headers={"Content-Type": MERGE_PATCH_CONTENT_TYPE},
        )

        logger.info(f"[maestro] Patched ManifestWork {consumer}/{name}")
        return ManifestWork.from_dict(response.json())

    async def delete_manifest_work(self, consumer: str, name: str) -> None:
        """Delete a ManifestWork. One that is already gone is not an error."""
        logger.debug(f"[maestro] Deleting ManifestWork {consumer}/{name}")
        try:
            await self._request("DELETE", self._works_path(consumer, name))
        except NotFoundError:
            logger.debug(f"[maestro] ManifestWork {consumer}/{name} already deleted")
            return
        logger.info(f"[maestro] Deleted ManifestWork {consumer}/{name}")

    # =========================================================================
    # Apply
    # =========================================================================

    async def apply_manifest_work(
        self,
        consumer: str,
        work: ManifestWork,
        options: ApplyOptions | None = None,
    ) -> ApplyResult:
        """
        Create, patch, recreate or skip a ManifestWork by envelope generation.

        Raises:
            InvalidGenerationError: If any generation in the envelope is invalid
            StructuralParseError: If an inner manifest is not an object
            TransportError: If a broker call fails
        """
        validate_envelope_generation(work)
        work = work.with_namespace(consumer)

        try:
            existing = await self.get_manifest_work(consumer, work.name)
        except NotFoundError:
            existing = None

        decision = compare_generations(
            work.generation,
            existing.generation if existing is not None else 0,
            existing is not None,
        )
        decision = apply_recreate_policy(decision, options)

        logger.debug(
            f"[maestro] ManifestWork {consumer}/{work.name}: "
            f"operation={decision.operation.value} reason={decision.reason}"
        )

        if decision.operation is Operation.CREATE:
            await self.create_manifest_work(consumer, work)

        elif decision.operation is Operation.UPDATE:
            await self.patch_manifest_work(consumer, work.name, work.merge_patch())

        elif decision.operation is Operation.RECREATE:
            await self.delete_manifest_work(consumer, work.name)
            await self._wait_for_deletion(
                lambda: self.get_manifest_work(consumer, work.name),
                f"ManifestWork {consumer}/{work.name}",
            )
            await self.create_manifest_work(consumer, work)

        return ApplyResult(operation=decision.operation, reason=decision.reason)

    async def apply_resource(
        self,
        manifest: bytes,
        options: ApplyOptions | None = None,
        target: TransportContext | None = None,
    ) -> ApplyResult:
        """
        Parse rendered ManifestWork bytes and apply them to the routed consumer.

        Raises:
            ConfigurationError: If no consumer is given in the routing context
        """
        consumer = _consumer_of(target)
        if not consumer:
            raise ConfigurationError(
                "consumer name (target cluster) is required: pass BrokerRouting(consumer=...)"
            )

        work = ManifestWork.parse(manifest)
        logger.info(f"[maestro] Applying ManifestWork {consumer}/{work.name}")
        return await self.apply_manifest_work(consumer, work, options)

    # =========================================================================
    # Discovery
    # =========================================================================

    async def discover_manifest(
        self,
        consumer: str,
        work_name: str,
        discovery: Discovery,
    ) -> list[Resource]:
        """Find manifests inside one stored ManifestWork."""
        work = await self.get_manifest_work(consumer, work_name)
        matches = discover_nested_manifest(work, discovery)
        logger.debug(f"[maestro] Discovered {len(matches)} manifests in {consumer}/{work_name}")
        return matches

    def discover_manifest_in_work(self, work: ManifestWork | Resource, discovery: Discovery) -> list[Resource]:
        return discover_nested_manifest(work, discovery)

    async def get_resource(
        self,
        gvk: GroupVersionKind,
        namespace: str,
        name: str,
        target: TransportContext | None = None,
    ) -> Resource:
        """
        Fetch an envelope, or a manifest nested in any of the consumer's envelopes.

        Raises:
            NotFoundError: If nothing matches, or no consumer was given
        """
        consumer = _consumer_of(target)
        if not consumer:
            raise NotFoundError(
                f"{gvk.kind} {name!r} not found (no consumer)",
                backend=self.name,
                kind=gvk.kind,
                name=name,
            )

        if _is_manifest_work(gvk):
            work = await self.get_manifest_work(consumer, name)
            return work.to_dict()

        for work in await self.list_manifest_works(consumer):
            for inner in work.manifests:
                if (
                    get_kind(inner) == gvk.kind
                    and get_api_version(inner) == gvk.api_version
                    and get_namespace(inner) == namespace
                    and get_name(inner) == name
                ):
                    return inner

        raise NotFoundError(
            f"{gvk.kind} {name!r} not found in ManifestWorks of {consumer}",
            backend=self.name,
            kind=gvk.kind,
            name=name,
        )

    async def discover_resources(
        self,
        gvk: GroupVersionKind,
        discovery: Discovery | None,
        target: TransportContext | None = None,
    ) -> list[Resource]:
        """
        Match envelopes themselves for the ManifestWork kind, otherwise the
        manifests nested inside every envelope of the consumer.

        Returns an empty list when no consumer was given.
        """
        consumer = _consumer_of(target)
        if not consumer or discovery is None:
            return []

        works = await self.list_manifest_works(consumer)

        if _is_manifest_work(gvk):
            return [
                work.to_dict()
                for work in works
                if matches_discovery_criteria(work.raw, discovery)
            ]

        found: list[Resource] = []
        for work in works:
            found.extend(
                inner
                for inner in discover_nested_manifest(work, discovery)
                if get_kind(inner) == gvk.kind and get_api_version(inner) == gvk.api_version
            )
        return found
