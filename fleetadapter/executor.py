"""
Resource executor for fleetadapter.

Drives each managed resource through apply and post-apply discovery:

    1. Select the transport client for the resource
    2. Serialize the rendered manifest
    3. apply_resource (discover -> decide -> create/update/recreate/skip)
    4. Discover the applied object (by name, or by selector picking the
       highest generation) and any manifests nested inside it

Apply failures fail the resource. Discovery after apply is observation
only: its failures are logged and recorded on the result, never turned
into a resource failure.

Independent resources run concurrently in execute_all(); each resource's
own steps are strictly sequential.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from fleetadapter.config.schemas import ManagedResource
from fleetadapter.errors import (
    AdapterError,
    CancellationError,
    ConfigurationError,
    ExecutorError,
    NotFoundError,
    StructuralParseError,
)
from fleetadapter.manifest.discovery import discover_nested_manifest
from fleetadapter.manifest.generation import Operation, get_latest_generation_from_list
from fleetadapter.manifest.objects import Resource, describe
from fleetadapter.observability import ReconcileLogger
from fleetadapter.transports.protocol import TransportClient, TransportContext, TransportType
from fleetadapter.transports.registry import TransportRegistry, get_transport_registry

logger = logging.getLogger(__name__)


class ResourceStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ResourceResult:
    """
    Outcome of executing one managed resource.

    Attributes:
        name: Managed resource name
        status: success or failed
        transport: Backend that served the resource
        operation: Operation performed (None if apply failed)
        reason: Why the operation was chosen
        error: Apply failure, if any
        discovered: Object found by post-apply discovery
        nested: Nested discovery matches keyed by nested discovery name
        discovery_error: Post-apply discovery failure message, if any
        duration_ms: Wall time spent on the resource
    """

    name: str
    status: ResourceStatus = ResourceStatus.SUCCESS
    transport: TransportType | None = None
    operation: Operation | None = None
    reason: str = ""
    error: BaseException | None = None
    discovered: Resource | None = None
    nested: dict[str, Resource] = field(default_factory=dict)
    discovery_error: str | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status is ResourceStatus.SUCCESS


class ResourceExecutor:
    """
    Applies managed resources through the registered transport clients.

    Example:
        registry = create_transport_registry(load_settings())
        executor = ResourceExecutor(registry, timeout=30.0)
        results = await executor.execute_all(resources, concurrency=4)
    """

    def __init__(
        self,
        registry: TransportRegistry | None = None,
        *,
        timeout: float | None = None,
        reconcile_logger: ReconcileLogger | None = None,
    ):
        """
        Args:
            registry: Transport registry (defaults to the global one)
            timeout: Per-resource deadline in seconds; None disables it
            reconcile_logger: Structured event logger
        """
        self._registry = registry if registry is not None else get_transport_registry()
        self._timeout = timeout
        self._events = reconcile_logger or ReconcileLogger()

    async def execute(self, resource: ManagedResource) -> ResourceResult:
        """
        Apply one resource and discover what was applied.

        Raises:
            ExecutorError: If the resource could not be applied; the
                underlying error is __cause__ (a CancellationError when
                the deadline expired)
        """
        result = ResourceResult(name=resource.name, transport=resource.transport_type)
        started = time.perf_counter()
        self._events.resource_started(resource.name, resource.transport_type.value)

        try:
            if self._timeout is None:
                await self._execute(resource, result)
            else:
                try:
                    await asyncio.wait_for(self._execute(resource, result), self._timeout)
                except asyncio.TimeoutError as e:
                    raise CancellationError(
                        f"resource {resource.name!r} did not finish within {self._timeout}s"
                    ) from e
        except Exception as e:
            result.status = ResourceStatus.FAILED
            result.error = e
            result.duration_ms = (time.perf_counter() - started) * 1000
            self._events.resource_failed(
                resource.name,
                resource.transport_type.value,
                str(e),
                type(e).__name__,
                result.duration_ms,
            )
            raise ExecutorError(resource.name, f"failed to apply resource: {e}", results=[result]) from e

        result.duration_ms = (time.perf_counter() - started) * 1000
        self._events.resource_applied(
            resource.name,
            resource.transport_type.value,
            result.operation.value if result.operation else "",
            result.reason,
            result.duration_ms,
        )
        return result

    async def execute_all(
        self,
        resources: Sequence[ManagedResource],
        concurrency: int | None = None,
    ) -> list[ResourceResult]:
        """
        Execute independent resources concurrently.

        Args:
            resources: Resources to execute
            concurrency: Max resources in flight (None or 0 for unbounded)

        Returns:
            Results in input order

        Raises:
            ConfigurationError: If concurrency is negative
            ExecutorError: After all resources finished, if any failed; the
                error carries every result and chains the first failure
        """
        if concurrency is not None and concurrency < 0:
            raise ConfigurationError(f"concurrency must be >= 0, got {concurrency}")
        semaphore = asyncio.Semaphore(concurrency) if concurrency else None

        async def run(resource: ManagedResource) -> tuple[ResourceResult, ExecutorError | None]:
            try:
                if semaphore is None:
                    return await self.execute(resource), None
                async with semaphore:
                    return await self.execute(resource), None
            except ExecutorError as e:
                return e.results[0], e

        outcomes = await asyncio.gather(*(run(r) for r in resources))
        results = [result for result, _ in outcomes]
        failures = [error for _, error in outcomes if error is not None]

        if failures:
            first = failures[0]
            raise ExecutorError(
                first.resource_name,
                f"{len(failures)} of {len(results)} resources failed; first: {first.__cause__}",
                results=results,
            ) from first.__cause__

        return results

    # =========================================================================
    # Steps
    # =========================================================================

    async def _execute(self, resource: ManagedResource, result: ResourceResult) -> None:
        client = self._registry.get(resource.transport_type)
        target = resource.routing_context()

        logger.debug(f"Applying resource {resource.name} via {resource.transport_type.value}")
        applied = await client.apply_resource(resource.render_bytes(), resource.apply_options(), target)

        result.operation = applied.operation
        result.reason = applied.reason
        logger.info(
            f"Resource[{resource.name}] processed: operation={applied.operation.value} "
            f"reason={applied.reason}"
        )

        if resource.discovery is None:
            return

        try:
            discovered = await self._discover(client, resource, target)
        except AdapterError as e:
            result.discovery_error = str(e)
            logger.warning(f"Resource[{resource.name}] discovery after apply failed: {e}")
            self._events.discovery_failed(resource.name, str(e))
            return

        result.discovered = discovered
        if resource.nested_discoveries:
            result.nested = self._discover_nested(resource, discovered, result)

    async def _discover(
        self,
        client: TransportClient,
        resource: ManagedResource,
        target: TransportContext,
    ) -> Resource:
        discovery = resource.discovery.to_discovery()
        gvk = resource.gvk

        if discovery.is_single_resource() and discovery.get_namespace():
            return await client.get_resource(gvk, discovery.get_namespace(), discovery.get_name(), target)

        if discovery.is_single_resource() or discovery.labels:
            candidates = await client.discover_resources(gvk, discovery, target)
            latest = get_latest_generation_from_list(candidates)
            if latest is None:
                if discovery.get_name():
                    criteria = f"name {discovery.get_name()!r}"
                else:
                    criteria = f"selector {discovery.get_label_selector()!r}"
                raise NotFoundError(f"no {gvk.kind} matched {criteria}", kind=gvk.kind)
            return latest

        raise ConfigurationError("discovery must specify byName or bySelectors")

    def _discover_nested(
        self,
        resource: ManagedResource,
        parent: Resource,
        result: ResourceResult,
    ) -> dict[str, Resource]:
        found: dict[str, Resource] = {}

        for nested in resource.nested_discoveries:
            try:
                matches = discover_nested_manifest(parent, nested.discovery.to_discovery())
            except StructuralParseError as e:
                result.discovery_error = str(e)
                logger.warning(f"Resource[{resource.name}] nested discovery[{nested.name}] failed: {e}")
                self._events.discovery_failed(resource.name, str(e), nested=nested.name)
                continue

            best = get_latest_generation_from_list(matches)
            if best is None:
                logger.debug(f"Resource[{resource.name}] nested discovery[{nested.name}] found no matches")
                continue

            found[nested.name] = best
            logger.debug(f"Resource[{resource.name}] nested discovery[{nested.name}] found: {describe(best)}")

        return found
