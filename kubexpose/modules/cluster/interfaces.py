"""Cluster access interfaces following Black Box Design principles."""
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol

from kubexpose.modules.api.events import Event
from kubexpose.modules.api.models import ExposureService, PrimaryResource, RoutingRule


@dataclass
class DerivedObject:
    """Identity and markers of a Service or Ingress as stored in the cluster."""
    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


class CachedReader(Protocol):
    """Eventually consistent view of primary resources."""

    def get(self, namespace: str, name: str) -> Optional[PrimaryResource]:
        """
        Look up a primary resource in the local cache.

        Returns:
            The resource, or None when the cache does not hold it
        """
        ...

    def has_synced(self) -> bool:
        """Check whether the initial list has been loaded."""
        ...


class NotificationSource(CachedReader, Protocol):
    """Cache that also pushes Added/Removed events to registered handlers."""

    def add_event_handler(self, handler: Callable[[Event], None]) -> None:
        ...

    def wait_for_sync(self, timeout: Optional[float] = None) -> bool:
        """Block until the initial sync completed; False on timeout."""
        ...


class LiveReader(Protocol):
    """Authoritative, cache-bypassing existence check."""

    def get_primary(self, namespace: str, name: str) -> PrimaryResource:
        """
        Read a primary resource directly from the cluster.

        Raises:
            NotFoundError: The resource does not exist
            ClusterAPIError: The cluster could not be asked
        """
        ...


class ClusterClient(LiveReader, Protocol):
    """Imperative operations on derived resources.

    create_* raises AlreadyExistsError, get_*/delete_* raise NotFoundError,
    anything else surfaces as ClusterAPIError.
    """

    def create_service(self, service: ExposureService) -> DerivedObject:
        ...

    def get_service(self, namespace: str, name: str) -> DerivedObject:
        ...

    def delete_service(self, namespace: str, name: str) -> None:
        ...

    def create_ingress(self, rule: RoutingRule) -> DerivedObject:
        ...

    def get_ingress(self, namespace: str, name: str) -> DerivedObject:
        ...

    def delete_ingress(self, namespace: str, name: str) -> None:
        ...
