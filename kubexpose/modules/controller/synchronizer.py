"""
Synchronizer - turns one reconcile key into cluster calls.

Creation path: Deployment present in the cache -> ensure the Service,
then the Ingress pointing at it.

Garbage collection path: Deployment missing from the cache -> confirm
absence with a live read, then delete the Ingress and the Service.
"""

import logging
from typing import Callable, Optional

from kubexpose.modules.api.models import (
    ExposureService,
    PrimaryResource,
    ReconcileKey,
    RoutingRule,
    is_owned_by,
)
from kubexpose.modules.cluster.errors import AlreadyExistsError, ClusterAPIError, NotFoundError
from kubexpose.modules.cluster.interfaces import (
    CachedReader,
    ClusterClient,
    DerivedObject,
    LiveReader,
)

logger = logging.getLogger(__name__)

# Outcomes of deleting one derived object
DELETED = "deleted"
ABSENT = "absent"
FOREIGN = "foreign"
FAILED = "failed"


class Synchronizer:
    """Reconciles derived resources for a single key at a time."""

    def __init__(
        self,
        cache: CachedReader,
        cluster: ClusterClient,
        live: Optional[LiveReader] = None,
        ingress_class_name: Optional[str] = None,
    ):
        """
        Initialize synchronizer.

        Args:
            cache: Eventually consistent Deployment cache
            cluster: Client for Service and Ingress operations
            live: Authoritative Deployment reader (defaults to cluster)
            ingress_class_name: Optional ingressClassName for created Ingresses
        """
        self.cache = cache
        self.cluster = cluster
        self.live = live or cluster
        self.ingress_class_name = ingress_class_name

    def reconcile(self, key: ReconcileKey) -> bool:
        """
        Bring the derived resources for key in line with the Deployment.

        Returns:
            True when done (nothing left to retry), False when the key
            should be retried. Cluster errors never escape this method.
        """
        primary = self.cache.get(key.namespace, key.name)
        if primary is None:
            return self.collect_garbage(key)
        return self.ensure_exposed(primary)

    def ensure_exposed(self, primary: PrimaryResource) -> bool:
        key = primary.key
        logger.info(f"Reconcile started key={key}")

        service = ExposureService.for_primary(primary)
        if not self._create("Service", key, service, self.cluster.create_service, self.cluster.get_service):
            return False

        # Only reached once the Service exists, so the Ingress never dangles
        rule = RoutingRule.for_service(service, self.ingress_class_name)
        if not self._create("Ingress", key, rule, self.cluster.create_ingress, self.cluster.get_ingress):
            return False

        logger.info(f"Reconcile succeeded key={key}")
        return True

    def collect_garbage(self, key: ReconcileKey) -> bool:
        logger.info(f"Garbage collection started key={key}")

        try:
            self.live.get_primary(key.namespace, key.name)
        except NotFoundError:
            pass
        except ClusterAPIError as e:
            logger.error(f"Garbage collection failed key={key}: live check: {e}")
            return False
        else:
            logger.info(f"Garbage collection skipped key={key}: Deployment still exists")
            return True

        # Ingress first; a failure leaves the Service it targets in place
        outcome = self._delete("Ingress", key, self.cluster.get_ingress, self.cluster.delete_ingress)
        if outcome == FAILED:
            return False
        if outcome == FOREIGN:
            # A foreign Ingress with this name may still route to the Service
            logger.warning(f"Garbage collection left Service key={key} in place: Ingress is not managed by kubexpose")
            return True

        if self._delete("Service", key, self.cluster.get_service, self.cluster.delete_service) == FAILED:
            return False

        logger.info(f"Garbage collection succeeded key={key}")
        return True

    def _create(
        self,
        kind: str,
        key: ReconcileKey,
        desired,
        create_fn: Callable,
        get_fn: Callable[[str, str], DerivedObject],
    ) -> bool:
        try:
            create_fn(desired)
        except AlreadyExistsError:
            logger.debug(f"{kind} already exists key={key}")
            self._warn_if_foreign(kind, key, get_fn)
            return True
        except ClusterAPIError as e:
            logger.error(f"Reconcile failed key={key}: create {kind}: {e}")
            return False

        logger.info(f"Created {kind} key={key}")
        return True

    def _warn_if_foreign(self, kind: str, key: ReconcileKey, get_fn: Callable[[str, str], DerivedObject]) -> None:
        try:
            existing = get_fn(key.namespace, key.name)
        except ClusterAPIError as e:
            logger.debug(f"Could not inspect existing {kind} key={key}: {e}")
            return

        if not is_owned_by(existing.labels, existing.annotations, key):
            logger.warning(f"{kind} key={key} exists but is not managed by kubexpose")

    def _delete(
        self,
        kind: str,
        key: ReconcileKey,
        get_fn: Callable[[str, str], DerivedObject],
        delete_fn: Callable[[str, str], None],
    ) -> str:
        """
        Delete one derived object if kubexpose owns it.

        Returns:
            DELETED, ABSENT, FOREIGN (left in place) or FAILED (retryable)
        """
        try:
            existing = get_fn(key.namespace, key.name)
        except NotFoundError:
            logger.debug(f"No {kind} to delete key={key}")
            return ABSENT
        except ClusterAPIError as e:
            logger.error(f"Garbage collection failed key={key}: read {kind}: {e}")
            return FAILED

        if not is_owned_by(existing.labels, existing.annotations, key):
            logger.warning(f"Garbage collection left {kind} key={key} in place: not managed by kubexpose")
            return FOREIGN

        try:
            delete_fn(key.namespace, key.name)
        except NotFoundError:
            return ABSENT
        except ClusterAPIError as e:
            logger.error(f"Garbage collection failed key={key}: delete {kind}: {e}")
            return FAILED

        logger.info(f"Deleted {kind} key={key}")
        return DELETED
