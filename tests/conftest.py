"""
Shared pytest fixtures for Kubexpose tests.

This module provides common fixtures including:
- FakeCluster: In-memory cluster client with failure injection
- FakeSource: Notification source driven directly by tests
- Queue helpers for blocking get() calls
"""

import os
import sys
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubexpose.modules.api.events import Added, Event, Removed
from kubexpose.modules.api.models import (
    ExposureService,
    PrimaryResource,
    RoutingRule,
)
from kubexpose.modules.cluster.errors import AlreadyExistsError, ClusterAPIError, NotFoundError
from kubexpose.modules.cluster.interfaces import DerivedObject


# =============================================================================
# Fake Cluster
# =============================================================================

class FakeCluster:
    """
    In-memory stand-in for KubernetesClusterClient.

    Stores manifests keyed by (namespace, name) and records every call as
    (operation, kind, "namespace/name"). Failures are injected per
    (operation, kind) and consumed in order.

    Usage:
        def test_retry(fake_cluster):
            fake_cluster.fail("create", "Service")
            assert synchronizer.reconcile(key) is False
            assert fake_cluster.calls == [("create", "Service", "default/web")]
    """

    def __init__(self):
        self.deployments: Dict[Tuple[str, str], PrimaryResource] = {}
        self.services: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.ingresses: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self._failures: Dict[Tuple[str, str], List[Exception]] = {}
        self._lock = threading.Lock()

    def fail(self, op: str, kind: str, error: Optional[Exception] = None, times: int = 1) -> "FakeCluster":
        """Make the next `times` calls of op on kind raise error."""
        error = error or ClusterAPIError(f"injected {op} {kind} failure", status=500)
        self._failures.setdefault((op, kind), []).extend([error] * times)
        return self

    def calls_for(self, op: str, kind: str) -> List[str]:
        return [key for o, k, key in self.calls if o == op and k == kind]

    def _record(self, op: str, kind: str, namespace: str, name: str) -> None:
        self.calls.append((op, kind, f"{namespace}/{name}"))
        pending = self._failures.get((op, kind))
        if pending:
            raise pending.pop(0)

    # Primary kind

    def add_deployment(self, resource: PrimaryResource) -> None:
        with self._lock:
            self.deployments[(resource.namespace, resource.name)] = resource

    def remove_deployment(self, namespace: str, name: str) -> None:
        with self._lock:
            self.deployments.pop((namespace, name), None)

    def get_primary(self, namespace: str, name: str) -> PrimaryResource:
        with self._lock:
            self._record("get", "Deployment", namespace, name)
            try:
                return self.deployments[(namespace, name)]
            except KeyError:
                raise NotFoundError(f"Deployment {namespace}/{name} not found", status=404)

    # Derived kinds

    def _create(self, kind: str, store: Dict, manifest: Dict[str, Any]) -> DerivedObject:
        meta = manifest["metadata"]
        with self._lock:
            self._record("create", kind, meta["namespace"], meta["name"])
            if (meta["namespace"], meta["name"]) in store:
                raise AlreadyExistsError(f"{kind} already exists", status=409)
            store[(meta["namespace"], meta["name"])] = manifest
        return self._as_derived(manifest)

    def _get(self, kind: str, store: Dict, namespace: str, name: str) -> DerivedObject:
        with self._lock:
            self._record("get", kind, namespace, name)
            try:
                return self._as_derived(store[(namespace, name)])
            except KeyError:
                raise NotFoundError(f"{kind} not found", status=404)

    def _delete(self, kind: str, store: Dict, namespace: str, name: str) -> None:
        with self._lock:
            self._record("delete", kind, namespace, name)
            if store.pop((namespace, name), None) is None:
                raise NotFoundError(f"{kind} not found", status=404)

    @staticmethod
    def _as_derived(manifest: Dict[str, Any]) -> DerivedObject:
        meta = manifest["metadata"]
        return DerivedObject(
            name=meta["name"],
            namespace=meta["namespace"],
            labels=dict(meta.get("labels") or {}),
            annotations=dict(meta.get("annotations") or {}),
        )

    def create_service(self, service: ExposureService) -> DerivedObject:
        return self._create("Service", self.services, service.to_manifest())

    def get_service(self, namespace: str, name: str) -> DerivedObject:
        return self._get("Service", self.services, namespace, name)

    def delete_service(self, namespace: str, name: str) -> None:
        self._delete("Service", self.services, namespace, name)

    def create_ingress(self, rule: RoutingRule) -> DerivedObject:
        return self._create("Ingress", self.ingresses, rule.to_manifest())

    def get_ingress(self, namespace: str, name: str) -> DerivedObject:
        return self._get("Ingress", self.ingresses, namespace, name)

    def delete_ingress(self, namespace: str, name: str) -> None:
        self._delete("Ingress", self.ingresses, namespace, name)


# =============================================================================
# Fake Notification Source
# =============================================================================

class FakeSource:
    """Cache plus notification source that tests drive by hand."""

    def __init__(self, synced: bool = True):
        self.store: Dict[Tuple[str, str], PrimaryResource] = {}
        self.handlers: List[Callable[[Event], None]] = []
        self._synced = threading.Event()
        if synced:
            self._synced.set()

    def add_event_handler(self, handler: Callable[[Event], None]) -> None:
        self.handlers.append(handler)

    def get(self, namespace: str, name: str) -> Optional[PrimaryResource]:
        return self.store.get((namespace, name))

    def has_synced(self) -> bool:
        return self._synced.is_set()

    def wait_for_sync(self, timeout: Optional[float] = None) -> bool:
        return self._synced.wait(timeout)

    def mark_synced(self) -> None:
        self._synced.set()

    def put(self, resource: PrimaryResource) -> None:
        """Place a resource in the cache without notifying."""
        self.store[(resource.namespace, resource.name)] = resource

    def emit_add(self, resource: PrimaryResource) -> None:
        self.put(resource)
        for handler in self.handlers:
            handler(Added(resource))

    def emit_delete(self, resource: PrimaryResource) -> None:
        self.store.pop((resource.namespace, resource.name), None)
        for handler in self.handlers:
            handler(Removed(resource))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def web() -> PrimaryResource:
    """The default/web Deployment used across scenarios."""
    return PrimaryResource(name="web", namespace="default", pod_template_labels={"app": "web"})


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


def get_with_timeout(queue, timeout: float = 2.0):
    """
    Call queue.get() in a helper thread so a broken queue fails the test
    instead of hanging it.
    """
    result = {}

    def target():
        result["value"] = queue.get()

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join(timeout)
    if thread.is_alive():
        pytest.fail(f"queue.get() did not return within {timeout}s")
    return result["value"]


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll predicate until it holds or timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests requiring a real cluster"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
