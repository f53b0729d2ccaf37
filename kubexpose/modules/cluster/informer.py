"""
Deployment informer - local cache plus add/delete notifications.

Lists Deployments once, then follows the watch stream from the listed
resourceVersion. When the watch expires (410 Gone) or the connection
drops, it lists again and reconciles the cache against the fresh list,
emitting Added for newcomers and Removed for anything that vanished.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

import urllib3
from kubernetes import watch
from kubernetes.client.rest import ApiException

from kubexpose.modules.api.events import Added, Event, Removed
from kubexpose.modules.api.models import PrimaryResource

from .errors import ClusterAPIError

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], None]


class WatchExpired(Exception):
    """The watch resourceVersion is too old; a fresh list is needed."""


class DeploymentInformer:
    """Watches Deployments and mirrors them into a thread-safe cache."""

    def __init__(
        self,
        apps_api,
        namespace: Optional[str] = None,
        watch_timeout: int = 600,
        retry_delay: float = 5.0,
    ):
        """
        Initialize the informer.

        Args:
            apps_api: kubernetes AppsV1Api instance
            namespace: Namespace to watch (None for all namespaces)
            watch_timeout: Server-side watch timeout before a relist
            retry_delay: Seconds to wait after a failed list or watch
        """
        self.apps_api = apps_api
        self.namespace = namespace
        self.watch_timeout = watch_timeout
        self.retry_delay = retry_delay

        self._store: Dict[Tuple[str, str], PrimaryResource] = {}
        self._lock = threading.RLock()
        self._handlers: List[EventHandler] = []
        self._synced = threading.Event()
        self._stop = threading.Event()
        self._watch: Optional[watch.Watch] = None
        self._thread: Optional[threading.Thread] = None

    def add_event_handler(self, handler: EventHandler) -> None:
        """Register a callback for Added and Removed events."""
        self._handlers.append(handler)

    def get(self, namespace: str, name: str) -> Optional[PrimaryResource]:
        with self._lock:
            return self._store.get((namespace, name))

    def list_resources(self) -> List[PrimaryResource]:
        with self._lock:
            return list(self._store.values())

    def has_synced(self) -> bool:
        return self._synced.is_set()

    def wait_for_sync(self, timeout: Optional[float] = None) -> bool:
        """Block until the initial list has been loaded or timeout passes."""
        return self._synced.wait(timeout)

    def start(self) -> None:
        """Start the list/watch loop in a background thread."""
        if self._thread and self._thread.is_alive():
            return

        self._stop.clear()
        self._thread = threading.Thread(target=self.run, daemon=True, name="deployment-informer")
        self._thread.start()
        logger.info(f"Deployment informer started (namespace: {self.namespace or 'all'})")

    def stop(self) -> None:
        """Stop the loop; an open watch is closed after its next event."""
        self._stop.set()
        if self._watch is not None:
            self._watch.stop()
        logger.info("Deployment informer stopped")

    def run(self) -> None:
        while not self._stop.is_set():
            try:
                resource_version = self._list_and_replace()
                self._watch_from(resource_version)
            except WatchExpired:
                logger.info("Watch expired, relisting Deployments")
            except ApiException as e:
                if e.status == 410:
                    logger.info("Watch expired, relisting Deployments")
                    continue
                logger.error(f"Deployment list/watch failed: {e.status} {e.reason}")
                self._stop.wait(self.retry_delay)
            except (ClusterAPIError, urllib3.exceptions.HTTPError) as e:
                logger.error(f"Deployment list/watch failed: {e}")
                self._stop.wait(self.retry_delay)

    def _list_fn(self):
        if self.namespace:
            return self.apps_api.list_namespaced_deployment, {"namespace": self.namespace}
        return self.apps_api.list_deployment_for_all_namespaces, {}

    def _list_and_replace(self) -> str:
        list_fn, kwargs = self._list_fn()
        response = list_fn(**kwargs)
        resources = [PrimaryResource.from_object(item) for item in response.items]
        self.replace(resources)

        if not self._synced.is_set():
            self._synced.set()
            logger.info(f"Deployment cache synced ({len(resources)} objects)")

        return response.metadata.resource_version

    def replace(self, resources: List[PrimaryResource]) -> None:
        """Swap the cache contents, notifying about added and vanished objects."""
        fresh = {(r.namespace, r.name): r for r in resources}

        with self._lock:
            added = [r for k, r in fresh.items() if k not in self._store]
            removed = [r for k, r in self._store.items() if k not in fresh]
            self._store = fresh

        for resource in added:
            self._dispatch(Added(resource))
        for resource in removed:
            self._dispatch(Removed(resource))

    def _watch_from(self, resource_version: str) -> None:
        list_fn, kwargs = self._list_fn()
        self._watch = watch.Watch()

        for event in self._watch.stream(
            list_fn,
            resource_version=resource_version,
            timeout_seconds=self.watch_timeout,
            **kwargs,
        ):
            if self._stop.is_set():
                self._watch.stop()
                break
            self.handle_watch_event(event)

    def handle_watch_event(self, event: dict) -> None:
        """Apply one watch event to the cache."""
        event_type = event["type"]

        if event_type == "ERROR":
            raw = event.get("raw_object") or {}
            if raw.get("code") == 410:
                raise WatchExpired(raw.get("message", "resource version too old"))
            raise ClusterAPIError(f"watch error: {raw.get('message', raw)}", status=raw.get("code", 0))

        resource = PrimaryResource.from_object(event["object"])
        cache_key = (resource.namespace, resource.name)

        if event_type == "ADDED":
            with self._lock:
                known = cache_key in self._store
                self._store[cache_key] = resource
            if not known:
                self._dispatch(Added(resource))

        elif event_type == "MODIFIED":
            with self._lock:
                self._store[cache_key] = resource

        elif event_type == "DELETED":
            with self._lock:
                self._store.pop(cache_key, None)
            self._dispatch(Removed(resource))

    def _dispatch(self, event: Event) -> None:
        for handler in self._handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler failed for {event.key}: {e}")
