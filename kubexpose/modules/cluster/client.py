"""
Kubernetes implementation of the cluster client.

Services and Ingresses are created from the manifests rendered by the
api models; Deployments are only ever read.
"""

import logging
from typing import Any, Optional

from kubernetes import client as k8s

from kubexpose.modules.api.models import ExposureService, PrimaryResource, RoutingRule

from .errors import translate_api_errors
from .interfaces import DerivedObject

logger = logging.getLogger(__name__)


def _derived_object(obj: Any) -> DerivedObject:
    metadata = obj.metadata
    return DerivedObject(
        name=metadata.name,
        namespace=metadata.namespace,
        labels=dict(metadata.labels or {}),
        annotations=dict(metadata.annotations or {}),
    )


class KubernetesClusterClient:
    """Cluster client backed by the official kubernetes Python client."""

    def __init__(self, api_client: Optional[k8s.ApiClient] = None, request_timeout: float = 30.0):
        """
        Initialize cluster client.

        Args:
            api_client: Configured ApiClient (None uses the default configuration)
            request_timeout: Per-request timeout in seconds
        """
        self.core = k8s.CoreV1Api(api_client)
        self.networking = k8s.NetworkingV1Api(api_client)
        self.apps = k8s.AppsV1Api(api_client)
        self.request_timeout = request_timeout

    def get_primary(self, namespace: str, name: str) -> PrimaryResource:
        with translate_api_errors("Deployment", namespace, name):
            obj = self.apps.read_namespaced_deployment(
                name, namespace, _request_timeout=self.request_timeout
            )
        return PrimaryResource.from_object(obj)

    def create_service(self, service: ExposureService) -> DerivedObject:
        with translate_api_errors("Service", service.namespace, service.name):
            obj = self.core.create_namespaced_service(
                service.namespace, service.to_manifest(), _request_timeout=self.request_timeout
            )
        logger.debug(f"Created Service {service.namespace}/{service.name}")
        return _derived_object(obj)

    def get_service(self, namespace: str, name: str) -> DerivedObject:
        with translate_api_errors("Service", namespace, name):
            obj = self.core.read_namespaced_service(
                name, namespace, _request_timeout=self.request_timeout
            )
        return _derived_object(obj)

    def delete_service(self, namespace: str, name: str) -> None:
        with translate_api_errors("Service", namespace, name):
            self.core.delete_namespaced_service(
                name, namespace, _request_timeout=self.request_timeout
            )
        logger.debug(f"Deleted Service {namespace}/{name}")

    def create_ingress(self, rule: RoutingRule) -> DerivedObject:
        with translate_api_errors("Ingress", rule.namespace, rule.name):
            obj = self.networking.create_namespaced_ingress(
                rule.namespace, rule.to_manifest(), _request_timeout=self.request_timeout
            )
        logger.debug(f"Created Ingress {rule.namespace}/{rule.name}")
        return _derived_object(obj)

    def get_ingress(self, namespace: str, name: str) -> DerivedObject:
        with translate_api_errors("Ingress", namespace, name):
            obj = self.networking.read_namespaced_ingress(
                name, namespace, _request_timeout=self.request_timeout
            )
        return _derived_object(obj)

    def delete_ingress(self, namespace: str, name: str) -> None:
        with translate_api_errors("Ingress", namespace, name):
            self.networking.delete_namespaced_ingress(
                name, namespace, _request_timeout=self.request_timeout
            )
        logger.debug(f"Deleted Ingress {namespace}/{name}")
