"""
Kubexpose shared data models.

These models define the structure of all data passed between
components in the Kubexpose system.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Ownership marker stamped on every derived resource

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "kubexpose"
OWNER_ANNOTATION = "kubexpose.io/owner"

SERVICE_PORT = 80
SERVICE_PORT_NAME = "http"


class InvalidKeyError(ValueError):
    """Raised when a queue key cannot be split into namespace and name."""


class ReconcileKey(BaseModel):
    """Identity of one reconciliation unit."""

    model_config = ConfigDict(frozen=True)

    namespace: str = Field(..., min_length=1, description="Namespace of the primary resource")
    name: str = Field(..., min_length=1, description="Name of the primary resource")

    @classmethod
    def parse(cls, key: str) -> "ReconcileKey":
        """
        Parse a "<namespace>/<name>" queue key.

        Raises:
            InvalidKeyError: If the key is not exactly two non-empty segments
        """
        if not isinstance(key, str):
            raise InvalidKeyError(f"unexpected key type: {type(key).__name__}")

        parts = key.split("/")
        if len(parts) != 2 or not all(parts):
            raise InvalidKeyError(f"unexpected key format: {key!r}")

        return cls(namespace=parts[0], name=parts[1])

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class PrimaryResource(BaseModel):
    """The watched Deployment, reduced to what reconciliation needs."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    pod_template_labels: Dict[str, str] = Field(default_factory=dict)
    uid: Optional[str] = None

    @property
    def key(self) -> ReconcileKey:
        return ReconcileKey(namespace=self.namespace, name=self.name)

    @classmethod
    def from_object(cls, obj: Any) -> "PrimaryResource":
        """
        Build from a Deployment returned by the kubernetes client.

        Plain dicts (as found in watch events decoded without a
        response type) are accepted as well.
        """
        if isinstance(obj, dict):
            return cls.from_dict(obj)

        metadata = obj.metadata
        template = obj.spec.template if obj.spec else None
        labels = {}
        if template is not None and template.metadata is not None:
            labels = template.metadata.labels or {}

        return cls(
            name=metadata.name,
            namespace=metadata.namespace or "",
            pod_template_labels=dict(labels),
            uid=metadata.uid,
        )

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "PrimaryResource":
        metadata = obj.get("metadata") or {}
        template = (obj.get("spec") or {}).get("template") or {}
        labels = (template.get("metadata") or {}).get("labels") or {}

        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace") or "",
            pod_template_labels=dict(labels),
            uid=metadata.get("uid"),
        )


def ownership_metadata(key: ReconcileKey) -> Dict[str, Dict[str, str]]:
    """Labels and annotations that mark a derived resource as ours."""
    return {
        "labels": {MANAGED_BY_LABEL: MANAGED_BY_VALUE},
        "annotations": {OWNER_ANNOTATION: str(key)},
    }


def is_owned_by(labels: Optional[Dict[str, str]], annotations: Optional[Dict[str, str]], key: ReconcileKey) -> bool:
    """Check whether a derived resource carries the ownership marker for key."""
    labels = labels or {}
    annotations = annotations or {}
    return (
        labels.get(MANAGED_BY_LABEL) == MANAGED_BY_VALUE
        and annotations.get(OWNER_ANNOTATION) == str(key)
    )


class ExposureService(BaseModel):
    """Desired Service for a primary resource."""

    name: str
    namespace: str
    selector: Dict[str, str] = Field(default_factory=dict)
    port: int = Field(default=SERVICE_PORT, ge=1, le=65535)
    port_name: str = SERVICE_PORT_NAME

    @classmethod
    def for_primary(cls, primary: PrimaryResource) -> "ExposureService":
        return cls(
            name=primary.name,
            namespace=primary.namespace,
            selector=dict(primary.pod_template_labels),
        )

    @property
    def key(self) -> ReconcileKey:
        return ReconcileKey(namespace=self.namespace, name=self.name)

    def to_manifest(self) -> Dict[str, Any]:
        """Render as a core/v1 Service body."""
        return {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                **ownership_metadata(self.key),
            },
            "spec": {
                "selector": dict(self.selector),
                "ports": [{"name": self.port_name, "port": self.port}],
            },
        }


class RoutingRule(BaseModel):
    """Desired Ingress routing /<name> to the exposure service."""

    name: str
    namespace: str
    path: str
    service_name: str
    service_port: int = Field(default=SERVICE_PORT, ge=1, le=65535)
    path_type: str = "Prefix"
    ingress_class_name: Optional[str] = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("path must start with '/'")
        return v

    @classmethod
    def for_service(cls, service: ExposureService, ingress_class_name: Optional[str] = None) -> "RoutingRule":
        return cls(
            name=service.name,
            namespace=service.namespace,
            path=f"/{service.name}",
            service_name=service.name,
            service_port=service.port,
            ingress_class_name=ingress_class_name,
        )

    @property
    def key(self) -> ReconcileKey:
        return ReconcileKey(namespace=self.namespace, name=self.name)

    def to_manifest(self) -> Dict[str, Any]:
        """Render as a networking.k8s.io/v1 Ingress body."""
        spec: Dict[str, Any] = {
            "rules": [
                {
                    "http": {
                        "paths": [
                            {
                                "path": self.path,
                                "pathType": self.path_type,
                                "backend": {
                                    "service": {
                                        "name": self.service_name,
                                        "port": {"number": self.service_port},
                                    }
                                },
                            }
                        ]
                    }
                }
            ]
        }
        if self.ingress_class_name:
            spec["ingressClassName"] = self.ingress_class_name

        return {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                **ownership_metadata(self.key),
            },
            "spec": spec,
        }
