"""
Cluster Module - Black Box Interface

Purpose: Talk to the Kubernetes API on behalf of the controller
Interface: KubernetesClusterClient, DeploymentInformer, CachedReader, LiveReader
Hidden: kubernetes client types, status code mapping, list/watch bookkeeping

Can be replaced with an in-memory fake that honours the same error taxonomy.
"""

from .client import KubernetesClusterClient
from .errors import (
    AlreadyExistsError,
    CacheSyncError,
    ClusterAPIError,
    NotFoundError,
    translate_api_errors,
)
from .informer import DeploymentInformer
from .interfaces import CachedReader, ClusterClient, DerivedObject, LiveReader, NotificationSource

__all__ = [
    "AlreadyExistsError",
    "CacheSyncError",
    "CachedReader",
    "ClusterAPIError",
    "ClusterClient",
    "DeploymentInformer",
    "DerivedObject",
    "KubernetesClusterClient",
    "LiveReader",
    "NotFoundError",
    "NotificationSource",
    "translate_api_errors",
]
