"""
API Module - Shared Data Models

Purpose: Typed identities, change notifications and desired-state shapes
Interface: ReconcileKey, PrimaryResource, ExposureService, RoutingRule, Added, Removed
Hidden: Manifest rendering and ownership marker layout
"""

from .events import Added, Event, Removed
from .models import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    OWNER_ANNOTATION,
    ExposureService,
    InvalidKeyError,
    PrimaryResource,
    ReconcileKey,
    RoutingRule,
    is_owned_by,
)

__all__ = [
    "MANAGED_BY_LABEL",
    "MANAGED_BY_VALUE",
    "OWNER_ANNOTATION",
    "Added",
    "Event",
    "ExposureService",
    "InvalidKeyError",
    "PrimaryResource",
    "ReconcileKey",
    "Removed",
    "RoutingRule",
    "is_owned_by",
]
