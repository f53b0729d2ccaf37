"""Typed change notifications delivered by the notification source."""

from dataclasses import dataclass
from typing import Union

from .models import PrimaryResource, ReconcileKey


@dataclass(frozen=True)
class Added:
    """A primary resource appeared."""
    resource: PrimaryResource

    @property
    def key(self) -> ReconcileKey:
        return self.resource.key


@dataclass(frozen=True)
class Removed:
    """A primary resource disappeared from the watch stream."""
    resource: PrimaryResource

    @property
    def key(self) -> ReconcileKey:
        return self.resource.key


Event = Union[Added, Removed]
