"""Cluster error taxonomy shared by the client, the informer and the synchronizer."""

from contextlib import contextmanager
from typing import Iterator

import urllib3
from kubernetes.client.rest import ApiException


class ClusterAPIError(Exception):
    """A cluster call failed; retrying later may succeed."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class AlreadyExistsError(ClusterAPIError):
    """Create was rejected because the object is already there."""


class NotFoundError(ClusterAPIError):
    """The object does not exist."""


class CacheSyncError(RuntimeError):
    """The local cache never reached its initial sync."""


@contextmanager
def translate_api_errors(kind: str, namespace: str, name: str) -> Iterator[None]:
    """
    Convert kubernetes client failures into the taxonomy above.

    409 maps to AlreadyExistsError, 404 to NotFoundError, every other
    status and transport failure to ClusterAPIError.
    """
    target = f"{kind} {namespace}/{name}"
    try:
        yield
    except ApiException as e:
        if e.status == 409:
            raise AlreadyExistsError(f"{target} already exists", status=409) from e
        if e.status == 404:
            raise NotFoundError(f"{target} not found", status=404) from e
        raise ClusterAPIError(f"{target}: {e.status} {e.reason}", status=e.status or 0) from e
    except urllib3.exceptions.HTTPError as e:
        raise ClusterAPIError(f"{target}: {e}") from e
