"""
Controller Module - Black Box Interface

Purpose: Keep a Service and an Ingress in place for every Deployment
Interface: Controller.run(), Controller.handle_event(), Synchronizer.reconcile()
Hidden: Worker threads, retry decisions, create/delete ordering

Depends only on the queue and cluster interfaces, never on kubernetes types.
"""

from .controller import QUEUE_NAME, Controller
from .synchronizer import Synchronizer

__all__ = ["QUEUE_NAME", "Controller", "Synchronizer"]
