"""
Kubexpose - Deployment Exposure Controller

Watches Deployments and keeps a Service and an Ingress in place for each
one, removing them again once the Deployment is gone.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- api: Shared data models (keys, primary and derived resources)
- queue: De-duplicating, rate-limited work queue
- cluster: Cluster API client, informer cache and error taxonomy
- controller: Event intake, worker loop and synchronizer
- health: Liveness and readiness endpoints
"""

__version__ = "1.0.0"
