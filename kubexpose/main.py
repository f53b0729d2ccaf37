#!/usr/bin/env python3
"""
Kubexpose - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Resolves cluster credentials
3. Wires informer, queue, synchronizer and controller together
4. Runs until SIGINT/SIGTERM

All business logic is in the modules, following black box principles.
"""

import logging
import signal
import threading
from dataclasses import replace
from typing import Optional, Tuple

import click
from dotenv import load_dotenv
from kubernetes import client as k8s
from kubernetes import config as kube_config

from kubexpose.config.provider import (
    LOG_LEVELS,
    ControllerConfig,
    HealthConfig,
    QueueConfig,
    get_config_provider,
)
from kubexpose.logging_config import configure_logging

# Import modules through their black box interfaces
from kubexpose.modules.cluster import CacheSyncError, DeploymentInformer, KubernetesClusterClient
from kubexpose.modules.controller import QUEUE_NAME, Controller, Synchronizer
from kubexpose.modules.health import HealthServer
from kubexpose.modules.queue import RateLimitingQueue, default_controller_rate_limiter

logger = logging.getLogger("kubexpose.main")


def load_cluster_credentials(kubeconfig: Optional[str] = None) -> k8s.ApiClient:
    """
    Build an ApiClient from a kubeconfig file, falling back to the
    in-cluster service account.

    Raises:
        kubernetes.config.ConfigException: Neither source is usable
    """
    try:
        kube_config.load_kube_config(config_file=kubeconfig)
        logger.info(f"Loaded kubeconfig from {kubeconfig or 'default location'}")
    except (kube_config.ConfigException, OSError) as e:
        logger.warning(f"Could not load kubeconfig ({e}), trying in-cluster configuration")
        kube_config.load_incluster_config()
        logger.info("Using in-cluster Kubernetes config")

    return k8s.ApiClient()


def build_controller(
    api_client: k8s.ApiClient,
    controller_config: ControllerConfig,
    queue_config: QueueConfig,
) -> Tuple[DeploymentInformer, Controller]:
    """Wire the modules together without starting anything."""
    informer = DeploymentInformer(
        k8s.AppsV1Api(api_client),
        namespace=controller_config.namespace,
        watch_timeout=controller_config.watch_timeout,
    )
    cluster = KubernetesClusterClient(api_client, request_timeout=controller_config.request_timeout)
    synchronizer = Synchronizer(
        cache=informer,
        cluster=cluster,
        ingress_class_name=controller_config.ingress_class_name,
    )
    queue = RateLimitingQueue(
        default_controller_rate_limiter(
            base_delay=queue_config.base_delay,
            max_delay=queue_config.max_delay,
            qps=queue_config.qps,
            burst=queue_config.burst,
        ),
        name=QUEUE_NAME,
    )
    controller = Controller(
        informer,
        synchronizer,
        queue=queue,
        cache_sync_timeout=controller_config.cache_sync_timeout,
    )
    return informer, controller


def run(controller_config: ControllerConfig, queue_config: QueueConfig, health_config: HealthConfig) -> int:
    """Run the controller until a shutdown signal; returns the exit status."""
    api_client = load_cluster_credentials(controller_config.kubeconfig)
    informer, controller = build_controller(api_client, controller_config, queue_config)

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        # Notifications stop first so nothing is enqueued into a closing queue
        informer.stop()
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    health_server = None
    if health_config.enabled:
        health_server = HealthServer(controller.is_ready, host=health_config.host, port=health_config.port)
        health_server.start()

    informer.start()
    try:
        controller.run(controller_config.workers, stop_event)
    except CacheSyncError as e:
        logger.error(f"Startup aborted: {e}")
        return 1
    finally:
        informer.stop()
        if health_server:
            health_server.stop()
        api_client.close()

    return 0


@click.command()
@click.option("--kubeconfig", default=None, help="Path to a kubeconfig file (in-cluster config if unusable)")
@click.option("--namespace", default=None, help="Namespace to watch (default: all namespaces)")
@click.option("--workers", type=int, default=None, help="Number of concurrent workers")
@click.option("--health-port", type=int, default=None, help="Port for /healthz and /readyz")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level",
)
def main(kubeconfig, namespace, workers, health_port, log_level):
    """Expose every Deployment through a Service and an Ingress."""
    load_dotenv()

    try:
        provider = get_config_provider()
        controller_config = provider.get_controller_config()
        queue_config = provider.get_queue_config()
        health_config = provider.get_health_config()

        overrides = {
            "kubeconfig": kubeconfig,
            "namespace": namespace,
            "workers": workers,
            "log_level": log_level.upper() if log_level else None,
        }
        controller_config = replace(
            controller_config, **{k: v for k, v in overrides.items() if v is not None}
        )
        controller_config.validate()
        if health_port is not None:
            health_config = replace(health_config, port=health_port)
            health_config.validate()
    except (ValueError, OSError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    configure_logging(controller_config.log_level)

    try:
        status = run(controller_config, queue_config, health_config)
    except kube_config.ConfigException as e:
        logger.error(f"Could not resolve cluster credentials: {e}")
        status = 1

    raise SystemExit(status)


if __name__ == "__main__":
    main()
