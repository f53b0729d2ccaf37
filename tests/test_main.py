"""
Tests for process bootstrap: credential resolution, wiring and the CLI.
"""

import signal
import threading
import time
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner
from kubernetes import config as kube_config

from conftest import FakeSource, wait_until
from kubexpose import main as main_module
from kubexpose.config.provider import ControllerConfig, HealthConfig, QueueConfig
from kubexpose.modules.cluster import DeploymentInformer
from kubexpose.modules.controller import Controller


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("WORKERS", "LOG_LEVEL", "CONFIG_FILE", "HEALTH_PORT", "HEALTH_HOST", "HEALTH_ENABLED", "WATCH_NAMESPACE"):
        monkeypatch.delenv(name, raising=False)


class TestLoadClusterCredentials:
    def test_uses_kubeconfig_when_available(self):
        with patch.object(main_module.kube_config, "load_kube_config") as load_kube, \
                patch.object(main_module.kube_config, "load_incluster_config") as load_incluster, \
                patch.object(main_module.k8s, "ApiClient") as api_client:
            result = main_module.load_cluster_credentials("/tmp/kubeconfig")

        load_kube.assert_called_once_with(config_file="/tmp/kubeconfig")
        load_incluster.assert_not_called()
        assert result is api_client.return_value

    def test_falls_back_to_in_cluster(self):
        with patch.object(
            main_module.kube_config, "load_kube_config",
            side_effect=kube_config.ConfigException("no kubeconfig"),
        ), patch.object(main_module.kube_config, "load_incluster_config") as load_incluster, \
                patch.object(main_module.k8s, "ApiClient"):
            main_module.load_cluster_credentials(None)

        load_incluster.assert_called_once_with()

    def test_no_credentials_raises(self):
        with patch.object(
            main_module.kube_config, "load_kube_config",
            side_effect=kube_config.ConfigException("no kubeconfig"),
        ), patch.object(
            main_module.kube_config, "load_incluster_config",
            side_effect=kube_config.ConfigException("not in cluster"),
        ):
            with pytest.raises(kube_config.ConfigException):
                main_module.load_cluster_credentials(None)


def test_build_controller_wires_modules():
    controller_config = ControllerConfig(namespace="web", ingress_class_name="nginx", cache_sync_timeout=5)

    informer, controller = main_module.build_controller(MagicMock(), controller_config, QueueConfig())

    assert isinstance(informer, DeploymentInformer)
    assert isinstance(controller, Controller)
    assert informer.namespace == "web"
    assert controller.source is informer
    assert controller.synchronizer.cache is informer
    assert controller.synchronizer.ingress_class_name == "nginx"
    assert controller.cache_sync_timeout == 5
    assert controller.handle_event in informer._handlers
    controller.queue.shut_down()


class TestCli:
    def test_options_override_configuration(self):
        runner = CliRunner()
        with patch.object(main_module, "run", return_value=0) as run, \
                patch.object(main_module, "configure_logging"), \
                patch.object(main_module, "load_dotenv"):
            result = runner.invoke(
                main_module.main,
                ["--namespace", "web", "--workers", "3", "--health-port", "9000", "--log-level", "debug"],
            )

        assert result.exit_code == 0
        controller_config, queue_config, health_config = run.call_args[0]
        assert controller_config.namespace == "web"
        assert controller_config.workers == 3
        assert controller_config.log_level == "DEBUG"
        assert health_config == HealthConfig(port=9000)

    def test_invalid_configuration_exits_non_zero(self, monkeypatch):
        monkeypatch.setenv("WORKERS", "0")
        runner = CliRunner()
        with patch.object(main_module, "run") as run, patch.object(main_module, "load_dotenv"):
            result = runner.invoke(main_module.main, [])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        run.assert_not_called()

    @pytest.mark.parametrize("content", ["controller: [unclosed\n", "controller:\n  workers: '4'\n"])
    def test_bad_config_file_reports_invalid_configuration(self, tmp_path, monkeypatch, content):
        path = tmp_path / "kubexpose.yaml"
        path.write_text(content)
        monkeypatch.setenv("CONFIG_FILE", str(path))
        runner = CliRunner()
        with patch.object(main_module, "run") as run, patch.object(main_module, "load_dotenv"):
            result = runner.invoke(main_module.main, [])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        run.assert_not_called()

    def test_credential_failure_exits_non_zero(self):
        runner = CliRunner()
        with patch.object(main_module, "run", side_effect=kube_config.ConfigException("none")), \
                patch.object(main_module, "configure_logging"), \
                patch.object(main_module, "load_dotenv"):
            result = runner.invoke(main_module.main, [])

        assert result.exit_code == 1

    def test_cache_sync_failure_returns_status_one(self):
        controller_config = ControllerConfig(cache_sync_timeout=0.01)
        informer = MagicMock()
        controller = MagicMock()
        controller.run.side_effect = main_module.CacheSyncError("never synced")

        with patch.object(main_module, "load_cluster_credentials"), \
                patch.object(main_module, "build_controller", return_value=(informer, controller)), \
                patch.object(main_module.signal, "signal"):
            status = main_module.run(controller_config, QueueConfig(), HealthConfig(enabled=False))

        assert status == 1
        informer.start.assert_called_once_with()
        informer.stop.assert_called()

    def test_signal_during_cache_sync_exits_zero(self):
        controller_config = ControllerConfig(cache_sync_timeout=30)
        informer = MagicMock()
        controller = Controller(FakeSource(synced=False), MagicMock(), cache_sync_timeout=30)
        handlers = {}

        def capture(signum, handler):
            handlers[signum] = handler

        def fire_sigterm():
            assert wait_until(lambda: signal.SIGTERM in handlers)
            handlers[signal.SIGTERM](signal.SIGTERM, None)

        with patch.object(main_module, "load_cluster_credentials"), \
                patch.object(main_module, "build_controller", return_value=(informer, controller)), \
                patch.object(main_module.signal, "signal", side_effect=capture):
            sender = threading.Thread(target=fire_sigterm, daemon=True)
            sender.start()
            started = time.monotonic()
            status = main_module.run(controller_config, QueueConfig(), HealthConfig(enabled=False))

        assert status == 0
        assert time.monotonic() - started < 5
        informer.stop.assert_called()
