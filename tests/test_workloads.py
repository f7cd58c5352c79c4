"""Tests for workloads and the workload registry."""

import os
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException

from personal_server.config import ConfigManager, GeneralConfig, ModuleConfig
from personal_server.templates.backup_info import BACKUP_INFO_FILE, render_backup_info
from personal_server.utils.errors import ConfigurationError, KubernetesError, SubprocessError
from personal_server.workloads import Backuper, Workload, WorkloadRegistry, default_registry
from personal_server.workloads import kube
from personal_server.workloads.manifest import ManifestWorkload
from personal_server.workloads.pods import GiteaWorkload, WebdavWorkload
from personal_server.workloads.postgres import PostgresWorkload
from personal_server.workloads.redis import RedisWorkload

GENERAL = GeneralConfig(domain="example.org", namespaces=["infra"])


class DataWorkload(Workload):
    def backup(self, destination_dir, token):
        pass


def make_config(modules):
    return ConfigManager.build_config({"general": {"namespaces": ["infra"]}, "modules": modules}, "/tmp/config.yaml")


class TestWorkload:
    """Test the workload base class."""

    def test_namespace_from_module(self):
        workload = Workload("postgres", GENERAL, ModuleConfig("postgres", namespace="databases"))

        assert workload.namespace == "databases"

    def test_namespace_falls_back_to_general(self):
        assert Workload("postgres", GENERAL, ModuleConfig("postgres")).namespace == "infra"

    def test_namespace_default(self):
        assert Workload("postgres", GeneralConfig()).namespace == "default"

    def test_backuper_protocol(self):
        assert isinstance(DataWorkload("x", GENERAL), Backuper)
        assert not isinstance(ManifestWorkload("x", GENERAL), Backuper)


class TestWorkloadRegistry:
    """Test registry lookups and capability checks."""

    def setup_method(self):
        self.registry = WorkloadRegistry()
        self.registry.register("namespace", ManifestWorkload, requires_module_config=False)
        self.registry.register("data", DataWorkload)
        self.registry.register("manifest", ManifestWorkload)

    def test_names_in_registration_order(self):
        assert self.registry.names() == ["namespace", "data", "manifest"]

    def test_get_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown workload"):
            self.registry.get("nope", make_config([]))

    def test_get_requires_module_config(self):
        with pytest.raises(ConfigurationError, match="no entry"):
            self.registry.get("data", make_config([]))

    def test_get_without_module_config(self):
        workload = self.registry.get("namespace", make_config([]))

        assert workload.module is None
        assert workload.namespace == "infra"

    def test_try_get_backuper(self):
        config = make_config([{"name": "data"}, {"name": "manifest"}])

        assert isinstance(self.registry.try_get_backuper("data", config), DataWorkload)
        assert self.registry.try_get_backuper("manifest", config) is None

    def test_supports_backup(self):
        assert self.registry.supports_backup("data")
        assert not self.registry.supports_backup("manifest")

    def test_default_registry(self):
        registry = default_registry()

        for name in ["postgres", "redis", "gitea", "webdav", "bitwarden", "hobby-pod"]:
            assert registry.supports_backup(name), name
        for name in ["namespace", "cloudflare", "drone", "monitoring", "pgadmin", "ssh-login-notifier"]:
            assert not registry.supports_backup(name), name
        assert not registry.requires_module_config("namespace")


class TestKube:
    """Test Kubernetes helpers."""

    def test_kubectl_command_plain(self):
        with patch("personal_server.workloads.kube.os.path.exists", return_value=False):
            assert kube.kubectl_command() == ["kubectl"]

    def test_kubectl_command_microk8s(self):
        with patch("personal_server.workloads.kube.os.path.exists", return_value=True):
            assert kube.kubectl_command() == ["/snap/bin/microk8s", "kubectl"]

    def test_find_pod(self):
        v1 = MagicMock()
        pod = MagicMock()
        pod.metadata.name = "postgres-0"
        v1.list_namespaced_pod.return_value.items = [pod]

        with patch("personal_server.workloads.kube.load_core_api", return_value=v1):
            assert kube.find_pod("databases", "postgres") == "postgres-0"

        v1.list_namespaced_pod.assert_called_once_with("databases", label_selector="app=postgres")

    def test_find_pod_none_running(self):
        v1 = MagicMock()
        v1.list_namespaced_pod.return_value.items = []

        with patch("personal_server.workloads.kube.load_core_api", return_value=v1):
            with pytest.raises(KubernetesError, match="No running pod"):
                kube.find_pod("databases", "postgres")

    def test_find_pod_api_error(self):
        v1 = MagicMock()
        v1.list_namespaced_pod.side_effect = ApiException(status=403, reason="Forbidden")

        with patch("personal_server.workloads.kube.load_core_api", return_value=v1):
            with pytest.raises(KubernetesError, match="Forbidden"):
                kube.find_pod("databases", "postgres")

    def test_load_core_api_without_config(self):
        with patch("personal_server.workloads.kube.config.load_kube_config", side_effect=kube.config.ConfigException):
            with patch(
                "personal_server.workloads.kube.config.load_incluster_config",
                side_effect=kube.config.ConfigException("not in cluster"),
            ):
                with pytest.raises(KubernetesError):
                    kube.load_core_api()


@pytest.fixture
def kubectl():
    with patch("personal_server.workloads.kube.os.path.exists", return_value=False):
        yield


class TestPodWorkloads:
    """Test pod based backups with kubectl mocked out."""

    def test_exec_args_with_container(self, kubectl):
        workload = WebdavWorkload("webdav", GENERAL, ModuleConfig("webdav", namespace="files"))

        args = workload.exec_args("webdav-0", "tar", "czf", "-", interactive=True)

        assert args == [
            "kubectl",
            "exec",
            "-i",
            "-n",
            "files",
            "webdav-0",
            "-c",
            "backup-helper",
            "--",
            "tar",
            "czf",
            "-",
        ]

    def test_data_backup(self, kubectl, token, temp_directory):
        workload = GiteaWorkload("gitea", GENERAL, ModuleConfig("gitea"))
        destination = os.path.join(temp_directory, "staging", "gitea")

        def fake_run(args, token, name=None, stdout=None, **kwargs):
            stdout.write(b"tarball")

        with patch("personal_server.workloads.pods.kube.find_pod", return_value="gitea-0"):
            with patch("personal_server.workloads.pods.run", side_effect=fake_run) as mock_run:
                workload.backup(destination, token)

        args = mock_run.call_args[0][0]
        assert args[-6:] == ["tar", "czf", "-", "-C", "/data", "."]
        files = sorted(os.listdir(destination))
        assert files[0] == BACKUP_INFO_FILE
        assert files[1].startswith("gitea_data_") and files[1].endswith(".tar.gz")
        with open(os.path.join(destination, BACKUP_INFO_FILE), encoding="utf-8") as f:
            info = f.read()
        assert "Gitea Backup Information" in info
        assert "Pod: gitea-0" in info
        assert files[1] in info

    def test_data_backup_failure_removes_partial_file(self, kubectl, token, temp_directory):
        workload = GiteaWorkload("gitea", GENERAL, ModuleConfig("gitea"))
        destination = os.path.join(temp_directory, "gitea")

        with patch("personal_server.workloads.pods.kube.find_pod", return_value="gitea-0"):
            with patch("personal_server.workloads.pods.run", side_effect=SubprocessError("kubectl failed")):
                with pytest.raises(SubprocessError):
                    workload.backup(destination, token)

        assert os.listdir(destination) == []

    def test_postgres_backup(self, kubectl, token, temp_directory):
        workload = PostgresWorkload("postgres", GENERAL, ModuleConfig("postgres", namespace="databases"))
        destination = os.path.join(temp_directory, "postgres")

        with patch("personal_server.workloads.postgres.PostgresWorkload.find_pod", return_value="postgres-0"):
            with patch("personal_server.workloads.postgres.run_pipeline") as mock_pipeline:
                workload.backup(destination, token)

        first, second = mock_pipeline.call_args[0][:2]
        assert first[:6] == ["kubectl", "exec", "-n", "databases", "postgres-0", "--"]
        assert "pg_dumpall" in first[-1]
        assert "--clean --if-exists" in first[-1]
        assert second == ["gzip", "-c"]
        dumps = [name for name in os.listdir(destination) if name.startswith("postgres_dump_")]
        assert len(dumps) == 1 and dumps[0].endswith(".sql.gz")

    def test_redis_save_passes_password_on_stdin(self, kubectl, token):
        workload = RedisWorkload("redis", GENERAL, ModuleConfig("redis", secrets={"redis_password": "redis-secret"}))

        with patch("personal_server.workloads.redis.run") as mock_run:
            workload.before_export("redis-0", token)

        args = mock_run.call_args[0][0]
        assert "redis-secret" not in " ".join(args)
        assert "-i" in args
        assert mock_run.call_args[1]["input_data"] == b"redis-secret"

    def test_redis_save_without_password(self, kubectl, token):
        workload = RedisWorkload("redis", GENERAL, ModuleConfig("redis"))

        with patch("personal_server.workloads.redis.run") as mock_run:
            workload.before_export("redis-0", token)

        assert mock_run.call_args[0][0][-2:] == ["redis-cli", "SAVE"]
        assert "input_data" not in mock_run.call_args[1]

    def test_redis_save_failure_is_warning(self, kubectl, token):
        workload = RedisWorkload("redis", GENERAL, ModuleConfig("redis"))

        with patch("personal_server.workloads.redis.run", side_effect=SubprocessError("redis-cli SAVE failed")):
            workload.before_export("redis-0", token)


class TestBackupInfoTemplate:
    """Test the metadata template."""

    def test_render(self):
        text = render_backup_info(
            title="WebDAV",
            backup_dir="/backups/webdav",
            namespace="files",
            pod="webdav-0",
            files=["webdav_data_1.tar.gz"],
            container="backup-helper",
        )

        lines = text.splitlines()
        assert lines[0] == "WebDAV Backup Information"
        assert lines[1] == "=" * len(lines[0])
        assert "Container: backup-helper" in text
        assert "  webdav_data_1.tar.gz" in lines

    def test_render_without_container(self):
        text = render_backup_info("Gitea", "/b", "infra", "gitea-0", [])

        assert "Container:" not in text
