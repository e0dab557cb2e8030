# =============================================================================
# SMPLY DOCKER SANDBOX TESTS
# =============================================================================
# Tests for container-based bundle validation and the Docker provider.
# =============================================================================

import io
import tarfile
import time
from unittest.mock import MagicMock, patch

import pytest
from docker.errors import APIError, DockerException

from smply.infra.docker_client import DockerProvider, DockerProviderError
from smply.infra.sandbox import (
    ARTIFACT_FILE_NAME,
    CONTAINER_WORKDIR,
    HARNESS_FILE_NAME,
    TIMEOUT_EXIT_SIGNAL,
    DockerSandbox,
)


@pytest.fixture
def provider(mock_docker_client):
    provider = MagicMock()
    provider.get_client.return_value = mock_docker_client
    return provider


class TestDockerSandbox:
    """Test DockerSandbox with a mocked Docker client."""

    def test_container_is_locked_down(self, provider, mock_docker_client):
        DockerSandbox(provider, mem_limit="128m").check(b"export default 1;")

        kwargs = mock_docker_client.containers.run.call_args[1]
        assert kwargs["network_disabled"] is True
        assert kwargs["read_only"] is True
        assert kwargs["mem_limit"] == "128m"
        assert CONTAINER_WORKDIR in kwargs["tmpfs"]

    def test_artifact_and_harness_injected(self, provider, mock_docker_client):
        DockerSandbox(provider).check(b"export default 1;")

        container = mock_docker_client.containers.run.return_value
        path, data = container.put_archive.call_args[0]
        assert path == CONTAINER_WORKDIR

        with tarfile.open(fileobj=io.BytesIO(data)) as tar:
            names = set(tar.getnames())
            artifact = tar.extractfile(ARTIFACT_FILE_NAME).read()
        assert names == {ARTIFACT_FILE_NAME, HARNESS_FILE_NAME}
        assert artifact == b"export default 1;"

    def test_harness_runs_without_network_permission(self, provider, mock_docker_client):
        DockerSandbox(provider).check(b"x")

        container = mock_docker_client.containers.run.return_value
        cmd = container.exec_run.call_args[1]["cmd"]
        assert cmd[:2] == ["deno", "run"]
        assert f"--allow-read={CONTAINER_WORKDIR}" in cmd
        assert not any(arg.startswith("--allow-net") for arg in cmd)

    def test_passed_on_zero_exit(self, provider):
        outcome = DockerSandbox(provider).check(b"x")

        assert outcome.passed
        assert outcome.exit_signal == 0

    def test_failure_reports_stderr(self, provider, mock_docker_client):
        container = mock_docker_client.containers.run.return_value
        container.exec_run.return_value = (1, (b"", b"error: bundle must export an allowRead function"))

        outcome = DockerSandbox(provider).check(b"x")

        assert not outcome.passed
        assert outcome.exit_signal == 1
        assert "allowRead" in outcome.diagnostics

    def test_container_always_removed(self, provider, mock_docker_client):
        container = mock_docker_client.containers.run.return_value
        container.exec_run.side_effect = APIError("exec failed")

        outcome = DockerSandbox(provider).check(b"x")

        assert not outcome.passed
        assert "sandbox failure" in outcome.diagnostics
        container.remove.assert_called_once_with(force=True)

    def test_container_removed_on_success(self, provider, mock_docker_client):
        DockerSandbox(provider).check(b"x")

        container = mock_docker_client.containers.run.return_value
        container.remove.assert_called_once_with(force=True)

    def test_timer_kills_container(self, provider, mock_docker_client):
        container = mock_docker_client.containers.run.return_value
        timers = []

        def fake_timer(interval, function):
            timer = MagicMock()
            timer.fire = function
            timers.append(timer)
            return timer

        def exec_run(**kwargs):
            timers[0].fire()
            return (137, (b"", b""))

        container.exec_run.side_effect = exec_run

        with patch("smply.infra.sandbox.threading.Timer", side_effect=fake_timer):
            outcome = DockerSandbox(provider, timeout=1).check(b"while(true){}")

        assert not outcome.passed
        assert outcome.exit_signal == TIMEOUT_EXIT_SIGNAL
        assert "timed out" in outcome.diagnostics
        container.kill.assert_called_once()
        timers[0].cancel.assert_called_once()

    def test_timer_fires_before_container_starts(self, provider, mock_docker_client):
        """A slow image pull uses up the TTL; the harness must never start."""
        container = mock_docker_client.containers.run.return_value
        timers = []

        def fake_timer(interval, function):
            timer = MagicMock()
            timer.fire = function
            timers.append(timer)
            return timer

        def slow_run(*args, **kwargs):
            timers[0].fire()
            return container

        mock_docker_client.containers.run.side_effect = slow_run

        with patch("smply.infra.sandbox.threading.Timer", side_effect=fake_timer):
            outcome = DockerSandbox(provider, timeout=0.1).check(b"while(true){}")

        assert not outcome.passed
        assert outcome.exit_signal == TIMEOUT_EXIT_SIGNAL
        assert "timed out" in outcome.diagnostics
        container.exec_run.assert_not_called()
        container.put_archive.assert_not_called()
        container.kill.assert_called_once()
        container.remove.assert_called_once_with(force=True)

    def test_real_timer_bounds_slow_start(self, provider, mock_docker_client):
        container = mock_docker_client.containers.run.return_value

        def slow_run(*args, **kwargs):
            time.sleep(0.3)
            return container

        mock_docker_client.containers.run.side_effect = slow_run

        outcome = DockerSandbox(provider, timeout=0.05).check(b"x")

        assert "timed out" in outcome.diagnostics
        container.exec_run.assert_not_called()
        container.kill.assert_called_once()

    def test_docker_unavailable(self):
        provider = MagicMock()
        provider.get_client.side_effect = DockerProviderError("Docker Engine is not available")

        outcome = DockerSandbox(provider).check(b"x")

        assert not outcome.passed
        assert "not available" in outcome.diagnostics


class TestDockerProvider:
    """Test DockerProvider connection handling."""

    def test_lazy_connection(self):
        with patch("smply.infra.docker_client.docker.from_env") as mock_from_env:
            provider = DockerProvider()
            mock_from_env.assert_not_called()
            assert provider.is_connected() is False

    def test_get_client(self, mock_docker_client, monkeypatch):
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        with patch("smply.infra.docker_client.docker.from_env", return_value=mock_docker_client):
            provider = DockerProvider()
            assert provider.get_client() is mock_docker_client
            assert provider.is_connected() is True

    def test_docker_host_honored(self, mock_docker_client):
        with patch(
            "smply.infra.docker_client.docker.DockerClient", return_value=mock_docker_client
        ) as mock_cls:
            DockerProvider(docker_host="tcp://docker-proxy:2375").get_client()

        mock_cls.assert_called_once_with(base_url="tcp://docker-proxy:2375")

    def test_unavailable_engine(self, monkeypatch):
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        with patch(
            "smply.infra.docker_client.docker.from_env", side_effect=DockerException("no socket")
        ):
            with pytest.raises(DockerProviderError):
                DockerProvider().get_client()
