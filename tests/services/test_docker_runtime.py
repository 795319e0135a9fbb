import subprocess

import pytest
import yaml

import wpcloner.services.docker_runtime as docker_runtime_module
from wpcloner.errors import PreconditionError, ProvisioningError, ReadinessTimeoutError
from wpcloner.models import CloneRequest
from wpcloner.services.docker_runtime import DockerRuntimeService
from wpcloner.services.naming import resolve


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def _names():
    return resolve(CloneRequest(infrastructure="dev-fi-01", domain="test.refine.digital", destination="/tmp"))


def _service(**kwargs) -> DockerRuntimeService:
    return DockerRuntimeService(logger=DummyLogger(), console=DummyConsole(), **kwargs)


def test_write_compose_file_contains_site_names(tmp_path):
    compose_path = _service().write_compose_file(str(tmp_path), _names())

    with open(compose_path, encoding="utf-8") as file_obj:
        compose = yaml.safe_load(file_obj)

    service = compose["services"]["openlitespeed"]
    assert service["image"] == "test-refine-digital:snapshot"
    assert service["pull_policy"] == "never"
    assert service["container_name"] == "local-test-refine-digital"
    assert "VIRTUAL_HOST=local-test.refine.digital" in service["environment"]
    assert "VIRTUAL_PORT=8080" in service["environment"]
    assert service["labels"]["ofelia.job-exec.wpcron-local-test-refine-digital.schedule"] == "@every 10m"
    assert service["labels"]["ofelia.job-exec.wpcron-local-test-refine-digital.user"] == "www-data"
    assert "./app:/var/www/html" in service["volumes"]
    assert compose["networks"]["site-network"] == {"name": "local-test.refine.digital", "external": True}
    assert compose["networks"]["wordpress-sites"]["external"] is True
    assert compose["networks"]["db-network"]["external"] is True


def test_create_network_tolerates_existing_network():
    def fake_run_cmd(cmd, check=True, capture_output=False, **_kwargs):
        return subprocess.CompletedProcess(
            cmd, 1, stdout="", stderr="Error response from daemon: network with name x already exists"
        )

    _service().create_network("local-test.refine.digital", fake_run_cmd)


def test_create_network_raises_on_other_errors():
    def fake_run_cmd(cmd, check=True, capture_output=False, **_kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="permission denied")

    with pytest.raises(ProvisioningError, match="permission denied"):
        _service().create_network("local-test.refine.digital", fake_run_cmd)


def test_launch_replaces_previous_container(tmp_path):
    compose_file = tmp_path / "docker-compose.yml"
    compose_file.write_text("services: {}\n", encoding="utf-8")
    commands = []

    def fake_run_cmd(cmd, check=True, capture_output=False, **_kwargs):
        commands.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    _service().launch(["docker", "compose"], str(compose_file), "local-test-refine-digital", fake_run_cmd)

    assert commands == [
        ["docker", "compose", "-f", str(compose_file), "down"],
        ["docker", "stop", "local-test-refine-digital"],
        ["docker", "rm", "local-test-refine-digital"],
        ["docker", "compose", "-f", str(compose_file), "up", "-d"],
    ]


def test_wp_cmd_targets_public_path():
    cmd = _service().wp_cmd("local-x", "option", "get", "siteurl")

    assert cmd == [
        "docker",
        "exec",
        "local-x",
        "wp",
        "option",
        "get",
        "siteurl",
        "--path=/var/www/html/public",
        "--allow-root",
    ]


def test_wait_until_ready_polls_until_success(monkeypatch):
    monkeypatch.setattr(docker_runtime_module.time, "sleep", lambda *_args, **_kwargs: None)
    results = iter([1, 1, 0])
    calls = []

    def fake_run_cmd(cmd, check=True, capture_output=False, **_kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, next(results), stdout="", stderr="")

    _service().wait_until_ready("local-x", fake_run_cmd, timeout=60)

    assert len(calls) == 3
    assert calls[0][:6] == ["docker", "exec", "local-x", "wp", "core", "is-installed"]


def test_wait_until_ready_raises_after_timeout(monkeypatch):
    clock = iter(range(0, 1000, 5))
    monkeypatch.setattr(docker_runtime_module.time, "monotonic", lambda: next(clock))
    monkeypatch.setattr(docker_runtime_module.time, "sleep", lambda *_args, **_kwargs: None)

    def failing_run_cmd(cmd, check=True, capture_output=False, **_kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="")

    with pytest.raises(ReadinessTimeoutError, match="did not become ready within 20s"):
        _service().wait_until_ready("local-x", failing_run_cmd, timeout=20)


def test_missing_compose_is_a_precondition_error():
    class FakeSubprocess:
        CalledProcessError = subprocess.CalledProcessError
        TimeoutExpired = subprocess.TimeoutExpired

        @staticmethod
        def run(cmd, **_kwargs):
            raise FileNotFoundError(cmd[0])

    with pytest.raises(PreconditionError, match="Docker Compose is not available"):
        _service(subprocess_module=FakeSubprocess).get_docker_compose_cmd()


def test_compose_detection_runs_with_timeout_and_falls_back():
    calls = []

    class FakeSubprocess:
        CalledProcessError = subprocess.CalledProcessError
        TimeoutExpired = subprocess.TimeoutExpired

        @staticmethod
        def run(cmd, **kwargs):
            calls.append((cmd, kwargs))
            if cmd[:2] == ["docker", "compose"]:
                raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
            return subprocess.CompletedProcess(cmd, 0, stdout=b"", stderr=b"")

    service = _service(subprocess_module=FakeSubprocess, command_timeout=15.0)

    assert service.get_docker_compose_cmd() == ["docker-compose"]
    assert [kwargs["timeout"] for _cmd, kwargs in calls] == [15.0, 15.0]
