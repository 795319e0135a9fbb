import subprocess

import pytest

from wpcloner.errors import CommandError, CredentialError, CredentialParseError
from wpcloner.models import CloneRequest, InfrastructureContext
from wpcloner.services import command_runner as command_runner_module
from wpcloner.services.command_runner import CommandRunner
from wpcloner.services.credentials import CredentialReader, parse_wp_config
from wpcloner.services.naming import resolve
from wpcloner.services.remote import RemoteShell


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


WP_CONFIG = """<?php
define( 'DB_NAME', 'wp_refine' );
define( 'DB_USER', "refine_user" );
define('DB_PASSWORD', 'pa$$ \\'quoted\\' word');
define( 'DB_HOST', 'mysql' );
define( 'DB_CHARSET', 'utf8mb4' );
// define( 'DB_NAME', 'shadowed' );
"""


class FakeRemote:
    def __init__(self, stdout="", error=None):
        self.stdout = stdout
        self.error = error
        self.calls = []

    def run(self, remote_cmd, check=True, retry=False, log_output=True):
        self.calls.append((remote_cmd, retry))
        if self.error:
            raise self.error
        return subprocess.CompletedProcess(remote_cmd, 0, stdout=self.stdout, stderr="")


def _names():
    return resolve(CloneRequest(infrastructure="dev-fi-01", domain="test.refine.digital", destination="/tmp"))


def _reader() -> CredentialReader:
    return CredentialReader(logger=DummyLogger(), console=DummyConsole())


def test_parse_wp_config_reads_single_and_double_quotes():
    values = parse_wp_config(WP_CONFIG)

    assert values["DB_NAME"] == "wp_refine"
    assert values["DB_USER"] == "refine_user"
    assert values["DB_PASSWORD"] == "pa$$ 'quoted' word"
    assert values["DB_CHARSET"] == "utf8mb4"


def test_read_credentials_cats_remote_config():
    remote = FakeRemote(stdout=WP_CONFIG)

    credentials = _reader().read_credentials(remote, _names())

    assert remote.calls == [(["cat", "test.refine.digital/app/wp-config.php"], True)]
    assert credentials.name == "wp_refine"
    assert credentials.user == "refine_user"
    assert credentials.charset == "utf8mb4"
    assert "pa$$" not in repr(credentials)


def test_read_credentials_lists_missing_fields():
    remote = FakeRemote(stdout="<?php\ndefine('DB_NAME', 'wp');\ndefine('DB_USER', 'u');\n")

    with pytest.raises(CredentialParseError) as error:
        _reader().read_credentials(remote, _names())

    assert error.value.missing_fields == ("DB_PASSWORD", "DB_CHARSET")
    assert "DB_PASSWORD, DB_CHARSET" in str(error.value)


def test_read_credentials_wraps_remote_failure():
    remote = FakeRemote(error=CommandError("cat: No such file or directory", returncode=1))

    with pytest.raises(CredentialError, match="Could not read test.refine.digital/app/wp-config.php"):
        _reader().read_credentials(remote, _names())


class RecordingLogger(DummyLogger):
    def __init__(self):
        self.messages = []

    def debug(self, message, *args, **_kwargs):
        self.messages.append(message % args if args else message)

    def warning(self, message, *args, **_kwargs):
        self.messages.append(message % args if args else message)


def test_read_credentials_keeps_config_body_out_of_debug_log(monkeypatch):
    logger = RecordingLogger()
    context = InfrastructureContext(
        name="dev-fi-01",
        directory="/home/u/.dev-fi-01",
        env={},
        mysql_root_password="rootpw",
        ssh_alias="fly-dev-fi-01",
        ssh_host="203.0.113.10",
        ssh_user="fly",
        required_containers=("mysql",),
        required_networks=("db-network",),
    )
    remote = RemoteShell(context, CommandRunner(logger=logger))

    def fake_run(cmd, **_kwargs):
        return subprocess.CompletedProcess(cmd, 0, stdout=WP_CONFIG, stderr="")

    monkeypatch.setattr(command_runner_module.subprocess, "run", fake_run)

    credentials = _reader().read_credentials(remote, _names())

    assert credentials.password == "pa$$ 'quoted' word"
    assert any(message.startswith("Executing: ssh") for message in logger.messages)
    assert not any("pa$$" in message for message in logger.messages)
    assert not any("DB_PASSWORD" in message for message in logger.messages)
