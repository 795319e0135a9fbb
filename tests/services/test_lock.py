import os

import pytest

import wpcloner.services.lock as lock_module
from wpcloner.errors import LockError
from wpcloner.services.lock import CloneLock


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, message, *args, **_kwargs):
        self.warnings.append(message % args if args else message)


def test_lock_is_exclusive_while_owner_alive(tmp_path):
    path = tmp_path / ".local-example-com.lock"

    with CloneLock(str(path), "example.com", DummyLogger()):
        assert path.read_text(encoding="utf-8") == str(os.getpid())
        with pytest.raises(LockError, match="Another clone of example.com is running"):
            CloneLock(str(path), "example.com", DummyLogger()).acquire()

    assert not path.exists()


def test_stale_lock_is_replaced(tmp_path, monkeypatch):
    path = tmp_path / ".local-example-com.lock"
    path.write_text("999999", encoding="utf-8")
    monkeypatch.setattr(lock_module, "_pid_alive", lambda _pid: False)
    logger = DummyLogger()

    lock = CloneLock(str(path), "example.com", logger)
    lock.acquire()

    assert lock.acquired is True
    assert path.read_text(encoding="utf-8") == str(os.getpid())
    assert "stale lock" in logger.warnings[0]
    lock.release()


def test_release_without_acquire_keeps_foreign_lock(tmp_path):
    path = tmp_path / ".local-example-com.lock"
    path.write_text("1", encoding="utf-8")

    CloneLock(str(path), "example.com", DummyLogger()).release()

    assert path.exists()
