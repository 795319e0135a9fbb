"""Advisory per-site lock preventing concurrent clones of the same target."""

import os
from typing import Optional

from wpcloner.errors import LockError
from wpcloner.errors_catalog import actionable_error


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


class CloneLock:
    """Exclusive-create lock file holding the owner's PID.

    A lock left behind by a process that no longer exists is replaced.
    """

    def __init__(self, path: str, site: str, logger):
        self.path = path
        self.site = site
        self.logger = logger
        self.acquired = False

    def _read_pid(self) -> Optional[int]:
        try:
            with open(self.path, "r", encoding="utf-8") as file_obj:
                return int(file_obj.read().strip() or 0)
        except (OSError, ValueError):
            return None

    def acquire(self):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)

        for _ in range(2):
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                pid = self._read_pid()
                if pid is not None and _pid_alive(pid):
                    raise LockError(actionable_error("site_locked", site=self.site, path=self.path))
                self.logger.warning("Removing stale lock file %s (pid %s)", self.path, pid)
                try:
                    os.remove(self.path)
                except FileNotFoundError:
                    pass
                continue

            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                file_obj.write(str(os.getpid()))
            self.acquired = True
            self.logger.debug("Acquired lock %s", self.path)
            return

        raise LockError(actionable_error("site_locked", site=self.site, path=self.path))

    def release(self):
        if not self.acquired:
            return
        try:
            os.remove(self.path)
        except OSError as exc:
            self.logger.warning("Could not remove lock file %s: %s", self.path, exc)
        self.acquired = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
