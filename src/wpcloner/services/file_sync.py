"""Incremental mirror of the production site directory."""

import os
from typing import Callable

from wpcloner.errors import CommandError, TransferError
from wpcloner.errors_catalog import actionable_error


class FileSynchronizer:
    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def build_command(self, remote, remote_dir: str, local_dir: str):
        # Trailing slashes copy directory contents rather than the directory itself.
        return [
            "rsync",
            "-az",
            "--delete",
            "-e",
            remote.transport(),
            remote.remote_path(f"{remote_dir.rstrip('/')}/"),
            f"{local_dir.rstrip(os.sep)}{os.sep}",
        ]

    def sync(self, remote, remote_dir: str, local_dir: str, run_cmd: Callable):
        os.makedirs(local_dir, exist_ok=True)
        try:
            run_cmd(self.build_command(remote, remote_dir, local_dir), check=True, capture_output=True)
        except CommandError as exc:
            raise TransferError(actionable_error("sync_failed") + f"\n{exc}") from exc

        self.console.print("  Synced site files")
        self.logger.info("Synced %s into %s", remote_dir, local_dir)
