"""Filesystem helpers for wp-cloner."""

import logging
import os
import re
import shutil

from rich.console import Console

from wpcloner.models import CleanupOutcome


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def remove_file(self, path: str) -> CleanupOutcome:
        if not os.path.exists(path):
            return CleanupOutcome(target=path, ok=True)
        try:
            os.remove(path)
            self.logger.debug("Removed file: %s", path)
            return CleanupOutcome(target=path, ok=True)
        except OSError as exc:
            return CleanupOutcome(target=path, ok=False, error=str(exc))

    def cleanup_dir(self, path: str) -> CleanupOutcome:
        if not os.path.exists(path):
            return CleanupOutcome(target=path, ok=True)
        try:
            shutil.rmtree(path)
            self.logger.debug("Removed directory: %s", path)
            return CleanupOutcome(target=path, ok=True)
        except OSError as exc:
            return CleanupOutcome(target=path, ok=False, error=str(exc))

    def replace_setting(self, path: str, key: str, old_value, new_value) -> bool:
        """Rewrites ``key=old_value`` to ``key=new_value`` in a config file.

        Returns False when the file does not exist or holds no such setting.
        """
        if not os.path.isfile(path):
            self.logger.warning("Config file not found, skipping: %s", path)
            return False

        with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as file_obj:
            content = file_obj.read()

        pattern = re.compile(rf"\b{re.escape(key)}={re.escape(str(old_value))}\b")
        updated, count = pattern.subn(f"{key}={new_value}", content)
        if not count:
            return False

        with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as file_obj:
            file_obj.write(updated)
        return True
