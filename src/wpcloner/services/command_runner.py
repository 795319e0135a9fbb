"""Subprocess execution service for wp-cloner."""

import subprocess
import time
from contextlib import ExitStack
from typing import Iterable, List, Optional, Set

from wpcloner.errors import CommandError, PreconditionError

REDACTED = "******"


class CommandRunner:
    """Runs external commands with consistent timeouts, retries and redaction."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout
        self._secrets: Set[str] = set()

    def register_secret(self, value: Optional[str]):
        """Mask ``value`` in every logged command line and error message."""
        if value:
            self._secrets.add(value)

    def redact(self, text: str) -> str:
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, REDACTED)
        return text

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        retry_count: int = 0,
        retry_backoff_seconds: float = 0.0,
        retry_on_returncodes: Optional[Iterable[int]] = None,
        log_output: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd_str = self.redact(" ".join(cmd))
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        max_attempts = max(1, retry_count + 1)
        retry_codes = set(retry_on_returncodes or [])

        for attempt in range(1, max_attempts + 1):
            try:
                result = subprocess.run(
                    cmd,
                    text=True,
                    capture_output=capture_output,
                    timeout=effective_timeout,
                )
            except FileNotFoundError as exc:
                raise PreconditionError(
                    f"Required command not found: {cmd[0]}. Please install it and try again."
                ) from exc
            except subprocess.TimeoutExpired as exc:
                if attempt < max_attempts:
                    self.logger.warning(
                        "Command timed out on attempt %s/%s. Retrying in %.1fs: %s",
                        attempt,
                        max_attempts,
                        retry_backoff_seconds,
                        cmd_str,
                    )
                    time.sleep(retry_backoff_seconds)
                    continue
                raise CommandError(
                    f"Command timed out after {effective_timeout}s: {cmd_str}"
                ) from exc
            except OSError as exc:
                raise CommandError(f"Failed to execute command: {cmd_str}. {exc}") from exc

            if log_output and capture_output and result.stdout:
                self.logger.debug("Command output: %s", self.redact(result.stdout.strip()))

            if result.returncode == 0:
                return result

            stderr = self.redact((result.stderr or "").strip()) if capture_output else ""
            message = f"Command failed ({result.returncode}): {cmd_str}"
            if stderr:
                message = f"{message}\n{stderr}"

            can_retry = attempt < max_attempts and (
                not retry_codes or result.returncode in retry_codes
            )
            if can_retry:
                self.logger.warning(
                    "Command failed on attempt %s/%s and will be retried in %.1fs.\n%s",
                    attempt,
                    max_attempts,
                    retry_backoff_seconds,
                    message,
                )
                time.sleep(retry_backoff_seconds)
                continue

            if check:
                raise CommandError(message, returncode=result.returncode, stderr=stderr)

            self.logger.debug(message)
            return result

        raise CommandError(f"Command failed after retries: {cmd_str}")

    def stream(
        self,
        cmd: List[str],
        stdout_path: Optional[str] = None,
        stdin_path: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """Runs ``cmd`` with stdout written to, or stdin read from, a file.

        Files are opened in binary mode so database dumps and image archives
        pass through untouched. A failed run leaves a partial output file
        behind; callers own its removal.
        """
        cmd_str = self.redact(" ".join(cmd))
        if stdout_path:
            cmd_str = f"{cmd_str} > {stdout_path}"
        if stdin_path:
            cmd_str = f"{cmd_str} < {stdin_path}"
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        with ExitStack() as stack:
            stdout_obj = stack.enter_context(open(stdout_path, "wb")) if stdout_path else None
            stdin_obj = stack.enter_context(open(stdin_path, "rb")) if stdin_path else None
            try:
                result = subprocess.run(
                    cmd,
                    stdin=stdin_obj,
                    stdout=stdout_obj if stdout_obj is not None else subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    timeout=effective_timeout,
                )
            except FileNotFoundError as exc:
                raise PreconditionError(
                    f"Required command not found: {cmd[0]}. Please install it and try again."
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise CommandError(
                    f"Command timed out after {effective_timeout}s: {cmd_str}"
                ) from exc
            except OSError as exc:
                raise CommandError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if result.returncode != 0:
            stderr = self.redact((result.stderr or b"").decode("utf-8", errors="replace").strip())
            message = f"Command failed ({result.returncode}): {cmd_str}"
            if stderr:
                message = f"{message}\n{stderr}"
            raise CommandError(message, returncode=result.returncode, stderr=stderr)

        return result
