"""SSH command channel to the production host."""

import shlex
import subprocess
from typing import List, Optional

from wpcloner.models import InfrastructureContext


class RemoteShell:
    """Builds and runs ``ssh`` invocations against the infrastructure's SSH alias.

    Remote commands are passed as argument lists and joined with
    :func:`shlex.join`, so domain names and credentials reach the remote shell
    as single quoted words. Relative paths resolve against the remote user's
    home directory.
    """

    def __init__(
        self,
        context: InfrastructureContext,
        command_runner,
        connect_timeout: int = 15,
        command_timeout: Optional[float] = None,
        transfer_timeout: Optional[float] = None,
        retry_count: int = 0,
    ):
        self.context = context
        self.command_runner = command_runner
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.transfer_timeout = transfer_timeout
        self.retry_count = retry_count

    @property
    def target(self) -> str:
        return f"{self.context.ssh_user}@{self.context.ssh_alias}"

    def ssh_options(self) -> List[str]:
        return [
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
        ]

    def transport(self) -> str:
        """The ``ssh`` command line handed to rsync's ``-e`` option."""
        return shlex.join(["ssh", *self.ssh_options()])

    def build(self, remote_cmd: List[str]) -> List[str]:
        return ["ssh", *self.ssh_options(), self.target, shlex.join(remote_cmd)]

    def remote_path(self, path: str) -> str:
        return f"{self.target}:{path}"

    def run(
        self,
        remote_cmd: List[str],
        check: bool = True,
        retry: bool = False,
        log_output: bool = True,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(
            self.build(remote_cmd),
            check=check,
            capture_output=True,
            timeout=self.command_timeout,
            retry_count=self.retry_count if retry else 0,
            retry_backoff_seconds=2.0,
            retry_on_returncodes=[255],
            log_output=log_output,
        )

    def stream_to_file(self, remote_cmd: List[str], dest_path: str) -> subprocess.CompletedProcess:
        return self.command_runner.stream(
            self.build(remote_cmd),
            stdout_path=dest_path,
            timeout=self.transfer_timeout,
        )
