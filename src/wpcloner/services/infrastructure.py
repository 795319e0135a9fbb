"""Local infrastructure verification for wp-cloner."""

import os
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import paramiko
from dotenv import dotenv_values

from wpcloner.constants import (
    ENV_FILE_NAME,
    REQUIRED_CONTAINERS,
    REQUIRED_NETWORKS,
    ROOT_PASSWORD_KEY,
    TUNNEL_CONTAINER,
)
from wpcloner.errors import ClonerError, MissingInfrastructureError, PreconditionError
from wpcloner.errors_catalog import actionable_error
from wpcloner.models import InfrastructureContext

_HOST_LINE = re.compile(r"^\s*host\s*[=\s]\s*(?P<patterns>.+)$", re.IGNORECASE)


def _host_aliases(ssh_config_path: str) -> List[str]:
    """Returns the Host patterns of an ssh config in file order."""
    aliases: List[str] = []
    with open(ssh_config_path, encoding="utf-8") as file_obj:
        for line in file_obj:
            match = _HOST_LINE.match(line)
            if match:
                aliases.extend(match.group("patterns").split("#", 1)[0].split())
    return aliases


class InfrastructureVerifier:
    """Read-only checks of the Docker daemon, infrastructure files and SSH config."""

    def __init__(
        self,
        logger,
        console,
        docker_runtime_service,
        infrastructure_root: str = "~",
        ssh_config_path: str = "~/.ssh/config",
        required_containers: Sequence[str] = REQUIRED_CONTAINERS,
        required_networks: Sequence[str] = REQUIRED_NETWORKS,
    ):
        self.logger = logger
        self.console = console
        self.docker_runtime_service = docker_runtime_service
        self.infrastructure_root = os.path.expanduser(infrastructure_root)
        self.ssh_config_path = os.path.expanduser(ssh_config_path)
        self.required_containers = tuple(required_containers)
        self.required_networks = tuple(required_networks)

    def infrastructure_dir(self, infrastructure: str) -> str:
        return os.path.join(self.infrastructure_root, f".{infrastructure}")

    def verify(self, infrastructure: str, ssh_user: str, run_cmd: Callable) -> InfrastructureContext:
        self.console.print("[yellow]Verifying infrastructure...[/yellow]")

        if not self.docker_runtime_service.daemon_running(run_cmd):
            raise PreconditionError(actionable_error("docker_not_running"))
        self.console.print("  [green]✓[/green] Docker is running")

        directory = self.infrastructure_dir(infrastructure)
        if not os.path.isdir(directory):
            raise PreconditionError(
                actionable_error(
                    "infrastructure_not_found",
                    infrastructure=infrastructure,
                    path=directory,
                )
            )

        env = self.load_env(directory)
        root_password = env.get(ROOT_PASSWORD_KEY)
        if not root_password:
            raise PreconditionError(
                actionable_error(
                    "root_password_missing",
                    path=os.path.join(directory, ENV_FILE_NAME),
                )
            )
        self.console.print("  [green]✓[/green] Infrastructure directory found")
        self.console.print("  [green]✓[/green] Configuration loaded from infrastructure")

        missing_containers, missing_networks = self.find_missing(run_cmd)
        if missing_containers or missing_networks:
            missing: List[str] = [f"container {name}" for name in missing_containers]
            missing.extend(f"network {name}" for name in missing_networks)
            for item in missing:
                self.console.print(f"  [red]- {item}[/red]")
            raise MissingInfrastructureError(
                actionable_error(
                    "infrastructure_incomplete",
                    missing=", ".join(missing),
                    path=directory,
                ),
                missing_containers=missing_containers,
                missing_networks=missing_networks,
            )

        self.console.print("[green]✓ Infrastructure verified[/green]")
        for name in self.required_containers:
            self.logger.info("  - %s: running", name)
        for name in self.required_networks:
            self.logger.info("  - %s network: exists", name)

        ssh_alias, ssh_host = self.resolve_ssh_host(infrastructure)
        self.console.print(f"  [green]✓[/green] SSH host: {ssh_user}@{ssh_host}")
        self.console.print(f"  [green]✓[/green] SSH config: {ssh_alias}")

        return InfrastructureContext(
            name=infrastructure,
            directory=directory,
            env=env,
            mysql_root_password=root_password,
            ssh_alias=ssh_alias,
            ssh_host=ssh_host,
            ssh_user=ssh_user,
            required_containers=self.required_containers,
            required_networks=self.required_networks,
        )

    def load_env(self, directory: str) -> Dict[str, str]:
        env_path = os.path.join(directory, ENV_FILE_NAME)
        if not os.path.isfile(env_path):
            raise PreconditionError(actionable_error("env_file_missing", path=env_path))

        try:
            values = dotenv_values(env_path)
        except (OSError, UnicodeDecodeError) as exc:
            raise PreconditionError(
                actionable_error("env_file_unreadable", path=env_path, error=str(exc))
            ) from exc

        return {key: value for key, value in values.items() if value is not None}

    def find_missing(self, run_cmd: Callable) -> Tuple[List[str], List[str]]:
        """Returns every missing container and network, not only the first."""
        running = set(self.docker_runtime_service.list_running_containers(run_cmd))
        networks = set(self.docker_runtime_service.list_networks(run_cmd))

        missing_containers = [name for name in self.required_containers if name not in running]
        missing_networks = [name for name in self.required_networks if name not in networks]
        return missing_containers, missing_networks

    def resolve_ssh_host(self, infrastructure: str) -> Tuple[str, str]:
        """Finds the SSH alias for ``infrastructure`` and the host it points to."""
        if not os.path.isfile(self.ssh_config_path):
            raise PreconditionError(
                actionable_error(
                    "ssh_host_not_found",
                    infrastructure=infrastructure,
                    path=self.ssh_config_path,
                )
            )

        try:
            ssh_config = paramiko.SSHConfig.from_path(self.ssh_config_path)
            aliases = _host_aliases(self.ssh_config_path)
        except (OSError, paramiko.ConfigParseError) as exc:
            raise PreconditionError(
                f"Could not parse SSH config {self.ssh_config_path}: {exc}"
            ) from exc

        alias = self._find_alias(aliases, infrastructure)
        if alias is None:
            raise PreconditionError(
                actionable_error(
                    "ssh_host_not_found",
                    infrastructure=infrastructure,
                    path=self.ssh_config_path,
                )
            )

        hostname = ssh_config.lookup(alias).get("hostname")
        if not hostname or hostname == alias:
            raise PreconditionError(
                actionable_error(
                    "ssh_host_not_found",
                    infrastructure=infrastructure,
                    path=self.ssh_config_path,
                )
            )
        return alias, hostname

    @staticmethod
    def _find_alias(aliases: Sequence[str], infrastructure: str) -> Optional[str]:
        # exact alias first, then the first partial match in file order
        if infrastructure in aliases:
            return infrastructure
        for name in aliases:
            if infrastructure in name and not any(char in name for char in "*?!"):
                return name
        return None

    def tunnel_running(self, run_cmd: Callable) -> bool:
        try:
            running = self.docker_runtime_service.list_running_containers(run_cmd)
        except ClonerError as exc:
            self.logger.warning("Could not check tunnel container: %s", exc)
            return False
        return any(TUNNEL_CONTAINER in name for name in running)
