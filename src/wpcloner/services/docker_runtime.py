"""Docker runtime services for wp-cloner."""

import os
import subprocess
import time
from typing import Any, Callable, Dict, List

import yaml

from wpcloner.constants import (
    COMPOSE_FILE_NAME,
    COMPOSE_SERVICE,
    CRON_SCHEDULE,
    CRON_USER,
    DB_NETWORK,
    DEFAULT_COMMAND_TIMEOUT,
    PROXY_NETWORK,
    SITE_NETWORK_ALIAS,
    VIRTUAL_PORT,
    WP_PATH,
)
from wpcloner.errors import (
    CommandError,
    PreconditionError,
    ProvisioningError,
    ReadinessTimeoutError,
)
from wpcloner.errors_catalog import actionable_error
from wpcloner.models import DerivedNames

_VOLUMES = (
    "./app:/var/www/html",
    "./logs/ols:/usr/local/lsws/logs",
    "./config/php/ols.ini:/usr/local/lsws/lsphp82/etc/php/8.2/mods-available/ols.ini",
    "./config/ols/httpd_config.conf:/usr/local/lsws/conf/httpd_config.conf",
    "./config/ols/vhconf.conf:/usr/local/lsws/conf/vhosts/flywp/vhconf.conf",
)


class DockerRuntimeService:
    """Manages docker-compose detection, images, networks and the site container."""

    def __init__(
        self,
        logger,
        console,
        subprocess_module=subprocess,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ):
        self.logger = logger
        self.console = console
        self.subprocess = subprocess_module
        self.command_timeout = command_timeout

    def get_docker_compose_cmd(self) -> List[str]:
        failures = (self.subprocess.CalledProcessError, self.subprocess.TimeoutExpired, FileNotFoundError)
        try:
            self.subprocess.run(
                ["docker", "compose", "version"],
                check=True,
                capture_output=True,
                timeout=self.command_timeout,
            )
            return ["docker", "compose"]
        except failures:
            try:
                self.subprocess.run(
                    ["docker-compose", "--version"],
                    check=True,
                    capture_output=True,
                    timeout=self.command_timeout,
                )
                return ["docker-compose"]
            except failures:
                raise PreconditionError(
                    "Docker Compose is not available. Install Docker Compose v2 (`docker compose`) "
                    "or v1 (`docker-compose`) and try again."
                )

    def daemon_running(self, run_cmd: Callable) -> bool:
        result = run_cmd(["docker", "info"], check=False, capture_output=True)
        return result.returncode == 0

    def list_running_containers(self, run_cmd: Callable) -> List[str]:
        result = run_cmd(
            ["docker", "ps", "--format", "{{.Names}}"],
            check=True,
            capture_output=True,
        )
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def list_networks(self, run_cmd: Callable) -> List[str]:
        result = run_cmd(
            ["docker", "network", "ls", "--format", "{{.Name}}"],
            check=True,
            capture_output=True,
        )
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def load_image(self, archive_path: str, stream_cmd: Callable):
        self.logger.info("Loading image archive %s", archive_path)
        try:
            stream_cmd(["docker", "load", "-i", archive_path])
        except CommandError as exc:
            raise ProvisioningError(
                actionable_error("provisioning_failed", action=f"load image archive {archive_path}")
                + f"\n{exc}"
            ) from exc

    def build_compose_descriptor(self, names: DerivedNames) -> Dict[str, Any]:
        job = f"ofelia.job-exec.wpcron-{names.container_name}"
        return {
            "services": {
                COMPOSE_SERVICE: {
                    "image": names.image_tag,
                    "pull_policy": "never",
                    "container_name": names.container_name,
                    "restart": "unless-stopped",
                    "volumes": list(_VOLUMES),
                    "labels": {
                        "ofelia.enabled": "true",
                        f"{job}.schedule": CRON_SCHEDULE,
                        f"{job}.user": CRON_USER,
                        f"{job}.command": f"wp cron event run --due-now --path={WP_PATH}",
                    },
                    "environment": [
                        f"VIRTUAL_HOST={names.local_domain}",
                        f"VIRTUAL_PORT={VIRTUAL_PORT}",
                    ],
                    "networks": [SITE_NETWORK_ALIAS, DB_NETWORK, PROXY_NETWORK],
                }
            },
            "networks": {
                SITE_NETWORK_ALIAS: {"name": names.network_name, "external": True},
                PROXY_NETWORK: {"name": PROXY_NETWORK, "external": True},
                DB_NETWORK: {"name": DB_NETWORK, "external": True},
            },
        }

    def write_compose_file(self, site_dir: str, names: DerivedNames) -> str:
        compose_path = os.path.join(site_dir, COMPOSE_FILE_NAME)
        content = yaml.safe_dump(
            self.build_compose_descriptor(names),
            default_flow_style=False,
            sort_keys=False,
        )
        try:
            os.makedirs(site_dir, exist_ok=True)
            with open(compose_path, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise ProvisioningError(
                actionable_error("provisioning_failed", action=f"write {compose_path}: {exc}")
            ) from exc

        self.logger.info("Created %s", compose_path)
        return compose_path

    def create_network(self, name: str, run_cmd: Callable):
        result = run_cmd(["docker", "network", "create", name], check=False, capture_output=True)
        if result.returncode == 0:
            self.logger.info("Created network %s", name)
            return

        stderr = (result.stderr or "").strip()
        if "already exists" in stderr.lower():
            self.console.print("  Network already exists")
            self.logger.info("Network %s already exists", name)
            return

        raise ProvisioningError(
            actionable_error("provisioning_failed", action=f"create network {name}")
            + (f"\n{stderr}" if stderr else "")
        )

    def remove_container(self, name: str, run_cmd: Callable):
        """Stops and removes ``name``; a missing container is not an error."""
        run_cmd(["docker", "stop", name], check=False, capture_output=True)
        run_cmd(["docker", "rm", name], check=False, capture_output=True)

    def compose_down(self, compose_cmd: List[str], compose_file: str, run_cmd: Callable):
        if not os.path.exists(compose_file):
            return
        run_cmd(compose_cmd + ["-f", compose_file, "down"], check=False, capture_output=True)

    def launch(self, compose_cmd: List[str], compose_file: str, container_name: str, run_cmd: Callable):
        self.compose_down(compose_cmd, compose_file, run_cmd)
        self.remove_container(container_name, run_cmd)

        try:
            run_cmd(compose_cmd + ["-f", compose_file, "up", "-d"], check=True, capture_output=True)
        except CommandError as exc:
            raise ProvisioningError(
                actionable_error("provisioning_failed", action=f"start container {container_name}")
                + f"\n{exc}"
            ) from exc

        self.console.print(f"  Container started: {container_name}")
        self.logger.info("Container started: %s", container_name)

    def wp_cmd(self, container_name: str, *args: str) -> List[str]:
        return ["docker", "exec", container_name, "wp", *args, f"--path={WP_PATH}", "--allow-root"]

    def wait_until_ready(
        self,
        container_name: str,
        run_cmd: Callable,
        timeout: float = 120.0,
        interval: float = 2.0,
    ):
        """Polls ``wp core is-installed`` until the site answers or ``timeout`` elapses."""
        self.console.print("[yellow]Waiting for container to be ready...[/yellow]")

        ready_cmd = self.wp_cmd(container_name, "core", "is-installed")
        deadline = time.monotonic() + timeout

        while True:
            result = run_cmd(ready_cmd, check=False, capture_output=True)
            if result.returncode == 0:
                self.console.print("[green]Container is ready.[/green]")
                return
            if time.monotonic() >= deadline:
                break
            time.sleep(interval)

        raise ReadinessTimeoutError(
            actionable_error(
                "container_not_ready",
                container=container_name,
                timeout=f"{timeout:g}",
            )
        )

    def remove_image(self, image_tag: str, run_cmd: Callable) -> subprocess.CompletedProcess:
        return run_cmd(["docker", "rmi", image_tag], check=False, capture_output=True)

    def remove_network(self, name: str, run_cmd: Callable) -> subprocess.CompletedProcess:
        return run_cmd(["docker", "network", "rm", name], check=False, capture_output=True)
