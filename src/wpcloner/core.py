import logging
import os
import subprocess
import uuid
from dataclasses import asdict
from typing import Callable, List, Optional

from rich.console import Console
from rich.markup import escape

from .constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_LSAPI_CHILDREN,
    DEFAULT_PRODUCTION_USER,
    DEFAULT_READY_INTERVAL,
    DEFAULT_READY_TIMEOUT,
    DEFAULT_RETRY_COUNT,
    DEFAULT_SSH_CONFIG,
    DEFAULT_TRANSFER_TIMEOUT,
    LSAPI_CHILDREN_SETTING,
    PRODUCTION_LSAPI_CHILDREN,
    SERVER_CONFIG_RELPATH,
    TOTAL_STEPS,
)
from .errors import ClonerError, PreconditionError
from .models import (
    CloneArtifacts,
    CloneRequest,
    DatabaseCredentials,
    InfrastructureContext,
    SiteInstance,
)
from .services.cleanup import CleanupCoordinator
from .services.command_runner import CommandRunner
from .services.credentials import CredentialReader
from .services.database import DatabaseService
from .services.docker_runtime import DockerRuntimeService
from .services.file_sync import FileSynchronizer
from .services.filesystem import FileSystemService
from .services.infrastructure import InfrastructureVerifier
from .services.lock import CloneLock
from .services.manifest import ManifestService
from .services.naming import resolve
from .services.remote import RemoteShell
from .services.site_rewriter import SiteRewriter
from .services.snapshot import SnapshotExporter

console = Console()
logger = logging.getLogger("wpcloner")

_STEP_TITLES = {
    "clean_existing_site": (0, "Cleaning up existing installation..."),
    "read_credentials": (1, "Extracting database credentials..."),
    "create_snapshot": (2, "Creating Docker snapshot..."),
    "export_database": (3, "Exporting database..."),
    "download_image": (4, "Downloading Docker image..."),
    "sync_files": (5, "Downloading site files..."),
    "tune_local_config": (6, "Updating local configuration..."),
    "load_image": (7, "Loading Docker image..."),
    "create_database": (8, "Creating local database..."),
    "import_database": (9, "Importing database..."),
    "write_compose_file": (10, "Creating local docker-compose.yml..."),
    "create_network": (11, "Creating site network..."),
    "start_container": (12, "Starting container with docker-compose..."),
    "rewrite_urls": (13, "Updating WordPress URLs..."),
    "check_tunnel": (14, "Configuring Cloudflared access..."),
}


class WordPressCloner:
    def __init__(
        self,
        request: CloneRequest,
        production_user: str = DEFAULT_PRODUCTION_USER,
        ssh_config_path: str = DEFAULT_SSH_CONFIG,
        infrastructure_root: str = "~",
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        transfer_timeout: float = DEFAULT_TRANSFER_TIMEOUT,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
        ready_interval: float = DEFAULT_READY_INTERVAL,
        retry_count: int = DEFAULT_RETRY_COUNT,
        lsapi_children: int = DEFAULT_LSAPI_CHILDREN,
    ):
        self.request = request
        self.production_user = production_user
        self.command_timeout = command_timeout
        self.transfer_timeout = transfer_timeout
        self.ready_timeout = ready_timeout
        self.ready_interval = ready_interval
        self.retry_count = retry_count
        self.lsapi_children = lsapi_children

        self.names = resolve(request)
        self.destination = request.destination
        self.site_dir = os.path.join(self.destination, self.names.directory_name)
        self.artifacts = CloneArtifacts(
            dump_path=os.path.join(self.destination, f"{self.names.directory_name}-db.sql"),
            image_archive_path=os.path.join(
                self.destination, f"{self.names.directory_name}-image.tar"
            ),
        )
        self.run_id = uuid.uuid4().hex[:10]

        self.lock = CloneLock(
            path=os.path.join(self.destination, f".{self.names.directory_name}.lock"),
            site=self.names.local_domain,
            logger=logger,
        )
        self.manifest_file = os.path.join(
            self.destination, f"{self.names.directory_name}-manifest.json"
        )
        self.manifest_service = ManifestService(manifest_file=self.manifest_file, logger=logger)
        self.manifest_started = False

        self.command_runner = CommandRunner(logger=logger, default_timeout=command_timeout)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.docker_runtime_service = DockerRuntimeService(
            logger=logger,
            console=console,
            subprocess_module=subprocess,
            command_timeout=command_timeout,
        )
        self.infrastructure_verifier = InfrastructureVerifier(
            logger=logger,
            console=console,
            docker_runtime_service=self.docker_runtime_service,
            infrastructure_root=infrastructure_root,
            ssh_config_path=ssh_config_path,
        )
        self.credential_reader = CredentialReader(logger=logger, console=console)
        self.snapshot_exporter = SnapshotExporter(logger=logger, console=console)
        self.file_synchronizer = FileSynchronizer(logger=logger, console=console)
        self.site_rewriter = SiteRewriter(
            logger=logger,
            console=console,
            docker_runtime_service=self.docker_runtime_service,
        )
        self.cleanup_coordinator = CleanupCoordinator(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
            docker_runtime_service=self.docker_runtime_service,
        )

        self.compose_cmd: Optional[List[str]] = None
        self.context: Optional[InfrastructureContext] = None
        self.remote: Optional[RemoteShell] = None
        self.credentials: Optional[DatabaseCredentials] = None
        self.database_service: Optional[DatabaseService] = None
        self.compose_file: Optional[str] = None
        self.site: Optional[SiteInstance] = None
        self.export_started = False
        self.current_step_name: Optional[str] = None

    def _run_step(self, name: str, callback: Callable, *args, **kwargs):
        if name in _STEP_TITLES:
            number, title = _STEP_TITLES[name]
            style = "blue" if number == 0 else "yellow"
            console.print(f"[{style}][{number}/{TOTAL_STEPS}] {title}[/{style}]")

        self.manifest_service.step_started(name)
        self.current_step_name = name
        try:
            result = callback(*args, **kwargs)
        except Exception as exc:
            self.manifest_service.step_finished(
                name, "failed", error=self.command_runner.redact(str(exc))
            )
            raise

        self.manifest_service.step_finished(name, "success")
        self.current_step_name = None
        return result

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(
            cmd,
            check=check,
            capture_output=capture_output,
            timeout=timeout,
        )

    def _run_cmd_transfer(self, cmd: List[str], check: bool = True, capture_output: bool = False):
        return self._run_cmd(cmd, check=check, capture_output=capture_output, timeout=self.transfer_timeout)

    def _stream_cmd(
        self,
        cmd: List[str],
        stdout_path: Optional[str] = None,
        stdin_path: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.stream(
            cmd,
            stdout_path=stdout_path,
            stdin_path=stdin_path,
            timeout=self.transfer_timeout,
        )

    def _get_docker_compose_cmd(self) -> List[str]:
        if self.compose_cmd is None:
            self.compose_cmd = self.docker_runtime_service.get_docker_compose_cmd()
        return self.compose_cmd

    def prepare_destination(self):
        try:
            os.makedirs(self.destination, exist_ok=True)
        except OSError as exc:
            raise PreconditionError(
                f"Could not create destination folder {self.destination}: {exc}"
            ) from exc

    def verify_infrastructure(self):
        self.context = self.infrastructure_verifier.verify(
            self.request.infrastructure,
            ssh_user=self.production_user,
            run_cmd=self._run_cmd,
        )
        self.command_runner.register_secret(self.context.mysql_root_password)
        self.compose_cmd = self._get_docker_compose_cmd()
        self.remote = RemoteShell(
            context=self.context,
            command_runner=self.command_runner,
            command_timeout=self.command_timeout,
            transfer_timeout=self.transfer_timeout,
            retry_count=self.retry_count,
        )
        self.database_service = DatabaseService(
            logger=logger,
            console=console,
            root_password=self.context.mysql_root_password,
        )

    def clean_existing_site(self):
        self.cleanup_coordinator.reset_site(
            names=self.names,
            site_dir=self.site_dir,
            artifacts=self.artifacts,
            compose_cmd=self._get_docker_compose_cmd(),
            run_cmd=self._run_cmd,
        )

    def read_credentials(self):
        self.credentials = self.credential_reader.read_credentials(self.remote, self.names)
        self.command_runner.register_secret(self.credentials.password)

    def create_snapshot(self):
        self.export_started = True
        self.snapshot_exporter.commit(self.remote, self.names)

    def export_database(self):
        self.snapshot_exporter.dump_database(
            self.remote,
            self.credentials,
            self.artifacts.dump_path,
            self.names,
        )
        self.manifest_service.add_artifact("database_dump", self.artifacts.dump_path)

    def download_image(self):
        self.snapshot_exporter.transfer_image(
            self.remote,
            self.names,
            self.artifacts.image_archive_path,
        )
        self.manifest_service.add_artifact("image_archive", self.artifacts.image_archive_path)

    def sync_files(self):
        self.file_synchronizer.sync(
            self.remote,
            remote_dir=self.names.production_site_dir,
            local_dir=self.site_dir,
            run_cmd=self._run_cmd_transfer,
        )

    def tune_local_config(self):
        config_path = os.path.join(self.site_dir, SERVER_CONFIG_RELPATH)
        changed = self.filesystem_service.replace_setting(
            config_path,
            LSAPI_CHILDREN_SETTING,
            PRODUCTION_LSAPI_CHILDREN,
            self.lsapi_children,
        )
        if changed:
            console.print(f"  Updated LSAPI_CHILDREN to {self.lsapi_children}")
        else:
            logger.info("%s left unchanged in %s", LSAPI_CHILDREN_SETTING, config_path)

    def load_image(self):
        self.docker_runtime_service.load_image(self.artifacts.image_archive_path, self._stream_cmd)
        console.print(f"  Loaded image: {self.names.image_tag}")

    def create_database(self) -> str:
        return self.database_service.recreate_database(
            self.credentials,
            self.artifacts.dump_path,
            run_cmd=self._run_cmd,
        )

    def import_database(self):
        self.database_service.import_dump(
            self.credentials,
            self.artifacts.dump_path,
            stream_cmd=self._stream_cmd,
        )

    def write_compose_file(self):
        self.compose_file = self.docker_runtime_service.write_compose_file(self.site_dir, self.names)
        console.print("  Created docker-compose.yml")

    def create_network(self):
        self.docker_runtime_service.create_network(self.names.network_name, self._run_cmd)

    def start_container(self):
        self.docker_runtime_service.launch(
            self._get_docker_compose_cmd(),
            self.compose_file,
            self.names.container_name,
            self._run_cmd,
        )
        self.docker_runtime_service.wait_until_ready(
            self.names.container_name,
            self._run_cmd,
            timeout=self.ready_timeout,
            interval=self.ready_interval,
        )

    def rewrite_urls(self) -> str:
        return self.site_rewriter.rewrite(self.names, self._run_cmd)

    def check_tunnel(self) -> bool:
        if self.infrastructure_verifier.tunnel_running(self._run_cmd):
            console.print("  [green]✓[/green] Cloudflared is running in infrastructure")
            console.print(f"  Note: To add {self.names.local_domain} to the tunnel, update:")
            console.print(f"       {os.path.join(self.context.directory, 'config', 'cloudflared', 'config.yml')}")
            console.print("  Then restart: docker restart cloudflared")
            return True

        console.print("  [yellow]Cloudflared not found in infrastructure[/yellow]")
        console.print("  Site will be accessible via nginx-proxy on localhost")
        console.print("  For HTTPS access, configure cloudflared in infrastructure")
        return False

    def cleanup(self):
        if not self.export_started:
            return
        report = self.cleanup_coordinator.remove_artifacts(
            self.artifacts,
            remote=self.remote,
            image_tag=self.names.image_tag,
        )
        if self.manifest_started:
            self.manifest_service.add_cleanup(report.outcomes)

    def print_header(self):
        console.print("[green]=== WordPress Site Cloner ===[/green]")
        console.print(f"Infrastructure: {self.request.infrastructure}")
        console.print(f"Production Site: https://{self.names.domain}")
        console.print(f"Local Site: https://{self.names.local_domain}")
        console.print(f"Destination: {self.destination}")
        console.print(f"Clean mode: {str(self.request.clean).lower()}")

    def print_summary(self, tunnel_running: bool):
        site = self.site
        console.print("")
        console.print("[green]=== Clone Complete! ===[/green]")
        console.print(f"Infrastructure: {self.request.infrastructure}")
        console.print(f"Production: https://{self.names.domain}")
        console.print(f"Local: https://{self.names.local_domain}")
        console.print(f"Site location: {site.directory}")
        console.print(f"Container: {site.container_name}")
        console.print(f"Database: {site.database_name}")
        console.print("")
        console.print("Manage the site:")
        console.print(f"  cd {site.directory}")
        console.print("  docker compose up -d      # Start")
        console.print("  docker compose down       # Stop")
        console.print("  docker compose logs -f    # View logs")
        console.print("")
        console.print("To re-clone this site from scratch:")
        console.print(
            f"  clone-wordpress {self.request.infrastructure} {self.names.domain} "
            f"{self.destination} --clean"
        )
        if tunnel_running:
            console.print(
                f"[green]Cloudflared is running - configure {self.names.local_domain} "
                "in infrastructure for HTTPS access[/green]"
            )
        else:
            console.print("[yellow]Note: Cloudflared not running. Site accessible via http://localhost[/yellow]")

    def run(self) -> int:
        exit_code = 1
        manifest_status = "failed"
        manifest_error: Optional[str] = None

        try:
            logger.info("Starting clone of %s into %s", self.names.domain, self.site_dir)
            self.print_header()

            self.prepare_destination()
            self.lock.acquire()
            self.manifest_service.start_run(
                run_id=self.run_id,
                request=asdict(self.request),
                names=asdict(self.names),
            )
            self.manifest_started = True

            self._run_step("verify_infrastructure", self.verify_infrastructure)
            if self.request.clean:
                self._run_step("clean_existing_site", self.clean_existing_site)

            self._run_step("read_credentials", self.read_credentials)
            self._run_step("create_snapshot", self.create_snapshot)
            self._run_step("export_database", self.export_database)
            self._run_step("download_image", self.download_image)
            self._run_step("sync_files", self.sync_files)
            self._run_step("tune_local_config", self.tune_local_config)
            self._run_step("load_image", self.load_image)
            self._run_step("create_database", self.create_database)
            self._run_step("import_database", self.import_database)
            self._run_step("write_compose_file", self.write_compose_file)
            self._run_step("create_network", self.create_network)
            self._run_step("start_container", self.start_container)
            site_url = self._run_step("rewrite_urls", self.rewrite_urls)
            tunnel_running = self._run_step("check_tunnel", self.check_tunnel)

            self.site = SiteInstance(
                directory=self.site_dir,
                compose_file=self.compose_file,
                container_name=self.names.container_name,
                network_name=self.names.network_name,
                database_name=self.credentials.name,
                site_url=site_url,
            )
            self.manifest_service.set_site(asdict(self.site))
            self.print_summary(tunnel_running)

            manifest_status = "success"
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            return exit_code
        except ClonerError as exc:
            message = self.command_runner.redact(str(exc))
            console.print(f"[bold red]{exc.category} error:[/bold red] {escape(message)}")
            logger.error(
                "%s error during %s: %s",
                exc.category,
                self.current_step_name or "startup",
                message,
            )
            manifest_error = message
            return exit_code
        except Exception as exc:
            message = self.command_runner.redact(str(exc))
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(message)}")
            logger.exception("Unexpected error")
            manifest_error = message
            return exit_code
        finally:
            self.cleanup()
            if self.manifest_started:
                self.manifest_service.finalize(manifest_status, error=manifest_error)
            self.lock.release()
