"""Best-effort removal of transient clone artifacts and of whole local sites."""

import os
from typing import Callable, List, Optional

from wpcloner.constants import COMPOSE_FILE_NAME
from wpcloner.errors import ClonerError
from wpcloner.models import CleanupOutcome, CleanupReport, CloneArtifacts, DerivedNames


class CleanupCoordinator:
    """Runs removal steps that must never fail the clone.

    Each step yields a :class:`CleanupOutcome`; failures are logged from the
    collected report rather than raised.
    """

    def __init__(self, logger, console, filesystem_service, docker_runtime_service):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.docker_runtime_service = docker_runtime_service

    @staticmethod
    def _command_outcome(target: str, result) -> CleanupOutcome:
        if result.returncode == 0:
            return CleanupOutcome(target=target, ok=True)
        return CleanupOutcome(target=target, ok=False, error=(result.stderr or "").strip() or None)

    def _attempt(self, target: str, action: Callable) -> CleanupOutcome:
        try:
            result = action()
        except ClonerError as exc:
            return CleanupOutcome(target=target, ok=False, error=str(exc))
        if isinstance(result, CleanupOutcome):
            return result
        return self._command_outcome(target, result)

    def _log_report(self, report: CleanupReport):
        for outcome in report.failures:
            self.logger.warning("Cleanup of %s failed: %s", outcome.target, outcome.error or "unknown error")

    def remove_artifacts(
        self,
        artifacts: CloneArtifacts,
        remote=None,
        image_tag: Optional[str] = None,
    ) -> CleanupReport:
        """Deletes the local dump, the local image archive and the remote snapshot."""
        self.console.print("[blue]Cleaning up temporary files...[/blue]")
        report = CleanupReport()

        for label, path in (
            ("database dump", artifacts.dump_path),
            ("Docker image tar", artifacts.image_archive_path),
        ):
            existed = os.path.exists(path)
            outcome = self.filesystem_service.remove_file(path)
            report.add(outcome)
            if existed and outcome.ok:
                self.console.print(f"  Removed {label}")

        if remote is not None and image_tag:
            outcome = self._attempt(
                f"production snapshot {image_tag}",
                lambda: remote.run(["docker", "rmi", image_tag], check=False),
            )
            report.add(outcome)
            if outcome.ok:
                self.console.print("  Removed production snapshot")

        self._log_report(report)
        return report

    def reset_site(
        self,
        names: DerivedNames,
        site_dir: str,
        artifacts: CloneArtifacts,
        compose_cmd: List[str],
        run_cmd: Callable,
    ) -> CleanupReport:
        """Removes every local trace of a previous clone of ``names.domain``."""
        report = CleanupReport()
        runtime = self.docker_runtime_service
        compose_file = os.path.join(site_dir, COMPOSE_FILE_NAME)

        if os.path.exists(compose_file):
            report.add(
                self._attempt(
                    f"compose project {compose_file}",
                    lambda: run_cmd(compose_cmd + ["-f", compose_file, "down"], check=False, capture_output=True),
                )
            )
        runtime.remove_container(names.container_name, run_cmd)
        self.console.print("  Removed container")

        # Absent image and network are expected on a never-cloned site.
        image_result = runtime.remove_image(names.image_tag, run_cmd)
        if image_result.returncode != 0:
            self.logger.debug("Image %s not removed: %s", names.image_tag, (image_result.stderr or "").strip())
        self.console.print("  Removed Docker image")

        network_result = runtime.remove_network(names.network_name, run_cmd)
        if network_result.returncode != 0:
            self.logger.debug(
                "Network %s not removed: %s",
                names.network_name,
                (network_result.stderr or "").strip(),
            )
        self.console.print("  Removed network")

        report.add(self.filesystem_service.cleanup_dir(site_dir))
        self.console.print("  Removed site directory")

        report.add(self.filesystem_service.remove_file(artifacts.dump_path))
        report.add(self.filesystem_service.remove_file(artifacts.image_archive_path))
        self.console.print("  Removed temporary files")

        self._log_report(report)
        self.console.print("[green]  Cleanup complete[/green]")
        return report
