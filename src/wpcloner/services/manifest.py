"""Clone run manifest: a JSON record of one clone, rewritten after every change."""

import json
import os
import tempfile
from contextlib import suppress
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from wpcloner.models import CleanupOutcome


def _elapsed(started_at: str, finished_at: str) -> float:
    return (datetime.fromisoformat(finished_at) - datetime.fromisoformat(started_at)).total_seconds()


class ManifestService:
    """Tracks the steps, artifacts and cleanup results of a single clone run."""

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "status": "pending",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "request": {},
            "names": {},
            "site": {},
            "steps": [],
            "artifacts": {},
            "cleanup": [],
            "error": None,
        }
        self._open_steps: Dict[str, Dict[str, Any]] = {}

    def start_run(self, run_id: str, request: Dict[str, Any], names: Dict[str, Any]):
        self.manifest.update(
            run_id=run_id,
            status="running",
            started_at=self._now(),
            request=dict(request),
            names=dict(names),
        )
        self.write()

    def step_started(self, step_name: str, details: Optional[Dict[str, Any]] = None):
        step = {
            "name": step_name,
            "status": "running",
            "started_at": self._now(),
            "finished_at": None,
            "duration_seconds": None,
            "details": dict(details or {}),
            "error": None,
        }
        self.manifest["steps"].append(step)
        self._open_steps[step_name] = step
        self.write()

    def step_finished(
        self,
        step_name: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        step = self._open_steps.pop(step_name, None)
        if step is None:
            self.logger.warning("Manifest step '%s' finished without being started", step_name)
            return

        self._close(step, status)
        step["error"] = error
        if details:
            step["details"].update(details)
        self.write()

    def add_artifact(self, key: str, value: str):
        self.manifest["artifacts"][key] = value
        self.write()

    def set_site(self, site: Dict[str, Any]):
        self.manifest["site"] = dict(site)
        self.write()

    def add_cleanup(self, outcomes: Iterable[CleanupOutcome]):
        for outcome in outcomes:
            self.manifest["cleanup"].append(
                {"target": outcome.target, "ok": outcome.ok, "error": outcome.error}
            )
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        # Ctrl-C bypasses step bookkeeping and leaves the current step open.
        for step in self._open_steps.values():
            self._close(step, "interrupted")
        self._open_steps.clear()

        if self.manifest["started_at"]:
            self._close(self.manifest, status)
        else:
            self.manifest["status"] = status
            self.manifest["finished_at"] = self._now()
        self.manifest["error"] = error
        self.write()

    def _close(self, record: Dict[str, Any], status: str):
        record["status"] = status
        record["finished_at"] = self._now()
        record["duration_seconds"] = _elapsed(record["started_at"], record["finished_at"])

    def write(self):
        """Replaces the manifest file atomically; write errors are only logged."""
        directory = os.path.dirname(self.manifest_file) or "."
        payload = json.dumps(self.manifest, indent=2, sort_keys=True) + "\n"
        temp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=".clone-manifest-",
                suffix=".json",
                delete=False,
            ) as file_obj:
                temp_path = file_obj.name
                file_obj.write(payload)
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            if temp_path:
                with suppress(OSError):
                    os.remove(temp_path)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
