import json

from wpcloner.models import CleanupOutcome
from wpcloner.services.manifest import ManifestService


class DummyLogger:
    def warning(self, *_args, **_kwargs):
        return None


def test_manifest_service_writes_run_metadata(tmp_path):
    manifest_file = tmp_path / "clone-manifest.json"
    service = ManifestService(str(manifest_file), logger=DummyLogger())

    service.start_run(
        "run-123",
        {"infrastructure": "dev-fi-01", "domain": "test.refine.digital"},
        {"container_name": "local-test-refine-digital"},
    )
    service.step_started("read_credentials")
    service.step_finished("read_credentials", "success")
    service.add_artifact("dump", "/tmp/test-refine-digital.sql")
    service.set_site({"site_url": "https://local-test.refine.digital"})
    service.add_cleanup([CleanupOutcome(target="dump", ok=True), CleanupOutcome("image", False, "busy")])
    service.finalize("success")

    data = json.loads(manifest_file.read_text(encoding="utf-8"))

    assert data["run_id"] == "run-123"
    assert data["status"] == "success"
    assert data["request"]["domain"] == "test.refine.digital"
    assert data["names"]["container_name"] == "local-test-refine-digital"
    assert data["artifacts"]["dump"] == "/tmp/test-refine-digital.sql"
    assert data["site"]["site_url"] == "https://local-test.refine.digital"
    assert data["steps"][0]["name"] == "read_credentials"
    assert data["steps"][0]["status"] == "success"
    assert data["steps"][0]["duration_seconds"] is not None
    assert data["cleanup"][1] == {"target": "image", "ok": False, "error": "busy"}
    assert data["duration_seconds"] is not None


def test_manifest_records_step_failure(tmp_path):
    manifest_file = tmp_path / "clone-manifest.json"
    service = ManifestService(str(manifest_file), logger=DummyLogger())

    service.start_run("run-9", {}, {})
    service.step_started("sync_files")
    service.step_finished("sync_files", "failed", error="rsync exited 23")
    service.finalize("failed", error="rsync exited 23")

    data = json.loads(manifest_file.read_text(encoding="utf-8"))

    assert data["status"] == "failed"
    assert data["error"] == "rsync exited 23"
    assert data["steps"][0]["error"] == "rsync exited 23"


def test_manifest_write_leaves_no_temp_files(tmp_path):
    service = ManifestService(str(tmp_path / "clone-manifest.json"), logger=DummyLogger())

    service.start_run("run-1", {}, {})
    service.finalize("success")

    assert sorted(path.name for path in tmp_path.iterdir()) == ["clone-manifest.json"]


def test_finalize_closes_steps_left_open(tmp_path):
    manifest_file = tmp_path / "clone-manifest.json"
    service = ManifestService(str(manifest_file), logger=DummyLogger())

    service.start_run("run-2", {}, {})
    service.step_started("download_image")
    service.finalize("aborted", error="Operation cancelled by user.")

    data = json.loads(manifest_file.read_text(encoding="utf-8"))

    assert data["status"] == "aborted"
    assert data["steps"][0]["status"] == "interrupted"
    assert data["steps"][0]["finished_at"] is not None


def test_finishing_unknown_step_is_ignored(tmp_path):
    manifest_file = tmp_path / "clone-manifest.json"
    service = ManifestService(str(manifest_file), logger=DummyLogger())

    service.step_finished("never_started", "success")

    assert service.manifest["steps"] == []
