import json
import os

import pytest

from wpcloner.core import WordPressCloner
from wpcloner.errors import CommandError, PreconditionError, TransferError
from wpcloner.models import CleanupReport, CloneRequest, DatabaseCredentials

PIPELINE = [
    "verify_infrastructure",
    "read_credentials",
    "create_snapshot",
    "export_database",
    "download_image",
    "sync_files",
    "tune_local_config",
    "load_image",
    "create_database",
    "import_database",
    "write_compose_file",
    "create_network",
    "start_container",
    "rewrite_urls",
    "check_tunnel",
]


def build_cloner(tmp_path, domain="test.refine.digital", clean=False, **kwargs):
    request = CloneRequest(
        infrastructure="dev-fi-01",
        domain=domain,
        destination=str(tmp_path),
        clean=clean,
    )
    return WordPressCloner(request=request, **kwargs)


def patch_pipeline(monkeypatch, cloner, failing=None, error=None):
    calls = []
    results = {
        "rewrite_urls": f"https://{cloner.names.local_domain}",
        "check_tunnel": False,
    }

    for name in PIPELINE + ["clean_existing_site"]:

        def step(name=name):
            calls.append(name)
            if name == "create_snapshot":
                cloner.export_started = True
            if name == failing:
                raise error
            return results.get(name)

        monkeypatch.setattr(cloner, name, step)

    cleanups = []

    def fake_remove_artifacts(artifacts, remote=None, image_tag=None):
        cleanups.append((artifacts, image_tag))
        return CleanupReport()

    monkeypatch.setattr(cloner.cleanup_coordinator, "remove_artifacts", fake_remove_artifacts)
    cloner.credentials = DatabaseCredentials(name="wp_refine", user="u", password="secret", charset="utf8mb4")
    cloner.compose_file = os.path.join(cloner.site_dir, "docker-compose.yml")
    return calls, cleanups


def read_manifest(cloner):
    with open(cloner.manifest_file, encoding="utf-8") as file_obj:
        return json.load(file_obj)


def test_cloner_derives_local_layout(tmp_path):
    cloner = build_cloner(tmp_path)

    assert cloner.names.local_domain == "local-test.refine.digital"
    assert cloner.names.container_name == "local-test-refine-digital"
    assert cloner.names.image_tag == "test-refine-digital:snapshot"
    assert cloner.site_dir == os.path.join(str(tmp_path), "local-test-refine-digital")
    assert os.path.dirname(cloner.artifacts.dump_path) == str(tmp_path)
    assert cloner.artifacts.dump_path != cloner.artifacts.image_archive_path


def test_run_executes_steps_in_order(tmp_path, monkeypatch):
    cloner = build_cloner(tmp_path)
    calls, cleanups = patch_pipeline(monkeypatch, cloner)

    assert cloner.run() == 0

    assert calls == PIPELINE
    assert len(cleanups) == 1
    assert cloner.site.site_url == "https://local-test.refine.digital"
    assert cloner.site.database_name == "wp_refine"

    manifest = read_manifest(cloner)
    assert manifest["status"] == "success"
    assert [step["name"] for step in manifest["steps"]] == PIPELINE
    assert not os.path.exists(cloner.lock.path)


def test_clean_mode_resets_site_before_reading_credentials(tmp_path, monkeypatch):
    cloner = build_cloner(tmp_path, clean=True)
    calls, _cleanups = patch_pipeline(monkeypatch, cloner)

    assert cloner.run() == 0

    assert calls[:3] == ["verify_infrastructure", "clean_existing_site", "read_credentials"]


def test_precondition_failure_stops_before_any_remote_work(tmp_path, monkeypatch):
    cloner = build_cloner(tmp_path)
    calls, cleanups = patch_pipeline(
        monkeypatch,
        cloner,
        failing="verify_infrastructure",
        error=PreconditionError("Docker is not running."),
    )

    assert cloner.run() == 1

    assert calls == ["verify_infrastructure"]
    assert cleanups == []
    manifest = read_manifest(cloner)
    assert manifest["status"] == "failed"
    assert manifest["error"] == "Docker is not running."
    assert not os.path.exists(cloner.lock.path)


def test_mid_pipeline_failure_still_cleans_transient_artifacts(tmp_path, monkeypatch):
    cloner = build_cloner(tmp_path)
    calls, cleanups = patch_pipeline(
        monkeypatch,
        cloner,
        failing="sync_files",
        error=TransferError("Site file synchronization failed."),
    )

    assert cloner.run() == 1

    assert calls[-1] == "sync_files"
    assert "load_image" not in calls
    assert cleanups == [(cloner.artifacts, "test-refine-digital:snapshot")]
    last_step = read_manifest(cloner)["steps"][-1]
    assert last_step["name"] == "sync_files"
    assert last_step["status"] == "failed"


def test_secrets_are_redacted_from_manifest_errors(tmp_path, monkeypatch):
    cloner = build_cloner(tmp_path)
    cloner.command_runner.register_secret("s3cr3t")
    patch_pipeline(
        monkeypatch,
        cloner,
        failing="create_database",
        error=CommandError("mysql -ps3cr3t failed", returncode=1),
    )

    assert cloner.run() == 1

    with open(cloner.manifest_file, encoding="utf-8") as file_obj:
        manifest_text = file_obj.read()
    assert "s3cr3t" not in manifest_text
    assert "******" in manifest_text


def test_concurrent_clone_of_same_site_is_refused(tmp_path, monkeypatch):
    cloner = build_cloner(tmp_path)
    calls, cleanups = patch_pipeline(monkeypatch, cloner)

    with open(cloner.lock.path, "w", encoding="utf-8") as file_obj:
        file_obj.write(str(os.getpid()))

    assert cloner.run() == 1

    assert calls == []
    assert cleanups == []
    assert os.path.exists(cloner.lock.path)


def test_keyboard_interrupt_marks_run_aborted(tmp_path, monkeypatch):
    cloner = build_cloner(tmp_path)
    patch_pipeline(monkeypatch, cloner, failing="download_image", error=KeyboardInterrupt())

    assert cloner.run() == 1

    manifest = read_manifest(cloner)
    assert manifest["status"] == "aborted"
    assert manifest["steps"][-1]["status"] == "interrupted"


def test_tune_local_config_raises_php_children(tmp_path):
    cloner = build_cloner(tmp_path, lsapi_children=40)
    config_dir = os.path.join(cloner.site_dir, "config", "ols")
    os.makedirs(config_dir)
    config_path = os.path.join(config_dir, "httpd_config.conf")
    with open(config_path, "w", encoding="utf-8") as file_obj:
        file_obj.write("env PHP_LSAPI_CHILDREN=10\n")

    cloner.tune_local_config()

    with open(config_path, encoding="utf-8") as file_obj:
        assert file_obj.read() == "env PHP_LSAPI_CHILDREN=40\n"


def test_tune_local_config_tolerates_missing_file(tmp_path):
    cloner = build_cloner(tmp_path)

    cloner.tune_local_config()

    assert not os.path.exists(cloner.site_dir)


def test_invalid_domain_is_rejected_before_any_work(tmp_path):
    with pytest.raises(PreconditionError):
        build_cloner(tmp_path, domain="not a domain")
