"""Actionable error catalog for wp-cloner."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_domain": {
        "what": "Invalid production domain: {domain}",
        "next": "Pass the fully qualified domain in lowercase, such as `test.example.com`.",
    },
    "docker_not_running": {
        "what": "Docker is not running.",
        "next": "Start Docker Desktop (or the Docker daemon) and try again.",
    },
    "infrastructure_not_found": {
        "what": "Infrastructure '{infrastructure}' not found at {path}.",
        "next": "Clone the infrastructure first with `clone-infrastructure.sh {infrastructure} <server-ip>`.",
    },
    "env_file_missing": {
        "what": "Infrastructure .env file not found at {path}.",
        "next": "Re-create the infrastructure or restore its `.env` file.",
    },
    "env_file_unreadable": {
        "what": "Could not read infrastructure .env file {path}: {error}",
        "next": "Check the file permissions and its KEY=value syntax.",
    },
    "root_password_missing": {
        "what": "MYSQL_ROOT_PASSWORD not found in {path}.",
        "next": "Add `MYSQL_ROOT_PASSWORD=<secret>` to the infrastructure .env file.",
    },
    "infrastructure_incomplete": {
        "what": "Required infrastructure is missing: {missing}.",
        "next": "Start the infrastructure with `cd {path} && docker compose up -d`.",
    },
    "ssh_host_not_found": {
        "what": "Could not find SSH host for infrastructure '{infrastructure}' in {path}.",
        "next": "Check your SSH config; it should contain the entry created by clone-infrastructure.sh.",
    },
    "site_locked": {
        "what": "Another clone of {site} is running (lock file {path}).",
        "next": "Wait for it to finish, or remove the lock file if that process is gone.",
    },
    "credentials_unreadable": {
        "what": "Could not read {path} on the production host.",
        "next": "Check SSH access and that the site directory exists on production.",
    },
    "credentials_incomplete": {
        "what": "wp-config.php is missing: {fields}.",
        "next": "Make sure the production wp-config.php defines DB_NAME, DB_USER, DB_PASSWORD and DB_CHARSET.",
    },
    "snapshot_failed": {
        "what": "Could not {action} on the production host.",
        "next": "Check that container {container} is running on production and that the disk is not full.",
    },
    "sync_failed": {
        "what": "Site file synchronization failed.",
        "next": "Check SSH access and local disk space, then re-run; only changed files are transferred again.",
    },
    "provisioning_failed": {
        "what": "Could not {action}.",
        "next": "Re-run the clone with `--clean` to start from an empty local site.",
    },
    "container_not_ready": {
        "what": "Container {container} did not become ready within {timeout}s.",
        "next": "Inspect `docker logs {container}` and re-run with a larger `--ready-timeout`.",
    },
    "rewrite_failed": {
        "what": "Could not rewrite site URLs in {container}.",
        "next": "Run `docker exec {container} wp search-replace` manually and inspect its output.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
