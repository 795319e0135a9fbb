"""Production snapshot export: container commit, database dump, image transfer."""

import os

from wpcloner.constants import DB_CONTAINER
from wpcloner.errors import CommandError, TransferError
from wpcloner.errors_catalog import actionable_error
from wpcloner.models import DatabaseCredentials, DerivedNames


def format_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G"):
        if size < 1024 or unit == "G":
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"


class SnapshotExporter:
    """Freezes the production site and brings its image and database home.

    Every operation is fatal on failure; nothing downstream may run on an
    incomplete snapshot.
    """

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def commit(self, remote, names: DerivedNames):
        try:
            remote.run(["docker", "commit", names.production_container, names.image_tag], retry=True)
        except CommandError as exc:
            raise TransferError(
                actionable_error(
                    "snapshot_failed",
                    action=f"commit {names.production_container} to {names.image_tag}",
                    container=names.production_container,
                )
                + f"\n{exc}"
            ) from exc
        self.logger.info("Committed %s as %s", names.production_container, names.image_tag)

    def dump_database(self, remote, credentials: DatabaseCredentials, dump_path: str, names: DerivedNames):
        remote_cmd = [
            "docker",
            "exec",
            "-e",
            f"MYSQL_PWD={credentials.password}",
            DB_CONTAINER,
            "mysqldump",
            "-u",
            credentials.user,
            "--no-tablespaces",
            credentials.name,
        ]
        try:
            remote.stream_to_file(remote_cmd, dump_path)
        except CommandError as exc:
            raise TransferError(
                actionable_error(
                    "snapshot_failed",
                    action=f"export database {credentials.name}",
                    container=DB_CONTAINER,
                )
                + f"\n{exc}"
            ) from exc

        with open(dump_path, "rb") as file_obj:
            line_count = sum(1 for _ in file_obj)
        self.console.print(f"  Exported {line_count} lines")
        self.logger.info("Exported %s lines to %s", line_count, dump_path)

    def transfer_image(self, remote, names: DerivedNames, archive_path: str):
        try:
            remote.stream_to_file(["docker", "save", names.image_tag], archive_path)
        except CommandError as exc:
            raise TransferError(
                actionable_error(
                    "snapshot_failed",
                    action=f"save image {names.image_tag}",
                    container=names.production_container,
                )
                + f"\n{exc}"
            ) from exc

        size = format_size(os.path.getsize(archive_path))
        self.console.print(f"  Downloaded {size}")
        self.logger.info("Downloaded image archive %s (%s)", archive_path, size)
