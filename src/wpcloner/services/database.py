"""Local MySQL (re)creation and import services for wp-cloner."""

import re
from typing import Callable, List, Optional

from wpcloner.constants import DB_CONTAINER, FALLBACK_COLLATION
from wpcloner.errors import CommandError, ProvisioningError
from wpcloner.errors_catalog import actionable_error
from wpcloner.models import DatabaseCredentials

_COLLATE_PATTERN = re.compile(r"COLLATE=([^ ;]*)")
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def quote_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


def detect_collation(dump_path: str, fallback: str = FALLBACK_COLLATION) -> str:
    """Reads the collation of the first table in a mysqldump file.

    Only the first line declaring ``DEFAULT CHARSET`` is considered. A dump
    without one, or a declaration without ``COLLATE=``, yields ``fallback``.
    """
    with open(dump_path, "r", encoding="utf-8", errors="ignore") as file_obj:
        for line in file_obj:
            if "DEFAULT CHARSET" not in line:
                continue
            match = _COLLATE_PATTERN.search(line)
            if match and match.group(1):
                return match.group(1)
            break
    return fallback


class DatabaseService:
    """Handles drop-and-recreate of the site database and the dump import."""

    def __init__(self, logger, console, root_password: str, container: str = DB_CONTAINER):
        self.logger = logger
        self.console = console
        self.root_password = root_password
        self.container = container

    def _mysql_cmd(self, user: str, password: str, *args: str, interactive: bool = False) -> List[str]:
        cmd = ["docker", "exec"]
        if interactive:
            cmd.append("-i")
        return cmd + ["-e", f"MYSQL_PWD={password}", self.container, "mysql", "-u", user, *args]

    def _root_sql(self, sql: str) -> List[str]:
        return self._mysql_cmd("root", self.root_password, "-e", sql)

    @staticmethod
    def _validate_name(value: str, label: str):
        if not _NAME_PATTERN.match(value or ""):
            raise ProvisioningError(f"Unsupported database {label}: {value!r}")

    def build_drop_sql(self, credentials: DatabaseCredentials) -> str:
        return (
            f"DROP DATABASE IF EXISTS {quote_identifier(credentials.name)}; "
            f"DROP USER IF EXISTS {quote_literal(credentials.user)}@'%'; "
            "FLUSH PRIVILEGES;"
        )

    def build_create_sql(self, credentials: DatabaseCredentials, collation: str) -> str:
        self._validate_name(credentials.charset, "charset")
        self._validate_name(collation, "collation")
        return (
            f"CREATE DATABASE {quote_identifier(credentials.name)} "
            f"CHARACTER SET {credentials.charset} COLLATE {collation};"
        )

    def build_user_sql(self, credentials: DatabaseCredentials) -> str:
        account = f"{quote_literal(credentials.user)}@'%'"
        return (
            f"CREATE USER {account} IDENTIFIED BY {quote_literal(credentials.password)}; "
            f"GRANT ALL PRIVILEGES ON {quote_identifier(credentials.name)}.* TO {account}; "
            "FLUSH PRIVILEGES;"
        )

    def recreate_database(
        self,
        credentials: DatabaseCredentials,
        dump_path: str,
        run_cmd: Callable,
        collation: Optional[str] = None,
    ) -> str:
        collation = collation or detect_collation(dump_path)
        self.console.print(f"  Collation: {collation}")
        self.logger.info("Using collation %s for %s", collation, credentials.name)

        drop_result = run_cmd(
            self._root_sql(self.build_drop_sql(credentials)),
            check=False,
            capture_output=True,
        )
        if drop_result.returncode != 0:
            self.logger.warning(
                "Could not drop previous database/user %s (continuing): %s",
                credentials.name,
                (drop_result.stderr or "").strip(),
            )

        try:
            run_cmd(
                self._root_sql(self.build_create_sql(credentials, collation)),
                check=True,
                capture_output=True,
            )
            run_cmd(
                self._root_sql(self.build_user_sql(credentials)),
                check=True,
                capture_output=True,
            )
        except CommandError as exc:
            raise ProvisioningError(
                actionable_error("provisioning_failed", action=f"create database {credentials.name}")
                + f"\n{exc}"
            ) from exc

        return collation

    def import_dump(self, credentials: DatabaseCredentials, dump_path: str, stream_cmd: Callable):
        cmd = self._mysql_cmd(
            credentials.user,
            credentials.password,
            credentials.name,
            interactive=True,
        )
        try:
            stream_cmd(cmd, stdin_path=dump_path)
        except CommandError as exc:
            raise ProvisioningError(
                actionable_error("provisioning_failed", action=f"import database {credentials.name}")
                + f"\n{exc}"
            ) from exc

        self.console.print("  Database imported")
        self.logger.info("Imported %s into %s", dump_path, credentials.name)
