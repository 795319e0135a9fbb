"""Reads production database credentials from the remote wp-config.php."""

import posixpath
import re
from typing import Dict

from wpcloner.constants import WP_CONFIG_RELPATH
from wpcloner.errors import CommandError, CredentialError, CredentialParseError
from wpcloner.errors_catalog import actionable_error
from wpcloner.models import DatabaseCredentials, DerivedNames

_FIELDS = {
    "DB_NAME": "name",
    "DB_USER": "user",
    "DB_PASSWORD": "password",
    "DB_CHARSET": "charset",
}

_DEFINE_PATTERN = re.compile(
    r"""define\s*\(\s*(['"])(?P<key>DB_[A-Z_]+)\1\s*,\s*(['"])(?P<value>.*?)(?<!\\)\3\s*\)""",
)


def parse_wp_config(content: str) -> Dict[str, str]:
    """Returns the quoted ``DB_*`` constants defined in a wp-config.php body."""
    values: Dict[str, str] = {}
    for match in _DEFINE_PATTERN.finditer(content):
        key = match.group("key")
        if key in values:
            continue
        quote = match.group(3)
        values[key] = match.group("value").replace(f"\\{quote}", quote)
    return values


class CredentialReader:
    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def read_credentials(self, remote, names: DerivedNames) -> DatabaseCredentials:
        config_path = posixpath.join(names.production_site_dir, WP_CONFIG_RELPATH)
        try:
            # stdout holds DB_PASSWORD and the salts; keep it out of the debug log
            result = remote.run(["cat", config_path], retry=True, log_output=False)
        except CommandError as exc:
            raise CredentialError(
                actionable_error("credentials_unreadable", path=config_path) + f"\n{exc}"
            ) from exc

        values = parse_wp_config(result.stdout or "")
        missing = [key for key in _FIELDS if not values.get(key)]
        if missing:
            raise CredentialParseError(
                actionable_error("credentials_incomplete", fields=", ".join(missing)),
                missing_fields=missing,
            )

        credentials = DatabaseCredentials(**{_FIELDS[key]: values[key] for key in _FIELDS})
        self.console.print(f"  Database: {credentials.name}")
        self.console.print(f"  User: {credentials.user}")
        self.logger.info("Read credentials for database %s", credentials.name)
        return credentials
