"""Rewrites production URLs inside the imported WordPress database."""

from typing import Callable, List, Tuple

from wpcloner.constants import OBJECT_CACHE_OPTION
from wpcloner.errors import CommandError, ProvisioningError
from wpcloner.errors_catalog import actionable_error
from wpcloner.models import DerivedNames


def build_replacements(domain: str, local_domain: str) -> List[Tuple[str, str]]:
    """Literal (search, replace) pairs; both schemes end up on local HTTPS."""
    target = f"https://{local_domain}"
    return [
        (f"https://{domain}", target),
        (f"http://{domain}", target),
    ]


class SiteRewriter:
    def __init__(self, logger, console, docker_runtime_service):
        self.logger = logger
        self.console = console
        self.docker_runtime_service = docker_runtime_service

    def _wp(self, names: DerivedNames, *args: str) -> List[str]:
        return self.docker_runtime_service.wp_cmd(names.container_name, *args)

    def search_replace_cmds(self, names: DerivedNames) -> List[List[str]]:
        return [
            self._wp(names, "search-replace", search, replace, "--precise")
            for search, replace in build_replacements(names.domain, names.local_domain)
        ]

    def rewrite(self, names: DerivedNames, run_cmd: Callable) -> str:
        # The object cache points at a backend the local stack may not provide.
        cache_result = run_cmd(
            self._wp(names, "option", "update", OBJECT_CACHE_OPTION, "0"),
            check=False,
            capture_output=True,
        )
        if cache_result.returncode != 0:
            self.logger.warning("Could not disable object cache in %s", names.container_name)

        try:
            for cmd in self.search_replace_cmds(names):
                run_cmd(cmd, check=True, capture_output=True)
        except CommandError as exc:
            raise ProvisioningError(
                actionable_error("rewrite_failed", container=names.container_name) + f"\n{exc}"
            ) from exc

        flush_result = run_cmd(self._wp(names, "cache", "flush"), check=False, capture_output=True)
        if flush_result.returncode != 0:
            self.logger.warning("Could not flush cache in %s", names.container_name)

        try:
            result = run_cmd(
                self._wp(names, "option", "get", "siteurl"),
                check=True,
                capture_output=True,
            )
        except CommandError as exc:
            raise ProvisioningError(
                actionable_error("rewrite_failed", container=names.container_name) + f"\n{exc}"
            ) from exc

        site_url = (result.stdout or "").strip()
        self.console.print(f"  Site URL: {site_url}")

        expected = f"https://{names.local_domain}"
        if site_url.rstrip("/") != expected:
            self.logger.warning("Site URL is %s, expected %s", site_url or "<empty>", expected)

        return site_url
