"""Deterministic local naming for cloned sites."""

import os
import re
from typing import Optional

from wpcloner.constants import (
    DEFAULT_DESTINATION,
    LOCAL_DOMAIN_PREFIX,
    PRODUCTION_CONTAINER_SUFFIX,
    SNAPSHOT_TAG,
)
from wpcloner.errors import PreconditionError
from wpcloner.errors_catalog import actionable_error
from wpcloner.models import CloneRequest, DerivedNames

_DOMAIN_PATTERN = re.compile(r"^[a-z0-9-]+(\.[a-z0-9-]+)+$")
_INFRASTRUCTURE_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


def dash(value: str) -> str:
    """Replaces every dot with a dash. Applying it twice changes nothing."""
    return value.replace(".", "-")


def resolve_destination(folder: Optional[str], cwd: Optional[str] = None) -> str:
    if not folder:
        folder = DEFAULT_DESTINATION
    if folder == ".":
        return os.path.abspath(cwd or os.getcwd())
    folder = os.path.expanduser(folder)
    if not os.path.isabs(folder):
        folder = os.path.join(cwd or os.getcwd(), folder)
    return os.path.abspath(folder)


def build_request(
    infrastructure: str,
    domain: str,
    folder: Optional[str] = None,
    clean: bool = False,
    cwd: Optional[str] = None,
) -> CloneRequest:
    infrastructure = (infrastructure or "").strip()
    domain = (domain or "").strip()

    if not infrastructure or not _INFRASTRUCTURE_PATTERN.match(infrastructure):
        raise PreconditionError(f"Invalid infrastructure name: {infrastructure!r}")
    if not _DOMAIN_PATTERN.match(domain):
        raise PreconditionError(actionable_error("invalid_domain", domain=domain or "<empty>"))

    return CloneRequest(
        infrastructure=infrastructure,
        domain=domain,
        destination=resolve_destination(folder, cwd=cwd),
        clean=clean,
    )


def resolve(request: CloneRequest) -> DerivedNames:
    domain = request.domain
    if not _DOMAIN_PATTERN.match(domain):
        raise PreconditionError(actionable_error("invalid_domain", domain=domain or "<empty>"))

    local_domain = f"{LOCAL_DOMAIN_PREFIX}{domain}"
    local_name = dash(local_domain)
    image_name = dash(domain)

    return DerivedNames(
        domain=domain,
        local_domain=local_domain,
        container_name=local_name,
        directory_name=local_name,
        image_name=image_name,
        image_tag=f"{image_name}:{SNAPSHOT_TAG}",
        production_container=f"{domain.replace('.', '')}{PRODUCTION_CONTAINER_SUFFIX}",
        production_site_dir=domain,
        network_name=local_domain,
    )
