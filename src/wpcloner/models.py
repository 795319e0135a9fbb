"""Shared domain models for wp-cloner."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CloneRequest:
    """What the operator asked for, after argument parsing."""

    infrastructure: str
    domain: str
    destination: str
    clean: bool = False


@dataclass(frozen=True)
class DerivedNames:
    """Local identifiers derived from the production domain."""

    domain: str
    local_domain: str
    container_name: str
    directory_name: str
    image_name: str
    image_tag: str
    production_container: str
    production_site_dir: str
    network_name: str


@dataclass(frozen=True)
class InfrastructureContext:
    """Shared local services and production access for one infrastructure."""

    name: str
    directory: str
    env: Dict[str, str] = field(repr=False)
    mysql_root_password: str = field(repr=False)
    ssh_alias: str
    ssh_host: str
    ssh_user: str
    required_containers: Tuple[str, ...]
    required_networks: Tuple[str, ...]


@dataclass(frozen=True)
class DatabaseCredentials:
    name: str
    user: str
    password: str = field(repr=False)
    charset: str


@dataclass(frozen=True)
class CloneArtifacts:
    """Transient files produced by the snapshot export."""

    dump_path: str
    image_archive_path: str


@dataclass(frozen=True)
class SiteInstance:
    directory: str
    compose_file: str
    container_name: str
    network_name: str
    database_name: str
    site_url: str


@dataclass(frozen=True)
class CleanupOutcome:
    """Result of one best-effort cleanup action."""

    target: str
    ok: bool
    error: Optional[str] = None


@dataclass
class CleanupReport:
    outcomes: List[CleanupOutcome] = field(default_factory=list)

    def add(self, outcome: CleanupOutcome):
        self.outcomes.append(outcome)

    @property
    def failures(self) -> List[CleanupOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def ok(self) -> bool:
        return not self.failures
