"""Domain errors for wp-cloner."""

from typing import Iterable, Optional


class ClonerError(RuntimeError):
    """Raised when the clone cannot continue safely."""

    category = "Clone"


class CommandError(ClonerError):
    """An external command exited with a non-zero status."""

    category = "Command"

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class PreconditionError(ClonerError):
    """Local prerequisites are not satisfied. Nothing has been changed yet."""

    category = "Precondition"


class MissingInfrastructureError(PreconditionError):
    """Required infrastructure containers or networks are absent."""

    def __init__(
        self,
        message: str,
        missing_containers: Iterable[str] = (),
        missing_networks: Iterable[str] = (),
    ):
        super().__init__(message)
        self.missing_containers = tuple(missing_containers)
        self.missing_networks = tuple(missing_networks)


class LockError(PreconditionError):
    """Another clone of the same site is already running."""


class CredentialError(ClonerError):
    """Database credentials could not be read from production."""

    category = "Credential"


class CredentialParseError(CredentialError):
    """The remote wp-config.php is missing one or more DB_* settings."""

    def __init__(self, message: str, missing_fields: Iterable[str] = ()):
        super().__init__(message)
        self.missing_fields = tuple(missing_fields)


class TransferError(ClonerError):
    """A remote command or a transfer from production failed."""

    category = "Transfer"


class ProvisioningError(ClonerError):
    """The local site could not be provisioned."""

    category = "Provisioning"


class ReadinessTimeoutError(ProvisioningError):
    """The local container did not accept administrative commands in time."""
