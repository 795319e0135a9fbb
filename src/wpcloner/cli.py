import logging
import os
from datetime import datetime

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_LSAPI_CHILDREN,
    DEFAULT_PRODUCTION_USER,
    DEFAULT_READY_INTERVAL,
    DEFAULT_READY_TIMEOUT,
    DEFAULT_RETRY_COUNT,
    DEFAULT_SSH_CONFIG,
    DEFAULT_TRANSFER_TIMEOUT,
)
from .core import WordPressCloner
from .errors import ClonerError
from .services.config_loader import ConfigLoader
from .services.naming import build_request

USAGE = """Usage: clone-wordpress <infrastructure> <domain> [folder] [--clean]

Arguments:
  infrastructure   Infrastructure name (e.g., dev-fi-01, refine-digital-app)
  domain           Production WordPress domain (e.g., test.refine.digital)
  folder           Destination folder (default: ${HOME}/ProjectFiles/wordpress/)
                   Use '.' for current directory

Naming Convention:
  Infrastructure: Same name for production and local (e.g., dev-fi-01)
  Local domain: Automatically prefixed with 'local-' (e.g., local-test.refine.digital)

Options:
  --clean          Remove existing site before cloning

Examples:
  clone-wordpress dev-fi-01 test.refine.digital
  clone-wordpress dev-fi-01 test.refine.digital .
  clone-wordpress dev-fi-01 test.refine.digital ~/sites
  clone-wordpress dev-fi-01 test.refine.digital . --clean
"""


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("tokens", nargs=-1, metavar="INFRASTRUCTURE DOMAIN [FOLDER]")
@click.option("--clean", is_flag=True, default=False, help="Remove existing site before cloning.")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .wpcloner.yml if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option(
    "--log-file",
    type=click.Path(),
    help="Path to log file (default: <folder>/clone-<timestamp>.log).",
)
@click.option(
    "--production-user",
    required=False,
    help=f"SSH user on the production host (default: {DEFAULT_PRODUCTION_USER}).",
)
@click.option(
    "--ssh-config",
    required=False,
    type=click.Path(),
    help=f"SSH config used to resolve the infrastructure host (default: {DEFAULT_SSH_CONFIG}).",
)
@click.option(
    "--command-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for short remote and local commands.",
)
@click.option(
    "--transfer-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for dump, image and file transfers.",
)
@click.option(
    "--ready-timeout",
    required=False,
    type=float,
    default=None,
    help="Seconds to wait for the local container to accept WP-CLI commands.",
)
@click.option(
    "--retry-count",
    required=False,
    type=int,
    default=None,
    help="Number of retries for SSH connection failures.",
)
@click.pass_context
def main(
    ctx,
    tokens,
    clean,
    config,
    verbose,
    log_file,
    production_user,
    ssh_config,
    command_timeout,
    transfer_timeout,
    ready_timeout,
    retry_count,
):
    """Clone a production WordPress site into the local infrastructure."""
    logger = logging.getLogger("wpcloner")

    if len(tokens) < 2 or len(tokens) + (1 if clean else 0) > 4:
        click.echo(USAGE, err=True)
        ctx.exit(1)

    infrastructure, domain = tokens[0], tokens[1]
    folder = tokens[2] if len(tokens) > 2 else None

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".wpcloner.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except ClonerError as exc:
        raise click.ClickException(str(exc)) from exc

    folder = _resolve_option(folder, config_values, "folder")
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    production_user = _resolve_option(
        production_user, config_values, "production_user", default=DEFAULT_PRODUCTION_USER
    )
    ssh_config = _resolve_option(ssh_config, config_values, "ssh_config", default=DEFAULT_SSH_CONFIG)
    infrastructure_root = config_values.get("infrastructure_root", "~")
    command_timeout = float(
        _resolve_option(command_timeout, config_values, "command_timeout", default=DEFAULT_COMMAND_TIMEOUT)
    )
    transfer_timeout = float(
        _resolve_option(
            transfer_timeout,
            config_values,
            "transfer_timeout",
            default=DEFAULT_TRANSFER_TIMEOUT,
        )
    )
    ready_timeout = float(
        _resolve_option(ready_timeout, config_values, "ready_timeout", default=DEFAULT_READY_TIMEOUT)
    )
    ready_interval = float(config_values.get("ready_interval", DEFAULT_READY_INTERVAL))
    retry_count = int(_resolve_option(retry_count, config_values, "retry_count", default=DEFAULT_RETRY_COUNT))
    lsapi_children = int(config_values.get("lsapi_children", DEFAULT_LSAPI_CHILDREN))

    try:
        request = build_request(infrastructure, domain, folder=folder, clean=clean)
        os.makedirs(request.destination, exist_ok=True)
    except ClonerError as exc:
        raise click.ClickException(str(exc)) from exc
    except OSError as exc:
        raise click.ClickException(f"Could not create destination folder: {exc}") from exc

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if not log_file:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        log_file = os.path.join(request.destination, f"clone-{timestamp}.log")

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logger.addHandler(file_handler)
    logger.info("Log file: %s", log_file)

    try:
        cloner = WordPressCloner(
            request=request,
            production_user=production_user,
            ssh_config_path=ssh_config,
            infrastructure_root=infrastructure_root,
            command_timeout=command_timeout,
            transfer_timeout=transfer_timeout,
            ready_timeout=ready_timeout,
            ready_interval=ready_interval,
            retry_count=retry_count,
            lsapi_children=lsapi_children,
        )
    except ClonerError as exc:
        raise click.ClickException(str(exc)) from exc

    try:
        exit_code = cloner.run()
    finally:
        logger.removeHandler(file_handler)
        file_handler.close()

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
