"""Command-line interface for evilian.

Provisions a disposable Azure VM locked down to the operator's source
range, converts it to Kali rolling, installs the toolset and opens an SSH
session running ``screen``.

Exit codes:
    0   success (including --help and --dry-run)
    2   invalid input or usage error
    3   precondition failed (target group exists, az missing, not logged in)
    4   Azure control-plane call failed
    5   VM never reached running / agent never became ready
    6   bootstrap script failed inside the VM
    130 interrupted with Ctrl+C
"""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from evilian import __version__
from evilian.azure_auth import AzureAuthenticator
from evilian.azure_cli_visibility import AzureCLIExecutor
from evilian.bootstrap_script import BootstrapScriptBuilder
from evilian.click_command import EvilianCommand
from evilian.config_manager import ConfigError, ConfigManager, get_azure_config_dir
from evilian.control_plane import AzureControlPlane
from evilian.exceptions import EvilianError, RemoteScriptFailure
from evilian.modules.prerequisites import PrerequisiteChecker
from evilian.modules.validation import InputValidator, ProvisioningRequest
from evilian.naming import derive, resource_tags
from evilian.network_security.nsg_policy import TrustedRanges, build_rules, load_trusted_ranges
from evilian.orchestrator import ProvisioningOrchestrator, RunState
from evilian.poll_config import PollSettings

logger = logging.getLogger(__name__)

# States from which Azure resources may exist
_RESOURCE_STATES = set(RunState) - {RunState.VALIDATING, RunState.PREFLIGHT_CHECK}

# Lines of remote output shown when the bootstrap script fails
_FAILURE_OUTPUT_LINES = 20


def _print_plan(console: Console, request: ProvisioningRequest, trusted: TrustedRanges) -> None:
    names = derive(request.project_name)
    rules = build_rules(request.allowed_range, trusted.ipv4, trusted.ipv6)

    summary = Table(title="Resources", show_header=False)
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("Resource group", names.resource_group)
    summary.add_row("VM", names.vm_name)
    summary.add_row("NSG", names.nsg_name)
    summary.add_row("Region", request.region)
    summary.add_row("VM size", request.vm_size)
    summary.add_row("Image", request.image_reference)
    tags = resource_tags(request.project_name)
    summary.add_row("Tags", ", ".join(f"{k}={v}" for k, v in tags.items()))
    console.print(summary)

    table = Table(title="Inbound rules")
    table.add_column("Priority", justify="right")
    table.add_column("Name")
    table.add_column("Access")
    table.add_column("Protocol")
    table.add_column("Sources")
    table.add_column("Ports")
    for rule in rules:
        table.add_row(
            str(rule.priority),
            rule.name,
            rule.access,
            rule.protocol,
            "\n".join(rule.source_ranges),
            ", ".join(rule.destination_ports),
        )
    console.print(table)

    click.echo("")
    click.echo(BootstrapScriptBuilder().build().render())


def _report_error(error: EvilianError) -> None:
    click.secho(f"Error: {error}", fg="red", err=True)

    if isinstance(error, RemoteScriptFailure) and error.output:
        tail = error.output.splitlines()[-_FAILURE_OUTPUT_LINES:]
        click.echo("\n".join(tail), err=True)

    if error.resource_group:
        click.secho(
            f"Resources were left in place for inspection: resource group "
            f"'{error.resource_group}', VM '{error.vm_name}'. "
            f"Delete them with: az group delete --name {error.resource_group}",
            fg="yellow",
            err=True,
        )


@click.command(
    cls=EvilianCommand,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "-r",
    "--range",
    "allowed_range",
    required=True,
    metavar="IP[/PREFIX]",
    help="Source IP or CIDR allowed to reach SSH (e.g. 203.0.113.5/32).",
)
@click.option(
    "-n",
    "--name",
    "project_name",
    required=True,
    metavar="NAME",
    help="Project name (letters, digits, hyphens); used in all resource names.",
)
@click.option("--region", "--location", "region", default=None, help="Azure region.")
@click.option("--vm-size", default=None, help="Azure VM size.")
@click.option("--image", "image_reference", default=None, help="VM image URN.")
@click.option(
    "--trusted-ranges",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML file with ipv4/ipv6 lists replacing the built-in Cloudflare ranges.",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: ~/.evilian/config.toml).",
)
@click.option("--no-connect", is_flag=True, help="Print connection details without opening SSH.")
@click.option(
    "--keep-old-groups",
    is_flag=True,
    help="Do not offer to delete resource groups from earlier runs.",
)
@click.option("--dry-run", is_flag=True, help="Show the plan without calling Azure.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    allowed_range: str,
    project_name: str,
    region: str | None,
    vm_size: str | None,
    image_reference: str | None,
    trusted_ranges: str | None,
    config_file: str | None,
    no_connect: bool,
    keep_old_groups: bool,
    dry_run: bool,
    verbose: bool,
) -> None:
    """evilian - disposable Azure VM provisioning.

    Creates resource group, network security group and VM, switches the VM
    to Kali rolling, installs evilginx2 and connects over SSH.

    \b
    EXAMPLES:
        evilian -r 203.0.113.5/32 -n phish01
        evilian -r 203.0.113.5 -n phish01 --region westeurope --dry-run

    \b
    CONFIGURATION:
        Config file: ~/.evilian/config.toml
        Set defaults: default_region, default_vm_size, default_image, trusted_ranges_file
        AZURE_CONFIG_DIR selects the Azure CLI login (default: ~/.azure)
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    console = Console()
    orchestrator: ProvisioningOrchestrator | None = None

    try:
        config = ConfigManager.load_config(config_file)
        request = InputValidator(config).build_request(
            allowed_range, project_name, region, vm_size, image_reference
        )
        trusted = load_trusted_ranges(trusted_ranges or config.trusted_ranges_file)

        if dry_run:
            _print_plan(console, request, trusted)
            return

        try:
            poll_settings = PollSettings.from_environment()
        except ValueError as e:
            raise ConfigError(f"Invalid polling override in environment: {e}") from e

        PrerequisiteChecker.require()

        azure_config_dir: Path = get_azure_config_dir()
        logger.debug(f"Using Azure config directory: {azure_config_dir}")
        executor = AzureCLIExecutor(azure_config_dir=azure_config_dir, console=console)
        AzureAuthenticator(executor).ensure_logged_in()

        orchestrator = ProvisioningOrchestrator(
            request,
            AzureControlPlane(azure_config_dir=azure_config_dir, executor=executor),
            poll_settings=poll_settings,
            trusted_ranges=trusted,
            offer_old_group_deletion=not keep_old_groups,
            connect=not no_connect,
        )
        orchestrator.run()

    except EvilianError as e:
        _report_error(e)
        ctx.exit(e.exit_code)

    except (KeyboardInterrupt, click.Abort):
        click.secho("\nCancelled by user", fg="red", err=True)
        if orchestrator is not None and orchestrator.state in _RESOURCE_STATES:
            names = orchestrator.names
            click.secho(
                f"Resources may exist in resource group '{names.resource_group}' "
                f"(VM '{names.vm_name}', NSG '{names.nsg_name}').",
                fg="yellow",
                err=True,
            )
        ctx.exit(130)


if __name__ == "__main__":
    main()
