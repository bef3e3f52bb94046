# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command Line Interface for storjup-nas.
"""
import os
from typing import List

import click

from ..MANAGERS.installer import Installer
from ..MANAGERS.startup_monitor import StartupOutcome, StartupReport
from ..MANAGERS.storage_node_provisioner import StorageNodeProvisioner
from ..MANAGERS.storj_up import DOWNLOAD_URL, StorjUp
from ..MODELS.container_status import ContainerStatus
from ..MODELS.installer_settings import InstallerSettings, InstallMode
from ..REPORTS.summary import render_plan, render_summary
from ..exceptions import InstallerError

BANNER = "=" * 42


@click.group()
@click.option('--dir', '-C', 'install_dir', default='.', type=click.Path(file_okay=False),
              help='Installation directory')
@click.option('--env-file', default=None, type=click.Path(dir_okay=False),
              help='Settings file (defaults to storjup-nas.env in the installation directory)')
@click.pass_context
def cli(ctx, install_dir, env_file):
    """
    storjup-nas - Storj-Up installer for NAS appliances.

    Scaffolds a storj-up stack, enables HTTPS on the S3 gateway and starts
    the services with docker compose.
    """
    ctx.ensure_object(dict)
    ctx.obj['install_dir'] = install_dir
    ctx.obj['env_file'] = env_file


def _load_settings(ctx, **overrides) -> InstallerSettings:
    return InstallerSettings.load(ctx.obj['install_dir'], env_file=ctx.obj['env_file'], **overrides)


def _fail(ctx, error: Exception):
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def _print_status(statuses: List[ContainerStatus]):
    click.echo(f"{'CONTAINER':30} {'STATE':10} STATUS")
    click.echo("-" * 60)
    for container in statuses:
        click.echo(f"{container.name:30} {container.state:10} {container.status}")


def _print_startup(report: StartupReport, settings: InstallerSettings):
    compose = " ".join(settings.compose_command)
    if report.outcome == StartupOutcome.HEALTHY:
        click.echo("All storage nodes started successfully!")
    elif report.outcome == StartupOutcome.REMEDIATED:
        click.echo("SUCCESS: All storage nodes appear to be running.")
    elif report.outcome == StartupOutcome.STILL_FAILING:
        click.echo("WARNING: Some storage nodes are still failing: " + ", ".join(report.failed_nodes))
        click.echo(f"Check logs with: {compose} logs storagenode1")
    else:
        click.echo("Storage nodes failed but no permission errors detected: " + ", ".join(report.failed_nodes))
        click.echo(f"Check logs with: {compose} logs | grep storagenode")


@cli.command()
@click.option('--ip', 'ip_address', default=None, help='IP address the services are published on')
@click.option('--binary', 'binary_source', default=None, type=click.Path(dir_okay=False),
              help='storj-up binary to copy into the installation directory')
@click.option('--mode', type=click.Choice([InstallMode.HTTPS_ONLY.value, InstallMode.REINSTALL.value]),
              default=None, help='What to do with an existing installation')
@click.option('--start/--no-start', default=None, help='Start the services when done')
@click.option('--yes', '-y', is_flag=True, help='Answer yes to every confirmation')
@click.pass_context
def install(ctx, ip_address, binary_source, mode, start, yes):
    """Set up storj-up with HTTPS in the installation directory."""
    try:
        _install(ctx, ip_address, binary_source, mode, start, yes)
    except InstallerError as e:
        _fail(ctx, e)


def _install(ctx, ip_address, binary_source, mode, start, yes):
    settings = _load_settings(ctx)
    click.echo(BANNER)
    click.echo("Storj-Up Complete Setup")
    click.echo(BANNER)

    if not os.path.isfile(settings.binary_path) and not binary_source:
        click.echo(f"storj-up binary not found in {settings.install_dir}")
        click.echo(f"You can download it from: {DOWNLOAD_URL}")
        binary_source = click.prompt("Enter path to storj-up binary")
    binary = StorjUp.install_binary(settings, binary_source)
    click.echo(f"Using storj-up binary: {binary}")

    installer = Installer(settings)
    requested = InstallMode(mode) if mode else None
    if installer.has_existing_install() and requested is None:
        click.echo(BANNER)
        click.echo("EXISTING INSTALLATION DETECTED")
        click.echo(BANNER)
        if yes:
            click.echo("Applying HTTPS configuration only (pass --mode reinstall to start over).")
            requested = InstallMode.HTTPS_ONLY
        else:
            click.echo("  https     - Apply HTTPS configuration only (keeps existing data and settings)")
            click.echo("  reinstall - Back up the configuration and reinitialize from scratch")
            requested = InstallMode(click.prompt(
                "Choose option",
                type=click.Choice([InstallMode.HTTPS_ONLY.value, InstallMode.REINSTALL.value]),
                default=InstallMode.HTTPS_ONLY.value,
            ))
    install_mode = installer.mode_for(requested)
    if install_mode == InstallMode.REINSTALL:
        installer.backup_existing()

    if not ip_address:
        ip_address = settings.ip_address or click.prompt("IP Address (e.g., 192.168.1.100)")
    installer.bind_ip(ip_address)

    click.echo(render_plan(installer.settings))
    if not yes:
        click.confirm("Continue with initialization?", abort=True)

    if install_mode == InstallMode.HTTPS_ONLY:
        click.echo("Using existing Storj-Up installation. Only HTTPS configuration will be applied.")
    else:
        installer.initialize()
        click.echo("Bucket creation and S3 gateway features are now enabled.")

    certificates = installer.check_certificates()
    if certificates.complete:
        click.echo("Certificate files found:")
        for path in certificates.certificates + certificates.keys:
            click.echo(f"  {path}")
    else:
        click.echo("WARNING: SSL Certificate files not found!")
        click.echo(f"Place a *.crt certificate and a *.key private key in: {certificates.cert_dir}")
        if not yes:
            click.confirm("Continue without certificates? HTTPS will not work until added.", abort=True)

    installer.configure_https()

    restart = install_mode == InstallMode.HTTPS_ONLY
    if start is None:
        start = yes or click.confirm("Restart services to apply changes?" if restart else "Start all services now?")

    compose = " ".join(installer.settings.compose_command)
    if start:
        report = installer.start_services(restart=restart)
        _print_status(installer.runtime.ps())
        _print_startup(report, installer.settings)
    else:
        click.echo("Skipping service startup. To start services later, run:")
        click.echo(f"  cd {installer.settings.install_dir}")
        if restart:
            click.echo(f"  {compose} down && {compose} up -d")
        else:
            click.echo(f"  {compose} up -d")

    click.echo(render_summary(installer.settings, install_mode))


@cli.command('patch-gateway')
@click.option('--ip', 'ip_address', required=True, help='IP address the gateway ports are published on')
@click.option('--cert-dir', default=None, help='Certificate directory mounted into gateway-mt')
@click.pass_context
def patch_gateway(ctx, ip_address, cert_dir):
    """Apply the HTTPS configuration to an existing compose file."""
    try:
        installer = Installer(_load_settings(ctx, cert_dir_name=cert_dir))
        installer.bind_ip(ip_address)
        backup = installer.configure_https()
    except InstallerError as e:
        _fail(ctx, e)
        return
    click.echo(f"Compose file updated. Backup: {backup}")


@cli.command()
@click.option('--count', type=int, default=None, help='Number of storage nodes')
@click.pass_context
def provision(ctx, count):
    """Create the storage node directories."""
    try:
        settings = _load_settings(ctx, storage_node_count=count)
        provisioner = StorageNodeProvisioner(settings.install_dir, count=settings.storage_node_count)
        created = provisioner.provision()
    except (InstallerError, OSError) as e:
        _fail(ctx, e)
        return
    click.echo(f"Prepared {settings.storage_node_count} storage node directories ({len(created)} new).")


@cli.command()
@click.pass_context
def monitor(ctx):
    """Check the storage nodes of a running stack and repair permission failures."""
    try:
        installer = Installer(_load_settings(ctx))
        report = installer.monitor.check()
    except InstallerError as e:
        _fail(ctx, e)
        return
    _print_startup(report, installer.settings)
    if report.outcome in (StartupOutcome.STILL_FAILING, StartupOutcome.FAILED_WITHOUT_PERMISSION_ERRORS):
        ctx.exit(1)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
