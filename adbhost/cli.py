"""Command Line Interface for adbhost."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tqdm import tqdm

from .adb import (
    NOT_RUNNING,
    ADBClient,
    ADBError,
    AdbConnectionError,
    PackageInstaller,
    ShellCommand,
)
from .config import get_config, load_config
from .util import get_logger, setup_logging
from .util.paths import format_size

console = Console()
logger = get_logger(__name__)


def _call(ctx: click.Context, func, *args, **kwargs):
    """Run ``func``, retrying connection failures when --retries is set."""
    retries = ctx.obj["retries"]
    if retries <= 0:
        return func(*args, **kwargs)

    retrying = Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(AdbConnectionError),
        reraise=True,
    )
    return retrying(func, *args, **kwargs)


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config", "-c", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
@click.option("--port", "-P", type=int, help="ADB daemon port")
@click.option("--timeout", type=float, help="Socket timeout in seconds")
@click.option("--retries", type=int, default=0, show_default=True, help="Retry attempts on connection errors")
@click.pass_context
def cli(ctx, verbose: bool, config: Optional[Path], port: Optional[int],
        timeout: Optional[float], retries: int):
    """adbhost - Android Debug Bridge host protocol client."""
    settings = load_config(config) if config else get_config()

    if port is not None:
        settings.port = port
    if timeout is not None:
        settings.timeout = timeout

    setup_logging(level="DEBUG" if verbose else settings.log_level)

    ctx.ensure_object(dict)
    ctx.obj["config"] = settings
    ctx.obj["client"] = ADBClient.from_config(settings)
    ctx.obj["retries"] = max(retries, 0)


@cli.command("devices")
@click.pass_context
def devices(ctx):
    """List connected devices."""
    client: ADBClient = ctx.obj["client"]
    try:
        found = _call(ctx, client.list_devices)
    except ADBError as e:
        _fail(f"ADB Error: {e}")
        return

    if not found:
        console.print("[yellow]No devices found[/yellow]")
        return

    table = Table(title="Connected Devices")
    table.add_column("Serial", style="cyan")
    table.add_column("State", style="green")
    table.add_column("Model", style="white")
    table.add_column("Product", style="white")
    table.add_column("Transport", style="white")

    for device in found:
        style = None if device.is_online else "yellow"
        table.add_row(
            device.serial,
            device.raw_state,
            device.model or "-",
            device.product or "-",
            device.transport_id or "-",
            style=style,
        )

    console.print(table)


@cli.command("version")
@click.pass_context
def version(ctx):
    """Show the daemon's protocol version."""
    client: ADBClient = ctx.obj["client"]
    try:
        console.print(f"ADB daemon version: {_call(ctx, client.server_version)}")
    except ADBError as e:
        _fail(f"ADB Error: {e}")


@cli.command("api-level")
@click.option("--serial", "-s", required=True, help="Device serial number")
@click.pass_context
def api_level(ctx, serial: str):
    """Show the device's SDK level."""
    client: ADBClient = ctx.obj["client"]
    try:
        level = _call(ctx, client.get_api_level, serial)
    except ADBError as e:
        _fail(f"ADB Error: {e}")
        return

    console.print(str(level) if level else "[yellow]unknown[/yellow]")


@cli.command("getprop")
@click.option("--serial", "-s", required=True, help="Device serial number")
@click.argument("name")
@click.pass_context
def getprop(ctx, serial: str, name: str):
    """Read a system property."""
    shell = ShellCommand(ctx.obj["client"], serial)
    try:
        click.echo(_call(ctx, shell.get_property, name))
    except ADBError as e:
        _fail(f"ADB Error: {e}")


@cli.command("shell")
@click.option("--serial", "-s", required=True, help="Device serial number")
@click.option("--no-wait", is_flag=True, help="Do not read the command's output")
@click.argument("command", nargs=-1, required=True)
@click.pass_context
def shell(ctx, serial: str, no_wait: bool, command):
    """Run a shell command on a device."""
    runner = ShellCommand(ctx.obj["client"], serial)
    line = " ".join(command)
    try:
        if no_wait:
            _call(ctx, runner.run, line)
        else:
            click.echo(_call(ctx, runner.execute, line), nl=False)
    except ADBError as e:
        _fail(f"ADB Error: {e}")


@cli.command("pid")
@click.option("--serial", "-s", required=True, help="Device serial number")
@click.argument("package")
@click.pass_context
def pid(ctx, serial: str, package: str):
    """Show the process id of a running package."""
    runner = ShellCommand(ctx.obj["client"], serial)
    try:
        process_id = _call(ctx, runner.get_process_id, package)
    except ADBError as e:
        _fail(f"ADB Error: {e}")
        return

    if process_id == NOT_RUNNING:
        console.print(f"[yellow]{package} is not running[/yellow]")
    else:
        console.print(str(process_id))


@cli.command("wake")
@click.option("--serial", "-s", required=True, help="Device serial number")
@click.pass_context
def wake(ctx, serial: str):
    """Turn the display on and swipe the lock screen away."""
    runner = ShellCommand(ctx.obj["client"], serial)
    try:
        _call(ctx, runner.turn_on_display)
    except ADBError as e:
        _fail(f"ADB Error: {e}")


@cli.command("unlock")
@click.option("--serial", "-s", required=True, help="Device serial number")
@click.option("--pin", prompt=True, hide_input=True, help="Lock screen PIN")
@click.pass_context
def unlock(ctx, serial: str, pin: str):
    """Enter the lock screen PIN."""
    runner = ShellCommand(ctx.obj["client"], serial)
    try:
        _call(ctx, runner.unlock, pin)
    except ADBError as e:
        _fail(f"ADB Error: {e}")


@cli.command("install")
@click.option("--serial", "-s", required=True, help="Device serial number")
@click.argument("apk", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def install(ctx, serial: str, apk: Path):
    """Install an APK on a device."""
    config = ctx.obj["config"]
    installer = PackageInstaller(ctx.obj["client"], serial, chunk_size=config.chunk_size)
    size = apk.stat().st_size

    console.print(f"Installing {apk.name} ({format_size(size)}) on {serial}")

    with tqdm(total=size, desc="Uploading", unit="B", unit_scale=True) as pbar:
        def progress(sent: int, total: int) -> None:
            pbar.update(sent - pbar.n)

        try:
            _call(ctx, installer.install_file, apk, progress=progress)
        except ADBError as e:
            pbar.close()
            _fail(f"Install failed: {e}")
            return

    console.print("[bold green]Success[/bold green]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
