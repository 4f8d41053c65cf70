"""
OTA Flasher CLI

Command-line front end for flashing firmware to network bootloaders.
"""

import json
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn, TransferSpeedColumn
from rich.table import Table

from ota_flasher import __version__
from ota_flasher.core.cancel import CancelToken
from ota_flasher.core.firmware import FirmwareImage
from ota_flasher.core.actions import run_ota
from ota_flasher.core.messages import MessageLevel, result_to_message
from ota_flasher.core.parsing import parse_address as _parse_address_core
from ota_flasher.core.parsing import parse_target as _parse_target_core
from ota_flasher.core.results import OtaProgress, OtaResult
from ota_flasher.core.session_store import SessionStore, resolve_address
from ota_flasher.errors import OtaError
from ota_flasher.protocol.base import OtaTarget
from ota_flasher.targets import get_profile, list_targets

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True)],
)
logger = logging.getLogger("ota_flasher")

# Setup Rich console
console = Console()

app = typer.Typer(help="OTA Flasher - push firmware to STM32/ESP32 network bootloaders")

DEFAULT_STORE_PATH = Path.home() / ".ota_flasher" / "sessions.json"
EXIT_CANCELLED = 130


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def print_result(result: OtaResult) -> None:
    """Print a finished session with its remediation hint."""
    message = result_to_message(result)
    if message is None:
        print_success(f"Firmware flashed to {result.address} and device restarted")
        return
    if message.level == MessageLevel.WARN:
        print_warning(escape(message.title))
    else:
        print_error(f"[{message.code.upper()}] {escape(message.title)}")
    if message.remediation:
        console.print(f"   → {message.remediation}", style="cyan")


def parse_target(value: str) -> OtaTarget:
    """
    Parse target name from user-friendly string.

    CLI wrapper around core.parsing.parse_target that converts
    ValueError to typer.BadParameter for proper CLI error handling.
    """
    try:
        return _parse_target_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def parse_address(value: str) -> str:
    """CLI wrapper around core.parsing.parse_address."""
    try:
        return _parse_address_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def open_store(path: Path) -> SessionStore:
    """Load the session store, exiting with a message if it is corrupt."""
    store = SessionStore(path)
    try:
        store.load()
    except ValueError as e:
        print_error(escape(str(e)))
        sys.exit(1)
    return store


def set_verbose(verbose: bool) -> None:
    if verbose:
        logger.setLevel(logging.DEBUG)


StoreOption = typer.Option(
    DEFAULT_STORE_PATH,
    "--store",
    envvar="OTA_FLASHER_STORE",
    help="Session store file (remembered device names)",
)


@app.command()
def flash(
    address: str = typer.Argument(..., help="Device IP/hostname or a remembered name"),
    firmware: str = typer.Argument(..., help="Path to .bin firmware image"),
    target: str = typer.Option(..., "--target", "-t", help="Target family: stm32|esp32"),
    remember: Optional[str] = typer.Option(None, "--remember", "-r", help="Remember the address under this name on success"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every protocol phase"),
    store_path: Path = StoreOption,
) -> None:
    """
    Flash firmware to a device and boot it.

    Press Ctrl+C during the update to cancel; the connection is closed and
    the device keeps whatever was already written.
    """
    set_verbose(verbose)
    ota_target = parse_target(target)
    profile = get_profile(ota_target)
    store = open_store(store_path)
    resolved = resolve_address(store, address)

    if not output_json:
        print_header(f"OTA Update: {profile.name}")
        if resolved != address:
            console.print(f"Device: {address} ({resolved})")
        else:
            console.print(f"Device: {resolved}")
        console.print(f"Firmware: {escape(firmware)}")

    token = CancelToken()
    outcome = {}

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TransferSpeedColumn(),
        console=console,
        disable=output_json,
    ) as progress:
        task = progress.add_task(f"Flashing {profile.name}...", total=None)

        def on_progress(sent: int, total: int) -> None:
            p = OtaProgress(sent, total)
            progress.update(task, total=p.total, completed=p.sent)

        def worker_main() -> None:
            try:
                outcome["result"] = run_ota(resolved, firmware, ota_target, on_progress, token)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=worker_main, name="ota-session", daemon=True)
        worker.start()
        try:
            while worker.is_alive():
                worker.join(0.1)
        except KeyboardInterrupt:
            token.cancel()
            progress.update(task, description="Cancelling...")
            worker.join()

    if "error" in outcome:
        print_error(f"OTA session crashed: {escape(str(outcome['error']))}")
        sys.exit(1)

    result: OtaResult = outcome["result"]

    if result.ok and remember:
        store.set(remember, result.address)
        store.save()

    if output_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(result)
        if result.ok and remember:
            console.print(f"Remembered as [cyan]{remember}[/cyan]")

    if result.cancelled:
        sys.exit(EXIT_CANCELLED)
    if not result.ok:
        sys.exit(1)


@app.command()
def targets(
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
) -> None:
    """List supported target families and their protocol parameters."""
    profiles = list_targets()

    if output_json:
        typer.echo(json.dumps([p.to_dict() for p in profiles], indent=2))
        return

    print_header("Supported Targets")

    table = Table(title="OTA Targets")
    table.add_column("Target", style="cyan")
    table.add_column("Port", style="magenta")
    table.add_column("Chunk", style="green")
    table.add_column("Acks", style="yellow")
    table.add_column("Timeouts", style="blue")
    table.add_column("Notes", style="dim")

    for p in profiles:
        timeouts = ", ".join(f"{name} {secs:g}s" for name, secs in p.timeouts)
        table.add_row(p.target.value, str(p.port), f"{p.chunk_size:,}", p.ack_mode, timeouts, p.description)

    console.print(table)


@app.command()
def inspect(
    firmware: str = typer.Argument(..., help="Path to .bin firmware image"),
) -> None:
    """Validate a firmware image and show how it would be sent (no device needed)."""
    print_header("Firmware Inspection")

    try:
        image = FirmwareImage.load(firmware)
    except OtaError as e:
        print_error(escape(str(e)))
        sys.exit(1)

    table = Table(title="Firmware Image")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("File", image.path.name)
    table.add_row("Size", f"{image.size:,} bytes (0x{image.size:08X})")
    for p in list_targets():
        count = image.chunk_count(p.chunk_size)
        table.add_row(f"{p.name} chunks", f"{count} x {p.chunk_size:,} bytes ({p.ack_mode})")

    console.print(table)
    print_success("Image is valid for OTA")


@app.command()
def remember(
    name: str = typer.Argument(..., help="Device name"),
    address: str = typer.Argument(..., help="Device IP or hostname"),
    store_path: Path = StoreOption,
) -> None:
    """Remember a device address under a name."""
    store = open_store(store_path)
    store.set(name, parse_address(address))
    store.save()
    print_success(f"{name} -> {store.get(name)}")


@app.command()
def forget(
    name: str = typer.Argument(..., help="Device name"),
    store_path: Path = StoreOption,
) -> None:
    """Forget a remembered device."""
    store = open_store(store_path)
    if not store.remove(name):
        print_warning(f"No remembered device named '{name}'")
        sys.exit(1)
    store.save()
    print_success(f"Forgot {name}")


@app.command()
def sessions(store_path: Path = StoreOption) -> None:
    """List remembered devices."""
    store = open_store(store_path)
    if not len(store):
        print_warning("No remembered devices")
        return

    table = Table(title="Remembered Devices")
    table.add_column("Name", style="cyan")
    table.add_column("Address", style="green")
    for name, address in store.items():
        table.add_row(name, address)
    console.print(table)


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"ota-flasher {__version__}")


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_CANCELLED)
    except Exception as e:
        console.print(f"\n[red bold]Fatal error:[/red bold] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
