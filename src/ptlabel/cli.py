"""
Command-Line Interface for P-touch Label Printers.

Usage:
    ptlabel status [-a ADDRESS]        - Show printer status
    ptlabel preview TEXT [-o FILE]     - Render a label to PNG
    ptlabel print TEXT [-a ADDRESS]    - Print a label
    ptlabel fonts                      - List installed fonts
"""

import asyncio
import json
import re
import sys

import click

from .config import load_settings
from .errors import (
    ConnectionError,
    DeviceFaultError,
    NotReadyError,
    PrinterError,
    ProtocolSequenceError,
    RenderError,
)
from .fonts import list_fonts
from .logging import configure_logging
from .orchestrator import LabelRequest, PrintJob, PrintOrchestrator
from .raster import TAPE_PINS
from .session import PrinterSession


# "usb" or "usb:VVVV:PPPP" (hex vendor/product ids)
USB_ADDRESS_PATTERN = re.compile(r"^usb(:[0-9A-Fa-f]{4}:[0-9A-Fa-f]{4})?$", re.IGNORECASE)

# Serial device paths: /dev/rfcomm0, /dev/ttyUSB0, /dev/cu.PT-P710BT, COM3
SERIAL_ADDRESS_PATTERN = re.compile(r"^(/dev/\S+|COM\d+)$", re.IGNORECASE)


def validate_address(ctx, param, value):
    """Validate a printer address.

    Accepts:
        - usb, or usb:VVVV:PPPP to pick a specific vendor/product
        - a serial device path (/dev/...) or Windows COM port

    Returns:
        The validated address (USB selectors lowercased)

    Raises:
        click.BadParameter: If the address format is invalid
    """
    if value is None:
        return None
    if USB_ADDRESS_PATTERN.match(value):
        return value.lower()
    if SERIAL_ADDRESS_PATTERN.match(value):
        return value
    raise click.BadParameter(
        f"Invalid printer address: '{value}'. "
        "Expected 'usb', 'usb:VVVV:PPPP' or a serial device such as /dev/rfcomm0"
    )


def _resolve_address(ctx, address):
    address = address or ctx.obj["settings"].address
    if not address:
        click.echo("No printer address given (use --address or set 'address' in the config file).", err=True)
        sys.exit(1)
    return address


def _report_error(e: PrinterError) -> None:
    if isinstance(e, DeviceFaultError):
        click.echo(f"Printer fault: {e}", err=True)
    elif isinstance(e, ConnectionError):
        click.echo(f"Connection error: {e}", err=True)
    elif isinstance(e, NotReadyError):
        click.echo(f"Printer not ready: {e}", err=True)
    elif isinstance(e, RenderError):
        click.echo(f"Render error: {e}", err=True)
    elif isinstance(e, ProtocolSequenceError):
        click.echo(f"Print error: {e}", err=True)
    else:
        click.echo(f"Printer error: {e}", err=True)


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug output")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to config JSON")
@click.pass_context
def main(ctx, debug, config_path):
    """P-touch Label Printer CLI."""
    ctx.ensure_object(dict)
    configure_logging(debug)
    try:
        ctx.obj["settings"] = load_settings(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Could not load config: {e}")
    ctx.obj["debug"] = debug


@main.command()
@click.option("--address", "-a", callback=validate_address, help="Printer address (usb or serial device)")
@click.option("--json", "as_json", is_flag=True, help="Print status as JSON")
@click.pass_context
def status(ctx, address, as_json):
    """Show printer model, tape width and faults."""
    address = _resolve_address(ctx, address)

    async def _status():
        session = PrinterSession(address, settings=ctx.obj["settings"])
        orchestrator = PrintOrchestrator(session)
        try:
            device_status = await orchestrator.query_status()
        except PrinterError as e:
            _report_error(e)
            sys.exit(1)
        finally:
            await session.aclose()

        if as_json:
            click.echo(json.dumps(device_status.to_dict(), indent=2))
            return

        click.echo(f"Model:      {device_status.model_name}")
        click.echo(f"Tape width: {device_status.tape_width_mm} mm")
        faults = device_status.error_descriptions()
        names = faults["error1"] + faults["error2"]
        click.echo(f"Faults:     {', '.join(names) if names else 'none'}")

    asyncio.run(_status())


@main.command()
@click.argument("text")
@click.option("--address", "-a", callback=validate_address, help="Printer address (usb or serial device)")
@click.option("--font", default="", help="Font family name or path")
@click.option("--font-size", type=click.IntRange(min=1), default=None, help="Font size in points")
@click.option("--offline", is_flag=True, help="Do not contact the printer")
@click.option(
    "--tape-width",
    type=click.Choice([str(w) for w in sorted(TAPE_PINS)]),
    default=None,
    help="Tape width in mm when no printer status is available",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), default="label.png", help="Output PNG file")
@click.option("--data-url", is_flag=True, help="Print a base64 data URL instead of writing a file")
@click.pass_context
def preview(ctx, text, address, font, font_size, offline, tape_width, output, data_url):
    """Render TEXT as it would be printed.

    Uses the tape width of the connected printer. When the printer cannot
    be reached or --offline is given, --tape-width or a 12 mm tape is used.
    """
    settings = ctx.obj["settings"]
    address = address or settings.address
    connect = not offline and bool(address)

    async def _preview():
        session = PrinterSession(address, settings=settings)
        orchestrator = PrintOrchestrator(session)
        try:
            result = await orchestrator.preview(
                LabelRequest(text, font, font_size),
                connect=connect,
                tape_width_mm=int(tape_width) if tape_width else None,
            )
        finally:
            await session.aclose()

        for error in result.errors:
            _report_error(error)
        if result.label is None:
            sys.exit(1)

        if data_url:
            click.echo(result.to_data_url())
        else:
            result.label.image.save(output, format="PNG")
            click.echo(f"Wrote {result.label.width}x{result.label.height} preview to {output}")

    asyncio.run(_preview())


@main.command("print")
@click.argument("text")
@click.option("--address", "-a", callback=validate_address, help="Printer address (usb or serial device)")
@click.option("--font", default="", help="Font family name or path")
@click.option("--font-size", type=click.IntRange(min=1), default=None, help="Font size in points")
@click.option("--copies", type=click.IntRange(min=1), default=1, help="Number of copies")
@click.option("--chain", is_flag=True, help="Do not cut after the last copy")
@click.pass_context
def print_label(ctx, text, address, font, font_size, copies, chain):
    """Print TEXT on the label printer."""
    address = _resolve_address(ctx, address)

    async def _print():
        session = PrinterSession(address, settings=ctx.obj["settings"])
        orchestrator = PrintOrchestrator(session)

        click.echo(f"Connecting to {address}...")
        try:
            result = await orchestrator.print_label(
                LabelRequest(text, font, font_size),
                PrintJob(copies=copies, chain=chain),
            )
            click.echo(f"Printed {result.copies_printed} of {copies} copies.")
        except PrinterError as e:
            _report_error(e)
            if e.copies_printed is not None:
                click.echo(f"Copies printed before the failure: {e.copies_printed}", err=True)
            sys.exit(1)
        finally:
            await session.aclose()

    asyncio.run(_print())


@main.command()
def fonts():
    """List installed font families."""
    names = list_fonts()
    if not names:
        click.echo("No fonts found.")
        return
    for name in names:
        click.echo(name)


if __name__ == "__main__":
    main()
