"""
ESCape32 Update CLI

Query ESC info, or update the firmware or bootloader over a serial link.
"""

import sys
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, BarColumn, TextColumn

from escape32_update import __version__
from escape32_update.core.actions import run as core_run
from escape32_update.core.config import DEFAULT_DEVICE, UpdateConfig
from escape32_update.core.results import OperationResult
from escape32_update.protocol.esc_transport import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT
from escape32_update.protocol.update_protocol import REBOOT_TIMEOUT

logger = logging.getLogger("escape32_update")

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="ESCape32 firmware/bootloader update utility",
    add_completion=False,
)


def setup_logging(debug: bool) -> None:
    """Route package logs through Rich; warnings only unless --debug."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(level=level, console=err_console, rich_tracebacks=True)],
    )
    if debug:
        logger.setLevel(logging.DEBUG)


def print_success(text: str) -> None:
    console.print(text, style="green")


def print_warning(text: str) -> None:
    err_console.print(text, style="yellow")


def print_error(text: str) -> None:
    """Single diagnostic line on stderr."""
    err_console.print(text, style="red", markup=False, highlight=False, soft_wrap=True)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"ESCape32-Update {__version__}", highlight=False)
        raise typer.Exit()


def _run_update(config: UpdateConfig) -> OperationResult:
    with Progress(
        TextColumn("[{task.description}]"),
        BarColumn(),
        TextColumn("[{task.percentage:>3.0f}%]"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Writing {config.target}", total=None)

        def on_progress(done: int, total: int) -> None:
            progress.update(task, completed=done, total=total)

        return core_run(
            config,
            progress_cb=on_progress,
            log_cb=lambda message: progress.console.print(message, highlight=False),
        )


@app.command()
def update(
    image: Optional[Path] = typer.Argument(
        None,
        help="Binary image filename for update (ESC info is printed if omitted)",
        dir_okay=False,
    ),
    device: str = typer.Option(DEFAULT_DEVICE, "--device", "-d", help="Serial device name"),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore errors (forced update)"),
    bootloader: bool = typer.Option(False, "--bootloader", "-B", help="Update bootloader"),
    baudrate: int = typer.Option(DEFAULT_BAUDRATE, "--baud", help="Serial baud rate"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, "--timeout", help="Serial read timeout in seconds"),
    echo: bool = typer.Option(True, "--echo/--no-echo", help="Discard the single-wire line echo"),
    reboot_timeout: float = typer.Option(
        REBOOT_TIMEOUT, "--reboot-timeout", help="Seconds to wait for the ESC after a bootloader update"
    ),
    debug: bool = typer.Option(False, "--debug", help="Log serial traffic"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        "-v",
        help="Print version",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Update ESCape32 firmware or bootloader, or print ESC info."""
    setup_logging(debug)

    config = UpdateConfig(
        device=device,
        image_path=image,
        force=force,
        bootloader=bootloader,
        baudrate=baudrate,
        timeout=timeout,
        echo=echo,
        reboot_timeout=reboot_timeout,
    )

    console.print(f"Connecting to ESC via '{config.device}'...", markup=False, highlight=False)
    if config.mode == "info":
        result = core_run(config, log_cb=lambda message: console.print(message, highlight=False))
    else:
        result = _run_update(config)

    logger.debug(result.to_summary())
    if not result.ok:
        print_error(result.error_message)
        raise typer.Exit(code=1)

    if result.warnings:
        print_warning(f"Completed with {len(result.warnings)} ignored error(s)")

    if config.mode == "info":
        for line in result.metadata["info"].to_lines():
            console.print(line, markup=False, highlight=False)
    else:
        print_success("Done!")


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        print_error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
