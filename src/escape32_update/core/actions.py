"""
Core workflow actions for ESCape32 Update.

Each action opens the serial transport for the duration of one run, probes
the ESC and performs a single query or update. Failures are returned as a
failed OperationResult; the transport is closed on every exit path.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from escape32_update.errors import ESCUpdateError
from escape32_update.image import load_image
from escape32_update.protocol.esc_transport import ESCTransport
from escape32_update.protocol.update_protocol import ESCUpdater

from .config import UpdateConfig
from .results import OperationResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
LogCallback = Callable[[str], None]
TransportFactory = Callable[[UpdateConfig], ESCTransport]


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "escape32_update"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def default_transport(config: UpdateConfig) -> ESCTransport:
    return ESCTransport(
        config.device,
        baudrate=config.baudrate,
        timeout=config.timeout,
        echo=config.echo,
    )


@contextmanager
def esc_session(
    config: UpdateConfig,
    progress_cb: Optional[ProgressCallback] = None,
    transport_factory: TransportFactory = default_transport,
) -> Iterator[ESCUpdater]:
    """
    Open the transport, probe the ESC and yield an updater bound to it.

    The transport is closed when the block exits, whatever the outcome.
    """
    logger.info(f"Connecting to ESC via '{config.device}'...")
    with transport_factory(config) as transport:
        updater = ESCUpdater(
            transport,
            config.make_policy(),
            progress_cb=progress_cb,
            reboot_timeout=config.reboot_timeout,
        )
        updater.probe()
        yield updater


def _announce(message: str, log_cb: Optional[LogCallback]) -> None:
    logger.info(message)
    if log_cb:
        log_cb(message)


def _finish(result: OperationResult, updater: ESCUpdater) -> OperationResult:
    for mismatch in updater.policy.ignored:
        result.add_warning(f"Ignored: {mismatch}")
    return result


def query_info(
    config: UpdateConfig,
    transport_factory: TransportFactory = default_transport,
    log_cb: Optional[LogCallback] = None,
) -> OperationResult:
    """
    Probe the ESC and read its bootloader and firmware info.

    Returns:
        OperationResult with the ESCInfo under metadata["info"]
    """
    with _capture_logs() as logs:
        try:
            with esc_session(config, transport_factory=transport_factory) as updater:
                _announce("Fetching ESCape32 info...", log_cb)
                info = updater.query_info()
        except ESCUpdateError as e:
            logger.info(f"Query failed: {e}")
            return OperationResult.failure(
                operation="query_info",
                error=str(e),
                device=config.device,
                logs=logs,
            )

        result = OperationResult.success(
            operation="query_info",
            device=config.device,
            logs=logs,
        )
        result.metadata["info"] = info
        return _finish(result, updater)


def update(
    config: UpdateConfig,
    progress_cb: Optional[ProgressCallback] = None,
    transport_factory: TransportFactory = default_transport,
    log_cb: Optional[LogCallback] = None,
) -> OperationResult:
    """
    Probe the ESC, load the image and flash it to the configured target.

    The image is validated against the target capacity after the probe, so
    validation failures also release the serial port.
    """
    if config.image_path is None:
        raise ValueError("update() requires config.image_path")

    operation = f"update_{config.target}"
    with _capture_logs() as logs:
        try:
            with esc_session(config, progress_cb, transport_factory) as updater:
                image = load_image(config.image_path, config.capacity)
                _announce(f"Updating {config.target}...", log_cb)
                if config.bootloader:
                    updater.update_bootloader(image)
                else:
                    updater.update_firmware(image)
        except ESCUpdateError as e:
            logger.info(f"{operation} failed: {e}")
            return OperationResult.failure(
                operation=operation,
                error=str(e),
                device=config.device,
                target=config.target,
                logs=logs,
            )

        result = OperationResult.success(
            operation=operation,
            device=config.device,
            target=config.target,
            bytes_len=image.length,
            logs=logs,
        )
        result.metadata["image"] = str(config.image_path)
        return _finish(result, updater)


def run(
    config: UpdateConfig,
    progress_cb: Optional[ProgressCallback] = None,
    transport_factory: TransportFactory = default_transport,
    log_cb: Optional[LogCallback] = None,
) -> OperationResult:
    """Dispatch to query_info() or update() according to the config."""
    if config.mode == "info":
        return query_info(config, transport_factory=transport_factory, log_cb=log_cb)
    return update(
        config,
        progress_cb=progress_cb,
        transport_factory=transport_factory,
        log_cb=log_cb,
    )
