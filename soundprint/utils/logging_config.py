"""
Soundprint Logging Configuration

structlog on top of the standard logging module:
- Console output for development
- Rotating file logs (everything, and errors only)
- Quieter levels for HTTP libraries
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

import structlog


class SoundprintLogger:
    """
    Centralized logging configuration for Soundprint.

    Routes structlog events through stdlib handlers so uvicorn, aiohttp and
    application logs end up in the same place.
    """

    def __init__(
        self,
        log_dir: Optional[str] = "logs",
        log_level: str = "INFO",
        enable_console: bool = True,
        max_file_size: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5
    ):
        """
        Initialize the logging system.

        Args:
            log_dir: Directory to store log files (None disables file logging)
            log_level: Default log level
            enable_console: Whether to enable console logging
            max_file_size: Maximum size per log file before rotation
            backup_count: Number of backup files to keep
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.enable_console = enable_console
        self.max_file_size = max_file_size
        self.backup_count = backup_count

        self.external_level = logging.WARNING

        self._setup_logging()

    def _setup_logging(self):
        logging.getLogger().handlers.clear()

        self._configure_structlog()

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._setup_file_handlers()

        if self.enable_console:
            self._setup_console_handler()

        self._configure_external_loggers()

        logging.getLogger().setLevel(self.log_level)

    def _configure_structlog(self):
        shared_processors = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        structlog.configure(
            processors=shared_processors + [
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def _setup_file_handlers(self):
        root_logger = logging.getLogger()
        root_logger.addHandler(self._create_rotating_file_handler("soundprint.log", self.log_level))
        root_logger.addHandler(self._create_rotating_file_handler("errors.log", logging.ERROR))

    def _create_rotating_file_handler(
        self,
        filename: str,
        level: int
    ) -> logging.handlers.RotatingFileHandler:
        handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / filename,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
        ))
        return handler

    def _setup_console_handler(self):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=True),
        ))
        logging.getLogger().addHandler(console_handler)

    def _configure_external_loggers(self):
        # HTTP libraries stay at WARNING even when LOG_LEVEL=DEBUG
        for module in ["aiohttp.access", "aiohttp.client", "urllib3", "httpx"]:
            logging.getLogger(module).setLevel(self.external_level)


_logger_instance: Optional[SoundprintLogger] = None


def setup_logging(
    log_dir: Optional[str] = "logs",
    log_level: str = "INFO",
    enable_console: bool = True,
    **kwargs
) -> SoundprintLogger:
    """
    Setup the global logging configuration.

    Args:
        log_dir: Directory to store log files
        log_level: Default log level
        enable_console: Whether to enable console logging
        **kwargs: Additional arguments for SoundprintLogger

    Returns:
        Configured logger instance
    """
    global _logger_instance

    _logger_instance = SoundprintLogger(
        log_dir=log_dir,
        log_level=log_level,
        enable_console=enable_console,
        **kwargs
    )
    return _logger_instance

