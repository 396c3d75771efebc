"""
Centralized logging configuration for sealbid.

All loggers hang off the `sealbid` root so one call configures the
engine, settlement, oracle and CLI output together:

    sealbid.engine      operation accept/reject
    sealbid.events      every committed event (INFO)
    sealbid.settlement  payouts and transfers
    sealbid.fhe.local   simulated oracle traffic
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog

ROOT_LOGGER = "sealbid"
LOG_FILE = "sealbid.log"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

Level = Union[int, str]


def _resolve_level(level: Level) -> int:
    """Accept logging constants or names such as "info"."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


class SealbidLogger:
    """Owns the handlers of the sealbid logger tree"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: Level = logging.INFO,
        log_dir: Optional[Union[str, Path]] = None,
        log_to_file: bool = False,
        force: bool = False,
    ):
        """
        Attach console (and optionally file) handlers to the sealbid root.

        Args:
            level: Logging level, as a constant or a name
            log_dir: Directory for sealbid.log. If None, uses ./logs
            log_to_file: Whether to write logs to file
            force: Replace existing handlers even if already initialized
        """
        if cls._initialized and not force:
            return

        level = _resolve_level(level)
        cls._log_dir = None
        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers.clear()

        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            colorlog.ColoredFormatter(
                "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
                log_colors=LOG_COLORS,
            )
        )
        root_logger.addHandler(console_handler)

        if cls._log_dir is not None:
            file_handler = logging.FileHandler(cls._log_dir / LOG_FILE)
            file_handler.setLevel(level)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            root_logger.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get the logger of a subsystem ('engine', 'settlement', 'fhe.local').

        Configures defaults on first use.
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"{ROOT_LOGGER}.{name}")

    @classmethod
    def log_file(cls) -> Optional[Path]:
        """Path of the active log file, if file logging is on."""
        return cls._log_dir / LOG_FILE if cls._log_dir is not None else None


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return SealbidLogger.get_logger(name)


def setup_logging(
    level: Level = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
    log_to_file: bool = False,
):
    """Reconfigure logging"""
    SealbidLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file, force=True)


def configure_logging(config, log_to_file: bool = False, level: Optional[Level] = None):
    """
    Apply the logging fields of an AuctionConfig.

    Args:
        config: Object with `log_level` and `log_dir`
        log_to_file: Also write to config.log_dir
        level: Override for config.log_level
    """
    setup_logging(
        level=level if level is not None else config.log_level,
        log_dir=config.log_dir,
        log_to_file=log_to_file,
    )
