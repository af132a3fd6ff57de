"""
Application logging to the data folder.

Everything from the first capture through place resolution is written to
<data_dir>/logs/ so a day of storefront captures can be reviewed in one
place. The level comes from PipelineConfig.log_level (PLACELENS_LOG_LEVEL),
and CapturePipeline.from_config() calls setup_logging() with it.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

# Handlers we install carry this attribute so a second setup is a no-op
_PLACELENS_LOG_HANDLER_ATTR = "_placelens_data_log_handler"
_LOGS_SETUP = False

# Chatty at INFO: every Nominatim request, every model load
NOISY_LOGGERS = ("urllib3", "easyocr", "PIL")

LOG_FORMAT = "[%(asctime)s] %(name)s %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: Union[int, str, None]) -> int:
    """
    Turn a configured level into a logging constant.

    Accepts ints (logging.DEBUG), names in any case ("debug", "WARNING") and
    numeric strings ("10"). None means INFO.

    Raises:
        ValueError: for a name logging does not know
    """
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def log_file_path(base_dir: str = "data", daily_file: bool = True,
                  now: Optional[datetime] = None) -> Path:
    """Return <base_dir>/logs/placelens[_YYYYMMDD].log, creating the folder."""
    logs_dir = Path(base_dir).resolve() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    if not daily_file:
        return logs_dir / "placelens.log"
    return logs_dir / f"placelens_{(now or datetime.now()).strftime('%Y%m%d')}.log"


def _tagged(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    setattr(handler, _PLACELENS_LOG_HANDLER_ATTR, True)
    return handler


def setup_logging(
    base_dir: str = "data",
    log_level: Union[int, str, None] = "INFO",
    to_console: bool = True,
    daily_file: bool = True,
) -> Optional[Path]:
    """
    Route application logs to <base_dir>/logs/ (and stderr).

    Only the first call configures anything; later calls, or a root logger
    that already has our handlers, return None.

    Args:
        base_dir: Data directory; logs go to base_dir/logs/
        log_level: Level as an int or a name such as "DEBUG" (default INFO)
        to_console: Also emit to stderr
        daily_file: One file per day (placelens_YYYYMMDD.log) instead of placelens.log

    Returns:
        Path of the log file written to, or None if logging was already set up
    """
    global _LOGS_SETUP
    if _LOGS_SETUP:
        return None

    root = logging.getLogger()
    if any(getattr(h, _PLACELENS_LOG_HANDLER_ATTR, False) for h in root.handlers):
        _LOGS_SETUP = True
        return None

    level = resolve_level(log_level)
    log_file = log_file_path(base_dir, daily_file)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root.addHandler(_tagged(logging.FileHandler(log_file, encoding="utf-8"), level, formatter))
    if to_console:
        root.addHandler(_tagged(logging.StreamHandler(sys.stderr), level, formatter))
    root.setLevel(level)

    # Third-party request/model chatter stays out unless we are debugging
    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _LOGS_SETUP = True
    logging.getLogger("placelens").info("Logging to %s at %s", log_file, logging.getLevelName(level))
    return log_file


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module/component (e.g. __name__)."""
    return logging.getLogger(name if name.startswith("placelens") else f"placelens.{name}")
