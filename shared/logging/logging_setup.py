import logging
import logging.config
import os
from datetime import datetime
from logging import Logger

from pytz import timezone

APP_LOGGER_NAME = "bookmark_index"

# Supported ANSI color names for the color= parameter
_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan":    "\033[36m",
    "green":   "\033[32m",
    "yellow":  "\033[33m",
    "red":     "\033[31m",
    "magenta": "\033[35m",
    "blue":    "\033[34m",
}

_LEVEL_PREFIX: dict[int, str] = {
    logging.CRITICAL: "⛔ ",
    logging.ERROR: "⛔ ",
    logging.WARNING: "⚠️ ",
}

# Third-party loggers that are only interesting when debugging
_NOISY_LOGGERS = ("httpx", "httpcore", "pypdf")


def is_debug_mode() -> bool:
    return os.getenv("LOG_LEVEL", "info").lower() == "debug"


class PypdfFilter(logging.Filter):
    """Drop pypdf's repair chatter about malformed PDFs unless debugging."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("pypdf") and record.levelno < logging.ERROR:
            return is_debug_mode()
        return True


class TimezoneFormatter(logging.Formatter):
    """Renders timestamps in TIMEZONE and prefixes warnings and errors with a glyph."""

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record: logging.LogRecord) -> str:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # malformed third-party format strings: log the raw message instead
            message = str(record.msg)

        # the record is shared between handlers, so work on a copy
        record = logging.makeLogRecord(record.__dict__)
        record.msg = _LEVEL_PREFIX.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ColoredFormatter(TimezoneFormatter):
    """Console formatter that colors a line when its record carries a ``color`` attribute."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "", "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi and line else line


class ColorLogger:
    """Wrapper around :class:`logging.Logger` whose log methods accept ``color=<name>``.

    Usage::

        logger.info("plain message")
        logger.info("index rebuilt", color="green")

    Only the console handler renders colors; the log file stays plain text.
    """

    _LEVEL_METHODS = ("debug", "info", "warning", "error", "critical", "exception")

    def __init__(self, logger: Logger):
        self._logger = logger

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        kwargs.setdefault("stacklevel", 2)
        self._logger.log(level, msg, *args, **kwargs)

    def __getattr__(self, name):
        if name in self._LEVEL_METHODS:
            level = logging.ERROR if name == "exception" else logging.getLevelName(name.upper())

            def log_at_level(msg, *args, color: str | None = None, **kwargs):
                if name == "exception":
                    kwargs.setdefault("exc_info", True)
                kwargs.setdefault("stacklevel", 3)
                self.log(level, msg, *args, color=color, **kwargs)

            return log_at_level
        # everything else (setLevel, handlers, ...) goes to the wrapped logger
        return getattr(self._logger, name)


def setup_logging(log_dir: str | None = None) -> ColorLogger:
    """Configure console and file logging and return the application logger.

    Args:
        log_dir (str | None): Directory of app.log; defaults to $ROOT_DIR/logs.

    Returns:
        ColorLogger: The application logger.
    """
    log_dir = log_dir or os.path.join(os.getenv("ROOT_DIR") or os.getcwd(), "logs")
    os.makedirs(log_dir, exist_ok=True)
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    debug_mode = is_debug_mode()
    loglevel = logging.DEBUG if debug_mode else logging.INFO

    formatter = {
        "format": "%(asctime)s - %(levelname)s - %(message)s",
        "datefmt": "%Y-%m-%d %H:%M:%S",
        "tz_name": tz_name,
    }
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"()": TimezoneFormatter, **formatter},
            "colored": {"()": ColoredFormatter, **formatter},
        },
        "filters": {
            "pypdf": {"()": PypdfFilter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "filters": ["pypdf"],
                "level": loglevel,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "filters": ["pypdf"],
                "level": loglevel,
                "filename": os.path.join(log_dir, "app.log"),
                "encoding": "utf-8",
            },
        },
        "root": {
            "handlers": ["console", "file"],
            "level": loglevel,
        },
    })

    # request and parser logs only when debugging
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug_mode else logging.WARNING)

    return ColorLogger(logging.getLogger(APP_LOGGER_NAME))
