from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
from logging import Logger

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# loggers that flood the output with one line per request
NOISY_LOGGERS = ("httpx", "httpcore")

_LEVEL_MARKS = {
    logging.CRITICAL: "⛔ ",
    logging.ERROR: "⛔ ",
    logging.WARNING: "⚠️ ",
}

_ANSI_RESET = "\033[0m"
_ANSI_COLORS: dict[str, str] = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
}


class CustomFormatter(logging.Formatter):
    """Timestamps in a fixed timezone; warnings and errors get a visual marker."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        local = datetime.fromtimestamp(record.created, self.tz)
        return local.strftime(datefmt) if datefmt else local.isoformat()

    def format(self, record):
        # the same record reaches every handler, so mark a copy
        marked = logging.makeLogRecord(record.__dict__)
        marked.msg = _LEVEL_MARKS.get(record.levelno, "") + record.getMessage()
        marked.args = ()
        return super().format(marked)


class ColoredFormatter(CustomFormatter):
    """Console variant: wraps the line in the ANSI color named by ``record.color``, if any."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _ANSI_COLORS.get(getattr(record, "color", None) or "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Logger wrapper accepting ``color=`` on every log call.

    The entry points use it to highlight milestones (collection ready,
    maintenance finished). The color only reaches the console; the log file
    stays plain. Everything else is delegated to the wrapped logger.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _emit(self, method: str, msg, args: tuple, color: str | None, kwargs: dict) -> None:
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        # stacklevel 3 attributes the record to the caller, not to this wrapper
        kwargs.setdefault("stacklevel", 3)
        getattr(self._logger, method)(msg, *args, **kwargs)

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._emit("debug", msg, args, color, kwargs)

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._emit("info", msg, args, color, kwargs)

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._emit("warning", msg, args, color, kwargs)

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._emit("error", msg, args, color, kwargs)

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self._emit("critical", msg, args, color, kwargs)

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        self._emit("exception", msg, args, color, kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


def _formatter(formatter_class: type, tz_name: str) -> dict:
    return {"()": formatter_class, "format": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name}


def setup_logging(name: str = "condo_rag") -> ColorLogger:
    """Configure the console and file handlers of the root logger.

    Environment:
        LOG_LEVEL: debug, info (default), warning or error. Request logs of
            httpx only appear at debug.
        ROOT_DIR: the log file is ``$ROOT_DIR/logs/app.log`` (default: working directory).
        TIMEZONE: timestamp timezone (default America/Sao_Paulo).
    """
    level_name = os.getenv("LOG_LEVEL", "info").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    tz_name = os.getenv("TIMEZONE", "America/Sao_Paulo")
    os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": _formatter(CustomFormatter, tz_name),
            "colored": _formatter(ColoredFormatter, tz_name),
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "level": level,
                "filename": os.path.join(log_dir, "app.log"),
                "encoding": "utf-8",
            },
        },
        "root": {"handlers": ["console", "file"], "level": level},
    })

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(name))
