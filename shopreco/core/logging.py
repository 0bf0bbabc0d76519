# shopreco/core/logging.py
import logging
import sys
import colorlog

LOG_FORMAT = "%(log_color)s%(asctime)s %(levelname)-8s [%(name)s]%(reset)s %(message)s"

# Third-party loggers that are noisy at DEBUG (one line per DB command / HTTP call)
QUIET_LOGGERS = ("pymongo", "motor", "openai", "httpx", "httpcore")


def build_formatter(color: bool | None = None) -> colorlog.ColoredFormatter:
    """
    Colored output on a terminal, plain text when piped (container logs).
    `color` forces one or the other.
    """
    if color is None:
        color = sys.stdout.isatty()
    return colorlog.ColoredFormatter(
        LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        log_colors={
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        },
        no_color=not color,
        force_color=color,
    )


def configure_logging(level=logging.INFO, *, color: bool | None = None) -> None:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(color))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # uvicorn installs its own handlers; route everything through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv = logging.getLogger(name)
        uv.handlers = []
        uv.propagate = True
        uv.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
