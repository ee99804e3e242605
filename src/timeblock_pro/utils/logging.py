import sys

from loguru import logger

from timeblock_pro.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> "
    "<level>{level: <7}</level> "
    "<magenta>[{extra[component]}]</magenta> "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | pid={process} "
    "{extra[component]: <7} | {name}:{line} | {message}"
)
LOG_FILE_NAME = "app.log"


def setup_logging(verbose: bool = False, component: str = "cli") -> None:
    """
    Route loguru output for one ``tbp`` process.

    ``component`` tags every record ("cli" for one-shot commands, "monitor"
    for the long-running daemon). Both kinds of process append to the same
    ``app.log``, so the file sink is enqueued to keep lines whole.

    The terminal only shows warnings unless ``--verbose`` or
    ``settings.debug`` is set; normal command output is rendered by rich.
    """
    logger.remove()
    logger.configure(extra={"component": component})

    debug = verbose or settings.debug
    logger.add(sys.stderr, level="DEBUG" if debug else "WARNING", format=CONSOLE_FORMAT)

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_path = settings.log_dir / LOG_FILE_NAME
    logger.add(
        log_path,
        level="DEBUG" if debug else "INFO",
        format=FILE_FORMAT,
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
    )

    logger.debug(f"{component} logging to {log_path}")
