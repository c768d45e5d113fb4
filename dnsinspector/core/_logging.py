import logging
import sys

from loguru import logger
from rich.traceback import install as rich_tb_install

_LOG_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | '
    '<level>{level: <8}</level> | '
    '<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - '
    '<level>{message}</level>'
)

# stdlib loggers used by the resolver transport
_TRANSPORT_LOGGERS = (
    'httpx',
    'httpcore',
    'hpack',
    'asyncio',
)


def _loguru_level(record: logging.LogRecord) -> str | int:
    try:
        return logger.level(record.levelname).name
    except ValueError:
        return record.levelno


class _InterceptHandler(logging.Handler):
    '''
    Forwards stdlib records to loguru, keeping the caller location of
    the code that logged rather than of the logging module.
    '''

    def emit(self, record: logging.LogRecord) -> None:
        depth = 2
        frame = logging.currentframe()
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            _loguru_level(record), record.getMessage()
        )


def _route_stdlib(level_name: str | None) -> None:
    handlers: list[logging.Handler] = [] if level_name is None else [_InterceptHandler()]
    root = logging.getLogger()
    root.handlers = list(handlers)
    if level_name is not None:
        root.setLevel(level_name)

    for name in _TRANSPORT_LOGGERS:
        transport_logger = logging.getLogger(name)
        transport_logger.handlers = list(handlers)
        if level_name is not None:
            transport_logger.setLevel(level_name)


def configure_lib_logger(
    *,
    level_name: str = "INFO",
    rich_tracebacks: bool = False,
) -> None:
    '''
    Sets up logging for scripts and interactive sessions: one colorized
    stdout sink, with httpx/httpcore records merged into it.

    Parameters
    ----------
    level_name : str, optional
        _Minimum level for the sink and the stdlib loggers_, by default "INFO"
    rich_tracebacks : bool, optional
        _Install rich's traceback printer_, by default False
    '''
    _route_stdlib(level_name)

    logger.remove()
    logger.add(
        sys.stdout,
        format=_LOG_FORMAT,
        level=level_name,
        colorize=True,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        catch=True,
    )
    logger.enable('dnsinspector')
    if rich_tracebacks:
        rich_tb_install(show_locals=True, word_wrap=True)

    logger.debug(f'dnsinspector logging at {level_name}')


def disable_lib_logger() -> None:
    '''
    Mutes dnsinspector inside a host application. The host's own loguru
    sinks are left alone.
    '''
    logger.disable('dnsinspector')
    _route_stdlib(None)
