import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

from loguru import logger
from rich import print as rprint

_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

LOG_LEVELS = frozenset(
    {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
)


def setup_logging(
    log_level: str = "INFO", log_file: Optional[Union[str, Path]] = None
):
    """
    Configure loguru sinks for the profiler.

    - console: WARNING and above via rich, or log_level if it is stricter
    - file (optional): log_level and above, enqueued, rotated at 10 MB
    """
    logger.remove()

    console_level = log_level if logger.level(log_level).no > logger.level("WARNING").no else "WARNING"
    logger.add(
        lambda msg: rprint(msg, end="", file=sys.stderr),
        level=console_level,
        format="{time:HH:mm:ss} | {level: <8} | {message}",
        colorize=False,
    )

    if log_file is not None:
        logger.add(
            Path(log_file).resolve(),
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            enqueue=True,
            backtrace=True,
            diagnose=False,
            rotation="10 MB",
            retention="3 days",
        )

    logger.debug(f"Logging initialized (level={log_level}, file={log_file})")

    # asyncio chatter from aiofiles executors
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def format_duration(elapsed: timedelta) -> str:
    """
    Render a duration as "{h}h {m}m {s}.{micro}s".

    Lossless at microsecond resolution and monotonic in elapsed.

    >>> format_duration(timedelta(hours=1, seconds=2, microseconds=5))
    '1h 0m 2.000005s'
    """
    if elapsed < timedelta(0):
        raise ValueError(f"duration must be non-negative, got {elapsed!r}")
    total_us = (elapsed.days * 86_400 + elapsed.seconds) * 1_000_000 + elapsed.microseconds
    total_seconds, micros = divmod(total_us, 1_000_000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}h {minutes}m {seconds}.{micros:06d}s"


def format_rfc1123(moment: datetime) -> str:
    """
    Render a timestamp in RFC 1123 form, independent of locale.

    UTC renders as "GMT", any other offset as "+HHMM". Naive datetimes are
    taken to be UTC.

    >>> format_rfc1123(datetime(2026, 10, 3, 9, 5, 7, tzinfo=timezone.utc))
    'Sat, 3 Oct 2026 09:05:07 GMT'
    """
    offset = moment.utcoffset()
    if offset is None:
        offset = timedelta(0)
        moment = moment.replace(tzinfo=timezone.utc)

    if offset == timedelta(0):
        zone = "GMT"
    else:
        sign = "+" if offset > timedelta(0) else "-"
        minutes = abs(int(offset.total_seconds())) // 60
        zone = f"{sign}{minutes // 60:02d}{minutes % 60:02d}"

    return (
        f"{_DAY_NAMES[moment.weekday()]}, {moment.day} {_MONTH_NAMES[moment.month - 1]} "
        f"{moment.year} {moment:%H:%M:%S} {zone}"
    )
