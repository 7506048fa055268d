"""Console and JSON-lines logging for rolling deploys."""

import logging
import json
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator


# Structured fields copied from log records when present
STRUCTURED_FIELDS = (
    'event',
    'batch',
    'load_balancer',
    'instance_ids',
    'deployment_id',
    'duration',
)

# Third-party loggers kept at WARNING
NOISY_LOGGERS = ('boto3', 'botocore', 'urllib3', 'redis')


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying the structured deploy fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': _record_time(record).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        log_data.update(
            (name, getattr(record, name))
            for name in STRUCTURED_FIELDS
            if hasattr(record, name)
        )

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colourised one-line console output prefixed with batch and load balancer."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        """Render ``HH:MM:SS LEVEL [batch n] [lb] message``."""
        color = self.LEVEL_COLORS.get(record.levelno, '')

        prefixes = []
        if hasattr(record, 'batch'):
            prefixes.append(f"[batch {record.batch}]")
        if hasattr(record, 'load_balancer'):
            prefixes.append(f"[{record.load_balancer}]")

        line = ' '.join([
            _record_time(record).strftime('%H:%M:%S'),
            f"{color}{record.levelname:8}{self.RESET}",
            *prefixes,
            record.getMessage(),
        ])

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(log_level: str = 'info', log_dir: str = '.rolling-deploy/logs') -> Path:
    """Send logs to stdout and to a daily JSON-lines file.

    The file always receives DEBUG; the console follows ``log_level``.

    Args:
        log_level: Console level (debug, info, warning, error)
        log_dir: Directory for ``rolling-deploy-YYYYMMDD.jsonl``

    Returns:
        Path of the JSON-lines log file
    """
    level = getattr(logging, log_level.upper())

    log_file = Path(log_dir) / f"rolling-deploy-{datetime.now(timezone.utc):%Y%m%d}.jsonl"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ConsoleFormatter())

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JSONFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically ``get_logger(__name__)``)."""
    return logging.getLogger(name)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Stamp ``fields`` onto every log record created inside the block.

    Callers inside the block must not pass the same names through ``extra``.

    Example:
        with log_context(batch=2):
            manager.detach(instances)
    """
    previous_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = previous_factory(*args, **kwargs)
        for key, value in fields.items():
            setattr(record, key, value)
        return record

    logging.setLogRecordFactory(record_factory)
    try:
        yield
    finally:
        logging.setLogRecordFactory(previous_factory)
