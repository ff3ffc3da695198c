"""JSON line logging for CloudWatch and other log collectors.

Every record is rendered as a single JSON object carrying a numeric
``severity`` on the Cloud Logging scale. Plain messages go through the
usual ``logger.info(...)`` calls; records that need extra fields are built
as a ``LogEntry`` and handed to ``log_entry``.
"""
import json
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict

DEFAULT = 0
DEBUG = 100
INFO = 200
NOTICE = 300
WARNING = 400
ERROR = 500
CRITICAL = 600
ALERT = 700
EMERGENCY = 800

_SEVERITY_BY_LEVEL = {
    logging.DEBUG: DEBUG,
    logging.INFO: INFO,
    logging.WARNING: WARNING,
    logging.ERROR: ERROR,
    logging.CRITICAL: CRITICAL,
}


def severity_for(levelno: int) -> int:
    """Map a ``logging`` level to the nearest severity at or below it."""
    best = DEFAULT
    for level, severity in _SEVERITY_BY_LEVEL.items():
        if levelno >= level:
            best = max(best, severity)
    return best


def level_for(severity: int) -> int:
    """Map a severity back to a ``logging`` level.

    NOTICE and the levels above CRITICAL have no ``logging`` counterpart and
    are folded into INFO and CRITICAL respectively. DEFAULT maps to INFO so
    that an entry without a severity is still emitted.
    """
    if severity >= CRITICAL:
        return logging.CRITICAL
    if severity >= ERROR:
        return logging.ERROR
    if severity >= WARNING:
        return logging.WARNING
    if severity >= INFO:
        return logging.INFO
    if severity >= DEBUG:
        return logging.DEBUG
    return logging.INFO


@dataclass
class LogEntry:
    msg: str
    severity: int = DEFAULT
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.fields)
        payload['msg'] = self.msg
        payload['severity'] = self.severity
        return payload


class JsonFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = getattr(record, 'entry', None)
        if entry is None:
            entry = LogEntry(record.getMessage(), severity_for(record.levelno))
        payload = entry.to_dict()
        payload['level'] = record.levelname
        payload['logger'] = record.name
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def log_entry(logger: logging.Logger, entry: LogEntry) -> None:
    logger.log(level_for(entry.severity), entry.msg, extra={'entry': entry})


def setup_logging(level=logging.INFO, stream=None) -> None:
    """Install the JSON formatter on the root logger.

    The Lambda runtime already attaches a handler to the root logger; its
    formatter is replaced instead of stacking a second handler on top.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(logging.StreamHandler(stream or sys.stdout))
    for handler in root.handlers:
        handler.setFormatter(JsonFormatter())

    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
