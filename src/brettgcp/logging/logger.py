"""
Loggers that write straight to Cloud Logging.

Logger is a small leveled logger in its own right (debug/info/warn/error/fatal/unknown
with a threshold) that also tracks a request trace ID per thread so entries
written while handling a request can be correlated.

CloudLoggingHandler plugs Cloud Logging into the standard library's logging
instead, for code that already logs that way.
"""
from collections import OrderedDict
from typing import Any
import datetime
import logging
import threading

from .entry import Entry, Resource

# Logger levels, index is the level number
LEVELS = ["debug", "info", "warn", "error", "fatal", "unknown"]
# the entry severity each level writes with
LEVEL_SEVERITIES = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "DEFAULT"]
_LEVEL_ALIASES = {"warning": 2, "critical": 4}
UNKNOWN = 5

MAX_TRACE_IDS = 10000


def derive_level(severity: int|str|None) -> int|None:
    """Level number from an int or level name, None if it isn't one."""
    if isinstance(severity, int) and not isinstance(severity, bool):
        return severity
    s = str(severity).lower()
    if s in LEVELS:
        return LEVELS.index(s)
    return _LEVEL_ALIASES.get(s)


def level_severity(level: int) -> str:
    if 0 <= level < len(LEVEL_SEVERITIES):
        return LEVEL_SEVERITIES[level]
    return "DEFAULT"


class Logger():
    """
    writer is anything with write_entries(entries, log_name=, resource=, labels=),
    usually the logging Project for blocking writes or an AsyncWriter for background ones.

        logger = Logger(Project(), "my_app_log", Resource("gae_app", {"module_id": "1"}),
                        {"env": "production"})
        logger.info("Job started.")
        logger.debug(lambda: expensive_dump())   # only evaluated if debug is enabled
    """

    def __init__(self, writer, log_name: str, resource: Resource|None = None,
                 labels: dict|None = None) -> None:
        self.writer = writer
        self.log_name = log_name
        self.resource = resource
        self.labels = labels
        self._level = 0
        self._trace_lock = threading.Lock()
        self.trace_ids: OrderedDict[int, str] = OrderedDict()

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{self.log_name}:{LEVELS[self._level] if self._level < len(LEVELS) else self._level}"

    @property
    def level(self) -> int:
        return self._level

    @level.setter
    def level(self, severity: int|str) -> None:
        new_level = derive_level(severity)
        if new_level is None:
            raise ValueError(f"invalid log level: {severity}")
        self._level = new_level

    # what the threshold is called elsewhere
    sev_threshold = level

    def debug(self, message: Any = None, progname: str|None = None) -> bool:
        return self.add(0, message, progname)

    def info(self, message: Any = None, progname: str|None = None) -> bool:
        return self.add(1, message, progname)

    def warn(self, message: Any = None, progname: str|None = None) -> bool:
        return self.add(2, message, progname)

    warning = warn

    def error(self, message: Any = None, progname: str|None = None) -> bool:
        return self.add(3, message, progname)

    def fatal(self, message: Any = None, progname: str|None = None) -> bool:
        return self.add(4, message, progname)

    critical = fatal

    def unknown(self, message: Any = None, progname: str|None = None) -> bool:
        """Written no matter what the level is."""
        return self.add(5, message, progname)

    def add(self, severity: int|str|None, message: Any = None, progname: Any = None) -> bool:
        """
        Log message if severity is at or above the logger's level.
        Unrecognised severities are treated as unknown.
        A callable message is only called once the level check passes, and with
        no message at all progname is logged instead (a callable progname too).
        """
        level = derive_level(severity)
        if level is None:
            level = UNKNOWN
        if level < self._level:
            return True
        if message is None:
            message = progname
        if callable(message):
            message = message()
        self.write_entry(level, message)
        return True

    log = add

    def is_debug(self) -> bool:
        return self._level <= 0

    def is_info(self) -> bool:
        return self._level <= 1

    def is_warn(self) -> bool:
        return self._level <= 2

    def is_error(self) -> bool:
        return self._level <= 3

    def is_fatal(self) -> bool:
        return self._level <= 4

    def add_trace_id(self, trace_id: str) -> None:
        """
        Associate a trace ID (the X-Cloud-Trace-Context header) with the current thread.
        Request middleware should delete it when the request finishes; in case it
        doesn't the oldest are dropped once there are too many.
        """
        with self._trace_lock:
            ident = threading.get_ident()
            # re-adding counts as newest
            self.trace_ids.pop(ident, None)
            self.trace_ids[ident] = trace_id
            while len(self.trace_ids) > MAX_TRACE_IDS:
                self.trace_ids.popitem(last=False)

    def delete_trace_id(self) -> str|None:
        """Stop tracking the current thread's trace ID and return it."""
        with self._trace_lock:
            return self.trace_ids.pop(threading.get_ident(), None)

    def current_trace_id(self) -> str|None:
        with self._trace_lock:
            return self.trace_ids.get(threading.get_ident())

    def write_entry(self, level: int, message: Any) -> None:
        entry = Entry(timestamp=datetime.datetime.now(datetime.timezone.utc),
                      severity=level_severity(level),
                      payload=message)
        trace_id = self.current_trace_id()
        merged_labels = {} if trace_id is None else {"traceId": trace_id}
        if self.labels is not None:
            merged_labels = {**self.labels, **merged_labels}
        self.writer.write_entries(entry, log_name=self.log_name, resource=self.resource,
                                  labels=merged_labels)


# loggers whose records must not be shipped or writing them would log again
EXCLUDED_LOGGERS = ("brettgcp", "googleapiclient", "google.auth", "google_auth_httplib2",
                    "urllib3", "httplib2")

_STDLIB_SEVERITIES = [
    (logging.CRITICAL, "CRITICAL"),
    (logging.ERROR, "ERROR"),
    (logging.WARNING, "WARNING"),
    (logging.INFO, "INFO"),
    (logging.DEBUG, "DEBUG"),
]


def record_severity(levelno: int) -> str:
    for threshold, severity in _STDLIB_SEVERITIES:
        if levelno >= threshold:
            return severity
    return "DEFAULT"


class CloudLoggingHandler(logging.Handler):
    """
    A logging.Handler writing each record as an entry.

        handler = CloudLoggingHandler(AsyncWriter(), "my_app_log")
        logging.getLogger().addHandler(handler)
    """

    def __init__(self, writer, log_name: str = "python", resource: Resource|None = None,
                 labels: dict|None = None, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.writer = writer
        self.log_name = log_name
        self.resource = resource if resource is not None else Resource("global")
        self.labels = labels

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        for excluded in EXCLUDED_LOGGERS:
            if name == excluded or name.startswith(excluded + "."):
                return False
        return super().filter(record)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = Entry(timestamp=datetime.datetime.fromtimestamp(record.created, datetime.timezone.utc),
                          severity=record_severity(record.levelno),
                          payload=self.format(record),
                          sourceLocation={"file": record.pathname, "line": str(record.lineno),
                                          "function": record.funcName})
            labels = dict(self.labels or {})
            labels["python_logger"] = record.name
            self.writer.write_entries(entry, log_name=self.log_name, resource=self.resource, labels=labels)
        except Exception:
            self.handleError(record)
