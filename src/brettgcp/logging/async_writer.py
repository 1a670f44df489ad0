"""
Background batching writer for log entries.

write_entries() only queues; a daemon thread sends the queue in batches through
a blocking writer (the logging Project).  A batch is sent once max_batch_size
entries are waiting, once the oldest queued entry is interval seconds old, or
when flush()/stop() asks for it.  Consecutive entries for the same
log_name/resource/labels are grouped into one entries.write call.

Delivery is best effort: a failed write is logged and dropped.
"""
from collections import deque
from typing import List
import atexit
import logging
import threading
import time

from .entry import Entry, Resource
from .logger import Logger

logger = logging.getLogger(__name__)

RUNNING = "running"
SUSPENDED = "suspended"
STOPPED = "stopped"


class AsyncWriter():

    def __init__(self, writer=None, max_queue_size: int = 10000,
                 max_batch_size: int = 500, interval: float = 5.0) -> None:
        """
        writer defaults to a logging Project for the default project.
        write_entries() blocks once max_queue_size entries are waiting.
        """
        if max_queue_size < 1 or max_batch_size < 1:
            raise ValueError("max_queue_size and max_batch_size must be positive")
        if writer is None:
            from .project import Project
            writer = Project()
        self.writer = writer
        self.max_queue_size = max_queue_size
        self.max_batch_size = max_batch_size
        self.interval = interval
        self.last_exception: Exception|None = None
        self._queue: deque = deque()
        self._inflight = 0
        self._flush_requested = False
        self._cond = threading.Condition()
        self._thread: threading.Thread|None = None
        self._state = STOPPED

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{self._state}:{len(self._queue)} queued"

    @property
    def state(self) -> str:
        return self._state

    def is_running(self) -> bool:
        return self._state == RUNNING

    def is_suspended(self) -> bool:
        return self._state == SUSPENDED

    def is_stopped(self) -> bool:
        return self._state == STOPPED

    @property
    def queued(self) -> int:
        with self._cond:
            return len(self._queue)

    def logger(self, log_name: str, resource: Resource|None = None, labels: dict|None = None) -> Logger:
        """A Logger that writes through this writer."""
        return Logger(self, log_name, resource if resource is not None else Resource("global"), labels)

    def start(self) -> bool:
        """
        Start the background thread.  Called implicitly by write_entries().
        Returns False if it was already running.
        A thread still finishing a stop() is waited for so nothing queued
        after its last look at the queue is left behind.
        """
        with self._cond:
            stopping = self._thread
            if stopping is not None and stopping.is_alive() and self._state != STOPPED:
                return False
        if stopping is not None and stopping is not threading.current_thread():
            stopping.join()
        with self._cond:
            if self._thread not in (None, stopping):
                # another caller got here first
                return False
            self._state = RUNNING
            self._thread = threading.Thread(target=self._run, name="brettgcp-log-writer", daemon=True)
            self._thread.start()
        atexit.register(self.stop)
        return True

    def stop(self, timeout: float|None = None) -> bool:
        """
        Send whatever is queued and stop the thread.
        Returns True once the thread has exited, False if timeout passed first.
        """
        with self._cond:
            thread = self._thread
            if thread is None:
                return True
            self._state = STOPPED
            self._cond.notify_all()
        thread.join(timeout)
        if thread.is_alive():
            return False
        with self._cond:
            if self._thread is thread:
                self._thread = None
        atexit.unregister(self.stop)
        return True

    def suspend(self) -> bool:
        """Stop sending but keep queueing.  Entries queue up to max_queue_size."""
        with self._cond:
            if self._state != RUNNING:
                return False
            self._state = SUSPENDED
            self._cond.notify_all()
            return True

    def resume(self) -> bool:
        with self._cond:
            if self._state != SUSPENDED:
                return False
            self._state = RUNNING
            self._cond.notify_all()
            return True

    def flush(self, timeout: float|None = None) -> bool:
        """
        Send everything queued now and wait for it to go out.
        Returns False if timeout passed first or the writer is suspended.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            if self._state == SUSPENDED:
                return False
            self._flush_requested = True
            self._cond.notify_all()
            while self._queue or self._inflight:
                if self._thread is None or not self._thread.is_alive():
                    return False
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def write_entries(self, entries: Entry|List[Entry], log_name: str|None = None,
                      resource: Resource|None = None, labels: dict|None = None) -> bool:
        """
        Queue entries for the background thread.  Same signature as the blocking writer.
        """
        elist = [entries] if isinstance(entries, Entry) else list(entries)
        if not elist:
            return True
        if self._state == STOPPED or self._thread is None or not self._thread.is_alive():
            self.start()
        key = (log_name, resource, labels)
        with self._cond:
            for e in elist:
                while len(self._queue) >= self.max_queue_size and self._state != STOPPED:
                    self._cond.wait()
                self._queue.append((key, e, time.monotonic()))
            self._cond.notify_all()
        return True

    def _ready(self) -> bool:
        if not self._queue:
            return False
        if self._state == STOPPED or self._flush_requested:
            return True
        if len(self._queue) >= self.max_batch_size:
            return True
        return time.monotonic() - self._oldest() >= self.interval

    def _wait_time(self) -> float|None:
        if not self._queue or self._state == SUSPENDED:
            return None
        return max(0.0, self.interval - (time.monotonic() - self._oldest()))

    def _oldest(self) -> float:
        # queue time of the entry at the head, the interval is measured from it
        return self._queue[0][2]

    def _take_batch(self) -> tuple[tuple, List[Entry]]:
        key, first, _ = self._queue.popleft()
        batch = [first]
        while self._queue and len(batch) < self.max_batch_size and self._queue[0][0] == key:
            batch.append(self._queue.popleft()[1])
        return key, batch

    def _run(self) -> None:
        while True:
            with self._cond:
                while not (self._state != SUSPENDED and self._ready()):
                    if self._state == STOPPED and not self._queue:
                        self._flush_requested = False
                        self._cond.notify_all()
                        return
                    self._cond.wait(self._wait_time())
                key, batch = self._take_batch()
                self._inflight += 1
                # room in the queue again
                self._cond.notify_all()
            try:
                self._send(key, batch)
            finally:
                with self._cond:
                    self._inflight -= 1
                    if not self._queue:
                        self._flush_requested = False
                    self._cond.notify_all()

    def _send(self, key: tuple, batch: List[Entry]) -> None:
        log_name, resource, labels = key
        try:
            self.writer.write_entries(batch, log_name=log_name, resource=resource, labels=labels)
        except Exception as e:
            # the thread has to survive a failed write, report it and move on
            self.last_exception = e
            logger.exception("failed to write %d log entries to %s", len(batch), log_name)
