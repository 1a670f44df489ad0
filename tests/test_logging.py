import datetime
import logging
import threading
import time

import pytest

import brettgcp.logging.ops as log_ops
from brettgcp.logging import (Project, Entry, Resource, Logger, AsyncWriter,
                              CloudLoggingHandler, severity_name, log_path)

from conftest import PROJECT, respond

UTC = datetime.timezone.utc

class FakeWriter():
    """Records write_entries calls the way Project/AsyncWriter receive them."""
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def write_entries(self, entries, log_name=None, resource=None, labels=None):
        entries = [entries] if isinstance(entries, Entry) else list(entries)
        if self.fail:
            self.fail = False
            raise RuntimeError("write failed")
        self.calls.append({"entries": entries, "log_name": log_name,
                           "resource": resource, "labels": labels})
        return True

@pytest.fixture()
def svc(mock_service):
    return mock_service(log_ops)

def test_severity_names():
    assert severity_name("warning") == "WARNING"
    assert severity_name(500) == "ERROR"
    assert severity_name(None) == "DEFAULT"
    with pytest.raises(ValueError):
        severity_name("LOUD")
    with pytest.raises(ValueError):
        severity_name(550)

def test_entry_severity_predicates():
    e = Entry(severity="error", payload="boom")
    assert e.severity == "ERROR"
    assert e.is_error()
    assert not e.is_warning()
    assert e.at_least("warning")
    assert e.at_least(500)
    assert not e.at_least("CRITICAL")

def test_log_path_encodes_name():
    assert log_path("my/log", PROJECT) == f"projects/{PROJECT}/logs/my%2Flog"
    assert log_path(f"projects/{PROJECT}/logs/x", "other") == f"projects/{PROJECT}/logs/x"

def test_entry_payload_kinds():
    assert Entry(payload="text").to_base()["textPayload"] == "text"
    assert Entry(payload={"a": 1}).to_base()["jsonPayload"] == {"a": 1}
    proto = {"@type": "type.googleapis.com/google.appengine.logging.v1.RequestLog"}
    assert Entry(payload=proto).to_base()["protoPayload"] == proto

def test_entries_list(svc):
    method = respond(svc, "entries", "list", response={
        "entries": [{
            "logName": f"projects/{PROJECT}/logs/my%2Flog",
            "textPayload": "hi",
            "severity": "ERROR",
            "timestamp": "2016-01-01T00:00:00.123456789Z",
            "resource": {"type": "global"},
            "someNewField": True,
        }],
        "nextPageToken": "t"})
    entries = Project().entries(filter="severity>=ERROR", max=10)
    assert method.call_args.kwargs == {"body": {"resourceNames": [f"projects/{PROJECT}"],
                                                "filter": "severity>=ERROR", "pageSize": 10}}
    assert entries.token == "t"
    e = entries[0]
    assert e.log_name == "my/log"
    assert e.payload == "hi"
    assert e.is_error()
    assert e.resource == Resource("global")
    assert e.timestamp == datetime.datetime(2016, 1, 1, 0, 0, 0, 123456, tzinfo=UTC)

def test_write_entries_body(svc):
    method = respond(svc, "entries", "write", response={})
    logging_ = Project()
    entry = logging_.entry(payload="Job started.", severity="info",
                           timestamp=datetime.datetime(2016, 1, 1, tzinfo=UTC))
    assert logging_.write_entries(entry, log_name="my_app_log",
                                  resource=logging_.resource("gae_app", module_id="1"),
                                  labels={"env": "production"})
    assert method.call_args.kwargs == {"body": {
        "logName": f"projects/{PROJECT}/logs/my_app_log",
        "resource": {"type": "gae_app", "labels": {"module_id": "1"}},
        "labels": {"env": "production"},
        "entries": [{"severity": "INFO", "textPayload": "Job started.",
                     "timestamp": "2016-01-01T00:00:00.000000Z"}],
    }}

def test_logs_and_delete(svc):
    respond(svc, "projects", "logs", "list",
            response={"logNames": [f"projects/{PROJECT}/logs/syslog", f"projects/{PROJECT}/logs/a%2Fb"]})
    delete = respond(svc, "projects", "logs", "delete", response={})
    assert list(Project().logs()) == ["syslog", "a/b"]
    Project().delete_log("a/b")
    assert delete.call_args.kwargs == {"logName": f"projects/{PROJECT}/logs/a%2Fb"}

def test_create_sink(svc):
    method = respond(svc, "projects", "sinks", "create", response={
        "name": "errors", "destination": "storage.googleapis.com/my-bucket",
        "filter": "severity>=ERROR", "writerIdentity": "serviceAccount:p123@gcp-sa-logging.iam.gserviceaccount.com"})
    sink = Project().create_sink("errors", "storage.googleapis.com/my-bucket",
                                 filter="severity>=ERROR", unique_writer_identity=True)
    assert method.call_args.kwargs == {
        "parent": f"projects/{PROJECT}",
        "body": {"name": "errors", "destination": "storage.googleapis.com/my-bucket",
                 "filter": "severity>=ERROR"},
        "uniqueWriterIdentity": True,
    }
    assert sink.path == f"projects/{PROJECT}/sinks/errors"
    assert sink.writerIdentity.startswith("serviceAccount:")

def test_sink_save(svc):
    respond(svc, "projects", "sinks", "get", response={"name": "errors", "destination": "d1"})
    update = respond(svc, "projects", "sinks", "update",
                     response={"name": "errors", "destination": "d2"})
    sink = Project().sink("errors")
    sink.destination = "d2"
    sink.save()
    assert update.call_args.kwargs == {"sinkName": f"projects/{PROJECT}/sinks/errors",
                                       "body": {"name": "errors", "destination": "d2"}}
    assert sink.destination == "d2"

def test_metric_create_and_delete(svc):
    create = respond(svc, "projects", "metrics", "create",
                     response={"name": "errors", "filter": "severity>=ERROR"})
    delete = respond(svc, "projects", "metrics", "delete", response={})
    metric = Project().create_metric("errors", "severity>=ERROR", description="Errors")
    assert create.call_args.kwargs["body"] == {"name": "errors", "filter": "severity>=ERROR",
                                               "description": "Errors"}
    assert metric.delete()
    assert delete.call_args.kwargs == {"metricName": f"projects/{PROJECT}/metrics/errors"}

def test_logger_level_threshold():
    writer = FakeWriter()
    logger = Logger(writer, "app", Resource("global"), {"env": "prod"})
    logger.level = "warn"
    assert logger.info("skipped")
    assert not writer.calls
    assert not logger.is_info()
    assert logger.is_error()
    logger.error(lambda: "computed")
    assert len(writer.calls) == 1
    call = writer.calls[0]
    assert call["log_name"] == "app"
    assert call["labels"] == {"env": "prod"}
    assert call["entries"][0].severity == "ERROR"
    assert call["entries"][0].payload == "computed"

def test_logger_level_names():
    logger = Logger(FakeWriter(), "app")
    logger.level = "WARNING"
    assert logger.level == 2
    logger.sev_threshold = "fatal"
    assert logger.level == 4
    with pytest.raises(ValueError):
        logger.level = "loud"

def test_logger_unknown_always_written():
    writer = FakeWriter()
    logger = Logger(writer, "app")
    logger.level = "fatal"
    logger.unknown("odd")
    logger.add("nonsense", None, "from progname")
    assert [c["entries"][0].severity for c in writer.calls] == ["DEFAULT", "DEFAULT"]
    assert writer.calls[1]["entries"][0].payload == "from progname"

def test_logger_trace_ids_per_thread():
    writer = FakeWriter()
    logger = Logger(writer, "app", labels={"env": "prod"})
    logger.add_trace_id("105445aa7843bc8bf206b120001000")
    logger.info("in request")

    def other():
        logger.info("other thread")
    t = threading.Thread(target=other)
    t.start()
    t.join()

    assert writer.calls[0]["labels"] == {"env": "prod", "traceId": "105445aa7843bc8bf206b120001000"}
    assert writer.calls[1]["labels"] == {"env": "prod"}
    assert logger.delete_trace_id() == "105445aa7843bc8bf206b120001000"
    assert logger.current_trace_id() is None

def test_logger_trace_ids_drop_oldest(monkeypatch):
    monkeypatch.setattr("brettgcp.logging.logger.MAX_TRACE_IDS", 3)
    logger = Logger(FakeWriter(), "app")
    finished = threading.Event()
    threads = []
    # requests that never delete their trace id, each on its own live thread
    for i in range(4):
        added = threading.Event()
        def request(trace_id=f"trace-{i}", added=added):
            logger.add_trace_id(trace_id)
            added.set()
            finished.wait(5)
        t = threading.Thread(target=request)
        t.start()
        threads.append(t)
        assert added.wait(5)
    finished.set()
    for t in threads:
        t.join()
    assert list(logger.trace_ids.values()) == ["trace-1", "trace-2", "trace-3"]

def test_async_writer_batches_by_key():
    writer = FakeWriter()
    aw = AsyncWriter(writer, max_batch_size=2, interval=60)
    entries = [Entry(payload=f"e{i}") for i in range(3)]
    aw.write_entries(entries, log_name="a")
    aw.write_entries(Entry(payload="e3"), log_name="b")
    assert aw.stop(timeout=5)
    assert aw.is_stopped()
    batches = [([e.payload for e in c["entries"]], c["log_name"]) for c in writer.calls]
    assert batches == [(["e0", "e1"], "a"), (["e2"], "a"), (["e3"], "b")]

def test_async_writer_flush():
    writer = FakeWriter()
    aw = AsyncWriter(writer, interval=60)
    aw.write_entries(Entry(payload="x"), log_name="a", labels={"k": "v"})
    assert aw.is_running()
    assert aw.flush(timeout=5)
    assert writer.calls[0]["labels"] == {"k": "v"}
    assert aw.queued == 0
    aw.stop(timeout=5)

def test_async_writer_suspend_resume():
    writer = FakeWriter()
    aw = AsyncWriter(writer, interval=60)
    aw.start()
    assert aw.suspend()
    aw.write_entries(Entry(payload="held"), log_name="a")
    assert not aw.flush(timeout=1)
    assert not writer.calls
    assert aw.queued == 1
    assert aw.resume()
    assert aw.flush(timeout=5)
    assert len(writer.calls) == 1
    aw.stop(timeout=5)

def test_async_writer_survives_failed_write():
    writer = FakeWriter(fail=True)
    aw = AsyncWriter(writer, interval=60)
    aw.write_entries(Entry(payload="lost"), log_name="a")
    assert aw.flush(timeout=5)
    assert isinstance(aw.last_exception, RuntimeError)
    aw.write_entries(Entry(payload="kept"), log_name="a")
    assert aw.flush(timeout=5)
    assert [c["entries"][0].payload for c in writer.calls] == ["kept"]
    aw.stop(timeout=5)

def test_async_writer_logger():
    writer = FakeWriter()
    aw = AsyncWriter(writer, interval=60)
    aw.logger("app", Resource("global")).warn("careful")
    aw.stop(timeout=5)
    assert writer.calls[0]["entries"][0].severity == "WARNING"
    assert writer.calls[0]["resource"] == Resource("global")
    aw.logger("app", Resource("gce_instance")).info("placed")
    aw.logger("default").info("anywhere")
    aw.stop(timeout=5)
    assert [c["resource"] for c in writer.calls[1:]] == [Resource("gce_instance"), Resource("global")]

def test_async_writer_blocks_when_queue_full():
    writer = FakeWriter()
    aw = AsyncWriter(writer, max_queue_size=2, max_batch_size=2, interval=60)
    aw.start()
    assert aw.suspend()
    aw.write_entries([Entry(payload="a"), Entry(payload="b")], log_name="a")
    queued = threading.Event()

    def producer():
        aw.write_entries(Entry(payload="c"), log_name="a")
        queued.set()
    t = threading.Thread(target=producer)
    t.start()
    assert not queued.wait(0.5)
    assert aw.queued == 2
    assert aw.resume()
    assert queued.wait(5)
    t.join()
    assert aw.flush(timeout=5)
    assert [[e.payload for e in c["entries"]] for c in writer.calls] == [["a", "b"], ["c"]]
    aw.stop(timeout=5)

class TimedWriter(FakeWriter):
    """FakeWriter that notes when each batch arrived."""
    def __init__(self):
        super().__init__()
        self.times = []
        self.sent = threading.Semaphore(0)

    def write_entries(self, entries, log_name=None, resource=None, labels=None):
        super().write_entries(entries, log_name, resource, labels)
        self.times.append(time.monotonic())
        self.sent.release()
        return True

def test_async_writer_sends_after_interval():
    writer = TimedWriter()
    aw = AsyncWriter(writer, max_batch_size=100, interval=0.2)
    queued_at = time.monotonic()
    aw.write_entries(Entry(payload="lonely"), log_name="a")
    assert writer.sent.acquire(timeout=5)
    assert writer.times[0] - queued_at >= 0.2
    assert writer.calls[0]["entries"][0].payload == "lonely"
    assert aw.is_running()
    aw.stop(timeout=5)

def test_async_writer_interval_counts_from_queue_time():
    writer = TimedWriter()
    aw = AsyncWriter(writer, max_batch_size=100, interval=1.0)
    # different logs so they go out as two batches
    aw.write_entries(Entry(payload="first"), log_name="a")
    aw.write_entries(Entry(payload="second"), log_name="b")
    assert writer.sent.acquire(timeout=5)
    assert writer.sent.acquire(timeout=5)
    # the second batch is just as old, it doesn't wait another interval
    assert writer.times[1] - writer.times[0] < 0.5
    assert [c["log_name"] for c in writer.calls] == ["a", "b"]
    aw.stop(timeout=5)

def test_async_writer_restart_while_stopping():
    gate = threading.Event()

    class SlowWriter(FakeWriter):
        def write_entries(self, entries, log_name=None, resource=None, labels=None):
            gate.wait(5)
            return super().write_entries(entries, log_name, resource, labels)
    writer = SlowWriter()
    aw = AsyncWriter(writer, interval=60)
    aw.write_entries(Entry(payload="first"), log_name="a")
    assert not aw.flush(timeout=0.2)
    # the thread is stuck sending so stop() can't finish
    assert not aw.stop(timeout=0.2)
    threading.Timer(0.2, gate.set).start()
    aw.write_entries(Entry(payload="second"), log_name="a")
    assert aw.is_running()
    assert aw.flush(timeout=5)
    assert [c["entries"][0].payload for c in writer.calls] == ["first", "second"]
    assert aw.stop(timeout=5)

def test_cloud_logging_handler():
    writer = FakeWriter()
    handler = CloudLoggingHandler(writer, "python", labels={"env": "test"})
    app_logger = logging.getLogger("myapp.handler_test")
    app_logger.setLevel(logging.DEBUG)
    app_logger.propagate = False
    app_logger.addHandler(handler)
    lib_logger = logging.getLogger("brettgcp.handler_test")
    lib_logger.addHandler(handler)
    try:
        app_logger.warning("hi %s", "there")
        lib_logger.error("not shipped")
    finally:
        app_logger.removeHandler(handler)
        lib_logger.removeHandler(handler)
    assert len(writer.calls) == 1
    call = writer.calls[0]
    entry = call["entries"][0]
    assert entry.severity == "WARNING"
    assert entry.payload == "hi there"
    assert entry.sourceLocation["function"] == "test_cloud_logging_handler"
    assert call["labels"] == {"env": "test", "python_logger": "myapp.handler_test"}
