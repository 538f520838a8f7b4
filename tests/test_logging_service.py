import json
import logging

import pytest

from qtshot.logging_service import CaptureLogService


@pytest.fixture()
def log_service():
    svc = CaptureLogService(capacity=5)
    svc.attach()
    yield svc
    svc.detach()


def test_captures_records_under_package_logger(log_service):
    logging.getLogger("qtshot.core.store").info("Snapshot written: x")
    logging.getLogger("unrelated").info("ignored")
    messages = [e.message for e in log_service.recent()]
    assert messages == ["Snapshot written: x"]


def test_capacity_eviction(log_service):
    for i in range(10):
        logging.getLogger("qtshot.cap").info("M%d", i)
    recents = log_service.recent()
    assert len(recents) == 5
    assert recents[0].message == "M5"


def test_filtering(log_service):
    logging.getLogger("qtshot.core.idle").debug("draining")
    logging.getLogger("qtshot.core.recorder").error("render failed")
    assert [e.message for e in log_service.render_failures()] == ["render failed"]
    assert all(e.level == "DEBUG" for e in log_service.filter(level="DEBUG"))


def test_export_jsonl(log_service, tmp_path):
    logging.getLogger("qtshot.x").warning("careful")
    out = tmp_path / "log.jsonl"
    assert log_service.export_jsonl(str(out)) == 1
    row = json.loads(out.read_text(encoding="utf-8").splitlines()[0])
    assert row["level"] == "WARNING" and row["message"] == "careful"


def test_detach_stops_capture():
    svc = CaptureLogService()
    with svc:
        logging.getLogger("qtshot").warning("inside")
    logging.getLogger("qtshot").warning("outside")
    assert [e.message for e in svc.recent()] == ["inside"]


def test_export_keeps_exception_text(log_service, tmp_path):
    try:
        raise RuntimeError("gpu lost")
    except RuntimeError:
        logging.getLogger("qtshot.core.recorder").exception("render failed")
    logging.getLogger("qtshot.core.store").info("no traceback")
    out = tmp_path / "log.jsonl"
    log_service.export_jsonl(str(out))
    rows = [json.loads(line) for line in out.read_text(encoding="utf-8").splitlines()]
    assert "RuntimeError: gpu lost" in rows[0]["exc_text"]
    assert rows[1]["exc_text"] is None
