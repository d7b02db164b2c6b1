import logging
from datetime import datetime, timezone

from casewatch.recorder import CASE_OPENING, CURRENCY_TRANSACTION, ITEM_SELECTION, OperationRecorder

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, value=100.0):
        self.value = value

    def __call__(self):
        return self.value

    def advance(self, seconds):
        self.value += seconds


class ListSink:
    def __init__(self):
        self.records = []

    def append(self, record):
        self.records.append(record)


class BrokenSink:
    def append(self, record):
        raise RuntimeError("buffer exploded")


def _recorder(sink=None, clock=None):
    return OperationRecorder(sink or ListSink(), clock=clock or FakeClock(), now=lambda: NOW)


def test_record_operation_measures_duration_with_two_decimals():
    sink = ListSink()
    clock = FakeClock()
    recorder = _recorder(sink, clock)

    start = recorder.start()
    clock.advance(0.0123456)
    record = recorder.record_operation("db_insert", start, True, {"record_count": 3})

    assert record is sink.records[0]
    assert record.duration_ms == 12.35
    assert record.timestamp == NOW
    assert record.success is True
    assert record.context == {"record_count": 3}


def test_record_operation_drops_none_context_values():
    sink = ListSink()
    recorder = _recorder(sink)

    recorder.record_operation("op", recorder.start(), True, {"user_id": "u1", "error_message": None})

    assert sink.records[0].context == {"user_id": "u1"}


def test_recording_failure_never_raises(caplog):
    recorder = _recorder(BrokenSink())

    with caplog.at_level(logging.ERROR):
        result = recorder.record_operation("case_opening", recorder.start(), True)

    assert result is None
    assert "Failed to record case_opening operation" in caplog.text


def test_case_opening_helpers_share_record_shape():
    sink = ListSink()
    recorder = _recorder(sink)

    start = recorder.record_case_opening_start("user-1", "case-1")
    recorder.record_case_opening_success(start, "user-1", "case-1", "rare", 750, "case_abc")
    recorder.record_case_opening_failure(start, "user-1", "case-1", "No items found for rarity: epic")

    success, failure = sink.records
    assert success.operation == failure.operation == CASE_OPENING
    assert success.success is True
    assert success.case_id == "case-1"
    assert success.rarity == "rare"
    assert success.context["currency_awarded"] == 750
    assert success.context["opening_id"] == "case_abc"
    assert failure.success is False
    assert failure.error_message == "No items found for rarity: epic"


def test_selection_transaction_and_database_helpers():
    sink = ListSink()
    recorder = _recorder(sink)
    start = recorder.start()

    recorder.record_item_selection(start, "case-1", "epic", 12)
    recorder.record_currency_transaction(start, "user-1", "debit", 250, False, "insufficient funds")
    recorder.record_database_operation("insert", start, True, record_count=5)

    selection, transaction, database = sink.records
    assert selection.operation == ITEM_SELECTION
    assert selection.context == {"case_type_id": "case-1", "selected_rarity": "epic", "item_pool_size": 12}
    assert transaction.operation == CURRENCY_TRANSACTION
    assert transaction.success is False
    assert transaction.context["transaction_type"] == "debit"
    assert transaction.context["amount"] == 250
    assert database.operation == "db_insert"
    assert database.context == {"record_count": 5}


def test_failure_is_logged_at_error_level(caplog):
    recorder = _recorder()

    with caplog.at_level(logging.INFO, logger="casewatch.recorder"):
        recorder.record_operation("currency_transaction", recorder.start(), False, {"amount": 10})

    assert any(
        entry.levelno == logging.ERROR and "currency_transaction failed" in entry.getMessage()
        for entry in caplog.records
    )


def test_log_helpers_do_not_touch_records(caplog):
    sink = ListSink()
    recorder = _recorder(sink)

    with caplog.at_level(logging.INFO, logger="casewatch.recorder"):
        recorder.log_info("flush", "starting", {"batch": 1})
        recorder.log_warning("flush", "slow store")
        recorder.log_critical_error("flush", ValueError("boom"), {"batch": 1})

    assert sink.records == []
    assert "slow store" in caplog.text
    assert any(entry.levelno == logging.CRITICAL for entry in caplog.records)
