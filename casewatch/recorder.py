"""Turns timed operations into OperationRecords and diagnostic log lines."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from .models import OperationRecord

logger = logging.getLogger(__name__)

CASE_OPENING = "case_opening"
ITEM_SELECTION = "item_selection"
CURRENCY_TRANSACTION = "currency_transaction"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordSink(Protocol):
    def append(self, record: OperationRecord) -> None:
        """Accept one record."""


class OperationRecorder:
    """
    Measures operations and hands the resulting records to a sink.

    `clock` is a monotonic timer used for durations (milliseconds are derived
    from its seconds); `now` stamps the wall-clock timestamp on each record.
    Recording never raises: a broken sink is logged and the business
    operation carries on.
    """

    def __init__(
        self,
        sink: RecordSink,
        clock: Callable[[], float] = time.perf_counter,
        now: Callable[[], datetime] = utc_now,
    ):
        self.sink = sink
        self.clock = clock
        self.now = now

    def start(self) -> float:
        return self.clock()

    def record_operation(
        self,
        operation: str,
        start_time: float,
        success: bool,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Optional[OperationRecord]:
        try:
            duration_ms = round((self.clock() - start_time) * 1000, 2)
            clean_context = {key: value for key, value in (context or {}).items() if value is not None}
            record = OperationRecord(
                timestamp=self.now(),
                operation=operation,
                duration_ms=duration_ms,
                success=success,
                context=clean_context,
            )
            self.sink.append(record)
        except Exception:
            logger.exception("Failed to record %s operation", operation)
            return None

        if success:
            logger.info("%s completed in %.2fms", operation, duration_ms, extra={"context": clean_context})
        else:
            logger.error("%s failed after %.2fms", operation, duration_ms, extra={"context": clean_context})
        return record

    def record_case_opening_start(self, user_id: str, case_id: str) -> float:
        start_time = self.start()
        logger.info(
            "Case opening started",
            extra={"context": {"user_id": user_id, "case_type_id": case_id}},
        )
        return start_time

    def record_case_opening_success(
        self,
        start_time: float,
        user_id: str,
        case_id: str,
        rarity: str,
        currency_awarded: int,
        opening_id: str,
    ) -> Optional[OperationRecord]:
        return self.record_operation(
            CASE_OPENING,
            start_time,
            True,
            {
                "user_id": user_id,
                "case_type_id": case_id,
                "item_rarity": rarity,
                "currency_awarded": currency_awarded,
                "opening_id": opening_id,
            },
        )

    def record_case_opening_failure(
        self,
        start_time: float,
        user_id: str,
        case_id: str,
        error_message: str,
    ) -> Optional[OperationRecord]:
        return self.record_operation(
            CASE_OPENING,
            start_time,
            False,
            {"user_id": user_id, "case_type_id": case_id, "error_message": error_message},
        )

    def record_item_selection(
        self,
        start_time: float,
        case_id: str,
        selected_rarity: str,
        item_pool_size: int,
    ) -> Optional[OperationRecord]:
        return self.record_operation(
            ITEM_SELECTION,
            start_time,
            True,
            {
                "case_type_id": case_id,
                "selected_rarity": selected_rarity,
                "item_pool_size": item_pool_size,
            },
        )

    def record_currency_transaction(
        self,
        start_time: float,
        user_id: str,
        transaction_type: str,
        amount: int,
        success: bool,
        error_message: Optional[str] = None,
    ) -> Optional[OperationRecord]:
        if transaction_type not in ("debit", "credit"):
            logger.warning("Unexpected currency transaction type %r", transaction_type)
        return self.record_operation(
            CURRENCY_TRANSACTION,
            start_time,
            success,
            {
                "user_id": user_id,
                "transaction_type": transaction_type,
                "amount": amount,
                "error_message": error_message,
            },
        )

    def record_database_operation(
        self,
        operation: str,
        start_time: float,
        success: bool,
        record_count: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> Optional[OperationRecord]:
        return self.record_operation(
            f"db_{operation}",
            start_time,
            success,
            {"record_count": record_count, "error_message": error_message},
        )

    def log_critical_error(
        self,
        operation: str,
        error: BaseException,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        logger.critical(
            "Critical error in %s: %s",
            operation,
            error,
            exc_info=(type(error), error, error.__traceback__),
            extra={"context": _log_context(operation, context)},
        )

    def log_warning(self, operation: str, message: str, context: Optional[Mapping[str, Any]] = None) -> None:
        logger.warning("%s: %s", operation, message, extra={"context": _log_context(operation, context)})

    def log_info(self, operation: str, message: str, context: Optional[Mapping[str, Any]] = None) -> None:
        logger.info("%s: %s", operation, message, extra={"context": _log_context(operation, context)})


def _log_context(operation: str, context: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return {"operation": operation, **dict(context or {})}
