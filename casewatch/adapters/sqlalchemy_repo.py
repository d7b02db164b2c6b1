"""SQLAlchemy adapters for the metric store and the case catalog."""

import json
import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceError
from ..models import CaseDefinition, Item, OperationRecord, Rarity, WeightedItem
from ..ports import RecordFilter

logger = logging.getLogger(__name__)

# Context keys stored in dedicated columns; everything else goes to `metadata`.
PROMOTED_COLUMNS = ("user_id", "case_type_id", "item_rarity", "currency_awarded", "error_message")

_RECORD_COLUMNS = (
    "timestamp, operation, duration_ms, success, "
    "user_id, case_type_id, item_rarity, currency_awarded, error_message, metadata"
)

_SESSION_LOCK_KEY = "casewatch.session_lock"


class SQLAlchemyMetricStore:
    """
    Persists operation records in the `case_opening_metrics` table.

    The background flusher and request threads may share one Session with the
    catalog reader, so statements run under the Session's lock.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert_records(self, records: Sequence[OperationRecord]) -> None:
        if not records:
            return
        _execute(
            self.db,
            f"""
            INSERT INTO case_opening_metrics ({_RECORD_COLUMNS})
            VALUES (:timestamp, :operation, :duration_ms, :success,
                    :user_id, :case_type_id, :item_rarity, :currency_awarded,
                    :error_message, :metadata)
            """,
            [_record_to_row(record) for record in records],
            f"Failed to insert {len(records)} metrics",
            commit=True,
        )

    def query_records(self, record_filter: RecordFilter) -> Sequence[OperationRecord]:
        clauses = []
        params: Dict[str, Any] = {}
        if record_filter.operation is not None:
            clauses.append("operation = :operation")
            params["operation"] = record_filter.operation
        if record_filter.since is not None:
            clauses.append("timestamp >= :since")
            params["since"] = _to_db_timestamp(record_filter.since)
        if record_filter.until is not None:
            clauses.append("timestamp <= :until")
            params["until"] = _to_db_timestamp(record_filter.until)
        if record_filter.case_id is not None:
            clauses.append("case_type_id = :case_id")
            params["case_id"] = record_filter.case_id
        if record_filter.success is not None:
            clauses.append("success = :success")
            params["success"] = record_filter.success

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = _execute(
            self.db,
            f"SELECT {_RECORD_COLUMNS} FROM case_opening_metrics {where}",
            params,
            "Failed to query metrics",
        )
        return [_row_to_record(row) for row in rows]

    def fetch_recent_records(self, limit: int) -> Sequence[OperationRecord]:
        rows = _execute(
            self.db,
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM case_opening_metrics
            ORDER BY timestamp DESC
            LIMIT :limit
            """,
            {"limit": limit},
            "Failed to fetch recent metrics",
        )
        return [_row_to_record(row) for row in rows]


class SQLAlchemyCatalogReader:
    """Reads case types and item pools from the catalog tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_case_definition(self, case_id: str, include_inactive: bool = False) -> Optional[CaseDefinition]:
        params: Dict[str, Any] = {"case_id": case_id}
        active_clause = ""
        if not include_inactive:
            active_clause = "AND is_active = :active"
            params["active"] = True

        rows = _execute(
            self.db,
            f"""
            SELECT id, name, price, rarity_distribution, is_active
            FROM case_types
            WHERE id = :case_id {active_clause}
            """,
            params,
            f"Failed to load case type {case_id}",
        )
        if not rows:
            return None

        row = rows[0]
        return CaseDefinition(
            id=str(row.id),
            name=row.name,
            price=int(row.price),
            rarity_distribution=_parse_distribution(row.rarity_distribution),
            is_active=bool(row.is_active),
        )

    def get_weighted_item_pool(self, case_id: str) -> Sequence[WeightedItem]:
        rows = _execute(
            self.db,
            """
            SELECT i.id, i.name, i.rarity, i.base_value, i.category,
                   p.weight, p.value_multiplier
            FROM case_item_pools p
            JOIN tarkov_items i ON i.id = p.item_id
            WHERE p.case_type_id = :case_id AND i.is_active = :active
            """,
            {"case_id": case_id, "active": True},
            f"Failed to load item pool for case type {case_id}",
        )

        pool: List[WeightedItem] = []
        for row in rows:
            try:
                rarity = Rarity(row.rarity)
            except ValueError:
                logger.warning("Skipping item %s with unknown rarity %r", row.id, row.rarity)
                continue
            pool.append(
                WeightedItem(
                    item=Item(
                        id=str(row.id),
                        name=row.name,
                        rarity=rarity,
                        base_value=float(row.base_value),
                        category=row.category,
                    ),
                    weight=float(row.weight),
                    value_multiplier=float(row.value_multiplier),
                )
            )
        return pool


def _record_to_row(record: OperationRecord) -> Dict[str, Any]:
    context = dict(record.context)
    row = {column: context.pop(column, None) for column in PROMOTED_COLUMNS}
    row.update(
        {
            "timestamp": _to_db_timestamp(record.timestamp),
            "operation": record.operation,
            "duration_ms": record.duration_ms,
            "success": record.success,
            "metadata": json.dumps(context, default=str),
        }
    )
    return row


def _row_to_record(row) -> OperationRecord:
    context = _parse_json_object(row.metadata)
    for column in PROMOTED_COLUMNS:
        value = getattr(row, column)
        if value is not None:
            context[column] = value
    return OperationRecord(
        timestamp=_parse_timestamp(row.timestamp),
        operation=row.operation,
        duration_ms=float(row.duration_ms),
        success=bool(row.success),
        context=context,
    )


def _to_db_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_timestamp(raw) -> datetime:
    value = raw if isinstance(raw, datetime) else datetime.fromisoformat(str(raw))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _parse_distribution(raw) -> Dict[str, float]:
    distribution = _parse_json_object(raw)
    parsed = {}
    for tier, value in distribution.items():
        try:
            parsed[tier] = float(value)
        except (TypeError, ValueError):
            continue
    return parsed


def _parse_json_object(raw) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return {}
    if isinstance(raw, dict):
        return dict(raw)
    return {}


def _session_lock(db: Session) -> Lock:
    # Adapters sharing a Session share this lock.
    return db.info.setdefault(_SESSION_LOCK_KEY, Lock())


def _execute(db: Session, statement: str, params, error_message: str, commit: bool = False) -> list:
    with _session_lock(db):
        try:
            result = db.execute(text(statement), params)
            if commit:
                db.commit()
                return []
            return list(result.fetchall())
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(error_message) from exc
