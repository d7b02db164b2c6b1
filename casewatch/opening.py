"""Case opening flow: catalog lookup, draw, external settlement and recording."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence, Tuple

from .errors import CaseNotFoundError, SelectionError
from .models import CaseDefinition, CaseOpeningResult, DrawResult, WeightedItem
from .ports import CatalogReader
from .recorder import OperationRecorder, utc_now
from .selector import RandomSource, select_item

logger = logging.getLogger(__name__)

# settle(user_id, opening_id, price, amount) debits the price and credits the
# award through the caller's ledger. It raises to decline the opening.
Settle = Callable[[str, str, int, int], None]


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None
    case: Optional[CaseDefinition] = None


class CaseOpeningService:
    """Opens cases for users and records every step for monitoring."""

    def __init__(
        self,
        catalog: CatalogReader,
        recorder: OperationRecorder,
        rng: Optional[RandomSource] = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.catalog = catalog
        self.recorder = recorder
        self.rng = rng
        self.now = now

    def open_case(self, user_id: str, case_id: str, settle: Optional[Settle] = None) -> CaseOpeningResult:
        """
        Draw a reward and settle it.

        Selection errors are raised before `settle` is called, so a failed
        draw never charges the user. Any failure is recorded as a failed
        case_opening and re-raised.
        """
        start_time = self.recorder.record_case_opening_start(user_id, case_id)
        try:
            case, draw = self._draw(case_id, record_selection=True)
            opening_id = _opening_id("case", user_id)
            if settle is not None:
                self._settle(settle, user_id, opening_id, case.price, draw.value)
        except Exception as exc:
            self.recorder.record_case_opening_failure(start_time, user_id, case_id, str(exc))
            raise

        self.recorder.record_case_opening_success(
            start_time,
            user_id,
            case_id,
            draw.rarity.value,
            draw.value,
            opening_id,
        )
        return CaseOpeningResult(case=case, draw=draw, opening_id=opening_id, timestamp=self.now())

    def preview_case(self, user_id: str, case_id: str) -> CaseOpeningResult:
        """Run a draw without settling or recording it."""
        case, draw = self._draw(case_id, record_selection=False)
        return CaseOpeningResult(
            case=case,
            draw=draw,
            opening_id=_opening_id("preview", user_id),
            timestamp=self.now(),
        )

    def validate_case_opening(self, user_id: str, case_id: str, balance: int) -> ValidationResult:
        try:
            case = self.catalog.get_case_definition(case_id)
            if case is None:
                return ValidationResult(False, error="Case type not found or inactive")

            if balance < case.price:
                return ValidationResult(
                    False,
                    error=f"Insufficient balance. Required: {case.price}, Available: {balance}",
                )

            if not self.catalog.get_weighted_item_pool(case_id):
                return ValidationResult(False, error="No items available for this case type")
        except Exception:
            logger.exception("Error validating case opening for user %s", user_id)
            return ValidationResult(False, error="Failed to validate case opening request")

        return ValidationResult(True, case=case)

    def _draw(self, case_id: str, record_selection: bool) -> Tuple[CaseDefinition, DrawResult]:
        case = self.catalog.get_case_definition(case_id)
        if case is None or not case.is_active:
            raise CaseNotFoundError(case_id)

        pool: Sequence[WeightedItem] = self.catalog.get_weighted_item_pool(case_id)
        start_time = self.recorder.start()
        try:
            draw = select_item(case, pool, self.rng)
        except SelectionError:
            logger.warning("Item selection failed for case %s", case_id, exc_info=True)
            raise

        if record_selection:
            self.recorder.record_item_selection(start_time, case_id, draw.rarity.value, len(pool))
        return case, draw

    def _settle(self, settle: Settle, user_id: str, opening_id: str, price: int, amount: int) -> None:
        start_time = self.recorder.start()
        try:
            settle(user_id, opening_id, price, amount)
        except Exception as exc:
            self.recorder.record_currency_transaction(start_time, user_id, "debit", price, False, str(exc))
            raise

        self.recorder.record_currency_transaction(start_time, user_id, "debit", price, True)
        self.recorder.record_currency_transaction(start_time, user_id, "credit", amount, True)


def _opening_id(prefix: str, user_id: str) -> str:
    return f"{prefix}_{secrets.token_hex(8)}_{user_id[-8:]}"
