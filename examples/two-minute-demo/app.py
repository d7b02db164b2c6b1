"""Two-minute casewatch demo: FastAPI backend over in-memory adapters."""

from random import Random

from fastapi import FastAPI, HTTPException

from casewatch.adapters.memory import InMemoryCatalog, InMemoryMetricStore
from casewatch.config import MonitorSettings, configure_logging
from casewatch.errors import CaseNotFoundError, SelectionError
from casewatch.models import CaseDefinition, Item, ItemCategory, Rarity, WeightedItem
from casewatch.opening import CaseOpeningService
from casewatch.service import MonitoringService

RNG = Random(42)
DEMO_CASE_ID = "scav-case"

app = FastAPI(title="casewatch Two-Minute Demo", version="0.1.0")


def _weighted(item_id, name, rarity, base_value, category, weight=1.0, multiplier=1.0):
    return WeightedItem(
        item=Item(id=item_id, name=name, rarity=rarity, base_value=base_value, category=category.value),
        weight=weight,
        value_multiplier=multiplier,
    )


def _build_catalog() -> InMemoryCatalog:
    catalog = InMemoryCatalog()
    catalog.add_case(
        CaseDefinition(
            id=DEMO_CASE_ID,
            name="Scav Case",
            price=250,
            rarity_distribution={"common": 60, "uncommon": 25, "rare": 10, "epic": 4, "legendary": 1},
        ),
        [
            _weighted("bolts", "Bolts", Rarity.COMMON, 40, ItemCategory.CONSUMABLES, weight=3),
            _weighted("salewa", "Salewa", Rarity.COMMON, 60, ItemCategory.MEDICAL),
            _weighted("wires", "Bundle of wires", Rarity.UNCOMMON, 120, ItemCategory.ELECTRONICS),
            _weighted("ledx", "LEDX", Rarity.RARE, 500, ItemCategory.MEDICAL, multiplier=1.5),
            _weighted("tetriz", "Tetriz", Rarity.EPIC, 900, ItemCategory.VALUABLES),
            _weighted("red", "Red keycard", Rarity.LEGENDARY, 5000, ItemCategory.KEYCARDS),
        ],
    )
    return catalog


def _build_services():
    settings = MonitorSettings(buffer_size=50)
    configure_logging(settings.log_level)
    catalog = _build_catalog()
    monitoring = MonitoringService(InMemoryMetricStore(), catalog, settings=settings)
    opener = CaseOpeningService(catalog, monitoring.recorder, rng=RNG)

    for idx in range(400):
        opener.open_case(f"demo-user-{idx % 25:04d}", DEMO_CASE_ID)
    monitoring.force_flush()
    return monitoring, opener


MONITORING, OPENER = _build_services()


@app.on_event("startup")
def start_flusher() -> None:
    MONITORING.start()


@app.on_event("shutdown")
def stop_flusher() -> None:
    MONITORING.shutdown()


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "demo": "casewatch-two-minute"}


@app.get("/api/health")
def system_health() -> dict:
    return MONITORING.get_system_health().to_dict()


@app.get("/api/metrics/{operation}")
def performance(operation: str, window: str = "24h") -> dict:
    try:
        aggregate = MONITORING.get_performance_metrics(operation, window)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if aggregate is None:
        raise HTTPException(status_code=404, detail=f"No metrics for {operation}")
    return aggregate.to_dict()


@app.get("/api/fairness/{case_id}")
def fairness(case_id: str) -> dict:
    report = MONITORING.get_fairness_metrics(case_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"No fairness data for {case_id}")
    return report.to_dict()


@app.get("/api/dashboard")
def dashboard() -> dict:
    return MONITORING.get_dashboard_data(case_ids=[DEMO_CASE_ID])


@app.post("/api/cases/{case_id}/open")
def open_case(case_id: str, user_id: str = "demo-user-0000") -> dict:
    try:
        result = OPENER.open_case(user_id, case_id)
    except CaseNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SelectionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return result.to_dict()


@app.get("/api/cases/{case_id}/preview")
def preview_case(case_id: str, user_id: str = "demo-user-0000") -> dict:
    try:
        result = OPENER.preview_case(user_id, case_id)
    except CaseNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SelectionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return result.to_dict()
