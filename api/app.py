"""
FastAPI surface for the Invoice Filler
======================================

Endpoints:
- GET  /health          - Liveness and last cycle timestamp
- GET  /metrics         - Prometheus metrics
- POST /cycles          - Run one processing cycle and return its report
- GET  /cycles/latest   - Report of the most recent cycle
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from invoice_filler.balances import table_to_strings
from invoice_filler.exceptions import ConfigurationError, FeedError
from invoice_filler.models import CycleReport
from invoice_filler.orchestrator import FulfillmentOrchestrator

from .metrics import router as metrics_router

logger = logging.getLogger(__name__)


# ============================================================================
# MODELS
# ============================================================================

class OutcomeResponse(BaseModel):
    intent_id: str
    status: str
    asset: Optional[str] = None
    destination_chain: Optional[str] = None
    source_chain: Optional[str] = None
    rebalanced: bool = False
    reason: str = ""
    error: Optional[str] = None


class CycleResponse(BaseModel):
    cycle_id: str
    started_at: str
    finished_at: Optional[str] = None
    duration_sec: float
    summary: Dict[str, int]
    outcomes: List[OutcomeResponse]
    balances: Dict[str, Dict[str, str]]
    deposits: Dict[str, Dict[str, str]]


def report_to_response(report: CycleReport) -> CycleResponse:
    return CycleResponse(
        cycle_id=report.cycle_id,
        started_at=report.started_at.isoformat(),
        finished_at=report.finished_at.isoformat() if report.finished_at else None,
        duration_sec=report.duration_sec,
        summary=report.summary(),
        outcomes=[
            OutcomeResponse(
                intent_id=o.intent_id,
                status=o.status.value,
                asset=o.asset,
                destination_chain=o.destination_chain,
                source_chain=o.source_chain,
                rebalanced=o.rebalanced,
                reason=o.reason,
                error=o.error,
            )
            for o in report.outcomes
        ],
        balances=table_to_strings(report.balances),
        deposits=table_to_strings(report.deposits),
    )


# ============================================================================
# APP
# ============================================================================

def create_app(orchestrator_factory: Callable[[], FulfillmentOrchestrator]) -> FastAPI:
    """
    Build the API around a lazily constructed orchestrator.

    Cycles are serialized: a POST /cycles issued while another cycle runs
    waits for it to finish.
    """
    app = FastAPI(title="Invoice Filler", version="1.0.0")
    app.include_router(metrics_router)

    state = {"orchestrator": None, "latest": None}
    cycle_lock = threading.Lock()

    def get_orchestrator() -> FulfillmentOrchestrator:
        if state["orchestrator"] is None:
            try:
                state["orchestrator"] = orchestrator_factory()
            except ConfigurationError as e:
                logger.error(f"Invalid configuration: {e}")
                raise HTTPException(status_code=500, detail=f"Configuration error: {e}")
        return state["orchestrator"]

    @app.post("/cycles", response_model=CycleResponse)
    def run_cycle():
        """Run one processing cycle"""
        with cycle_lock:
            orchestrator = get_orchestrator()
            try:
                report = orchestrator.run_cycle()
            except FeedError as e:
                raise HTTPException(status_code=502, detail=f"Invoice feed failed: {e}")
            state["latest"] = report
        logger.info(f"Cycle {report.cycle_id} served: {report.summary()}")
        return report_to_response(report)

    @app.get("/cycles/latest", response_model=CycleResponse)
    def latest_cycle():
        """Report of the most recent cycle"""
        report = state["latest"]
        if report is None:
            raise HTTPException(status_code=404, detail="No cycle has run yet")
        return report_to_response(report)

    @app.get("/health")
    def health_check():
        """Health check"""
        report = state["latest"]
        return {
            "status": "healthy",
            "last_cycle_id": report.cycle_id if report else None,
            "last_cycle_at": report.finished_at.isoformat() if report and report.finished_at else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


def _default_factory() -> FulfillmentOrchestrator:
    from invoice_filler.factory import build_orchestrator
    from invoice_filler.settings import Settings

    return build_orchestrator(Settings.from_env())


app = create_app(_default_factory)


if __name__ == "__main__":
    import os

    import uvicorn
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
