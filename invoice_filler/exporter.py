import logging
from pathlib import Path
from typing import List

import pandas as pd

from .models import FillOutcome

logger = logging.getLogger(__name__)

OUTCOME_COLUMNS = [
    "intent_id",
    "status",
    "asset",
    "destination_chain",
    "source_chain",
    "rebalanced",
    "reason",
    "error",
]


class OutcomeExporter:
    """Export cycle outcomes to CSV"""

    @staticmethod
    def to_frame(outcomes: List[FillOutcome]) -> pd.DataFrame:
        rows = []
        for outcome in outcomes:
            rows.append({
                "intent_id": outcome.intent_id,
                "status": outcome.status.value,
                "asset": outcome.asset,
                "destination_chain": outcome.destination_chain,
                "source_chain": outcome.source_chain,
                "rebalanced": outcome.rebalanced,
                "reason": outcome.reason,
                "error": outcome.error,
            })
        return pd.DataFrame(rows, columns=OUTCOME_COLUMNS)

    @classmethod
    def export_outcomes(cls, outcomes: List[FillOutcome], output_path) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        df = cls.to_frame(outcomes)
        df.to_csv(output_path, index=False)
        logger.info(f"✓ Exported {len(df)} outcomes -> {output_path}")
        return output_path
