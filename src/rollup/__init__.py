"""Roll-up pipeline — entries → pattern analyses → portfolio cards."""

from worklog.rollup.eligibility import (
    Eligibility,
    Level,
    analysis_eligibility,
    entry_eligibility,
)
from worklog.rollup.levels import AnalysisLevel, CardLevel, RollupLevel
from worklog.rollup.pipeline import DeriveResult, RollupPipeline
from worklog.rollup.reconcile import ReconcileReport, reconcile

__all__ = [
    "AnalysisLevel",
    "CardLevel",
    "DeriveResult",
    "Eligibility",
    "Level",
    "ReconcileReport",
    "RollupLevel",
    "RollupPipeline",
    "analysis_eligibility",
    "entry_eligibility",
    "reconcile",
]
