"""
SitePlan Lifecycle
==================

The Analysis & Action-Plan Lifecycle Engine and its stores.

Components:
- AnalysisStore: analyses table (create, latest-by-url, upsert, plan attach, delete)
- TaskStore: tasks table (bulk create, listing, status state machine, notes, verdicts)
- LifecycleEngine: analyze / plan / reanalyze use cases and their transactions
"""

from siteplan.core.lifecycle.analysis_store import AnalysisStore
from siteplan.core.lifecycle.engine import AnalysisDetail, LifecycleEngine, PlanOutcome
from siteplan.core.lifecycle.task_store import TaskStore

__all__ = [
    "AnalysisDetail",
    "AnalysisStore",
    "LifecycleEngine",
    "PlanOutcome",
    "TaskStore",
]
