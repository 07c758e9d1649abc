"""
SitePlan Collaborators
======================

External services the lifecycle engine depends on, behind narrow
protocols, plus the default adapters:
- HttpSnapshotProvider: httpx + BeautifulSoup page extraction
- ClaudeInsightGenerator / ClaudePlanGenerator / ClaudeTaskEvaluator
"""

from siteplan.core.collaborators.fetcher import HttpSnapshotProvider
from siteplan.core.collaborators.generators import (
    ClaudeInsightGenerator,
    ClaudePlanGenerator,
    ClaudeTaskEvaluator,
)
from siteplan.core.collaborators.llm import ClaudeClient
from siteplan.core.collaborators.protocols import (
    InsightGenerator,
    PlanGenerator,
    SnapshotProvider,
    TaskEvaluator,
)

__all__ = [
    "ClaudeClient",
    "ClaudeInsightGenerator",
    "ClaudePlanGenerator",
    "ClaudeTaskEvaluator",
    "HttpSnapshotProvider",
    "InsightGenerator",
    "PlanGenerator",
    "SnapshotProvider",
    "TaskEvaluator",
]
