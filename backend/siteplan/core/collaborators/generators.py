"""
Claude-backed implementations of the insight, plan and task-evaluation
collaborators.
"""

import asyncio
from typing import Optional

import structlog
from pydantic import ValidationError

from siteplan.core.collaborators import prompts
from siteplan.core.collaborators.llm import ClaudeClient, parse_json_object
from siteplan.core.errors import GenerationError
from siteplan.core.models import Task
from siteplan.core.schemas import ActionPlanContent, AnalysisContent, Verdict, WebsiteSnapshot


class _ClaudeCollaborator:
    def __init__(
        self,
        client: Optional[ClaudeClient] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.client = client or ClaudeClient()
        self.logger = logger or structlog.get_logger(__name__)


class ClaudeInsightGenerator(_ClaudeCollaborator):
    """Runs the four section analyses concurrently."""

    async def generate_analysis(self, snapshot: WebsiteSnapshot) -> AnalysisContent:
        content, seo, performance, accessibility = await asyncio.gather(
            self.client.complete(prompts.CONTENT_PROMPT, prompts.content_context(snapshot)),
            self.client.complete(prompts.SEO_PROMPT, prompts.seo_context(snapshot)),
            self.client.complete(prompts.PERFORMANCE_PROMPT, prompts.performance_context(snapshot)),
            self.client.complete(prompts.ACCESSIBILITY_PROMPT, prompts.accessibility_context(snapshot)),
        )
        self.logger.info("analysis_generated", url=snapshot.url)
        return AnalysisContent(
            content=content,
            seo=seo,
            performance=performance,
            accessibility=accessibility,
        )


class ClaudePlanGenerator(_ClaudeCollaborator):
    async def generate_plan(
        self, analysis: AnalysisContent, snapshot: WebsiteSnapshot
    ) -> ActionPlanContent:
        """
        Ask for a JSON action plan and validate it.

        Raises:
            GenerationError: Reply is not JSON or does not match the plan schema
        """
        reply = await self.client.complete(
            prompts.PLAN_PROMPT, prompts.plan_context(analysis, snapshot)
        )
        data = parse_json_object(reply)
        try:
            plan = ActionPlanContent.model_validate(data)
        except ValidationError as exc:
            self.logger.warning("plan_invalid", url=snapshot.url, errors=exc.error_count())
            raise GenerationError(
                "The action plan could not be generated: unexpected response format"
            ) from exc
        if not plan.tasks:
            raise GenerationError("The action plan could not be generated: no tasks returned")
        return plan


class ClaudeTaskEvaluator(_ClaudeCollaborator):
    async def evaluate(self, task: Task, snapshot: WebsiteSnapshot) -> Verdict:
        """
        Judge a task against a fresh snapshot, focusing the context on the
        task's category.

        Raises:
            GenerationError: Reply is not a valid verdict
        """
        system = f"{prompts.EVALUATION_PROMPT}\n\n{prompts.task_details(task)}"
        reply = await self.client.complete(
            system, prompts.evaluation_context(snapshot, task.category)
        )
        data = parse_json_object(reply)
        try:
            return Verdict.model_validate(data)
        except ValidationError as exc:
            self.logger.warning("verdict_invalid", task_id=str(task.id), errors=exc.error_count())
            raise GenerationError("The task could not be re-evaluated: unexpected response format") from exc
