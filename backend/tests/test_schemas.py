"""
SitePlan - Schema Tests
=======================
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from conftest import make_analysis, make_snapshot
from siteplan.core.models import TaskCategory, TaskStatus
from siteplan.core.schemas import (
    AnalysisContent,
    AnalysisPayload,
    PlanRequest,
    PlanTask,
    TaskUpdate,
    Verdict,
    WebsiteSnapshot,
)


class TestPayloads:
    def test_snapshot_accepts_camel_case_keys(self):
        snapshot = WebsiteSnapshot.model_validate({
            "url": "https://example.com",
            "metaDescription": "Desc",
            "wordCount": 42,
            "images": {"total": 2, "withAlt": 1, "withoutAlt": 1},
            "somethingElse": True,
        })

        assert snapshot.meta_description == "Desc"
        assert snapshot.word_count == 42
        assert snapshot.images.with_alt == 1

    def test_plan_task_normalizes_enums(self):
        task = PlanTask.model_validate({
            "category": " Performance ",
            "priority": "LOW",
            "title": "Defer scripts",
            "description": "Load analytics after first paint",
            "effort": "Moderate",
            "impact": "medium",
        })

        assert task.category == TaskCategory.PERFORMANCE

    def test_naive_fetch_time_is_utc(self):
        snapshot = WebsiteSnapshot(url="https://example.com", fetched_at=datetime(2026, 3, 1, 12, 0))

        assert snapshot.fetched_at == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_analysis_drops_unknown_sections(self):
        content = AnalysisContent.model_validate({
            "content": "c",
            "seo": "s",
            "performance": "p",
            "accessibility": "a",
            "scores": {"seo": 80},
        })

        assert "scores" not in content.model_dump()

    def test_analysis_requires_every_section(self):
        with pytest.raises(ValidationError):
            AnalysisContent.model_validate({"content": "c", "seo": "s", "performance": "p"})

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (120, 100),
            (-5, 0),
            ("87.6", 88),
            ("n/a", 0),
            (float("inf"), 100),
            (float("-inf"), 0),
            (float("nan"), 0),
            ("Infinity", 100),
        ],
    )
    def test_verdict_score_is_clamped(self, raw, expected):
        assert Verdict(status="resolved", score=raw).score == expected


class TestRequests:
    def test_plan_request_needs_one_source(self):
        with pytest.raises(ValidationError):
            PlanRequest()

        payload = AnalysisPayload(
            url="https://example.com", snapshot=make_snapshot(), analysis=make_analysis()
        )
        with pytest.raises(ValidationError):
            PlanRequest(analysis_id=uuid4(), payload=payload)

        assert PlanRequest(payload=payload).analysis_id is None

    def test_payload_url_must_be_http(self):
        with pytest.raises(ValidationError):
            AnalysisPayload(url="ftp://example.com", snapshot=make_snapshot(), analysis=make_analysis())

    def test_task_update_needs_a_field(self):
        with pytest.raises(ValidationError):
            TaskUpdate()

        assert TaskUpdate(status=TaskStatus.SKIPPED).status == TaskStatus.SKIPPED
        assert "notes" in TaskUpdate(notes=None).model_fields_set
