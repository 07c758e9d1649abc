"""
SitePlan - Collaborator Tests
=============================

Snapshot extraction and fetching, JSON reply parsing, the Anthropic
client wrapper and the Claude-backed generators.
"""

from types import SimpleNamespace
from uuid import uuid4

import anthropic
import httpx
import pytest

from conftest import make_analysis, make_snapshot
from siteplan.core.collaborators import (
    ClaudeClient,
    ClaudeInsightGenerator,
    ClaudePlanGenerator,
    ClaudeTaskEvaluator,
    HttpSnapshotProvider,
    prompts,
)
from siteplan.core.collaborators.fetcher import extract_snapshot
from siteplan.core.collaborators.llm import parse_json_object
from siteplan.core.errors import ExternalTimeoutError, FetchError, GenerationError
from siteplan.core.models import Task, TaskCategory, TaskEffort, TaskImpact, TaskPriority

PAGE = """<html><head><title>Acme Widgets</title>
<meta name="description" content="Widgets for everyone">
<meta name="keywords" content="widgets, acme">
<meta property="og:title" content="Acme">
<link rel="stylesheet" href="/a.css"><link rel="stylesheet" href="/b.css">
<script src="/app.js"></script>
</head><body>
<h1>Acme Widgets</h1><h2>Catalog</h2><h2>Contact</h2>
<img src="a.png" alt="A widget"><img src="b.png" alt=""><img src="c.png">
<p>Buy the best widgets today</p>
<script>var hidden = "these words are not counted";</script>
<style>.x { color: red; }</style>
</body></html>"""

API_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


# ==========================================================================
# Snapshot Extraction
# ==========================================================================

class TestExtractSnapshot:
    """Tests for turning HTML into a snapshot."""

    def test_extracts_page_signals(self):
        snapshot = extract_snapshot("https://acme.test", PAGE)

        assert snapshot.url == "https://acme.test"
        assert snapshot.title == "Acme Widgets"
        assert snapshot.meta_description == "Widgets for everyone"
        assert snapshot.meta_keywords == "widgets, acme"
        assert snapshot.headings.h1 == ["Acme Widgets"]
        assert snapshot.headings.h2 == ["Catalog", "Contact"]
        assert (snapshot.images.total, snapshot.images.with_alt, snapshot.images.without_alt) == (3, 1, 2)
        assert snapshot.scripts == 2
        assert snapshot.stylesheets == 2
        assert snapshot.word_count == 9
        assert snapshot.framework is None
        assert snapshot.open_graph.title == "Acme"

    def test_missing_tags(self):
        snapshot = extract_snapshot("https://acme.test", "<html><body><p>Hi</p></body></html>")

        assert snapshot.title is None
        assert snapshot.meta_description is None
        assert snapshot.headings.h1 == []
        assert snapshot.open_graph is None
        assert snapshot.word_count == 1

    @pytest.mark.parametrize(
        "html, framework",
        [
            ('<html><body><div id="__next"></div></body></html>', "Next.js"),
            ('<html><body><div ng-version="17.0.0"></div></body></html>', "Angular"),
            ('<html><head><link href="/wp-content/themes/a.css"></head></html>', "WordPress"),
            ('<html><head><meta name="generator" content="Hugo 0.120"></head></html>', "Hugo 0.120"),
        ],
    )
    def test_detects_framework(self, html: str, framework: str):
        assert extract_snapshot("https://acme.test", html).framework == framework


# ==========================================================================
# Snapshot Fetching
# ==========================================================================

def provider_for(handler, **options) -> HttpSnapshotProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpSnapshotProvider(client=client, **options)


class TestHttpSnapshotProvider:
    """Tests for fetching with httpx."""

    async def test_fetches_html(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["user_agent"] = request.headers["user-agent"]
            return httpx.Response(200, html=PAGE)

        snapshot = await provider_for(handler).fetch_snapshot("https://acme.test")

        assert snapshot.title == "Acme Widgets"
        assert "SitePlanAnalyzer" in seen["user_agent"]

    async def test_error_status(self):
        provider = provider_for(lambda request: httpx.Response(404))

        with pytest.raises(FetchError) as exc_info:
            await provider.fetch_snapshot("https://acme.test/missing")

        assert exc_info.value.message == "Failed to fetch website: HTTP 404 Not Found"

    async def test_non_html_response(self):
        provider = provider_for(lambda request: httpx.Response(200, json={"ok": True}))

        with pytest.raises(FetchError) as exc_info:
            await provider.fetch_snapshot("https://acme.test/api")

        assert "application/json" in exc_info.value.message

    async def test_unreachable_host(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        with pytest.raises(FetchError) as exc_info:
            await provider_for(handler).fetch_snapshot("https://acme.test")

        assert exc_info.value.message == "The website could not be reached"

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ExternalTimeoutError) as exc_info:
            await provider_for(handler).fetch_snapshot("https://acme.test")

        assert exc_info.value.stage == "fetch"

    async def test_body_is_read_up_to_max_bytes(self):
        body = "<html><head><title>T</title></head><body>" + "word " * 10000
        provider = provider_for(lambda request: httpx.Response(200, html=body), max_bytes=100)

        snapshot = await provider.fetch_snapshot("https://acme.test/huge")

        assert snapshot.title == "T"
        assert 0 < snapshot.word_count <= 12


# ==========================================================================
# JSON Replies
# ==========================================================================

class TestParseJsonObject:
    def test_plain_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_with_prose(self):
        reply = 'Here is the plan:\n```json\n{"summary": "ok", "tasks": []}\n```'

        assert parse_json_object(reply) == {"summary": "ok", "tasks": []}

    def test_trailing_commas(self):
        assert parse_json_object('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_json5_fallback(self):
        assert parse_json_object("{status: 'resolved', score: 80}") == {"status": "resolved", "score": 80}

    def test_no_object(self):
        with pytest.raises(GenerationError) as exc_info:
            parse_json_object("I cannot help with that.")

        assert exc_info.value.message == "The analysis service did not return JSON"

    def test_malformed_object(self):
        with pytest.raises(GenerationError) as exc_info:
            parse_json_object("{this is : not [ json}")

        assert exc_info.value.message == "The analysis service returned malformed JSON"


# ==========================================================================
# Anthropic Client
# ==========================================================================

class FakeMessages:
    def __init__(self, result):
        self.result = result
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


def fake_sdk(result) -> SimpleNamespace:
    return SimpleNamespace(messages=FakeMessages(result))


def message(*texts: str) -> SimpleNamespace:
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text) for text in texts],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


class TestClaudeClient:
    """Tests for the SDK wrapper."""

    async def test_returns_joined_text(self):
        sdk = fake_sdk(message(" Hello", " world "))
        client = ClaudeClient(model="test-model", max_retries=1, client=sdk)

        text = await client.complete("system prompt", "user prompt")

        assert text == "Hello world"
        call = sdk.messages.calls[0]
        assert call["model"] == "test-model"
        assert call["system"] == "system prompt"
        assert call["messages"] == [{"role": "user", "content": "user prompt"}]

    async def test_empty_reply(self):
        client = ClaudeClient(max_retries=1, client=fake_sdk(message("   ")))

        with pytest.raises(GenerationError) as exc_info:
            await client.complete("system", "prompt")

        assert exc_info.value.message == "The analysis service returned an empty response"

    async def test_timeout(self):
        sdk = fake_sdk(anthropic.APITimeoutError(request=API_REQUEST))
        client = ClaudeClient(max_retries=1, client=sdk)

        with pytest.raises(ExternalTimeoutError) as exc_info:
            await client.complete("system", "prompt")

        assert exc_info.value.stage == "generation"

    async def test_api_error_is_not_leaked(self):
        sdk = fake_sdk(anthropic.APIConnectionError(message="secret-host refused", request=API_REQUEST))
        client = ClaudeClient(max_retries=1, client=sdk)

        with pytest.raises(GenerationError) as exc_info:
            await client.complete("system", "prompt")

        assert "secret-host" not in exc_info.value.message
        assert len(sdk.messages.calls) == 1


# ==========================================================================
# Generators
# ==========================================================================

class ScriptedClient:
    """Stands in for ClaudeClient; replies are picked by system prompt."""

    def __init__(self, reply=None, by_prompt=None):
        self.reply = reply
        self.by_prompt = by_prompt or {}
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system: str, prompt: str) -> str:
        self.calls.append((system, prompt))
        return self.by_prompt.get(system, self.reply)


PLAN_REPLY = """```json
{
  "summary": "Tighten up the basics.",
  "timeline": "Two weeks.",
  "quickWins": ["Add a meta description"],
  "tasks": [
    {"id": "seo-1", "category": "SEO", "priority": "High", "title": "Add meta description",
     "description": "Write a 150 character description", "effort": "quick", "impact": "high",
     "estimatedTime": "15 minutes"},
    {"id": "a11y-1", "category": "accessibility", "priority": "medium", "title": "Add alt text",
     "description": "Describe every image", "effort": "moderate", "impact": "medium"},
  ]
}
```"""


class TestClaudeInsightGenerator:
    async def test_runs_all_sections(self):
        client = ScriptedClient(by_prompt={
            prompts.CONTENT_PROMPT: "content notes",
            prompts.SEO_PROMPT: "seo notes",
            prompts.PERFORMANCE_PROMPT: "performance notes",
            prompts.ACCESSIBILITY_PROMPT: "accessibility notes",
        })

        content = await ClaudeInsightGenerator(client).generate_analysis(make_snapshot())

        assert content.content == "content notes"
        assert content.seo == "seo notes"
        assert content.performance == "performance notes"
        assert content.accessibility == "accessibility notes"
        assert len(client.calls) == 4


class TestClaudePlanGenerator:
    async def test_parses_and_normalizes_plan(self):
        client = ScriptedClient(reply=PLAN_REPLY)

        plan = await ClaudePlanGenerator(client).generate_plan(make_analysis(), make_snapshot())

        assert plan.summary == "Tighten up the basics."
        assert plan.quick_wins == ["Add a meta description"]
        assert [t.category for t in plan.tasks] == [TaskCategory.SEO, TaskCategory.ACCESSIBILITY]
        assert plan.tasks[0].priority == TaskPriority.HIGH
        assert plan.tasks[0].estimated_time == "15 minutes"
        assert "SEO findings (first)" in client.calls[0][1]

    async def test_rejects_plan_without_tasks(self):
        client = ScriptedClient(reply='{"summary": "Nothing to do", "tasks": []}')

        with pytest.raises(GenerationError):
            await ClaudePlanGenerator(client).generate_plan(make_analysis(), make_snapshot())

    async def test_rejects_unknown_category(self):
        reply = (
            '{"summary": "s", "tasks": [{"category": "marketing", "priority": "high", '
            '"title": "t", "description": "d", "effort": "quick", "impact": "high"}]}'
        )

        with pytest.raises(GenerationError):
            await ClaudePlanGenerator(ScriptedClient(reply=reply)).generate_plan(
                make_analysis(), make_snapshot()
            )


class TestClaudeTaskEvaluator:
    @pytest.fixture
    def task(self) -> Task:
        return Task(
            id=uuid4(),
            category=TaskCategory.SEO,
            priority=TaskPriority.HIGH,
            effort=TaskEffort.QUICK,
            impact=TaskImpact.HIGH,
            title="Add meta description",
            description="Write a 150 character description",
            sequence=0,
        )

    async def test_returns_verdict(self, task: Task):
        client = ScriptedClient(
            reply='{"status": "Partially Resolved", "score": 140, "feedback": "Close", "suggestions": []}'
        )

        verdict = await ClaudeTaskEvaluator(client).evaluate(task, make_snapshot())

        assert verdict.status == "partially_resolved"
        assert verdict.score == 100
        system, context = client.calls[0]
        assert "Title: Add meta description" in system
        assert "SEO-Specific Data" in context

    async def test_infinite_score_is_clamped(self, task: Task):
        client = ScriptedClient(reply='{"status": "resolved", "score": Infinity}')

        verdict = await ClaudeTaskEvaluator(client).evaluate(task, make_snapshot())

        assert verdict.score == 100

    async def test_rejects_unknown_status(self, task: Task):
        client = ScriptedClient(reply='{"status": "maybe", "score": 50}')

        with pytest.raises(GenerationError):
            await ClaudeTaskEvaluator(client).evaluate(task, make_snapshot())
