"""
Prompt templates for the Claude-backed generators and the helpers that
render a snapshot into prompt context.
"""

from siteplan.core.models import Task, TaskCategory
from siteplan.core.schemas import AnalysisContent, Headings, WebsiteSnapshot

SUMMARY_CHARS = 400

NO_LINKS = (
    "IMPORTANT: Do NOT include any URLs, links, or web addresses in your response. "
    "Focus only on analysis and insights without referencing external resources."
)


# ==========================================================================
# Formatting helpers
# ==========================================================================

def format_headings(headings: Headings) -> str:
    parts = []
    if headings.h1:
        parts.append(f"H1 ({len(headings.h1)}): {', '.join(headings.h1)}")
    else:
        parts.append("H1: MISSING")

    if headings.h2:
        shown = ", ".join(headings.h2[:5])
        more = "..." if len(headings.h2) > 5 else ""
        parts.append(f"H2 ({len(headings.h2)}): {shown}{more}")

    for level in ("h3", "h4", "h5", "h6"):
        items = getattr(headings, level)
        if items:
            parts.append(f"{level.upper()} ({len(items)})")

    return "\n".join(parts)


def alt_coverage(snapshot: WebsiteSnapshot) -> int:
    """Percentage of images with alt text (0 when there are no images)."""
    if snapshot.images.total == 0:
        return 0
    return round(snapshot.images.with_alt / snapshot.images.total * 100)


def open_graph_lines(snapshot: WebsiteSnapshot) -> str:
    og = snapshot.open_graph
    return "\n".join([
        f"- OG Title: {(og and og.title) or 'Missing'}",
        f"- OG Description: {(og and og.description) or 'Missing'}",
        f"- OG Image: {(og and og.image) or 'Missing'}",
        f"- OG Type: {(og and og.type) or 'Missing'}",
    ])


def summarize(text: str, limit: int = SUMMARY_CHARS) -> str:
    """First ``limit`` characters, with an ellipsis when truncated."""
    return text if len(text) <= limit else text[:limit] + "..."


# ==========================================================================
# Analysis sections
# ==========================================================================

CONTENT_PROMPT = f"""You are a content quality expert. Analyze and assess the website's content quality.

Focus on:
- Content clarity and readability assessment
- Heading structure and hierarchy evaluation
- Content depth and value analysis
- Writing style and tone observations
- Engagement potential and user experience

Provide a comprehensive assessment with key findings and insights.

{NO_LINKS}"""

SEO_PROMPT = f"""You are an SEO expert. Analyze and evaluate the website's SEO implementation.

Focus on:
- Title tag analysis (ideal: 50-60 characters)
- Meta description evaluation (ideal: 150-160 characters)
- Heading hierarchy assessment (H1, H2, H3 structure)
- Keyword usage patterns
- Open Graph tags for social sharing
- Overall SEO health assessment

Provide a comprehensive SEO evaluation with key findings, strengths, and areas for improvement.

{NO_LINKS}"""

PERFORMANCE_PROMPT = f"""You are a web performance expert. Analyze and assess the website's performance indicators.

Focus on:
- Script and stylesheet count analysis
- Image optimization status
- Resource loading patterns
- Framework-specific considerations
- Performance characteristics and potential bottlenecks

Provide a thorough performance assessment with observations about what could impact load times and user experience.

{NO_LINKS}"""

ACCESSIBILITY_PROMPT = f"""You are a web accessibility (a11y) expert. Analyze and evaluate the website's accessibility implementation.

Focus on:
- Image alt text coverage assessment
- Heading hierarchy evaluation (should have one H1, proper nesting)
- Semantic HTML usage patterns
- ARIA compliance status
- Screen reader compatibility considerations
- Keyboard navigation accessibility

Provide a comprehensive accessibility assessment with key findings about what works well and what could be improved.

{NO_LINKS}"""


def content_context(s: WebsiteSnapshot) -> str:
    return f"""Website: {s.url}
Title: {s.title or "No title"}
Meta Description: {s.meta_description or "No meta description"}

Headings:
{format_headings(s.headings)}

Word Count: {s.word_count}

Framework: {s.framework or "Unknown"}"""


def seo_context(s: WebsiteSnapshot) -> str:
    return f"""Website: {s.url}

Title: {s.title or "MISSING"}
Title Length: {len(s.title or "")} characters

Meta Description: {s.meta_description or "MISSING"}
Meta Description Length: {len(s.meta_description or "")} characters

Meta Keywords: {s.meta_keywords or "None"}

Headings:
{format_headings(s.headings)}

Open Graph:
{open_graph_lines(s)}"""


def performance_context(s: WebsiteSnapshot) -> str:
    return f"""Website: {s.url}
Framework: {s.framework or "Unknown"}

Resources:
- Scripts: {s.scripts}
- Stylesheets: {s.stylesheets}

Images:
- Total: {s.images.total}
- With alt text: {s.images.with_alt}
- Without alt text: {s.images.without_alt}

Word Count: {s.word_count}"""


def accessibility_context(s: WebsiteSnapshot) -> str:
    return f"""Website: {s.url}

Headings Structure:
{format_headings(s.headings)}

Images:
- Total images: {s.images.total}
- Images with alt text: {s.images.with_alt} ({alt_coverage(s)}%)
- Images without alt text: {s.images.without_alt}

Title: {s.title or "MISSING - Critical for screen readers"}"""


# ==========================================================================
# Action plan
# ==========================================================================

PLAN_PROMPT = """You are a web optimization consultant. Your response must be valid JSON only.

Create an actionable improvement plan with 6-10 specific, prioritized tasks.

Each task object must have:
- id (string): unique identifier like "seo-1" or "perf-1"
- category (string): must be exactly "seo", "content", "performance", or "accessibility"
- priority (string): must be exactly "high", "medium", or "low"
- title (string): Clear action like "Add meta description"
- description (string): What needs to be done
- effort (string): must be exactly "quick", "moderate", or "significant"
- impact (string): must be exactly "low", "medium", or "high"
- estimatedTime (string, optional): like "30 minutes"

Include 3-5 quick wins (high-impact, low-effort items as strings).

Response must be valid JSON with this structure:
{
  "summary": "string (2-3 sentences)",
  "tasks": [array of task objects],
  "quickWins": [array of strings],
  "timeline": "string (2-3 sentences)"
}"""


def plan_context(analysis: AnalysisContent, s: WebsiteSnapshot) -> str:
    return f"""Website: {s.url}

METRICS:
- Title: {s.title or "Missing"} ({len(s.title or "")} chars)
- Meta Description: {"Present" if s.meta_description else "Missing"} ({len(s.meta_description or "")} chars)
- H1 Count: {len(s.headings.h1)}
- Images: {s.images.total} ({s.images.without_alt} missing alt text)
- Scripts: {s.scripts}, Stylesheets: {s.stylesheets}
- Word Count: {s.word_count}

CONTENT:
{summarize(analysis.content)}

SEO:
{summarize(analysis.seo)}

PERFORMANCE:
{summarize(analysis.performance)}

ACCESSIBILITY:
{summarize(analysis.accessibility)}"""


# ==========================================================================
# Task re-evaluation
# ==========================================================================

EVALUATION_PROMPT = """You are a website optimization expert. A user was given a specific task to improve their website, and now they want to verify if they've successfully resolved it.

Your job is to analyze the current state of the website and determine:
1. Whether the task has been resolved (resolved, partially_resolved, or not_resolved)
2. A score from 0-100 indicating how well the task was completed
3. Detailed feedback on what was done well and what still needs work
4. Specific suggestions for further improvements (if any)

Respond in the following JSON format:
{
  "status": "resolved" | "partially_resolved" | "not_resolved",
  "score": <number 0-100>,
  "feedback": "<detailed feedback string>",
  "suggestions": ["<suggestion 1>", "<suggestion 2>", ...]
}

Guidelines for scoring:
- 90-100: Excellent implementation, task fully resolved
- 70-89: Good implementation, minor improvements possible
- 50-69: Partial implementation, significant work still needed
- 30-49: Minimal progress, most work still required
- 0-29: Little to no progress on the task

IMPORTANT:
- Return ONLY valid JSON, no additional text
- Be specific in your feedback, referencing actual data from the website
- If the task cannot be verified from the HTML (like server-side performance), say so in the feedback"""


def task_details(task: Task) -> str:
    return f"""TASK DETAILS:
Category: {task.category.value}
Priority: {task.priority.value}
Title: {task.title}
Description: {task.description}
Expected Impact: {task.impact.value}
Expected Effort: {task.effort.value}"""


def evaluation_context(s: WebsiteSnapshot, category: TaskCategory) -> str:
    """Current website state, focused on the data relevant to ``category``."""
    base = f"""Current Website State:
URL: {s.url}
Title: {s.title or "No title"}
Meta Description: {s.meta_description or "No meta description"}
Framework: {s.framework or "Unknown"}
Word Count: {s.word_count}"""

    if category == TaskCategory.SEO:
        extra = f"""SEO-Specific Data:
Title Length: {len(s.title or "")} characters
Meta Description Length: {len(s.meta_description or "")} characters
Meta Keywords: {s.meta_keywords or "None"}

Headings Structure:
{format_headings(s.headings)}

Open Graph Tags:
{open_graph_lines(s)}"""
    elif category == TaskCategory.CONTENT:
        extra = f"""Content-Specific Data:
Word Count: {s.word_count}

Headings Structure:
{format_headings(s.headings)}

Content Organization:
- Total Headings: {s.headings.total}
- H1 Count: {len(s.headings.h1)}
- H2 Count: {len(s.headings.h2)}
- H3 Count: {len(s.headings.h3)}"""
    elif category == TaskCategory.PERFORMANCE:
        extra = performance_context(s)
    else:
        extra = accessibility_context(s)

    return f"{base}\n\n{extra}"
