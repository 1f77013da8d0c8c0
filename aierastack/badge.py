"""Shields-style SVG badges for a repository's score."""
from html import escape
from typing import Optional

from aierastack.records import CachedRepoData

BADGE_LABEL = "AI Era Stack"

GRADE_COLORS = {
    "A": "22c55e",
    "B": "84cc16",
    "C": "eab308",
    "D": "f97316",
    "F": "ef4444",
}
UNKNOWN_GRADE_COLOR = "666666"
MUTED_COLOR = "999999"

_SVG_TEMPLATE = """<svg xmlns="http://www.w3.org/2000/svg" width="{total:g}" height="20" role="img" aria-label="{label}: {message}">
  <title>{label}: {message}</title>
  <linearGradient id="s" x2="0" y2="100%">
    <stop offset="0" stop-color="#bbb" stop-opacity=".1"/>
    <stop offset="1" stop-opacity=".1"/>
  </linearGradient>
  <clipPath id="r">
    <rect width="{total:g}" height="20" rx="3" fill="#fff"/>
  </clipPath>
  <g clip-path="url(#r)">
    <rect width="{label_width:g}" height="20" fill="#555"/>
    <rect x="{label_width:g}" width="{message_width:g}" height="20" fill="#{color}"/>
    <rect width="{total:g}" height="20" fill="url(#s)"/>
  </g>
  <g fill="#fff" text-anchor="middle" font-family="Verdana,Geneva,DejaVu Sans,sans-serif" text-rendering="geometricPrecision" font-size="11">
    <text aria-hidden="true" x="{label_x:g}" y="15" fill="#010101" fill-opacity=".3">{label}</text>
    <text x="{label_x:g}" y="14" fill="#fff">{label}</text>
    <text aria-hidden="true" x="{message_x:g}" y="15" fill="#010101" fill-opacity=".3">{message}</text>
    <text x="{message_x:g}" y="14" fill="#fff">{message}</text>
  </g>
</svg>"""


def render_badge(label: str, message: str, color: str) -> str:
    """Two-part flat badge; widths are estimated from character counts."""
    label_width = len(label) * 6.5 + 10
    message_width = len(message) * 7.5 + 10
    return _SVG_TEMPLATE.format(
        total=label_width + message_width,
        label_width=label_width,
        message_width=message_width,
        label_x=label_width / 2,
        message_x=label_width + message_width / 2,
        label=escape(label, quote=True),
        message=escape(message, quote=True),
        color=color,
    )


def score_badge(record: Optional[CachedRepoData], model_id: str) -> str:
    """Grade badge for ``model_id``; 'not found' without a record, 'error' without a score for the model."""
    if record is None:
        return not_found_badge()
    score = record.scores.get(model_id)
    if score is None:
        return error_badge()
    color = GRADE_COLORS.get(score.grade, UNKNOWN_GRADE_COLOR)
    return render_badge(BADGE_LABEL, f"{score.grade} · {score.overall}", color)


def not_found_badge() -> str:
    return render_badge(BADGE_LABEL, "not found", MUTED_COLOR)


def error_badge() -> str:
    return render_badge(BADGE_LABEL, "error", MUTED_COLOR)
