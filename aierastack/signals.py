"""Raw per-repository signals gathered at fetch time.

Every collector has an "unavailable" value that the scoring engine knows how
to degrade from: releases ``[]``, package ``None``, ``DocSignals()`` and
``ActivitySignals()`` (all zero/false), manifest and agent flags ``False``.
Only ``RepoInfo`` has no such value; without it there is nothing to score.
"""
import math
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

VERSION_TAG_RE = re.compile(r"^v?(\d+)\.(\d+)(?:\.(\d+))?$")

# Languages whose primary toolchain is statically typed.
TYPED_LANGUAGES = frozenset({
    "TypeScript", "Rust", "Go", "Java", "C#", "Kotlin", "Swift", "Scala",
    "Haskell", "Dart", "C++", "C", "F#", "OCaml", "Elm", "Zig",
})

RECENT_COMMITS_WINDOW = 30
RECENT_PULLS_WINDOW = 30

_README_LINK_RE = re.compile(r"\[([^\]]*)\]\(([^)\s]+)[^)]*\)|(https?://[^\s)<>\"']+)")


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class RepoIdentity(BaseModel):
    """The (owner, name) natural key of every other entity."""
    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)

    @classmethod
    def parse(cls, slug: str) -> "RepoIdentity":
        """Parse 'owner/name' (a trailing '.git' or slashes are tolerated)."""
        parts = [p for p in slug.strip().strip("/").split("/") if p]
        if len(parts) != 2:
            raise ValueError(f"Expected 'owner/name', got {slug!r}")
        owner, name = parts
        if name.endswith(".git"):
            name = name[:-4]
        return cls(owner=owner, name=name)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def key(self) -> Tuple[str, str]:
        """Case-folded store key; GitHub treats owner and name case-insensitively."""
        return self.owner.lower(), self.name.lower()

    def __str__(self) -> str:
        return self.full_name


class RepoInfo(BaseModel):
    owner: str
    name: str
    full_name: str
    description: str = ""
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    language: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    pushed_at: Optional[datetime] = None
    license: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    is_typed: bool = False


def parse_version(tag: str) -> Optional[Tuple[int, int, int]]:
    """Parse 'vMAJOR.MINOR.PATCH' (patch optional). Returns None when unparsable."""
    match = VERSION_TAG_RE.match(tag.strip()) if tag else None
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch or 0)


class ReleaseInfo(BaseModel):
    tag_name: str
    name: str = ""
    published_at: Optional[datetime] = None
    is_prerelease: bool = False

    @property
    def version(self) -> Optional[Tuple[int, int, int]]:
        return parse_version(self.tag_name)

    @property
    def is_stable_minor(self) -> bool:
        """x.y.0, not a pre-release. Stable majors are stable minors too."""
        version = self.version
        return not self.is_prerelease and version is not None and version[2] == 0

    @property
    def is_stable_major(self) -> bool:
        """x.0.0, not a pre-release."""
        version = self.version
        return not self.is_prerelease and version is not None and version[1:] == (0, 0)


class TypesTier(str, Enum):
    BUNDLED = "bundled"
    EXTERNAL = "externally-typed"
    NONE = "none"


class PackageInfo(BaseModel):
    name: str
    version: Optional[str] = None
    description: str = ""
    weekly_downloads: int = 0
    types: TypesTier = TypesTier.NONE
    repository: Optional[str] = None


class DocSignals(BaseModel):
    readme_size: int = 0
    has_docs_dir: bool = False
    has_docs_link: bool = False
    has_examples_dir: bool = False
    has_examples_link: bool = False
    has_changelog: bool = False

    @property
    def has_docs(self) -> bool:
        return self.has_docs_dir or self.has_docs_link

    @property
    def has_examples(self) -> bool:
        return self.has_examples_dir or self.has_examples_link


class ActivitySignals(BaseModel):
    recent_commits_count: int = 0
    commit_frequency: float = 0.0
    avg_days_between_releases: float = 0.0
    recent_closed_prs_count: int = 0
    avg_pr_close_hours: float = 0.0


class RawSignalBundle(BaseModel):
    repo: RepoInfo
    releases: List[ReleaseInfo] = Field(default_factory=list)
    package: Optional[PackageInfo] = None
    docs: DocSignals = Field(default_factory=DocSignals)
    activity: ActivitySignals = Field(default_factory=ActivitySignals)
    has_llms_txt: bool = False
    has_claude_md: bool = False
    has_agents_md: bool = False


def stable_major_releases(releases: Iterable[ReleaseInfo]) -> List[ReleaseInfo]:
    return [r for r in releases if r.is_stable_major]


def stable_minor_releases(releases: Iterable[ReleaseInfo]) -> List[ReleaseInfo]:
    return [r for r in releases if r.is_stable_minor]


def commit_frequency(commit_dates: Sequence[datetime]) -> float:
    """Commits per week over the span covered by the given commits."""
    if len(commit_dates) < 2:
        return 0.0
    moments = [as_utc(d) for d in commit_dates]
    newest, oldest = max(moments), min(moments)
    days_span = (newest - oldest).total_seconds() / 86400
    if days_span == 0:
        return float(len(commit_dates))
    return len(commit_dates) / days_span * 7


def avg_days_between_releases(releases: Iterable[ReleaseInfo]) -> float:
    """Average gap in days between consecutive stable (x.y.0) releases; 0 if fewer than two."""
    dates = sorted(
        (as_utc(r.published_at) for r in stable_minor_releases(releases) if r.published_at is not None),
        reverse=True,
    )
    if len(dates) < 2:
        return 0.0
    total_days = sum((a - b).total_seconds() / 86400 for a, b in zip(dates, dates[1:]))
    return total_days / (len(dates) - 1)


def avg_pr_close_hours(pulls: Sequence[Tuple[datetime, Optional[datetime]]]) -> float:
    """Average hours from creation to close over (created_at, closed_at) pairs."""
    closed = [(created, closed) for created, closed in pulls if closed is not None]
    if not closed:
        return 0.0
    total_hours = sum((as_utc(c) - as_utc(o)).total_seconds() / 3600 for o, c in closed)
    return total_hours / len(closed)


def derive_activity(commit_dates: Sequence[datetime],
                    releases: Sequence[ReleaseInfo],
                    pulls: Sequence[Tuple[datetime, Optional[datetime]]]) -> ActivitySignals:
    return ActivitySignals(
        recent_commits_count=len(commit_dates),
        commit_frequency=commit_frequency(commit_dates),
        avg_days_between_releases=avg_days_between_releases(releases),
        recent_closed_prs_count=sum(1 for _, closed in pulls if closed is not None),
        avg_pr_close_hours=avg_pr_close_hours(pulls),
    )


def parse_readme_links(content: str) -> Tuple[bool, bool]:
    """Return (has_docs_link, has_examples_link) for links found in a README."""
    has_docs = has_examples = False
    for match in _README_LINK_RE.finditer(content or ""):
        text = (match.group(1) or "").lower()
        url = (match.group(2) or match.group(3) or "").lower()
        if url.startswith(("#", "mailto:")) or "shields.io" in url or "badge" in url:
            continue
        if "docs" in url or "documentation" in url or "documentation" in text or text.strip() == "docs":
            has_docs = True
        if "example" in url or "example" in text or "demo" in text:
            has_examples = True
        if has_docs and has_examples:
            break
    return has_docs, has_examples


def derive_doc_signals(readme_size: int, readme_text: str, root_listing: Iterable[str]) -> DocSignals:
    """Documentation heuristics from the README and the root directory listing."""
    names = {n.lower() for n in root_listing}
    has_docs_link, has_examples_link = parse_readme_links(readme_text)
    return DocSignals(
        readme_size=max(0, readme_size),
        has_docs_dir=bool(names & {"docs", "doc", "documentation", "website"}),
        has_docs_link=has_docs_link,
        has_examples_dir=bool(names & {"examples", "example", "samples", "demo"}),
        has_examples_link=has_examples_link,
        has_changelog=any("changelog" in n or "history" in n or n.startswith("changes") for n in names),
    )


def is_typed_language(language: Optional[str]) -> bool:
    return language in TYPED_LANGUAGES


def log_scaled(value: float, factor: float) -> float:
    """min(100, log10(value + 1) * factor), 0 for non-positive input."""
    if value <= 0:
        return 0.0
    return min(100.0, math.log10(value + 1) * factor)
