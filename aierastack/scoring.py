"""Scoring engine: turns a signal bundle into one RepoScore per model.

Every function here is pure and total. Missing optional inputs degrade the
affected sub-score to its floor or default; nothing raises for a well-formed
bundle, including an all-empty one.
"""
import math
from datetime import date, datetime, time, timezone
from typing import Dict, Optional

from aierastack.records import Dimension, DimensionScore, RepoScore
from aierastack.registry import ModelProfile, ModelRegistry
from aierastack.signals import (
    RawSignalBundle,
    TypesTier,
    as_utc,
    log_scaled,
    stable_major_releases,
)

BASE_WEIGHTS: Dict[Dimension, float] = {
    Dimension.COVERAGE: 0.20,
    Dimension.ADOPTION: 0.15,
    Dimension.DOCUMENTATION: 0.15,
    Dimension.AI_READINESS: 0.15,
    Dimension.MOMENTUM: 0.10,
    Dimension.MAINTENANCE: 0.10,
    Dimension.LANGUAGE_APTITUDE: 0.10,
    Dimension.MODEL_CAPABILITY: 0.05,
}

GRADE_THRESHOLDS = ((85, "A"), (70, "B"), (55, "C"), (40, "D"))

RELEASE_DECAY_PER_DAY = 0.5
ACTIVITY_DECAY_PER_DAY = 0.3
RELEASE_FLOOR = 20.0
ACTIVITY_FLOOR = 30.0
DEFAULT_DOWNLOAD_SCORE = 50.0
DEFAULT_CAPABILITY_SCORE = 50.0

# (generation, debugging) accuracy of LLM-written code per language, 0-100.
LANGUAGE_AI_SCORES = {
    "TypeScript": (100, 100),
    "JavaScript": (95, 80),
    "Python": (95, 95),
    "Java": (80, 85),
    "C#": (80, 85),
    "Kotlin": (75, 80),
    "Swift": (75, 80),
    "Go": (70, 90),
    "PHP": (70, 75),
    "Ruby": (70, 80),
    "Rust": (60, 40),
    "Scala": (60, 60),
    "Objective-C": (55, 55),
    "C": (50, 35),
    "C++": (50, 30),
    "Haskell": (40, 45),
}
UNKNOWN_LANGUAGE_SCORES = (50, 50)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def grade_for(overall: int) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if overall >= threshold:
            return grade
    return "F"


def normalized_weights(model: ModelProfile) -> Dict[Dimension, float]:
    """Base weights times the model's multipliers, renormalized to sum to 1.0."""
    adjusted = {dim: weight * getattr(model.profile, dim.value) for dim, weight in BASE_WEIGHTS.items()}
    total = sum(adjusted.values())
    if total <= 0:
        adjusted, total = dict(BASE_WEIGHTS), sum(BASE_WEIGHTS.values())
    return {dim: weight / total for dim, weight in adjusted.items()}


def _cutoff_instant(cutoff: date) -> datetime:
    return datetime.combine(cutoff, time.min, tzinfo=timezone.utc)


def _days_beyond(moment: datetime, cutoff: datetime) -> int:
    return math.floor((moment - cutoff).total_seconds() / 86400)


def score_coverage(signals: RawSignalBundle, model: ModelProfile) -> DimensionScore:
    """Is the project's current state inside the model's training window?"""
    cutoff = _cutoff_instant(model.knowledge_cutoff)
    decay = model.profile.coverage_decay_factor
    release_rate = RELEASE_DECAY_PER_DAY / decay
    activity_rate = ACTIVITY_DECAY_PER_DAY / decay
    repo = signals.repo

    dated = [r for r in stable_major_releases(signals.releases) if r.published_at is not None]
    latest = max(dated, key=lambda r: as_utc(r.published_at)) if dated else None

    if latest is None:
        release_score = RELEASE_FLOOR
        release_covered = False
    else:
        published = as_utc(latest.published_at)
        release_covered = published <= cutoff
        if release_covered:
            release_score = 100.0
        else:
            release_score = max(RELEASE_FLOOR, 100 - _days_beyond(published, cutoff) * release_rate)

    if repo.pushed_at is None:
        activity_score = ACTIVITY_FLOOR
    else:
        pushed = as_utc(repo.pushed_at)
        if pushed <= cutoff:
            activity_score = 100.0
        else:
            activity_score = max(ACTIVITY_FLOOR, 100 - _days_beyond(pushed, cutoff) * activity_rate)

    created_before = repo.created_at is not None and as_utc(repo.created_at) < cutoff
    maturity_score = 100.0 if created_before else 50.0

    score = release_score * 0.5 + activity_score * 0.3 + maturity_score * 0.2
    return DimensionScore(score=clamp_score(score), details={
        "release_score": round_half_up(release_score),
        "activity_score": round_half_up(activity_score),
        "maturity_score": round_half_up(maturity_score),
        "latest_release": latest.tag_name if latest else "N/A",
        "release_covered": release_covered,
        "knowledge_cutoff": model.knowledge_cutoff.isoformat(),
        "decay_factor": round(decay, 2),
    })


def score_adoption(signals: RawSignalBundle) -> DimensionScore:
    repo = signals.repo
    star_score = log_scaled(repo.stars, 20)
    fork_score = log_scaled(repo.forks, 25)
    downloads = signals.package.weekly_downloads if signals.package else 0
    download_score = log_scaled(downloads, 14.3) if downloads > 0 else DEFAULT_DOWNLOAD_SCORE

    score = star_score * 0.4 + fork_score * 0.2 + download_score * 0.4
    return DimensionScore(score=clamp_score(score), details={
        "star_score": round_half_up(star_score),
        "fork_score": round_half_up(fork_score),
        "download_score": round_half_up(download_score),
        "stars": repo.stars,
        "forks": repo.forks,
        "weekly_downloads": downloads,
    })


def score_documentation(signals: RawSignalBundle) -> DimensionScore:
    docs = signals.docs
    score = 0
    if docs.readme_size > 10000:
        score += 40
    elif docs.readme_size > 5000:
        score += 30
    elif docs.readme_size > 2000:
        score += 20
    elif docs.readme_size > 500:
        score += 10
    if docs.has_docs:
        score += 25
    if docs.has_examples:
        score += 20
    if docs.has_changelog:
        score += 15

    return DimensionScore(score=clamp_score(score), details={
        "readme_size": docs.readme_size,
        "has_docs": docs.has_docs,
        "has_examples": docs.has_examples,
        "has_changelog": docs.has_changelog,
    })


def score_ai_readiness(signals: RawSignalBundle) -> DimensionScore:
    repo = signals.repo
    package_typed = signals.package is not None and signals.package.types != TypesTier.NONE
    has_types = repo.is_typed or package_typed
    has_good_topics = len(repo.topics) >= 3
    has_license = bool(repo.license)

    score = 0
    if has_types:
        score += 40
    if signals.has_llms_txt:
        score += 30
    if has_good_topics:
        score += 15
    if has_license:
        score += 15
    if signals.has_claude_md:
        score += 10
    if signals.has_agents_md:
        score += 10

    return DimensionScore(score=clamp_score(score), details={
        "has_types": has_types,
        "has_llms_txt": signals.has_llms_txt,
        "has_good_topics": has_good_topics,
        "has_license": has_license,
        "has_claude_md": signals.has_claude_md,
        "has_agents_md": signals.has_agents_md,
    })


def score_momentum(signals: RawSignalBundle) -> DimensionScore:
    activity = signals.activity
    score = 0

    if activity.commit_frequency > 10:
        score += 40
    elif activity.commit_frequency > 5:
        score += 30
    elif activity.commit_frequency > 2:
        score += 20
    elif activity.commit_frequency > 0.5:
        score += 10

    gap = activity.avg_days_between_releases
    if gap > 0:
        if gap < 30:
            score += 35
        elif gap < 60:
            score += 25
        elif gap < 120:
            score += 15
        elif gap < 180:
            score += 5

    if activity.recent_commits_count >= 30:
        score += 25
    elif activity.recent_commits_count >= 20:
        score += 20
    elif activity.recent_commits_count >= 10:
        score += 15
    elif activity.recent_commits_count >= 5:
        score += 10

    return DimensionScore(score=clamp_score(score), details={
        "commit_frequency": round(activity.commit_frequency, 1),
        "avg_days_between_releases": round_half_up(gap),
        "recent_commits_count": activity.recent_commits_count,
    })


def score_maintenance(signals: RawSignalBundle) -> DimensionScore:
    repo = signals.repo
    activity = signals.activity
    score = 50

    issue_ratio = repo.open_issues / max(1, repo.stars)
    if issue_ratio < 0.02:
        score += 30
    elif issue_ratio < 0.05:
        score += 20
    elif issue_ratio < 0.1:
        score += 10

    hours = activity.avg_pr_close_hours
    if hours > 0:
        if hours < 24:
            score += 20
        elif hours < 72:
            score += 15
        elif hours < 168:
            score += 10
        elif hours < 720:
            score += 5

    return DimensionScore(score=clamp_score(score), details={
        "open_issues": repo.open_issues,
        "issue_ratio": round(issue_ratio, 3),
        "avg_pr_close_hours": round_half_up(hours),
        "recent_closed_prs_count": activity.recent_closed_prs_count,
    })


def language_scores(language: Optional[str]) -> tuple:
    return LANGUAGE_AI_SCORES.get(language or "", UNKNOWN_LANGUAGE_SCORES)


def score_language_aptitude(signals: RawSignalBundle, model: ModelProfile) -> DimensionScore:
    generation, debugging = language_scores(signals.repo.language)
    base = generation * 0.6 + debugging * 0.4
    factor = model.benchmarks.factor() if model.benchmarks else 1.0
    return DimensionScore(score=clamp_score(base * factor), details={
        "language": signals.repo.language or "Unknown",
        "generation": generation,
        "debugging": debugging,
        "benchmark_factor": round(factor, 3),
    })


def score_model_capability(model: ModelProfile) -> DimensionScore:
    if model.benchmarks is None:
        return DimensionScore(score=clamp_score(DEFAULT_CAPABILITY_SCORE), details={"has_benchmarks": False})
    b = model.benchmarks
    return DimensionScore(score=clamp_score(b.composite()), details={
        "has_benchmarks": True,
        "swe_verified": b.swe_verified,
        "human_eval": b.human_eval,
        "debugging": b.debugging,
        "code_generation": b.code_generation,
    })


def score(signals: RawSignalBundle, model: ModelProfile) -> RepoScore:
    """Score one repository for one model."""
    dimensions = {
        Dimension.COVERAGE: score_coverage(signals, model),
        Dimension.ADOPTION: score_adoption(signals),
        Dimension.DOCUMENTATION: score_documentation(signals),
        Dimension.AI_READINESS: score_ai_readiness(signals),
        Dimension.MOMENTUM: score_momentum(signals),
        Dimension.MAINTENANCE: score_maintenance(signals),
        Dimension.LANGUAGE_APTITUDE: score_language_aptitude(signals, model),
        Dimension.MODEL_CAPABILITY: score_model_capability(model),
    }
    weights = normalized_weights(model)

    overall_raw = 0.0
    for dim, result in dimensions.items():
        overall_raw += result.score * weights[dim]
        result.details["applied_weight"] = round(weights[dim], 2)

    overall = clamp_score(overall_raw)
    return RepoScore(
        overall=overall,
        grade=grade_for(overall),
        **{dim.value: result for dim, result in dimensions.items()},
    )


def score_all(signals: RawSignalBundle, registry: ModelRegistry) -> Dict[str, RepoScore]:
    """Score a repository for every model in the registry, in registry order."""
    return {model.id: score(signals, model) for model in registry}


def best_model(scores: Dict[str, RepoScore]) -> Optional[str]:
    best_id, best_overall = None, -1
    for model_id, result in scores.items():
        if result.overall > best_overall:
            best_id, best_overall = model_id, result.overall
    return best_id
