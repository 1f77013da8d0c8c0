"""Scores, full persisted records and their summary projection."""
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field

from aierastack.signals import RawSignalBundle

# Records stored with a lower version are treated as cache misses.
DATA_VERSION = 2

DetailValue = Union[bool, int, float, str, None]


class Dimension(str, Enum):
    COVERAGE = "coverage"
    ADOPTION = "adoption"
    DOCUMENTATION = "documentation"
    AI_READINESS = "ai_readiness"
    MOMENTUM = "momentum"
    MAINTENANCE = "maintenance"
    LANGUAGE_APTITUDE = "language_aptitude"
    MODEL_CAPABILITY = "model_capability"


class DimensionScore(BaseModel):
    score: int = Field(ge=0, le=100)
    details: Dict[str, DetailValue] = Field(default_factory=dict)


class RepoScore(BaseModel):
    overall: int = Field(ge=0, le=100)
    grade: str
    coverage: DimensionScore
    adoption: DimensionScore
    documentation: DimensionScore
    ai_readiness: DimensionScore
    momentum: DimensionScore
    maintenance: DimensionScore
    language_aptitude: DimensionScore
    model_capability: DimensionScore

    def dimension(self, dimension: Dimension) -> DimensionScore:
        return getattr(self, dimension.value)


class Sources(BaseModel):
    github: str
    npm: Optional[str] = None
    releases: str


class CachedRepoData(BaseModel):
    owner: str
    name: str
    full_name: str
    category: str
    featured: bool = False
    signals: RawSignalBundle
    package_name: Optional[str] = None
    scores: Dict[str, RepoScore]
    sources: Sources
    fetched_at: datetime
    data_version: int = DATA_VERSION


class ModelScoreSummary(BaseModel):
    overall: int
    grade: str


class IndexEntry(BaseModel):
    owner: str
    name: str
    full_name: str
    category: str
    featured: bool = False
    stars: int = 0
    language: str = ""
    description: str = ""
    best_score: int = 0
    best_grade: str = "F"
    scores_by_model: Dict[str, ModelScoreSummary] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None
    fetched_at: datetime


def best_score(scores: Dict[str, RepoScore]) -> tuple:
    """(best overall, grade of that entry); first seen wins ties, (0, 'F') when empty."""
    best_overall, best_grade = None, "F"
    for score in scores.values():
        if best_overall is None or score.overall > best_overall:
            best_overall, best_grade = score.overall, score.grade
    return (best_overall if best_overall is not None else 0), best_grade


def summarize(record: CachedRepoData) -> IndexEntry:
    """Derive the denormalized summary row for a full record."""
    top_score, top_grade = best_score(record.scores)
    repo = record.signals.repo
    return IndexEntry(
        owner=record.owner,
        name=record.name,
        full_name=record.full_name,
        category=record.category,
        featured=record.featured,
        stars=repo.stars,
        language=repo.language or "",
        description=repo.description or "",
        best_score=top_score,
        best_grade=top_grade,
        scores_by_model={
            model_id: ModelScoreSummary(overall=s.overall, grade=s.grade)
            for model_id, s in record.scores.items()
        },
        updated_at=repo.updated_at,
        fetched_at=record.fetched_at,
    )
