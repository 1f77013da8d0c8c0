"""Model Registry: the target models every repository is scored against.

The registry is built once at startup and passed to the scoring engine; it
is never mutated or re-read per request.
"""
import json
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aierastack.errors import ConfigError


class Benchmarks(BaseModel):
    """Published coding benchmark evidence, each 0-100."""
    model_config = ConfigDict(frozen=True)

    swe_verified: float = Field(ge=0, le=100)
    human_eval: float = Field(ge=0, le=100)
    debugging: float = Field(ge=0, le=100)
    code_generation: float = Field(ge=0, le=100)

    def composite(self) -> float:
        return (self.swe_verified * 0.4 + self.human_eval * 0.3
                + self.debugging * 0.2 + self.code_generation * 0.1)

    def factor(self) -> float:
        """0.9-1.1 multiplier for AI-related dimensions; a composite of 80 maps to 1.0."""
        return max(0.9, min(1.1, 0.9 + (self.composite() - 70) / 100))


class ScoringProfile(BaseModel):
    """Per-dimension weight multipliers plus the coverage decay sensitivity.

    A higher coverage_decay_factor means content published after the
    knowledge cutoff decays more slowly.
    """
    model_config = ConfigDict(frozen=True)

    coverage: float = Field(default=1.0, ge=0)
    adoption: float = Field(default=1.0, ge=0)
    documentation: float = Field(default=1.0, ge=0)
    ai_readiness: float = Field(default=1.0, ge=0)
    momentum: float = Field(default=1.0, ge=0)
    maintenance: float = Field(default=1.0, ge=0)
    language_aptitude: float = Field(default=1.0, ge=0)
    model_capability: float = Field(default=1.0, ge=0)
    coverage_decay_factor: float = Field(default=1.0, gt=0)


class ModelProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    provider: str = ""
    knowledge_cutoff: date
    benchmarks: Optional[Benchmarks] = None
    profile: ScoringProfile = Field(default_factory=ScoringProfile)


class ModelRegistry:
    """Immutable, ordered table of model profiles."""

    def __init__(self, profiles: Iterable[ModelProfile], default_id: Optional[str] = None):
        self._profiles: Tuple[ModelProfile, ...] = tuple(profiles)
        if not self._profiles:
            raise ConfigError("Model registry must contain at least one model")
        self._by_id: Dict[str, ModelProfile] = {}
        for profile in self._profiles:
            if profile.id in self._by_id:
                raise ConfigError(f"Duplicate model id in registry: {profile.id}")
            self._by_id[profile.id] = profile
        if default_id is not None and default_id not in self._by_id:
            raise ConfigError(f"Default model {default_id!r} is not in the registry")
        self._default_id = default_id or self._profiles[0].id

    def __iter__(self) -> Iterator[ModelProfile]:
        return iter(self._profiles)

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._by_id

    def get(self, model_id: str) -> Optional[ModelProfile]:
        return self._by_id.get(model_id)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(p.id for p in self._profiles)

    @property
    def default(self) -> ModelProfile:
        return self._by_id[self._default_id]

    @classmethod
    def from_file(cls, path, default_id: Optional[str] = None) -> "ModelRegistry":
        """Load a registry from a JSON list of model profiles."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
            profiles = [ModelProfile.model_validate(item) for item in raw]
        except (OSError, ValueError, ValidationError) as e:
            raise ConfigError(f"Could not load model registry from {path}: {e}") from e
        return cls(profiles, default_id=default_id)


DEFAULT_MODELS: Tuple[ModelProfile, ...] = (
    ModelProfile(
        id="claude-4.5-opus",
        name="Claude 4.5 Opus",
        provider="Anthropic",
        knowledge_cutoff=date(2025, 3, 1),
        benchmarks=Benchmarks(swe_verified=81, human_eval=92, debugging=95, code_generation=92),
        profile=ScoringProfile(documentation=1.1, ai_readiness=1.2, momentum=0.9,
                               model_capability=1.1, coverage_decay_factor=1.2),
    ),
    ModelProfile(
        id="claude-4.5-sonnet",
        name="Claude 4.5 Sonnet",
        provider="Anthropic",
        knowledge_cutoff=date(2025, 3, 1),
        benchmarks=Benchmarks(swe_verified=77, human_eval=92, debugging=90, code_generation=88),
        profile=ScoringProfile(documentation=1.1, ai_readiness=1.1, coverage_decay_factor=1.1),
    ),
    ModelProfile(
        id="gpt-5.2-codex",
        name="GPT-5.2-Codex",
        provider="OpenAI",
        knowledge_cutoff=date(2025, 8, 31),
        benchmarks=Benchmarks(swe_verified=80, human_eval=90, debugging=85, code_generation=90),
        profile=ScoringProfile(coverage=1.1, adoption=1.1, documentation=0.9,
                               language_aptitude=1.1, coverage_decay_factor=1.0),
    ),
    ModelProfile(
        id="gemini-3-pro",
        name="Gemini 3 Pro",
        provider="Google",
        knowledge_cutoff=date(2025, 1, 1),
        benchmarks=Benchmarks(swe_verified=76, human_eval=84, debugging=80, code_generation=82),
        profile=ScoringProfile(coverage=1.2, adoption=1.1, maintenance=0.9, coverage_decay_factor=0.8),
    ),
)


def default_registry(default_id: Optional[str] = None) -> ModelRegistry:
    return ModelRegistry(DEFAULT_MODELS, default_id=default_id)


def load_registry(config) -> ModelRegistry:
    """Registry for the running process: a JSON override file or the built-in table."""
    default_id = config.default_model_id
    if config.model_registry_path:
        return ModelRegistry.from_file(config.model_registry_path, default_id=default_id)
    return default_registry(default_id)
