"""Curated repository catalog: category, npm package and featured flag per repository."""
import json
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from aierastack.errors import ConfigError
from aierastack.signals import RepoIdentity

DEFAULT_CATEGORY = "utility"
DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "curated_repos.json"

CATEGORIES = (
    "framework", "ui-library", "state-management", "build-tool", "testing",
    "database", "api", "ai-ml", "utility", "python-web", "python-ai",
    "python-data", "go", "rust", "devops", "mobile", "desktop",
)


class CuratedRepo(BaseModel):
    owner: str
    name: str
    npm_package: Optional[str] = None
    category: str = DEFAULT_CATEGORY
    featured: bool = False

    @property
    def identity(self) -> RepoIdentity:
        return RepoIdentity(owner=self.owner, name=self.name)


class CuratedCatalog:
    """Read-only lookup of curated repositories, keyed case-insensitively."""

    def __init__(self, repos: Iterable[CuratedRepo] = ()):
        self._repos: List[CuratedRepo] = list(repos)
        self._by_key: Dict[Tuple[str, str], CuratedRepo] = {}
        for repo in self._repos:
            if repo.category not in CATEGORIES:
                raise ConfigError(f"Unknown category {repo.category!r} for {repo.owner}/{repo.name}")
            self._by_key[repo.identity.key] = repo

    def __iter__(self) -> Iterator[CuratedRepo]:
        return iter(self._repos)

    def __len__(self) -> int:
        return len(self._repos)

    def find(self, owner: str, name: str) -> Optional[CuratedRepo]:
        return self._by_key.get((owner.lower(), name.lower()))

    def canonical(self, identity: RepoIdentity) -> RepoIdentity:
        """The catalog's spelling of ``identity`` when it is curated, else ``identity``."""
        curated = self.find(identity.owner, identity.name)
        return curated.identity if curated else identity

    def identities(self) -> List[RepoIdentity]:
        return [repo.identity for repo in self._repos]

    @classmethod
    def load(cls, path) -> "CuratedCatalog":
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
            repos = [CuratedRepo.model_validate(item) for item in raw.get("repos", [])]
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            raise ConfigError(f"Could not load curated catalog from {path}: {e}") from e
        return cls(repos)


def load_default_catalog() -> CuratedCatalog:
    return CuratedCatalog.load(DEFAULT_CATALOG_PATH)


def load_catalog(config) -> CuratedCatalog:
    if config.curated_repos_path:
        return CuratedCatalog.load(config.curated_repos_path)
    return load_default_catalog()
