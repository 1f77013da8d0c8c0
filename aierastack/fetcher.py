"""Fetch pipeline: collect raw signals for one repository and build its record."""
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Tuple

from aierastack.curated import DEFAULT_CATEGORY, CuratedCatalog
from aierastack.github.client import GitHubClient
from aierastack.npm.client import NpmClient
from aierastack.records import DATA_VERSION, CachedRepoData, Sources
from aierastack.registry import ModelRegistry
from aierastack.scoring import score_all
from aierastack.signals import (
    RawSignalBundle,
    RepoIdentity,
    derive_activity,
    derive_doc_signals,
)
from common.logging import LoggingManager

logger = LoggingManager.get_logger('app.fetcher')

CLAUDE_GUIDANCE_FILES = frozenset({"claude.md"})
AGENT_GUIDANCE_FILES = frozenset({"agents.md", "agent.md"})


def agent_guidance_flags(root_listing: Iterable[str]) -> Tuple[bool, bool]:
    """(has CLAUDE.md, has AGENTS.md or AGENT.md) in the repository root."""
    names = {n.lower() for n in root_listing}
    return bool(names & CLAUDE_GUIDANCE_FILES), bool(names & AGENT_GUIDANCE_FILES)


def build_sources(identity: RepoIdentity, package_name: Optional[str]) -> Sources:
    github_url = f"https://github.com/{identity.full_name}"
    return Sources(
        github=github_url,
        npm=f"https://www.npmjs.com/package/{package_name}" if package_name else None,
        releases=f"{github_url}/releases",
    )


def build_record(identity: RepoIdentity,
                 bundle: RawSignalBundle,
                 registry: ModelRegistry,
                 curated: CuratedCatalog,
                 package_name: Optional[str] = None,
                 now: Optional[datetime] = None) -> CachedRepoData:
    """Score ``bundle`` for every model and wrap it as a persistable record."""
    curated_entry = curated.find(identity.owner, identity.name)
    return CachedRepoData(
        owner=identity.owner,
        name=identity.name,
        full_name=identity.full_name,
        category=curated_entry.category if curated_entry else DEFAULT_CATEGORY,
        featured=curated_entry.featured if curated_entry else False,
        signals=bundle,
        package_name=package_name,
        scores=score_all(bundle, registry),
        sources=build_sources(identity, package_name),
        fetched_at=now or datetime.now(timezone.utc),
        data_version=DATA_VERSION,
    )


class RepoFetcher:
    """Runs every collector for a repository and builds its scored record."""

    def __init__(self,
                 github: GitHubClient,
                 npm: NpmClient,
                 registry: ModelRegistry,
                 curated: CuratedCatalog,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.github = github
        self.npm = npm
        self.registry = registry
        self.curated = curated
        self.clock = clock

    def close(self) -> None:
        """Release the npm client's connection pool."""
        self.npm.close()

    def collect(self, identity: RepoIdentity) -> Tuple[RawSignalBundle, Optional[str]]:
        """Gather the raw signal bundle and the matched npm package name.

        Only the repository metadata call may fail the whole collection; every
        other collector degrades to its empty value.
        """
        repo = self.github.get_repo_info(identity)
        # GitHub's spelling of owner and name is the canonical one
        identity = RepoIdentity(owner=repo.owner, name=repo.name)

        releases = self.github.get_releases(identity)
        has_llms_txt = self.github.has_llms_manifest(identity)
        readme_size, readme_text = self.github.get_readme(identity)
        root_listing = self.github.get_root_listing(identity)
        commit_dates = self.github.get_recent_commit_dates(identity)
        pulls = self.github.get_recent_closed_pulls(identity)

        curated_entry = self.curated.find(identity.owner, identity.name)
        preferred = curated_entry.npm_package if curated_entry else None
        package = self.npm.find_package_for_repo(identity, preferred=preferred)

        has_claude_md, has_agents_md = agent_guidance_flags(root_listing)
        bundle = RawSignalBundle(
            repo=repo,
            releases=releases,
            package=package,
            docs=derive_doc_signals(readme_size, readme_text, root_listing),
            activity=derive_activity(commit_dates, releases, pulls),
            has_llms_txt=has_llms_txt,
            has_claude_md=has_claude_md,
            has_agents_md=has_agents_md,
        )
        return bundle, package.name if package else None

    def fetch(self, identity: RepoIdentity) -> CachedRepoData:
        """Collect, score and build the full record for ``identity``.

        Raises:
            RepositoryNotFoundError: the repository does not exist.
            UpstreamError: the repository metadata could not be fetched.
        """
        logger.info(f"Fetching signals for {identity.full_name}")
        bundle, package_name = self.collect(identity)
        canonical = RepoIdentity(owner=bundle.repo.owner, name=bundle.repo.name)
        record = build_record(canonical, bundle, self.registry, self.curated,
                              package_name=package_name, now=self.clock())
        logger.info(f"Scored {canonical.full_name} for {len(record.scores)} models")
        return record
