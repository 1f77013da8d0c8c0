"""Shared fixtures and builders for the test suite."""
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from aierastack.curated import CuratedCatalog, CuratedRepo
from aierastack.fetcher import build_record
from aierastack.registry import default_registry
from aierastack.signals import (
    ActivitySignals,
    DocSignals,
    PackageInfo,
    RawSignalBundle,
    ReleaseInfo,
    RepoIdentity,
    RepoInfo,
    TypesTier,
)
from aierastack.store import RepoStore


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_repo_info(owner="acme", name="widget", **overrides) -> RepoInfo:
    fields = dict(
        owner=owner,
        name=name,
        full_name=f"{owner}/{name}",
        description="A widget library",
        stars=1200,
        forks=80,
        open_issues=15,
        language="TypeScript",
        created_at=utc(2020, 5, 1),
        updated_at=utc(2024, 11, 2),
        pushed_at=utc(2024, 11, 1),
        license="MIT",
        topics=["widgets", "ui", "typescript"],
        is_typed=True,
    )
    fields.update(overrides)
    return RepoInfo(**fields)


def make_bundle(repo=None, **overrides) -> RawSignalBundle:
    fields = dict(
        repo=repo or make_repo_info(),
        releases=[ReleaseInfo(tag_name="v1.0.0", published_at=utc(2024, 1, 10))],
    )
    fields.update(overrides)
    return RawSignalBundle(**fields)


def well_known_bundle() -> RawSignalBundle:
    """Large, mature, well documented TypeScript project released before every cutoff."""
    return RawSignalBundle(
        repo=make_repo_info(
            owner="bigco", name="framework",
            stars=50000, forks=10000, open_issues=200,
            created_at=utc(2016, 3, 1), updated_at=utc(2024, 12, 10), pushed_at=utc(2024, 12, 1),
        ),
        releases=[
            ReleaseInfo(tag_name="v1.2.0", published_at=utc(2024, 2, 10)),
            ReleaseInfo(tag_name="v1.1.0", published_at=utc(2024, 1, 21)),
            ReleaseInfo(tag_name="v1.0.0", published_at=utc(2024, 1, 1)),
        ],
        package=PackageInfo(name="framework", version="1.2.0", weekly_downloads=5_000_000,
                            types=TypesTier.BUNDLED, repository="https://github.com/bigco/framework"),
        docs=DocSignals(readme_size=12000, has_docs_dir=True, has_examples_dir=True, has_changelog=True),
        activity=ActivitySignals(recent_commits_count=30, commit_frequency=15.0,
                                 avg_days_between_releases=20.0, recent_closed_prs_count=30,
                                 avg_pr_close_hours=10.0),
        has_llms_txt=True,
    )


def brand_new_bundle() -> RawSignalBundle:
    """Tiny repository created after every cutoff, with no releases and no README."""
    return RawSignalBundle(
        repo=make_repo_info(
            owner="someone", name="fresh",
            stars=10, forks=0, open_issues=0, language="JavaScript", is_typed=False,
            license=None, topics=[],
            created_at=utc(2025, 10, 1), updated_at=utc(2025, 10, 10), pushed_at=utc(2025, 10, 10),
        ),
        releases=[],
    )


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def catalog():
    return CuratedCatalog([
        CuratedRepo(owner="Acme", name="Widget", npm_package="acme-widget", category="ui-library", featured=True),
    ])


@pytest.fixture
def engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def store(engine):
    return RepoStore(engine=engine)


@pytest.fixture
def make_record(registry, catalog):
    def _make(owner="acme", name="widget", fetched_at=None, **repo_overrides):
        bundle = make_bundle(repo=make_repo_info(owner=owner, name=name, **repo_overrides))
        identity = RepoIdentity(owner=owner, name=name)
        return build_record(identity, bundle, registry, catalog, now=fetched_at or utc(2025, 1, 1))
    return _make
