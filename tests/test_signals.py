"""Tests for raw signal types and the derivations built on them."""
from datetime import datetime, timedelta

import pytest

from aierastack.signals import (
    ReleaseInfo,
    RepoIdentity,
    as_utc,
    avg_days_between_releases,
    avg_pr_close_hours,
    commit_frequency,
    derive_activity,
    derive_doc_signals,
    is_typed_language,
    log_scaled,
    parse_readme_links,
    parse_version,
    stable_major_releases,
    stable_minor_releases,
)
from conftest import utc


def test_release_filtering():
    releases = [ReleaseInfo(tag_name=t) for t in ["v2.0.0", "v2.1.0", "v2.1.0-beta", "v1.0.0"]]
    assert [r.tag_name for r in stable_major_releases(releases)] == ["v2.0.0", "v1.0.0"]
    assert [r.tag_name for r in stable_minor_releases(releases)] == ["v2.0.0", "v2.1.0", "v1.0.0"]


def test_prerelease_flag_excludes_release():
    release = ReleaseInfo(tag_name="v3.0.0", is_prerelease=True)
    assert not release.is_stable_major
    assert not release.is_stable_minor


@pytest.mark.parametrize("tag,expected", [
    ("v1.2.3", (1, 2, 3)),
    ("1.2", (1, 2, 0)),
    ("v10.0", (10, 0, 0)),
    ("release-1.0.0", None),
    ("v1", None),
    ("", None),
])
def test_parse_version(tag, expected):
    assert parse_version(tag) == expected


def test_repo_identity_parse():
    identity = RepoIdentity.parse("Facebook/React.git")
    assert identity.owner == "Facebook"
    assert identity.name == "React"
    assert identity.key == ("facebook", "react")
    assert str(identity) == "Facebook/React"


@pytest.mark.parametrize("slug", ["react", "a/b/c", "/", ""])
def test_repo_identity_parse_rejects_bad_slugs(slug):
    with pytest.raises(ValueError):
        RepoIdentity.parse(slug)


def test_commit_frequency():
    start = utc(2024, 6, 1)
    dates = [start + timedelta(days=i) for i in range(15)]  # 15 commits over 14 days
    assert commit_frequency(dates) == pytest.approx(7.5)
    assert commit_frequency(dates[:1]) == 0
    assert commit_frequency([start, start, start]) == 3


def test_avg_days_between_releases_uses_stable_minor_releases():
    releases = [
        ReleaseInfo(tag_name="v1.2.0", published_at=utc(2024, 3, 1)),
        ReleaseInfo(tag_name="v1.1.5", published_at=utc(2024, 2, 20)),
        ReleaseInfo(tag_name="v1.1.0", published_at=utc(2024, 2, 1)),
        ReleaseInfo(tag_name="v1.0.0", published_at=utc(2024, 1, 2)),
    ]
    assert avg_days_between_releases(releases) == pytest.approx(29.5)
    assert avg_days_between_releases(releases[:1]) == 0


def test_avg_pr_close_hours_ignores_open_pulls():
    created = utc(2024, 5, 1)
    pulls = [(created, created + timedelta(hours=10)), (created, created + timedelta(hours=30)), (created, None)]
    assert avg_pr_close_hours(pulls) == pytest.approx(20)
    assert avg_pr_close_hours([]) == 0


def test_derive_activity():
    start = utc(2024, 6, 1)
    activity = derive_activity(
        [start, start + timedelta(days=7)],
        [],
        [(start, start + timedelta(hours=4))],
    )
    assert activity.recent_commits_count == 2
    assert activity.commit_frequency == pytest.approx(2)
    assert activity.avg_days_between_releases == 0
    assert activity.recent_closed_prs_count == 1
    assert activity.avg_pr_close_hours == pytest.approx(4)


def test_parse_readme_links():
    readme = """
[![build](https://img.shields.io/badge/docs-passing-green)](https://ci.example.com/badge)
See the [documentation](https://widget.dev/guide) and [live demo](https://widget.dev/play).
"""
    assert parse_readme_links(readme) == (True, True)
    assert parse_readme_links("[Docs](#docs) and [contact](mailto:docs@example.com)") == (False, False)
    assert parse_readme_links("") == (False, False)


def test_derive_doc_signals_from_root_listing():
    docs = derive_doc_signals(4000, "", ["README.md", "Docs", "examples", "CHANGELOG.md", "src"])
    assert docs.readme_size == 4000
    assert docs.has_docs and docs.has_docs_dir and not docs.has_docs_link
    assert docs.has_examples
    assert docs.has_changelog


def test_derive_doc_signals_history_file_counts_as_changelog():
    assert derive_doc_signals(0, "", ["HISTORY.rst"]).has_changelog
    assert derive_doc_signals(0, "", ["CHANGES"]).has_changelog
    assert not derive_doc_signals(0, "", ["src", "package.json"]).has_changelog


def test_is_typed_language():
    assert is_typed_language("TypeScript")
    assert is_typed_language("Rust")
    assert not is_typed_language("JavaScript")
    assert not is_typed_language(None)


def test_log_scaled():
    assert log_scaled(0, 20) == 0
    assert log_scaled(-5, 20) == 0
    assert log_scaled(99, 20) == pytest.approx(40)
    assert log_scaled(10**9, 20) == 100


def test_derivations_accept_mixed_naive_and_aware_datetimes():
    naive = datetime(2024, 6, 8)
    aware = utc(2024, 6, 1)
    assert commit_frequency([naive, aware]) == pytest.approx(2)

    releases = [
        ReleaseInfo(tag_name="v1.1.0", published_at=datetime(2024, 2, 1)),
        ReleaseInfo(tag_name="v1.0.0", published_at=utc(2024, 1, 2)),
    ]
    assert avg_days_between_releases(releases) == pytest.approx(30)
    assert avg_pr_close_hours([(aware, datetime(2024, 6, 1, 6))]) == pytest.approx(6)
    assert as_utc(naive) == utc(2024, 6, 8)
