"""Tests for the persistence gateway."""
import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from unittest.mock import MagicMock

from aierastack.errors import StoreError
from aierastack.models import ComparisonEvaluation, RepoRecord
from aierastack.records import DATA_VERSION, best_score, summarize
from aierastack.signals import RepoIdentity
from aierastack.store import RepoStore, evaluation_id
from conftest import utc


def test_upsert_then_get_round_trip(store, make_record):
    record = make_record()
    store.upsert(record)

    loaded = store.get_by_key(RepoIdentity(owner="acme", name="widget"))
    assert loaded == record
    assert loaded.data_version == DATA_VERSION


def test_lookup_is_case_insensitive(store, make_record):
    store.upsert(make_record(owner="Acme", name="Widget"))
    loaded = store.get_by_key(RepoIdentity(owner="ACME", name="widget"))
    assert loaded is not None
    assert loaded.full_name == "Acme/Widget"


def test_upsert_is_idempotent(store, engine, make_record):
    record = make_record()
    store.upsert(record)
    store.upsert(record)

    session = sessionmaker(bind=engine)()
    try:
        assert session.query(RepoRecord).count() == 1
    finally:
        session.close()
    assert store.list_summaries() == [summarize(record)]


def test_upsert_replaces_row(store, make_record):
    store.upsert(make_record(stars=10))
    store.upsert(make_record(stars=99999, fetched_at=utc(2025, 2, 1)))

    [entry] = store.list_summaries()
    assert entry.stars == 99999
    assert entry.fetched_at == utc(2025, 2, 1)


def test_missing_key_returns_none(store):
    assert store.get_by_key(RepoIdentity(owner="nobody", name="nothing")) is None


def test_outdated_data_version_is_a_miss(store, engine, make_record):
    store.upsert(make_record())
    session = sessionmaker(bind=engine)()
    try:
        row = session.get(RepoRecord, ("acme", "widget"))
        row.data_version = DATA_VERSION - 1
        row.data = {"not": "a record"}
        session.commit()
    finally:
        session.close()

    assert store.get_by_key(RepoIdentity(owner="acme", name="widget")) is None
    assert store.list_detailed() == []


def test_summary_matches_best_score(store, make_record):
    record = make_record()
    store.upsert(record)

    [entry] = store.list_summaries()
    top, grade = best_score(record.scores)
    assert entry.best_score == top == max(s.overall for s in record.scores.values())
    assert entry.best_grade == grade
    assert set(entry.scores_by_model) == set(record.scores)
    assert entry.category == "ui-library"
    assert entry.featured is True


def test_list_summaries_filters_and_orders(store, make_record):
    store.upsert(make_record(owner="acme", name="widget"))
    store.upsert(make_record(owner="tiny", name="lib", stars=1, forks=0, language=None,
                             is_typed=False, license=None, topics=[]))

    entries = store.list_summaries()
    assert [e.full_name for e in entries] == ["acme/widget", "tiny/lib"]
    assert entries[0].best_score >= entries[1].best_score

    assert [e.full_name for e in store.list_summaries(category="utility")] == ["tiny/lib"]
    assert [e.full_name for e in store.list_summaries(featured=True)] == ["acme/widget"]
    assert store.list_summaries(category="database") == []


def test_list_detailed_returns_full_records(store, make_record):
    record = make_record()
    store.upsert(record)
    assert store.list_detailed() == [record]


def test_evaluation_id_ignores_order():
    a = evaluation_id(["facebook/react", "vuejs/core"])
    b = evaluation_id(["vuejs/core", "facebook/react"])
    assert a == b
    assert len(a) == 16
    assert evaluation_id(["facebook/react"]) != a


def test_evaluation_lookups(store, engine):
    slugs = ["facebook/react", "vuejs/core"]
    session = sessionmaker(bind=engine)()
    try:
        session.add(ComparisonEvaluation(
            id=evaluation_id(slugs), repos=slugs, repos_count=2, category="ui-library",
            evaluation={"summary": "React has the broader ecosystem."},
            model_used="claude-haiku", generated_at=utc(2025, 5, 1),
        ))
        session.add(ComparisonEvaluation(
            id="0000000000000000", repos=["a/b"], repos_count=1, category="ui-library",
            evaluation={"summary": "older"}, generated_at=utc(2024, 5, 1),
        ))
        session.commit()
    finally:
        session.close()

    assert store.get_evaluation(list(reversed(slugs))) == {"summary": "React has the broader ecosystem."}
    assert store.get_evaluation_by_id("0000000000000000") == {"summary": "older"}
    assert store.get_evaluation_by_category("ui-library") == {"summary": "React has the broader ecosystem."}
    assert store.get_evaluation(["x/y"]) is None
    assert store.get_evaluation_by_category("desktop") is None


def test_ping(store):
    assert store.ping() is True


def test_database_errors_are_wrapped(store, make_record):
    broken = MagicMock()
    error = OperationalError("SELECT", {}, Exception("disk I/O error"))
    broken.get.side_effect = error
    broken.execute.side_effect = error
    store.Session = MagicMock(return_value=broken)

    with pytest.raises(StoreError):
        store.get_by_key(RepoIdentity(owner="acme", name="widget"))
    with pytest.raises(StoreError):
        store.upsert(make_record())
    broken.rollback.assert_called_once()
    assert broken.close.call_count == 2


def test_requires_url_or_engine():
    with pytest.raises(ValueError):
        RepoStore()


def test_upsert_overwrites_row_committed_by_another_writer(tmp_path, make_record):
    url = f"sqlite:///{tmp_path / 'race.db'}"
    store = RepoStore(db_url=url)
    rival = RepoStore(db_url=url)

    def rival_writes_first(session, transaction, connection):
        rival.upsert(make_record(stars=1))

    event.listen(store.Session, "after_begin", rival_writes_first, once=True)
    store.upsert(make_record(stars=5000))

    [entry] = store.list_summaries()
    assert entry.stars == 5000


def test_insert_race_without_native_upsert_retries_as_update(tmp_path, monkeypatch, make_record):
    monkeypatch.setattr("aierastack.store.ON_CONFLICT_INSERTS", {})
    url = f"sqlite:///{tmp_path / 'race.db'}"
    store = RepoStore(db_url=url)
    rival = RepoStore(db_url=url)
    open_session = store.Session
    raced = []

    def racing_session():
        session = open_session()
        real_get = session.get

        def get(*args, **kwargs):
            # The rival commits the same key after this writer saw it missing
            if not raced:
                raced.append(True)
                rival.upsert(make_record(stars=1))
                return None
            return real_get(*args, **kwargs)

        session.get = get
        return session

    store.Session = racing_session
    store.upsert(make_record(stars=5000))

    assert raced == [True]
    [entry] = store.list_summaries()
    assert entry.stars == 5000
