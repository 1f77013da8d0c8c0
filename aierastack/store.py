"""Persistence gateway for scored repositories and comparison evaluations."""
import hashlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import defer, sessionmaker

from aierastack.errors import StoreError
from aierastack.models import Base, ComparisonEvaluation, RepoRecord
from aierastack.records import DATA_VERSION, CachedRepoData, IndexEntry, ModelScoreSummary, summarize
from aierastack.signals import RepoIdentity
from common.logging import LoggingManager

logger = LoggingManager.get_logger('app.store')

# Dialects that can insert-or-replace a row in a single statement
ON_CONFLICT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def evaluation_id(slugs: Sequence[str]) -> str:
    """sha256 over the sorted slugs joined with '|', first 16 hex characters."""
    joined = "|".join(sorted(slugs))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes for timezone-aware columns
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class RepoStore:
    """Reads and writes repository records in a relational database."""

    def __init__(self, db_url: Optional[str] = None, engine=None):
        """Initialize the store.

        Args:
            db_url: SQLAlchemy database URL.
            engine: A ready engine; takes precedence over ``db_url``.
        """
        if engine is None:
            if not db_url:
                raise ValueError("A database URL or engine is required")
            engine = create_engine(db_url)
        logger.info("Initializing database connection")
        self.engine = engine
        try:
            Base.metadata.create_all(self.engine)  # Creates tables if they don't exist
        except SQLAlchemyError as e:
            raise StoreError(f"Could not initialize database: {e}") from e
        self.Session = sessionmaker(bind=self.engine)

    @classmethod
    def from_config(cls, config) -> "RepoStore":
        return cls(db_url=config.database_url)

    def upsert(self, record: CachedRepoData) -> None:
        """Insert or fully replace the row for ``record`` in one transaction."""
        identity = RepoIdentity(owner=record.owner, name=record.name)
        summary = summarize(record)
        owner_key, name_key = identity.key
        row_data = {
            "owner": record.owner,
            "name": record.name,
            "full_name": record.full_name,
            "category": record.category,
            "featured": record.featured,
            "stars": summary.stars,
            "language": summary.language,
            "description": summary.description,
            "best_score": summary.best_score,
            "best_grade": summary.best_grade,
            "scores_by_model": {k: v.model_dump() for k, v in summary.scores_by_model.items()},
            "updated_at": summary.updated_at,
            "fetched_at": record.fetched_at,
            "data_version": record.data_version,
            "data": record.model_dump(mode="json"),
        }

        session = self.Session()
        try:
            self._write_row(session, (owner_key, name_key), row_data)
            logger.info(f"Stored {record.full_name} (best {summary.best_score} {summary.best_grade})")
        except SQLAlchemyError as e:
            logger.error(f"Error storing repository {record.full_name}: {e}")
            session.rollback()
            raise StoreError(f"Could not store {record.full_name}: {e}") from e
        finally:
            session.close()

    def _write_row(self, session, key, row_data: Dict[str, Any]) -> None:
        dialect_insert = ON_CONFLICT_INSERTS.get(self.engine.dialect.name)
        if dialect_insert is not None:
            stmt = dialect_insert(RepoRecord).values(owner_key=key[0], name_key=key[1], **row_data)
            session.execute(stmt.on_conflict_do_update(
                index_elements=[RepoRecord.owner_key, RepoRecord.name_key],
                set_={column: stmt.excluded[column] for column in row_data},
            ))
            session.commit()
            return

        for attempt in range(2):
            existing = session.get(RepoRecord, key)
            if existing:
                logger.debug(f"Repository {row_data['full_name']} already stored. Replacing.")
                for column, value in row_data.items():
                    setattr(existing, column, value)
            else:
                logger.debug(f"New repository: {row_data['full_name']}. Creating.")
                session.add(RepoRecord(owner_key=key[0], name_key=key[1], **row_data))
            try:
                session.commit()
                return
            except IntegrityError:
                if attempt:
                    raise
                # Another writer inserted the same key between our read and commit
                session.rollback()
                logger.debug(f"Repository {row_data['full_name']} was inserted concurrently. Retrying as update.")

    def get_by_key(self, identity: RepoIdentity) -> Optional[CachedRepoData]:
        """The stored record, or None when absent or written by an older data version."""
        session = self.Session()
        try:
            row = session.get(RepoRecord, identity.key)
            if row is None:
                return None
            if row.data_version < DATA_VERSION:
                logger.info(f"Stored data for {identity.full_name} is version {row.data_version}; treating as missing")
                return None
            data = row.data
        except SQLAlchemyError as e:
            logger.error(f"Error reading repository {identity.full_name}: {e}")
            raise StoreError(f"Could not read {identity.full_name}: {e}") from e
        finally:
            session.close()

        try:
            return CachedRepoData.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stored data for {identity.full_name} is unreadable; treating as missing: {e}")
            return None

    def list_summaries(self, category: Optional[str] = None, featured: Optional[bool] = None) -> List[IndexEntry]:
        """Summary rows ordered by best score, highest first. Never loads the full data column."""
        session = self.Session()
        try:
            query = session.query(RepoRecord).options(defer(RepoRecord.data))
            if category is not None:
                query = query.filter(RepoRecord.category == category)
            if featured is not None:
                query = query.filter(RepoRecord.featured == featured)
            query = query.order_by(RepoRecord.best_score.desc(), RepoRecord.stars.desc(), RepoRecord.full_name)
            rows = query.all()
            logger.debug(f"Found {len(rows)} repositories (category={category}, featured={featured})")
            return [self._to_entry(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error listing repositories: {e}")
            raise StoreError(f"Could not list repositories: {e}") from e
        finally:
            session.close()

    def list_detailed(self) -> List[CachedRepoData]:
        """Every current-version record, best score first."""
        session = self.Session()
        try:
            rows = (session.query(RepoRecord.data)
                    .filter(RepoRecord.data_version >= DATA_VERSION)
                    .order_by(RepoRecord.best_score.desc(), RepoRecord.full_name)
                    .all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing repository records: {e}")
            raise StoreError(f"Could not list repository records: {e}") from e
        finally:
            session.close()
        return [CachedRepoData.model_validate(data) for (data,) in rows]

    @staticmethod
    def _to_entry(row: RepoRecord) -> IndexEntry:
        return IndexEntry(
            owner=row.owner,
            name=row.name,
            full_name=row.full_name,
            category=row.category,
            featured=bool(row.featured),
            stars=row.stars or 0,
            language=row.language or "",
            description=row.description or "",
            best_score=row.best_score or 0,
            best_grade=row.best_grade or "F",
            scores_by_model={k: ModelScoreSummary(**v) for k, v in (row.scores_by_model or {}).items()},
            updated_at=_aware(row.updated_at),
            fetched_at=_aware(row.fetched_at),
        )

    evaluation_id = staticmethod(evaluation_id)

    def get_evaluation_by_id(self, eval_id: str) -> Optional[Dict[str, Any]]:
        session = self.Session()
        try:
            row = session.get(ComparisonEvaluation, eval_id)
            return row.evaluation if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error fetching evaluation {eval_id}: {e}")
            raise StoreError(f"Could not read evaluation {eval_id}: {e}") from e
        finally:
            session.close()

    def get_evaluation(self, slugs: Sequence[str]) -> Optional[Dict[str, Any]]:
        """Evaluation comparing exactly ``slugs`` (order does not matter)."""
        return self.get_evaluation_by_id(evaluation_id(slugs))

    def get_evaluation_by_category(self, category: str) -> Optional[Dict[str, Any]]:
        """Most recently generated evaluation for ``category``."""
        session = self.Session()
        try:
            row = (session.query(ComparisonEvaluation)
                   .filter(ComparisonEvaluation.category == category)
                   .order_by(ComparisonEvaluation.generated_at.desc())
                   .first())
            return row.evaluation if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error fetching evaluation for category {category}: {e}")
            raise StoreError(f"Could not read evaluation for category {category}: {e}") from e
        finally:
            session.close()

    def ping(self) -> bool:
        """True when the database answers a trivial query."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database ping failed: {e}")
            return False
