"""SQLAlchemy model for scored repositories."""
from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from aierastack.models.base import Base


class RepoRecord(Base):
    """One row per repository: denormalized summary columns plus the full record as JSON."""

    __tablename__ = 'repos'

    # Case-folded natural key
    owner_key = Column(String(255), primary_key=True)
    name_key = Column(String(255), primary_key=True)

    owner = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    full_name = Column(String(511), nullable=False)
    category = Column(String(50), nullable=False, index=True)
    featured = Column(Boolean, nullable=False, default=False, index=True)

    # Summary fields, queryable without loading `data`
    stars = Column(Integer, nullable=False, default=0, index=True)
    language = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    best_score = Column(Integer, nullable=False, default=0, index=True)
    best_grade = Column(String(1), nullable=False, default='F')
    scores_by_model = Column(JSON, nullable=False, default=dict)  # {"gpt-5.2-codex": {"overall": 70, "grade": "B"}}

    updated_at = Column(DateTime(timezone=True), nullable=True)
    fetched_at = Column(DateTime(timezone=True), nullable=False)
    data_version = Column(Integer, nullable=False, default=1)

    data = Column(JSON, nullable=False)

    def __repr__(self):
        return f"<RepoRecord(full_name='{self.full_name}', best_score={self.best_score}, fetched_at='{self.fetched_at}')>"
