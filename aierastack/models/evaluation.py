"""SQLAlchemy model for stored comparison evaluations."""
from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from aierastack.models.base import Base


class ComparisonEvaluation(Base):
    """Pre-generated evaluation comparing a set of repositories.

    Rows are written by an external generator; the engine only reads them.
    """

    __tablename__ = 'comparison_evaluations'

    id = Column(String(16), primary_key=True)  # sha256 of the sorted slugs, first 16 hex chars
    repos = Column(JSON, nullable=False)  # ["facebook/react", "vuejs/core"]
    repos_count = Column(Integer, nullable=False, index=True)
    category = Column(String(50), nullable=True, index=True)

    evaluation = Column(JSON, nullable=False)

    model_used = Column(String(100), nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
