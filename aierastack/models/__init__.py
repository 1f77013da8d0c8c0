from aierastack.models.base import Base
from aierastack.models.evaluation import ComparisonEvaluation
from aierastack.models.repo import RepoRecord

__all__ = ["Base", "ComparisonEvaluation", "RepoRecord"]
