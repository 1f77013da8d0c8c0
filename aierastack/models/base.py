"""Declarative base shared by every aierastack table."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
