"""Repository evaluation engine for LLM knowledge coverage."""

__version__ = "1.0.0"
