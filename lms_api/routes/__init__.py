"""API route modules."""
from lms_api.routes import attempts, questions, results, statistics, tests

__all__ = ["attempts", "questions", "results", "statistics", "tests"]
