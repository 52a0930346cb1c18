"""MyBatis mapper cross-reference engine."""

__version__ = "0.1.0"
