"""Multi-tenant manufacturing inventory tracker: build transaction engine."""

__version__ = "0.1.0"
