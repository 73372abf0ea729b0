"""Embedding builder: repository code to per-tenant vector namespaces."""

__version__ = "1.0.0"
