"""Grounded question answering over an ingested guideline corpus."""

__version__ = "0.1.0"
