"""Reconcile gazetteer and map-extract place records into one deduplicated set."""
__version__ = "0.1.0"
