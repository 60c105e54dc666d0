"""
Background jobs that keep message enrichment moving.
"""

from .background_jobs import BacklogSweeper, EnrichmentWorker

__all__ = ["BacklogSweeper", "EnrichmentWorker"]
