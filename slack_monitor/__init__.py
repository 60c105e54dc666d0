"""
Slack project monitor: message ingestion, LLM enrichment and dashboard rollups.
"""

__version__ = "1.0.0"
