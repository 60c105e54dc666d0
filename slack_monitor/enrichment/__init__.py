"""
Enrichment pipeline: resilient parsing, validation and backlog pacing.
"""

from .analyzer import MessageAnalyzer
from .parser import AnalysisDraft, ParseDiagnostic, ParseOutcome, parse_analysis_text
from .scheduler import BacklogBatchResult, BacklogScheduler
from .validator import validate_analysis

__all__ = [
    "AnalysisDraft",
    "BacklogBatchResult",
    "BacklogScheduler",
    "MessageAnalyzer",
    "ParseDiagnostic",
    "ParseOutcome",
    "parse_analysis_text",
    "validate_analysis",
]
