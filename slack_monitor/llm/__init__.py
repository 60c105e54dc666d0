"""
Completion-service access and prompt rendering.
"""

from .completion_client import CompletionClient, CompletionServiceError, strip_code_fences
from .prompts import build_prompt

__all__ = ["CompletionClient", "CompletionServiceError", "strip_code_fences", "build_prompt"]
