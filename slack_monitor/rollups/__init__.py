"""
Derived dashboard views folded from analyzed messages.
"""

from .models import TimeWindow
from .service import RollupService

__all__ = ["RollupService", "TimeWindow"]
