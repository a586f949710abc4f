"""
Utility modules for evoopt.
"""

from .monitoring import ProgressPublisher, ProgressRecord

__all__ = [
    "ProgressRecord",
    "ProgressPublisher",
]
