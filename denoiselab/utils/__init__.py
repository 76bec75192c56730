"""
DenoiseLab utilities module.

Provides logging helpers and call timing.
"""

from .logging import StructuredLogger, ProcessingStats, setup_console_logging
from .timing import MetricsCollector, TimedResult, measure

__all__ = [
    'StructuredLogger',
    'ProcessingStats',
    'setup_console_logging',
    'MetricsCollector',
    'TimedResult',
    'measure',
]
