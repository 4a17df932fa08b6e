"""
Commerce Analytics Engine
Aggregation Core
"""
from .degradation import ANALYZER_POLICIES, AnalyzerOutcome, AnalyzerPolicy, run_analyzer
from .exceptions import AnalyticsError, AnalyzerTimeoutError, EntityNotFoundError
from .store import EventStoreReader, SqlEventStore
from .windows import TimeWindow, optional_window, resolve_window

__all__ = [
    "ANALYZER_POLICIES",
    "AnalyzerOutcome",
    "AnalyzerPolicy",
    "run_analyzer",
    "AnalyticsError",
    "AnalyzerTimeoutError",
    "EntityNotFoundError",
    "EventStoreReader",
    "SqlEventStore",
    "TimeWindow",
    "optional_window",
    "resolve_window",
]
