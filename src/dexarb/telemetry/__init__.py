"""Telemetry module for logging, metrics and reporting."""

from dexarb.telemetry.logger import AsyncLogger, setup_logging
from dexarb.telemetry.metrics import CycleStats, MetricsCollector
from dexarb.telemetry.reporter import AnalysisReporter, to_json


__all__ = [
    "AnalysisReporter",
    "AsyncLogger",
    "CycleStats",
    "MetricsCollector",
    "setup_logging",
    "to_json",
]
