"""Scheduling services that drive periodic saved-query evaluation."""

from .evaluation_scheduler import AlertSink, EvaluationScheduler
from .scheduler_protocol import EvaluationSchedulerProtocol


__all__ = [
    "AlertSink",
    "EvaluationScheduler",
    "EvaluationSchedulerProtocol",
]
