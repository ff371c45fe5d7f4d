"""Exceptions raised by the daily scoring pipeline"""


class ScoringError(Exception):
    """Base class for scoring pipeline failures"""


class PreconditionNotMet(ScoringError):
    """No active season or nothing scheduled. Runs treat this as a clean no-op."""


class PersistenceError(ScoringError):
    """A batch failed to commit. The whole day has to be retried."""


class RunTimeoutError(ScoringError):
    """Score computation exceeded the run-level timeout before anything was written."""
