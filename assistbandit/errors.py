"""Exception taxonomy for the assist bandit.

Every error is raised by the operation that detects it and is never retried
internally. Callers decide whether to fall back to a fresh agent or abort.
"""
from __future__ import annotations

__all__ = [
    "BanditError",
    "DimensionMismatchError",
    "MissingSnapshotDataError",
    "CorruptSnapshotError",
    "NumericDegeneracyError",
]


class BanditError(Exception):
    """Base class for all assist bandit errors."""


class DimensionMismatchError(BanditError, ValueError):
    """Raised when a context has the wrong width or no arms are supplied."""


class MissingSnapshotDataError(BanditError, FileNotFoundError):
    """Raised when a snapshot lacks its metadata, container or a required tensor."""


class CorruptSnapshotError(BanditError):
    """Raised when a snapshot file is unreadable or holds tensors of the wrong shape."""


class NumericDegeneracyError(BanditError, ArithmeticError):
    """Raised when NaN/Inf shows up in a reward, a score or a training loss."""
