"""Application-facing bandit agents.

Modules:
  assist_manager — AssistBanditManager (thread-safe assist / no-assist decisions)
"""
from __future__ import annotations

from .assist_manager import AssistBanditManager, DecisionStat

__all__ = ["AssistBanditManager", "DecisionStat"]
