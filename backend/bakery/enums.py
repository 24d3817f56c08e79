# Overview: Closed vocabularies shared by models, services and routes.

from __future__ import annotations

import enum


class Shift(str, enum.Enum):
    MORNING = "morning"
    NIGHT = "night"


class Role(str, enum.Enum):
    OWNER = "owner"
    MANAGER = "manager"
    SALES_REP = "sales_rep"


class BatchStatus(str, enum.Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    QUALITY_CHECK = "quality_check"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class BatchAction(str, enum.Enum):
    START = "start"
    PAUSE = "pause"
    COMPLETE = "complete"
    CANCEL = "cancel"


class StockStatus(str, enum.Enum):
    OUT = "out"
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class SaveOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"


TERMINAL_BATCH_STATUSES = frozenset({BatchStatus.COMPLETED, BatchStatus.CANCELLED})
