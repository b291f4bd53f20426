"""Closed value sets for asset and ticket lifecycle fields.

Values are persisted as plain strings; never rename a value without a data
migration. Membership helpers below are the only place that decide which
statuses count as "normal", "active" or "terminal".
"""
from __future__ import annotations
from enum import Enum
from typing import FrozenSet


class AssetStatus(str, Enum):
    AVAILABLE = 'available'
    IN_USE = 'in_use'
    UNDER_MAINTENANCE = 'under_maintenance'
    RETIRED = 'retired'
    WORKING = 'working'
    NEEDS_REPAIR = 'needs_repair'
    OUT_OF_SERVICE = 'out_of_service'


class AssetCondition(str, Enum):
    EXCELLENT = 'excellent'
    GOOD = 'good'
    FAIR = 'fair'
    POOR = 'poor'
    CRITICAL = 'critical'
    UNDER_MAINTENANCE = 'under_maintenance'


class TicketStatus(str, Enum):
    OPEN = 'open'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class TicketCategory(str, Enum):
    REPAIR = 'repair'
    MAINTENANCE = 'maintenance'
    COMPLAINT = 'complaint'
    NOT_WORKING = 'not_working'
    DAMAGE = 'damage'
    OTHER = 'other'


class TicketPriority(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


# Statuses managed by the health state machine as "normal" (accepting reports)
NORMAL_ASSET_STATUSES: FrozenSet[AssetStatus] = frozenset({
    AssetStatus.AVAILABLE,
    AssetStatus.IN_USE,
    AssetStatus.WORKING,
    AssetStatus.NEEDS_REPAIR,
    AssetStatus.OUT_OF_SERVICE,
})
# Statuses under which the intake gate refuses new reports
BLOCKING_ASSET_STATUSES: FrozenSet[AssetStatus] = frozenset({
    AssetStatus.UNDER_MAINTENANCE,
    AssetStatus.RETIRED,
})
ACTIVE_TICKET_STATUSES: FrozenSet[TicketStatus] = frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS})
TERMINAL_TICKET_STATUSES: FrozenSet[TicketStatus] = frozenset({TicketStatus.COMPLETED, TicketStatus.CANCELLED})


def values(enum_cls) -> tuple:
    return tuple(m.value for m in enum_cls)


__all__ = [
    'AssetStatus', 'AssetCondition', 'TicketStatus', 'TicketCategory', 'TicketPriority',
    'NORMAL_ASSET_STATUSES', 'BLOCKING_ASSET_STATUSES', 'ACTIVE_TICKET_STATUSES',
    'TERMINAL_TICKET_STATUSES', 'values',
]
