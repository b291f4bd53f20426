"""Asset maintenance state machine.

Two health-managed states: normal (available, in_use, working, needs_repair,
out_of_service) and under_maintenance. `retired` sits outside the machine:
health logic never enters or leaves it.

    normal --(evaluator recommends)--> under_maintenance
    normal --(operator start)--------> under_maintenance
    under_maintenance --(operator complete)--> working
    under_maintenance --(re-evaluation)--> under_maintenance (condition only)

Every transition stamps last_health_check. The machine mutates the Asset in
memory; persistence and commit belong to the caller.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional
from assetcare.config.thresholds import ThresholdConfig, DEFAULT_THRESHOLDS
from assetcare.constants.lifecycle import (
    AssetCondition, AssetStatus, NORMAL_ASSET_STATUSES, BLOCKING_ASSET_STATUSES,
)
from assetcare.errors import InvalidTransition
from assetcare.models.asset import Asset
from assetcare.services.health import HealthAssessment, evaluate
from assetcare.utils.fsm import TransitionValidator

MANUAL_REASON = 'Manual maintenance request'

# Edges the operator / sweep may take; retired has no outgoing edges
ASSET_FSM = TransitionValidator(
    {**{s: {AssetStatus.UNDER_MAINTENANCE} for s in NORMAL_ASSET_STATUSES},
     AssetStatus.UNDER_MAINTENANCE: {AssetStatus.WORKING},
     AssetStatus.RETIRED: set()},
    field_name='asset status',
)


class TransitionKind(str, Enum):
    ENTERED = 'entered_maintenance'
    COMPLETED = 'completed_maintenance'
    REGRADED = 'regraded'
    UNCHANGED = 'unchanged'
    SKIPPED = 'skipped'


@dataclass(frozen=True)
class MaintenanceProgress:
    days_under_maintenance: int
    is_overdue: bool


@dataclass(frozen=True)
class Transition:
    kind: TransitionKind
    previous_status: AssetStatus
    previous_condition: AssetCondition
    status: AssetStatus
    condition: AssetCondition
    assessment: Optional[HealthAssessment] = None
    progress: Optional[MaintenanceProgress] = None

    @property
    def changed(self) -> bool:
        return self.status != self.previous_status or self.condition != self.previous_condition

    @property
    def entered_maintenance(self) -> bool:
        return self.kind is TransitionKind.ENTERED


def can_accept_report(asset: Asset) -> bool:
    """Intake gate: no reports while under maintenance or retired."""
    return asset.status_enum not in BLOCKING_ASSET_STATUSES


def maintenance_progress(asset: Asset, now: datetime,
                         config: ThresholdConfig = DEFAULT_THRESHOLDS) -> MaintenanceProgress:
    if asset.maintenance_start_date is None:
        return MaintenanceProgress(0, False)
    days = max(0, (now - asset.maintenance_start_date).days)
    return MaintenanceProgress(days, days > config.MAINTENANCE_OVERDUE_DAYS)


class MaintenanceStateMachine:
    def __init__(self, config: ThresholdConfig = DEFAULT_THRESHOLDS,
                 evaluator: Callable[..., HealthAssessment] = evaluate):
        self.config = config
        self.evaluator = evaluator

    can_accept_report = staticmethod(can_accept_report)

    def assess(self, asset: Asset, open_issue_count: int, now: datetime) -> HealthAssessment:
        return self.evaluator(asset, open_issue_count, now, self.config)

    def apply(self, asset: Asset, open_issue_count: int, now: datetime) -> Transition:
        """Re-evaluate one asset and take whatever automatic transition applies."""
        prev_status, prev_condition = asset.status_enum, asset.condition_enum
        status = prev_status
        if status is AssetStatus.RETIRED:
            return Transition(TransitionKind.SKIPPED, prev_status, prev_condition, prev_status, prev_condition)

        assessment = self.assess(asset, open_issue_count, now)
        asset.last_health_check = now

        if status is AssetStatus.UNDER_MAINTENANCE:
            # exit is operator-driven; only the grade moves here
            asset.condition = assessment.condition.value
            kind = TransitionKind.REGRADED if assessment.condition != prev_condition else TransitionKind.UNCHANGED
            return Transition(kind, prev_status, prev_condition, status, assessment.condition,
                              assessment, maintenance_progress(asset, now, self.config))

        if status in NORMAL_ASSET_STATUSES:
            if assessment.requires_maintenance:
                self._enter(asset, assessment.reason_text or MANUAL_REASON, now)
                asset.condition = assessment.condition.value
                return Transition(TransitionKind.ENTERED, prev_status, prev_condition,
                                  AssetStatus.UNDER_MAINTENANCE, assessment.condition, assessment,
                                  MaintenanceProgress(0, False))
            asset.condition = assessment.condition.value
            kind = TransitionKind.REGRADED if assessment.condition != prev_condition else TransitionKind.UNCHANGED
            return Transition(kind, prev_status, prev_condition, status, assessment.condition, assessment)

        raise InvalidTransition(f'unhandled asset status {status.value}')

    def start(self, asset: Asset, now: datetime, reason: Optional[str] = None,
              open_issue_count: Optional[int] = None) -> Transition:
        """Operator-initiated entry into maintenance."""
        prev_status, prev_condition = asset.status_enum, asset.condition_enum
        ASSET_FSM.assert_can_transition(prev_status, AssetStatus.UNDER_MAINTENANCE)
        assessment = None
        if open_issue_count is not None:
            assessment = self.assess(asset, open_issue_count, now)
            asset.condition = assessment.condition.value
        self._enter(asset, reason or MANUAL_REASON, now)
        return Transition(TransitionKind.ENTERED, prev_status, prev_condition, AssetStatus.UNDER_MAINTENANCE,
                          asset.condition_enum, assessment, MaintenanceProgress(0, False))

    def complete(self, asset: Asset, open_issue_count: int, now: datetime) -> Transition:
        """Operator-initiated exit: back to working with a freshly computed condition."""
        prev_status, prev_condition = asset.status_enum, asset.condition_enum
        ASSET_FSM.assert_can_transition(prev_status, AssetStatus.WORKING)
        asset.status = AssetStatus.WORKING.value
        asset.maintenance_completed_date = now
        asset.maintenance_reason = None
        asset.maintenance_start_date = None
        asset.last_health_check = now
        # evaluate against the post-maintenance status so the grade is fresh;
        # a just-serviced asset is graded no worse than fair
        assessment = self.assess(asset, open_issue_count, now)
        condition = AssetCondition.FAIR if assessment.requires_maintenance else assessment.condition
        asset.condition = condition.value
        return Transition(TransitionKind.COMPLETED, prev_status, prev_condition, AssetStatus.WORKING,
                          condition, assessment)

    def _enter(self, asset: Asset, reason: str, now: datetime) -> None:
        asset.status = AssetStatus.UNDER_MAINTENANCE.value
        asset.maintenance_reason = reason[:255]
        asset.maintenance_start_date = now
        asset.maintenance_completed_date = None
        asset.last_health_check = now


__all__ = [
    'MaintenanceStateMachine', 'Transition', 'TransitionKind', 'MaintenanceProgress',
    'can_accept_report', 'maintenance_progress', 'ASSET_FSM', 'MANUAL_REASON',
]
