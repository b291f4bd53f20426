"""Fleet-wide health sweep.

Re-evaluates every non-retired asset and applies the automatic maintenance
transitions. Each asset is handled in its own short transaction under a row
lock plus the asset's optimistic version column, so a sweep can run next to
live intake. A version conflict is retried once with a fresh read; a second
conflict is reported in `errors` and the sweep moves on.

Running the sweep twice with no intervening activity yields zero updates the
second time: evaluation is a pure function of stored state.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from assetcare.config.thresholds import ThresholdConfig, DEFAULT_THRESHOLDS
from assetcare.constants.lifecycle import AssetCondition, AssetStatus
from assetcare.errors import ConflictRetryable, NotFound, TransientStoreFailure
from assetcare.models.asset import Asset
from assetcare.services.maintenance import MaintenanceStateMachine, Transition, TransitionKind
from assetcare.services.tickets import count_open_issues, find_asset

log = logging.getLogger(__name__)

MAX_ASSET_ATTEMPTS = 2


@dataclass
class SweepSummary:
    total: int = 0
    updated: int = 0
    maintenance: int = 0
    critical: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, transition: Transition) -> None:
        self.total += 1
        if transition.kind is TransitionKind.SKIPPED:
            return
        if transition.changed:
            self.updated += 1
        if transition.entered_maintenance:
            self.maintenance += 1
        if transition.condition is AssetCondition.CRITICAL:
            self.critical += 1

    def merge(self, other: 'SweepSummary') -> None:
        self.total += other.total
        self.updated += other.updated
        self.maintenance += other.maintenance
        self.critical += other.critical
        self.errors.extend(other.errors)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'updated': self.updated,
            'maintenance': self.maintenance,
            'critical': self.critical,
            'errors': list(self.errors),
        }


class HealthSweep:
    def __init__(self, session_factory: Callable[[], Session], config: ThresholdConfig = DEFAULT_THRESHOLDS,
                 workers: int = 1, state_machine: Optional[MaintenanceStateMachine] = None):
        self.session_factory = session_factory
        self.config = config
        self.workers = max(1, int(workers))
        self.state_machine = state_machine or MaintenanceStateMachine(config)

    def check_asset(self, session: Session, asset_ref: Any, now: datetime) -> Transition:
        """Evaluate and transition one asset, committing the result."""
        for attempt in range(1, MAX_ASSET_ATTEMPTS + 1):
            try:
                asset = find_asset(session, asset_ref, for_update=True)
                if asset is None:
                    raise NotFound(f'Asset {asset_ref} not found')
                count = count_open_issues(session, asset.id, self.config.OPEN_ISSUE_BASIS)
                transition = self.state_machine.apply(asset, count, now)
                session.commit()
                if transition.entered_maintenance:
                    log.info('asset %s placed under maintenance: %s', asset.asset_tag, asset.maintenance_reason)
                return transition
            except (StaleDataError, IntegrityError) as e:
                session.rollback()
                if attempt >= MAX_ASSET_ATTEMPTS:
                    raise ConflictRetryable(f'Asset {asset_ref} changed concurrently during health check') from e
                log.warning('health check conflict on asset %s, retrying', asset_ref)
            except (OperationalError, PoolTimeoutError) as e:
                session.rollback()
                log.error('store failure during health check of asset %s', asset_ref, exc_info=True)
                raise TransientStoreFailure('Asset store unavailable during health check') from e
        raise ConflictRetryable(f'Asset {asset_ref} changed concurrently during health check')

    def _run_chunk(self, asset_ids: List[int], now: datetime, own_session: bool) -> SweepSummary:
        summary = SweepSummary()
        session = self.session_factory()
        try:
            for asset_id in asset_ids:
                try:
                    summary.record(self.check_asset(session, asset_id, now))
                except (ConflictRetryable, NotFound) as e:
                    # NotFound: deleted between listing and checking
                    summary.total += 1
                    summary.errors.append({'asset_id': asset_id, 'error': e.detail, 'kind': e.kind})
        finally:
            if own_session:
                session.close()
        return summary

    def run_all(self, now: datetime) -> SweepSummary:
        session = self.session_factory()
        try:
            asset_ids = session.execute(
                select(Asset.id).where(Asset.status != AssetStatus.RETIRED.value).order_by(Asset.id)
            ).scalars().all()
            session.commit()
        except (OperationalError, PoolTimeoutError) as e:
            session.rollback()
            raise TransientStoreFailure('Asset store unavailable during health sweep') from e

        if self.workers == 1 or len(asset_ids) < 2:
            summary = self._run_chunk(list(asset_ids), now, own_session=False)
        else:
            # distinct assets never share a chunk, so per-asset work stays serial
            chunks = [asset_ids[i::self.workers] for i in range(self.workers)]
            summary = SweepSummary()
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix='health-sweep') as pool:
                for part in pool.map(lambda ids: self._run_chunk(ids, now, own_session=True), chunks):
                    summary.merge(part)
        log.info('health sweep done: total=%s updated=%s maintenance=%s critical=%s errors=%s',
                 summary.total, summary.updated, summary.maintenance, summary.critical, len(summary.errors))
        return summary


__all__ = ['HealthSweep', 'SweepSummary']
