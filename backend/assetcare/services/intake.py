"""Report intake pipeline.

Checks run in a fixed order and the first failure wins:

    payload validation      -> ValidationFailure (400)
    asset exists / retired  -> NotFound (404) / AssetRetired (410)
    maintenance gate        -> AssetUnderMaintenance (409)
    rate limiter            -> RateLimited (429)
    deduplicator            -> created | merged

The rate-limit record is committed on its own before the ticket write, so
abuse tracking survives a failure (or client disconnect) further down. The
ticket write re-reads the asset under a row lock and bumps its version; a
concurrent maintenance transition therefore either blocks us or makes the
flush fail, and the single retry then sees the new status at the gate.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from assetcare.constants.lifecycle import AssetStatus
from assetcare.errors import (
    AssetCareError, AssetRetired, AssetUnderMaintenance, ConflictRetryable, NotFound, RateLimited,
    TransientStoreFailure,
)
from assetcare.models.asset import Asset
from assetcare.services.deduplicator import Deduplicator
from assetcare.services.maintenance import can_accept_report
from assetcare.services.rate_limiter import RateLimiter
from assetcare.services.tickets import find_asset
from assetcare.utils.validation import ReportDraft, validate_report_payload

log = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 2


@dataclass(frozen=True)
class IntakeResult:
    ticket_id: int
    ticket_code: str
    asset_tag: str
    merged: bool
    report_count: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            'id': self.ticket_id,
            'ticket_id': self.ticket_code,
            'asset_tag': self.asset_tag,
            'merged': self.merged,
            'report_count': self.report_count,
            'message': ('Your report was added to an existing issue.' if self.merged
                        else 'Thank you. Your report has been logged.'),
        }


class IntakePipeline:
    def __init__(self, rate_limiter: Optional[RateLimiter] = None, deduplicator: Optional[Deduplicator] = None):
        self.rate_limiter = rate_limiter or RateLimiter()
        self.deduplicator = deduplicator or Deduplicator()

    def handle_report(self, session: Session, device_fingerprint: str, asset_id: Optional[Any],
                      payload: Optional[Dict[str, Any]], now: datetime,
                      ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> IntakeResult:
        if isinstance(payload, dict) and asset_id is not None:
            payload = {**payload, 'assetId': asset_id}
        draft = validate_report_payload(payload)
        try:
            asset = self._admit(session, device_fingerprint, draft, now, ip_address, user_agent)
            return self._file(session, asset.id, draft, now, device_fingerprint)
        except (OperationalError, PoolTimeoutError) as e:
            session.rollback()
            log.error('store failure during intake for asset=%s', draft.asset_ref, exc_info=True)
            raise TransientStoreFailure('Ticket store unavailable, please retry later') from e
        except AssetCareError:
            session.rollback()
            raise

    def _check_gate(self, asset: Optional[Asset], ref: str) -> Asset:
        if asset is None:
            raise NotFound(f'Asset {ref} not found')
        if asset.status_enum is AssetStatus.RETIRED:
            raise AssetRetired(f'Asset {asset.asset_tag} is retired')
        if not can_accept_report(asset):
            log.info('intake blocked: asset=%s under maintenance', asset.asset_tag)
            raise AssetUnderMaintenance(asset.asset_tag, asset.maintenance_reason)
        return asset

    def _admit(self, session: Session, device_fingerprint: str, draft: ReportDraft, now: datetime,
               ip_address: Optional[str], user_agent: Optional[str]) -> Asset:
        asset = self._check_gate(find_asset(session, draft.asset_ref), draft.asset_ref)
        decision = self.rate_limiter.check_and_record(
            session, device_fingerprint, asset.id, now, ip_address=ip_address, user_agent=user_agent,
        )
        session.commit()
        if decision.throttled:
            raise RateLimited(decision.retry_after)
        return asset

    def _file(self, session: Session, asset_id: int, draft: ReportDraft, now: datetime,
              device_fingerprint: str) -> IntakeResult:
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            try:
                asset = self._check_gate(find_asset(session, asset_id, for_update=True), str(asset_id))
                outcome = self.deduplicator.submit(session, asset, draft, now, device_fingerprint)
                asset.last_reported_at = now
                session.flush()
                result = IntakeResult(
                    ticket_id=outcome.ticket.id,
                    ticket_code=outcome.ticket.code,
                    asset_tag=asset.asset_tag,
                    merged=outcome.merged,
                    report_count=len(outcome.ticket.reports),
                )
                session.commit()
                return result
            except (IntegrityError, StaleDataError) as e:
                session.rollback()
                if attempt >= MAX_WRITE_ATTEMPTS:
                    log.warning('intake conflict persisted for asset=%s', asset_id)
                    raise ConflictRetryable('Concurrent update on this asset, please retry') from e
                log.warning('intake write conflict for asset=%s, retrying (%s)', asset_id, e.__class__.__name__)
        raise ConflictRetryable('Concurrent update on this asset, please retry')


__all__ = ['IntakePipeline', 'IntakeResult', 'MAX_WRITE_ATTEMPTS']
