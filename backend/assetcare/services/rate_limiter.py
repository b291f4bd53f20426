"""Per (device fingerprint, asset) report throttle.

check_and_record() is one INSERT .. ON CONFLICT DO UPDATE .. RETURNING
statement, so two concurrent first reports from the same device cannot both
see "no record". A record untouched for a full window is logically absent:
the upsert resets its counter to 1 instead of incrementing it. Every attempt,
throttled or not, refreshes last_report_at and the ip/user-agent metadata.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import case, delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session
from assetcare.models.rate_limit import RateLimitRecord

log = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 600
DEFAULT_MAX_REPORTS = 1

_UPSERT_DIALECTS = {
    'sqlite': sqlite_insert,
    'postgresql': pg_insert,
}


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    report_count: int
    retry_after: int  # seconds; 0 when allowed

    @property
    def throttled(self) -> bool:
        return not self.allowed


class RateLimiter:
    def __init__(self, window_seconds: int = DEFAULT_WINDOW_SECONDS, max_reports: int = DEFAULT_MAX_REPORTS):
        if window_seconds <= 0:
            raise ValueError('window_seconds must be positive')
        if max_reports < 1:
            raise ValueError('max_reports must be >= 1')
        self.window = timedelta(seconds=window_seconds)
        self.max_reports = max_reports

    def _insert(self, session: Session):
        dialect = session.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise RuntimeError(f'rate limiter needs an upsert-capable store, got {dialect}')

    def check_and_record(self, session: Session, device_fingerprint: str, asset_id: int, now: datetime,
                         ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> RateLimitDecision:
        """Record one report attempt and decide whether it is admitted.

        Does not commit; the caller owns the transaction boundary.
        """
        insert = self._insert(session)
        ins = insert(RateLimitRecord).values(
            device_fingerprint=device_fingerprint,
            asset_id=asset_id,
            last_report_at=now,
            report_count=1,
            ip_address=(ip_address or '')[:64] or None,
            user_agent=(user_agent or '')[:255] or None,
        )
        expired = RateLimitRecord.last_report_at <= now - self.window
        stmt = ins.on_conflict_do_update(
            index_elements=['device_fingerprint', 'asset_id'],
            set_={
                'report_count': case((expired, 1), else_=RateLimitRecord.report_count + 1),
                'last_report_at': ins.excluded.last_report_at,
                'ip_address': ins.excluded.ip_address,
                'user_agent': ins.excluded.user_agent,
            },
        ).returning(RateLimitRecord.report_count, RateLimitRecord.last_report_at)
        count, last_report_at = session.execute(stmt).one()
        if count <= self.max_reports:
            return RateLimitDecision(True, count, 0)
        remaining = (last_report_at + self.window) - now
        retry_after = max(1, math.ceil(remaining.total_seconds()))
        log.info('rate limited device=%s asset=%s count=%s', device_fingerprint[:12], asset_id, count)
        return RateLimitDecision(False, count, retry_after)

    def purge_expired(self, session: Session, now: datetime) -> int:
        """Physically delete records that are already logically absent."""
        result = session.execute(
            delete(RateLimitRecord).where(RateLimitRecord.last_report_at <= now - self.window)
        )
        return result.rowcount or 0


__all__ = ['RateLimiter', 'RateLimitDecision', 'DEFAULT_WINDOW_SECONDS', 'DEFAULT_MAX_REPORTS']
