from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime, ForeignKey, UniqueConstraint
from assetcare.models.base import Base


class RateLimitRecord(Base):
    """Throttle state per (device fingerprint, asset).

    A record whose last_report_at is at least one window old is logically
    absent: the next report resets it. Physical deletion is left to the
    purge-rate-limits reaper.
    """
    __tablename__ = 'rate_limits'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    device_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    asset_id: Mapped[int] = mapped_column(ForeignKey('assets.id', ondelete='CASCADE'), nullable=False)
    last_report_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    report_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (UniqueConstraint('device_fingerprint', 'asset_id', name='uq_rate_limit_device_asset'),)
