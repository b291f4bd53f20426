from __future__ import annotations
from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Date, DateTime, func
from assetcare.models.base import Base
from assetcare.constants.lifecycle import AssetStatus, AssetCondition


class Asset(Base):
    """Asset record owned by the asset-management collaborator.

    This service only writes the health fields: status, condition,
    last_health_check, last_reported_at and the maintenance_* columns.
    Invariant: status == under_maintenance <=> maintenance_start_date is set
    and maintenance_completed_date is not.
    """
    __tablename__ = 'assets'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    asset_tag: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    warranty_expiry: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    amc_expiry: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=AssetStatus.AVAILABLE.value, index=True)
    condition: Mapped[str] = mapped_column(String(32), nullable=False, default=AssetCondition.GOOD.value, index=True)
    last_health_check: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_reported_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    maintenance_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    maintenance_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    maintenance_completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    # Optimistic locking: concurrent sweep / operator writes raise StaleDataError
    __mapper_args__ = {'version_id_col': version_id}

    @property
    def status_enum(self) -> AssetStatus:
        return AssetStatus(self.status)

    @property
    def condition_enum(self) -> AssetCondition:
        return AssetCondition(self.condition)
