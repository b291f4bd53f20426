from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, JSON, Index, UniqueConstraint, text
from assetcare.models.base import Base
from assetcare.constants.lifecycle import TicketStatus, TicketPriority, TicketCategory


class Ticket(Base):
    __tablename__ = 'tickets'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)  # ISS-2024-001
    asset_id: Mapped[int] = mapped_column(ForeignKey('assets.id', ondelete='CASCADE'), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default=TicketCategory.OTHER.value)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=TicketStatus.OPEN.value, index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=TicketPriority.MEDIUM.value)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reporter_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reporter_email: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reporter_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    merged_from: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    reports: Mapped[List['ReportEntry']] = relationship(
        'ReportEntry',
        back_populates='ticket',
        order_by='ReportEntry.position',
        cascade='all, delete-orphan',
    )

    __table_args__ = (
        Index('ix_tickets_asset_status_category', 'asset_id', 'status', 'category'),
        # At most one open ticket per (asset, category); the loser of a concurrent
        # create retries as a merge.
        Index(
            'uq_tickets_open_asset_category', 'asset_id', 'category',
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
    )

    @property
    def status_enum(self) -> TicketStatus:
        return TicketStatus(self.status)


class ReportEntry(Base):
    """One reporter's submission; owned by exactly one ticket."""
    __tablename__ = 'report_entries'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    reporter_name: Mapped[str] = mapped_column(String(128), nullable=False)
    reporter_email: Mapped[str] = mapped_column(String(128), nullable=False)
    reporter_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    device_fingerprint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    ticket = relationship('Ticket', back_populates='reports')

    __table_args__ = (UniqueConstraint('ticket_id', 'position', name='uq_report_entry_position'),)
