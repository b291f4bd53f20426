"""Fold incoming reports into an existing active ticket or open a new one.

Matching key: same asset, same category, status open or in_progress. When
several tickets match, the most recently created wins. Report entries keep
submission order via a dense `position` column; (ticket_id, position) is
unique so two concurrent appends cannot claim the same slot.

The partial unique index on open tickets per (asset, category) turns a
concurrent double-create into an IntegrityError. Callers roll back and call
submit() again, which then finds the winner's ticket and merges.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from assetcare.constants.lifecycle import TicketStatus, TERMINAL_TICKET_STATUSES
from assetcare.errors import InvalidTransition, ValidationFailure
from assetcare.models.asset import Asset
from assetcare.models.ticket import Ticket, ReportEntry
from assetcare.services.tickets import ACTIVE_VALUES, next_ticket_code
from assetcare.utils.validation import ReportDraft

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupOutcome:
    ticket: Ticket
    merged: bool

    @property
    def ticket_code(self) -> str:
        return self.ticket.code


def _entry_from(report: ReportDraft, position: int, now: datetime, device_fingerprint: Optional[str]) -> ReportEntry:
    return ReportEntry(
        position=position,
        reporter_name=report.reporter_name,
        reporter_email=report.reporter_email,
        reporter_phone=report.reporter_phone,
        description=report.description,
        photos=[dict(p) for p in report.photos],
        device_fingerprint=device_fingerprint,
        created_at=now,
    )


def default_title(category: str, asset: Asset) -> str:
    return f"{category.replace('_', ' ').capitalize()} - {asset.name}"


class Deduplicator:

    def find_match(self, session: Session, asset_id: int, category: str) -> Optional[Ticket]:
        stmt = (
            select(Ticket)
            .where(Ticket.asset_id == asset_id, Ticket.category == category, Ticket.status.in_(ACTIVE_VALUES))
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return session.execute(stmt).scalars().first()

    def submit(self, session: Session, asset: Asset, report: ReportDraft, now: datetime,
               device_fingerprint: Optional[str] = None) -> DedupOutcome:
        """Append to the matching active ticket, else create one. Flushes, never commits."""
        existing = self.find_match(session, asset.id, report.category)
        if existing is not None:
            self.append_report(existing, report, now, device_fingerprint)
            session.flush()
            log.info('merged report into %s (asset=%s entries=%s)', existing.code, asset.asset_tag, len(existing.reports))
            return DedupOutcome(existing, merged=True)

        ticket = Ticket(
            code=next_ticket_code(session, now),
            asset_id=asset.id,
            category=report.category,
            status=TicketStatus.OPEN.value,
            priority=report.priority,
            title=report.title or default_title(report.category, asset),
            description=report.description,
            reporter_name=report.reporter_name,
            reporter_email=report.reporter_email,
            reporter_phone=report.reporter_phone,
            merged_from=[],
            created_at=now,
            updated_at=now,
        )
        ticket.reports.append(_entry_from(report, 0, now, device_fingerprint))
        session.add(ticket)
        session.flush()
        log.info('opened %s for asset=%s category=%s', ticket.code, asset.asset_tag, report.category)
        return DedupOutcome(ticket, merged=False)

    def append_report(self, ticket: Ticket, report: ReportDraft, now: datetime,
                      device_fingerprint: Optional[str] = None) -> ReportEntry:
        if ticket.status_enum in TERMINAL_TICKET_STATUSES:
            raise InvalidTransition(f'Ticket {ticket.code} is {ticket.status} and accepts no new reports')
        position = (ticket.reports[-1].position + 1) if ticket.reports else 0
        entry = _entry_from(report, position, now, device_fingerprint)
        ticket.reports.append(entry)
        ticket.updated_at = now
        return entry

    def merge_tickets(self, session: Session, source: Ticket, target: Ticket, now: datetime) -> Ticket:
        """Fold `source` wholesale into `target`.

        Target keeps its own entries first, followed by copies of the source's
        entries in their original order. The source keeps its entries as history,
        is cancelled, and its code is appended to target.merged_from
        (together with anything the source had itself absorbed).
        """
        if source.id == target.id:
            raise ValidationFailure('cannot merge a ticket into itself', fields=['into'])
        if source.asset_id != target.asset_id:
            raise ValidationFailure('tickets belong to different assets', fields=['into'])
        for t in (source, target):
            if t.status_enum in TERMINAL_TICKET_STATUSES:
                raise InvalidTransition(f'Ticket {t.code} is {t.status} and cannot be merged')

        next_pos = (target.reports[-1].position + 1) if target.reports else 0
        moved = list(source.reports)
        for offset, entry in enumerate(moved):
            target.reports.append(ReportEntry(
                position=next_pos + offset,
                reporter_name=entry.reporter_name,
                reporter_email=entry.reporter_email,
                reporter_phone=entry.reporter_phone,
                description=entry.description,
                photos=list(entry.photos or []),
                device_fingerprint=entry.device_fingerprint,
                created_at=entry.created_at,
            ))
        target.merged_from = list(target.merged_from or []) + list(source.merged_from or []) + [source.code]
        target.updated_at = now
        source.status = TicketStatus.CANCELLED.value
        source.resolution_notes = f'Merged into {target.code}'
        source.resolved_at = now
        source.updated_at = now
        session.flush()
        log.info('merged ticket %s into %s (%s entries copied)', source.code, target.code, len(moved))
        return target


__all__ = ['Deduplicator', 'DedupOutcome', 'default_title']
