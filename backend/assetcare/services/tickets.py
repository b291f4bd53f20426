"""Ticket store queries shared by intake, sweep and the HTTP layer."""
from __future__ import annotations
from datetime import datetime
from typing import Optional, Union
from sqlalchemy import select, func
from sqlalchemy.orm import Session
from assetcare.config.thresholds import IssueCountBasis
from assetcare.constants.lifecycle import ACTIVE_TICKET_STATUSES
from assetcare.errors import NotFound
from assetcare.models.asset import Asset
from assetcare.models.ticket import Ticket, ReportEntry

ACTIVE_VALUES = tuple(s.value for s in ACTIVE_TICKET_STATUSES)
TICKET_PREFIX = 'ISS'

MAX_ROW_ID = 2 ** 31 - 1
MAX_ID_DIGITS = len(str(MAX_ROW_ID))


def count_open_issues(session: Session, asset_id: int,
                      basis: IssueCountBasis = IssueCountBasis.TICKETS) -> int:
    """Open-issue count derived from the ticket store; never a stored counter."""
    if basis is IssueCountBasis.REPORTS:
        stmt = (select(func.count(ReportEntry.id))
                .join(Ticket, ReportEntry.ticket_id == Ticket.id)
                .where(Ticket.asset_id == asset_id, Ticket.status.in_(ACTIVE_VALUES)))
    else:
        stmt = select(func.count(Ticket.id)).where(Ticket.asset_id == asset_id, Ticket.status.in_(ACTIVE_VALUES))
    return session.execute(stmt).scalar_one()


def next_ticket_code(session: Session, now: datetime) -> str:
    """Next sequential code for the year: ISS-2024-001, ISS-2024-002, ...

    Only the highest existing code is read. Suffixes grow past three digits, so
    longer codes sort first. A concurrent create that takes the same code fails
    on the unique constraint and the retry reads the winner's code.
    """
    prefix = f'{TICKET_PREFIX}-{now.year}-'
    last = session.execute(
        select(Ticket.code)
        .where(Ticket.code.like(prefix + '%'))
        .order_by(func.length(Ticket.code).desc(), Ticket.code.desc())
        .limit(1)
    ).scalar_one_or_none()
    suffix = last[len(prefix):] if last else ''
    seq = int(suffix) if suffix.isascii() and suffix.isdigit() else 0
    return f'{prefix}{seq + 1:03d}'



def _is_row_id(ref: str) -> bool:
    # ASCII digits that fit the INTEGER primary key
    return ref.isascii() and ref.isdigit() and len(ref) <= MAX_ID_DIGITS and int(ref) <= MAX_ROW_ID


def find_asset(session: Session, ref: Union[int, str], for_update: bool = False) -> Optional[Asset]:
    """Resolve an asset by primary key or by its asset tag (what QR codes carry)."""
    stmt = select(Asset)
    ref_s = str(ref).strip()
    if _is_row_id(ref_s):
        stmt = stmt.where((Asset.id == int(ref_s)) | (Asset.asset_tag == ref_s)).order_by((Asset.id == int(ref_s)).desc())
    else:
        stmt = stmt.where(Asset.asset_tag == ref_s)
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt.execution_options(populate_existing=True)).scalars().first()


def get_asset_or_404(session: Session, ref: Union[int, str], for_update: bool = False) -> Asset:
    asset = find_asset(session, ref, for_update=for_update)
    if asset is None:
        raise NotFound(f'Asset {ref} not found')
    return asset


def get_ticket_or_404(session: Session, code: str) -> Ticket:
    ticket = session.execute(
        select(Ticket).where(Ticket.code == code.strip()).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if ticket is None:
        raise NotFound(f'Ticket {code} not found')
    return ticket


__all__ = ['count_open_issues', 'next_ticket_code', 'find_asset', 'get_asset_or_404', 'get_ticket_or_404', 'ACTIVE_VALUES']
