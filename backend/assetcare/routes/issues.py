from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select
from assetcare import get_db, domain_services
from assetcare.constants.lifecycle import TicketStatus, values
from assetcare.decorators.auth import require_permissions
from assetcare.errors import ValidationFailure
from assetcare.models.ticket import Ticket
from assetcare.services.tickets import get_ticket_or_404, find_asset
from assetcare.utils.clock import utcnow, isoformat
from assetcare.utils.fingerprint import client_ip, device_fingerprint
from assetcare.utils.fsm import TransitionValidator
from assetcare.utils.listing import apply_pagination, build_list_payload
from assetcare.utils.validation import validate_status

issues_bp = Blueprint('issues', __name__)

TICKET_FSM = TransitionValidator({
    TicketStatus.OPEN: {TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED, TicketStatus.CANCELLED},
    TicketStatus.IN_PROGRESS: {TicketStatus.COMPLETED, TicketStatus.CANCELLED},
    TicketStatus.COMPLETED: set(),
    TicketStatus.CANCELLED: set(),
}, field_name='ticket status')


@issues_bp.post('')
def submit_report():
    """Public (QR) report submission; no token required."""
    session = get_db()
    data = request.get_json(silent=True)
    result = domain_services()['intake'].handle_report(
        session,
        device_fingerprint(request),
        None,
        data,
        utcnow(),
        ip_address=client_ip(request),
        user_agent=request.headers.get('User-Agent'),
    )
    return result.as_dict(), 201


@issues_bp.get('')
@require_permissions('ISSUE.READ')
def list_tickets():
    session = get_db()
    stmt = select(Ticket)
    asset_ref = request.args.get('asset_id')
    status = request.args.get('status')
    category = request.args.get('category')
    if asset_ref:
        asset = find_asset(session, asset_ref)
        stmt = stmt.where(Ticket.asset_id == (asset.id if asset else -1))
    if status:
        stmt = stmt.where(Ticket.status == validate_status(status, values(TicketStatus)))
    if category:
        stmt = stmt.where(Ticket.category == category)
    stmt = stmt.order_by(Ticket.created_at.desc(), Ticket.id.desc())
    paged, total, limit, offset = apply_pagination(session, stmt)
    rows = [_ticket_json(t, include_reports=False) for t in session.execute(paged).scalars()]
    return build_list_payload(rows, total, limit, offset)


@issues_bp.get('/<ticket_code>')
def get_ticket(ticket_code: str):
    """Public lookup by ticket code; reporter contact details are not exposed."""
    t = get_ticket_or_404(get_db(), ticket_code)
    return _public_ticket_json(t)


@issues_bp.patch('/<ticket_code>')
@require_permissions('ISSUE.MANAGE')
def update_ticket(ticket_code: str):
    session = get_db()
    data = request.get_json(silent=True) or {}
    target = data.get('status')
    if not target:
        raise ValidationFailure('status required', fields=['status'])
    validate_status(target, values(TicketStatus))
    t = get_ticket_or_404(session, ticket_code)
    TICKET_FSM.assert_can_transition(t.status, target)
    now = utcnow()
    t.status = target
    t.updated_at = now
    if target == TicketStatus.COMPLETED.value:
        t.resolved_at = now
        t.resolution_notes = data.get('resolution_notes') or t.resolution_notes
    session.commit()
    return _ticket_json(t)


@issues_bp.post('/<ticket_code>/merge')
@require_permissions('ISSUE.MANAGE')
def merge_ticket(ticket_code: str):
    session = get_db()
    data = request.get_json(silent=True) or {}
    into = data.get('into')
    if not into:
        raise ValidationFailure('into (target ticket code) required', fields=['into'])
    source = get_ticket_or_404(session, ticket_code)
    target = get_ticket_or_404(session, str(into))
    domain_services()['intake'].deduplicator.merge_tickets(session, source, target, utcnow())
    session.commit()
    return _ticket_json(target)


def _report_json(r):
    return {
        'position': r.position,
        'reporter_name': r.reporter_name,
        'reporter_email': r.reporter_email,
        'reporter_phone': r.reporter_phone,
        'description': r.description,
        'photos': list(r.photos or []),
        'created_at': isoformat(r.created_at),
    }


def _ticket_json(t: Ticket, include_reports: bool = True):
    body = {
        'id': t.id,
        'ticket_id': t.code,
        'asset_id': t.asset_id,
        'title': t.title,
        'description': t.description,
        'category': t.category,
        'priority': t.priority,
        'status': t.status,
        'report_count': len(t.reports),
        'merged_from': list(t.merged_from or []),
        'resolution_notes': t.resolution_notes,
        'created_at': isoformat(t.created_at),
        'updated_at': isoformat(t.updated_at),
        'resolved_at': isoformat(t.resolved_at),
    }
    if include_reports:
        body['reports'] = [_report_json(r) for r in t.reports]
    return body


def _public_ticket_json(t: Ticket):
    return {
        'ticket_id': t.code,
        'title': t.title,
        'description': t.description,
        'status': t.status,
        'priority': t.priority,
        'category': t.category,
        'report_count': len(t.reports),
        'created_at': isoformat(t.created_at),
        'updated_at': isoformat(t.updated_at),
        'resolved_at': isoformat(t.resolved_at),
        'resolution_notes': t.resolution_notes,
    }
