from __future__ import annotations
from flask import Blueprint, current_app, request
from sqlalchemy import select, func
from assetcare import get_db, domain_services
from assetcare.constants.lifecycle import AssetCondition, AssetStatus, values
from assetcare.decorators.auth import require_permissions
from assetcare.errors import ValidationFailure
from assetcare.models.asset import Asset
from assetcare.services.maintenance import Transition, maintenance_progress
from assetcare.services.policy import current_actor
from assetcare.services.sweep import HealthSweep
from assetcare.services.tickets import count_open_issues, get_asset_or_404
from assetcare.utils.clock import utcnow, isoformat
from assetcare.utils.listing import apply_pagination, build_list_payload

health_bp = Blueprint('asset_health', __name__)

MAINTENANCE_ACTIONS = ('start', 'complete')


@health_bp.get('/summary')
@require_permissions('HEALTH.READ')
def summary():
    session = get_db()
    counts = {c: 0 for c in values(AssetCondition)}
    total = 0
    for condition, n in session.execute(select(Asset.condition, func.count(Asset.id)).group_by(Asset.condition)):
        counts[condition or AssetCondition.GOOD.value] = counts.get(condition or AssetCondition.GOOD.value, 0) + n
        total += n
    under_maintenance = session.execute(
        select(func.count(Asset.id)).where(Asset.status == AssetStatus.UNDER_MAINTENANCE.value)
    ).scalar_one()
    return {
        'summary': {'total': total, **counts},
        'under_maintenance_status': under_maintenance,
        'thresholds': domain_services()['thresholds'].as_dict(),
        'conditions': list(values(AssetCondition)),
    }


@health_bp.post('/check-all')
@require_permissions('HEALTH.MANAGE')
def check_all():
    sweep = HealthSweep(get_db, domain_services()['thresholds'], workers=current_app.config['HEALTH_SWEEP_WORKERS'])
    result = sweep.run_all(utcnow())
    current_app.logger.info('health sweep triggered by %s', current_actor())
    return result.as_dict()


@health_bp.post('/check/<asset_ref>')
@require_permissions('HEALTH.MANAGE')
def check_one(asset_ref: str):
    session = get_db()
    sweep = HealthSweep(get_db, domain_services()['thresholds'])
    transition = sweep.check_asset(session, asset_ref, utcnow())
    asset = get_asset_or_404(session, asset_ref)
    return _transition_json(asset, transition)


@health_bp.get('/maintenance')
@require_permissions('HEALTH.READ')
def list_under_maintenance():
    session = get_db()
    thresholds = domain_services()['thresholds']
    stmt = (select(Asset)
            .where(Asset.status == AssetStatus.UNDER_MAINTENANCE.value)
            .order_by(Asset.maintenance_start_date.desc(), Asset.id.desc()))
    paged, total, limit, offset = apply_pagination(session, stmt)
    now = utcnow()
    rows = []
    for a in session.execute(paged).scalars():
        progress = maintenance_progress(a, now, thresholds)
        row = _asset_json(a)
        row['days_under_maintenance'] = progress.days_under_maintenance
        row['is_overdue'] = progress.is_overdue
        rows.append(row)
    return build_list_payload(rows, total, limit, offset)


@health_bp.patch('/<asset_ref>/maintenance')
@require_permissions('HEALTH.MANAGE')
def update_maintenance(asset_ref: str):
    session = get_db()
    data = request.get_json(silent=True) or {}
    action = data.get('status')
    if action not in MAINTENANCE_ACTIONS:
        raise ValidationFailure('Status must be "start" or "complete"', fields=['status'])
    machine = domain_services()['maintenance']
    asset = get_asset_or_404(session, asset_ref, for_update=True)
    open_issues = count_open_issues(session, asset.id, machine.config.OPEN_ISSUE_BASIS)
    now = utcnow()
    if action == 'start':
        transition = machine.start(asset, now, reason=data.get('reason'), open_issue_count=open_issues)
    else:
        transition = machine.complete(asset, open_issues, now)
    session.commit()
    current_app.logger.info('maintenance %s on %s by %s', action, asset.asset_tag, current_actor())
    return _transition_json(asset, transition)


def _asset_json(a: Asset):
    return {
        'id': a.id,
        'asset_tag': a.asset_tag,
        'name': a.name,
        'category': a.category,
        'status': a.status,
        'condition': a.condition,
        'purchase_date': a.purchase_date.isoformat() if a.purchase_date else None,
        'warranty_expiry': a.warranty_expiry.isoformat() if a.warranty_expiry else None,
        'amc_expiry': a.amc_expiry.isoformat() if a.amc_expiry else None,
        'last_health_check': isoformat(a.last_health_check),
        'maintenance_reason': a.maintenance_reason,
        'maintenance_start_date': isoformat(a.maintenance_start_date),
        'maintenance_completed_date': isoformat(a.maintenance_completed_date),
    }


def _transition_json(a: Asset, t: Transition):
    body = _asset_json(a)
    body['transition'] = t.kind.value
    body['previous_status'] = t.previous_status.value
    body['previous_condition'] = t.previous_condition.value
    if t.assessment is not None:
        body['assessment'] = t.assessment.as_dict()
    if t.progress is not None:
        body['days_under_maintenance'] = t.progress.days_under_maintenance
        body['is_overdue'] = t.progress.is_overdue
    return body
