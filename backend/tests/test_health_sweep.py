from datetime import timedelta
import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import scoped_session, sessionmaker
from assetcare import get_db
from assetcare.config.thresholds import DEFAULT_THRESHOLDS
from assetcare.models.asset import Asset
from assetcare.models.base import Base
from assetcare.errors import NotFound, TransientStoreFailure
from assetcare.services import sweep as sweep_mod
from assetcare.services.sweep import HealthSweep, SweepSummary
from tests.test_utils_seed import NOW, ensure_asset, years_ago, create_ticket, put_under_maintenance


def _fleet():
    healthy = ensure_asset('SW-1', condition='excellent')
    aging = ensure_asset('SW-2', purchase_date=years_ago(4))
    ancient = ensure_asset('SW-3', purchase_date=years_ago(7))
    ensure_asset('SW-4', status='retired', purchase_date=years_ago(9))
    busy = ensure_asset('SW-5', condition='excellent')
    for i in range(DEFAULT_THRESHOLDS.OPEN_ISSUES_WARNING):
        create_ticket(busy, f'ISS-2025-{i + 1:03d}', category=['repair', 'damage', 'other'][i])
    return healthy, aging, ancient, busy


def test_run_all_counts_and_transitions(db_session):
    healthy, aging, ancient, busy = _fleet()
    summary = HealthSweep(get_db).run_all(NOW)
    assert summary.total == 4
    assert summary.maintenance == 2
    assert summary.critical == 1
    # aging -> poor, ancient -> critical, busy -> fair; healthy unchanged
    assert summary.updated == 3
    assert summary.errors == []
    assert aging.status == 'under_maintenance' and aging.condition == 'poor'
    assert ancient.status == 'under_maintenance' and ancient.condition == 'critical'
    assert busy.status == 'available' and busy.condition == 'fair'
    assert healthy.last_health_check == NOW


def test_second_run_is_idempotent(db_session):
    _fleet()
    sweep = HealthSweep(get_db)
    sweep.run_all(NOW)
    again = sweep.run_all(NOW + timedelta(minutes=5))
    assert again.updated == 0
    assert again.maintenance == 0
    # critical counts current state, not changes
    assert again.critical == 1


def test_retired_assets_untouched(db_session):
    retired = ensure_asset('SW-6', status='retired', condition='fair', purchase_date=years_ago(12))
    HealthSweep(get_db).run_all(NOW)
    db_session.refresh(retired)
    assert retired.status == 'retired'
    assert retired.condition == 'fair'
    assert retired.last_health_check is None


def test_assets_under_maintenance_are_regraded_not_reentered(db_session):
    asset = ensure_asset('SW-7', purchase_date=years_ago(4))
    put_under_maintenance(asset, reason='manual', started=NOW - timedelta(days=1))
    summary = HealthSweep(get_db).run_all(NOW)
    assert summary.maintenance == 0
    assert asset.status == 'under_maintenance'
    assert asset.maintenance_reason == 'manual'
    assert asset.condition == 'poor'


def test_parallel_workers_on_file_store(tmp_path):
    # separate connections per worker need a file-backed store
    engine = create_engine(f"sqlite:///{tmp_path / 'sweep.db'}", connect_args={'timeout': 5})
    Base.metadata.create_all(engine)
    factory = scoped_session(sessionmaker(bind=engine, expire_on_commit=False, autoflush=False))
    session = factory()
    for i in range(6):
        session.add(Asset(asset_tag=f'PW-{i}', name=f'Chair {i}', category='FURN', status='available',
                          condition='good', purchase_date=years_ago(4 if i % 2 else 0),
                          warranty_expiry=NOW.date() + timedelta(days=365)))
    session.commit()
    factory.remove()
    try:
        summary = HealthSweep(factory, workers=3).run_all(NOW)
        assert summary.total == 6
        assert summary.maintenance == 3
        assert summary.updated == 6
        assert summary.errors == []
        statuses = factory().execute(select(Asset.status).order_by(Asset.id)).scalars().all()
        assert statuses == ['available', 'under_maintenance'] * 3
    finally:
        factory.remove()
        engine.dispose()

def test_check_asset_unknown_raises_not_found(db_session):
    with pytest.raises(NotFound):
        HealthSweep(get_db).check_asset(db_session, 'SW-missing', NOW)


def test_store_failure_maps_to_transient(db_session, monkeypatch):
    ensure_asset('SW-8')

    def boom(*a, **k):
        raise OperationalError('SELECT count', {}, Exception('timeout'))
    monkeypatch.setattr(sweep_mod, 'count_open_issues', boom)
    with pytest.raises(TransientStoreFailure):
        HealthSweep(get_db).check_asset(db_session, 'SW-8', NOW)


def test_summary_merge():
    a = SweepSummary(total=2, updated=1, maintenance=1, critical=0)
    b = SweepSummary(total=3, updated=2, maintenance=0, critical=1, errors=[{'asset_id': 9}])
    a.merge(b)
    assert a.as_dict() == {'total': 5, 'updated': 3, 'maintenance': 1, 'critical': 1, 'errors': [{'asset_id': 9}]}
