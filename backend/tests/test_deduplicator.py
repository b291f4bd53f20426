from datetime import timedelta
import pytest
from assetcare.errors import InvalidTransition, ValidationFailure
from assetcare.services.deduplicator import Deduplicator, default_title
from assetcare.services.tickets import count_open_issues, next_ticket_code
from assetcare.config.thresholds import IssueCountBasis
from tests.test_utils_seed import NOW, ensure_asset, make_draft, create_ticket


def test_first_report_creates_ticket_with_code_and_title(db_session):
    asset = ensure_asset('DD-1', name='Lab Projector')
    out = Deduplicator().submit(db_session, asset, make_draft(asset.asset_tag), NOW, 'fp-1')
    db_session.commit()
    assert not out.merged
    t = out.ticket
    assert t.code == 'ISS-2025-001'
    assert t.title == default_title('not_working', asset) == 'Not working - Lab Projector'
    assert t.status == 'open'
    assert [r.position for r in t.reports] == [0]
    assert t.reports[0].device_fingerprint == 'fp-1'


def test_same_asset_and_category_merges_in_submission_order(db_session):
    asset = ensure_asset('DD-2')
    dedup = Deduplicator()
    first = dedup.submit(db_session, asset, make_draft(asset.id, name='A', email='a@example.com'), NOW)
    second = dedup.submit(db_session, asset, make_draft(asset.id, name='B', email='b@example.com'), NOW + timedelta(minutes=1))
    third = dedup.submit(db_session, asset, make_draft(asset.id, name='C', email='c@example.com'), NOW + timedelta(minutes=2))
    db_session.commit()
    assert second.merged and third.merged
    assert first.ticket.id == second.ticket.id == third.ticket.id
    assert [r.reporter_name for r in third.ticket.reports] == ['A', 'B', 'C']
    assert [r.position for r in third.ticket.reports] == [0, 1, 2]
    assert count_open_issues(db_session, asset.id) == 1
    assert count_open_issues(db_session, asset.id, IssueCountBasis.REPORTS) == 3


def test_different_categories_open_separate_tickets(db_session):
    asset = ensure_asset('DD-3')
    dedup = Deduplicator()
    a = dedup.submit(db_session, asset, make_draft(asset.id, category='damage'), NOW)
    b = dedup.submit(db_session, asset, make_draft(asset.id, category='repair'), NOW)
    db_session.commit()
    assert a.ticket.id != b.ticket.id
    assert not a.merged and not b.merged
    assert {a.ticket.code, b.ticket.code} == {'ISS-2025-001', 'ISS-2025-002'}


def test_in_progress_ticket_still_matches(db_session):
    asset = ensure_asset('DD-4')
    existing = create_ticket(asset, 'ISS-2025-010', status='in_progress')
    out = Deduplicator().submit(db_session, asset, make_draft(asset.id), NOW)
    db_session.commit()
    assert out.merged
    assert out.ticket.id == existing.id
    assert len(out.ticket.reports) == 2


def test_closed_tickets_never_match(db_session):
    asset = ensure_asset('DD-5')
    create_ticket(asset, 'ISS-2025-001', status='completed')
    create_ticket(asset, 'ISS-2025-002', status='cancelled')
    out = Deduplicator().submit(db_session, asset, make_draft(asset.id), NOW)
    db_session.commit()
    assert not out.merged
    assert out.ticket.code == 'ISS-2025-003'


def test_most_recent_active_ticket_wins(db_session):
    asset = ensure_asset('DD-6')
    create_ticket(asset, 'ISS-2025-001', status='in_progress', created_at=NOW - timedelta(days=3))
    newer = create_ticket(asset, 'ISS-2025-002', status='open', created_at=NOW - timedelta(days=1))
    out = Deduplicator().submit(db_session, asset, make_draft(asset.id), NOW)
    db_session.commit()
    assert out.ticket.id == newer.id


def test_next_ticket_code_is_per_year(db_session):
    asset = ensure_asset('DD-7')
    create_ticket(asset, 'ISS-2024-007', status='completed')
    assert next_ticket_code(db_session, NOW) == 'ISS-2025-001'
    assert next_ticket_code(db_session, NOW.replace(year=2024)) == 'ISS-2024-008'


def test_next_ticket_code_reads_highest_suffix_past_three_digits(db_session):
    asset = ensure_asset('DD-7B')
    create_ticket(asset, 'ISS-2025-999', status='completed')
    assert next_ticket_code(db_session, NOW) == 'ISS-2025-1000'
    create_ticket(asset, 'ISS-2025-1000', status='cancelled')
    create_ticket(asset, 'ISS-2025-998', status='completed')
    assert next_ticket_code(db_session, NOW) == 'ISS-2025-1001'


def test_append_to_terminal_ticket_rejected(db_session):
    asset = ensure_asset('DD-8')
    done = create_ticket(asset, 'ISS-2025-001', status='completed')
    with pytest.raises(InvalidTransition):
        Deduplicator().append_report(done, make_draft(asset.id), NOW)


def test_merge_tickets_folds_entries_and_records_trail(db_session):
    asset = ensure_asset('DD-9')
    target = create_ticket(asset, 'ISS-2025-001', category='damage', reports=2)
    source = create_ticket(asset, 'ISS-2025-002', category='repair', reports=1)
    Deduplicator().merge_tickets(db_session, source, target, NOW)
    db_session.commit()
    assert [r.position for r in target.reports] == [0, 1, 2]
    assert [r.description for r in target.reports] == ['report 0', 'report 1', 'report 0']
    assert target.merged_from == ['ISS-2025-002']
    assert source.status == 'cancelled'
    assert source.resolution_notes == 'Merged into ISS-2025-001'
    # source keeps its own entries as history
    assert len(source.reports) == 1


def test_merge_tickets_carries_previous_trail(db_session):
    asset = ensure_asset('DD-10')
    a = create_ticket(asset, 'ISS-2025-001', category='damage')
    b = create_ticket(asset, 'ISS-2025-002', category='repair')
    c = create_ticket(asset, 'ISS-2025-003', category='other')
    dedup = Deduplicator()
    dedup.merge_tickets(db_session, c, b, NOW)
    dedup.merge_tickets(db_session, b, a, NOW)
    db_session.commit()
    assert a.merged_from == ['ISS-2025-003', 'ISS-2025-002']
    assert len(a.reports) == 3


def test_merge_tickets_rejects_bad_pairs(db_session):
    a1 = ensure_asset('DD-11')
    a2 = ensure_asset('DD-12')
    t1 = create_ticket(a1, 'ISS-2025-001')
    t2 = create_ticket(a2, 'ISS-2025-002')
    done = create_ticket(a1, 'ISS-2025-003', category='damage', status='completed')
    dedup = Deduplicator()
    with pytest.raises(ValidationFailure):
        dedup.merge_tickets(db_session, t1, t1, NOW)
    with pytest.raises(ValidationFailure):
        dedup.merge_tickets(db_session, t1, t2, NOW)
    with pytest.raises(InvalidTransition):
        dedup.merge_tickets(db_session, done, t1, NOW)
