from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError
from assetcare.errors import RateLimited, AssetUnderMaintenance, ValidationFailure


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert body['error']['kind'] == 'http_error'
    assert 'detail' in body['error']


def test_method_not_allowed_shape(client):
    resp = client.delete('/issues')
    assert resp.status_code == 405
    assert resp.get_json()['error']['status'] == 405


def test_internal_error_shape(client, monkeypatch):
    import assetcare.routes.issues as issues_mod

    class BoomSession:
        def execute(self, *a, **k):
            raise RuntimeError('explode')

        def rollback(self):
            pass
    monkeypatch.setattr(issues_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/issues/ISS-2025-001')
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'
    assert body['error']['kind'] == 'internal'


def test_store_failure_maps_to_503(client, monkeypatch):
    import assetcare.routes.issues as issues_mod

    def locked(*a, **k):
        raise OperationalError('SELECT', {}, Exception('database is locked'))
    monkeypatch.setattr(issues_mod, 'get_ticket_or_404', locked)
    resp = client.get('/issues/ISS-2025-001')
    assert resp.status_code == 503
    body = resp.get_json()['error']
    assert body['kind'] == 'transient_store_failure'


def test_stale_data_maps_to_conflict(client, monkeypatch):
    import assetcare.routes.issues as issues_mod

    def stale(*a, **k):
        raise StaleDataError('version mismatch')
    monkeypatch.setattr(issues_mod, 'get_ticket_or_404', stale)
    resp = client.get('/issues/ISS-2025-001')
    assert resp.status_code == 409
    assert resp.get_json()['error']['kind'] == 'conflict'


def test_error_payloads_are_machine_readable():
    rl = RateLimited(42).to_payload()['error']
    assert rl == {
        'status': 429, 'title': 'Too Many Requests', 'kind': 'rate_limited',
        'detail': 'Too many reports from this device for this asset. Try again in 42 seconds', 'retry_after': 42,
    }
    um = AssetUnderMaintenance('AST-1', 'fan').to_payload()['error']
    assert um['status'] == 409 and um['maintenance_reason'] == 'fan'
    vf = ValidationFailure('bad', fields=['x'])
    assert vf.retryable is False
    assert vf.to_payload()['error']['fields'] == ['x']
    assert RateLimited(1).retryable is True


def test_healthz(client):
    resp = client.get('/healthz')
    assert resp.status_code == 200
    assert resp.get_json() == {'status': 'ok'}
