import pytest
from flask import Flask
from assetcare.errors import ValidationFailure
from assetcare.utils.fingerprint import client_ip, device_fingerprint
from assetcare.utils.listing import normalize_pagination
from assetcare.utils.validation import (
    validate_report_payload, MAX_EMAIL, MAX_NAME, MAX_PHONE, MAX_PHOTOS, MAX_TITLE,
)


def test_report_payload_normalised():
    draft = validate_report_payload({
        'asset_id': ' AST-9 ',
        'reporter_name': ' Dana ',
        'reporter_email': 'Dana@Example.COM',
        'description': '  Screen cracked  ',
        'issueType': 'DAMAGE',
        'priority': 'High',
        'photos': [{'url': 'https://cdn/1.jpg', 'extra': 1}, {'caption': 'missing'}, 'junk'],
    })
    assert draft.asset_ref == 'AST-9'
    assert draft.reporter_name == 'Dana'
    assert draft.reporter_email == 'dana@example.com'
    assert draft.description == 'Screen cracked'
    assert draft.category == 'damage'
    assert draft.priority == 'high'
    assert draft.photos == ({'url': 'https://cdn/1.jpg'},)


def test_report_defaults():
    draft = validate_report_payload({'assetId': '1', 'reporterName': 'A', 'reporterEmail': 'a@b.co', 'description': 'x'})
    assert draft.category == 'other'
    assert draft.priority == 'medium'
    assert draft.photos == ()
    assert draft.reporter_phone is None


def test_report_limits():
    base = {'assetId': '1', 'reporterName': 'A', 'reporterEmail': 'a@b.co'}
    with pytest.raises(ValidationFailure):
        validate_report_payload(dict(base, description='x' * 5001))
    with pytest.raises(ValidationFailure):
        validate_report_payload(dict(base, description='x', photos=[{'url': f'u{i}'} for i in range(MAX_PHOTOS + 1)]))
    with pytest.raises(ValidationFailure):
        validate_report_payload(dict(base, description='x', priority='urgent'))
    with pytest.raises(ValidationFailure) as exc:
        validate_report_payload(dict(base, description='   '))
    assert exc.value.extra['fields'] == ['description']


@pytest.mark.parametrize('field_name,limit', [
    ('reporterName', MAX_NAME),
    ('reporterEmail', MAX_EMAIL),
    ('reporterPhone', MAX_PHONE),
    ('title', MAX_TITLE),
])
def test_report_fields_bounded_by_column_size(field_name, limit):
    base = {'assetId': '1', 'reporterName': 'A', 'reporterEmail': 'a@b.co', 'description': 'x'}
    value = 'a' * (limit - len('@b.co')) + '@b.co' if field_name == 'reporterEmail' else 'a' * limit
    assert len(value) == limit
    validate_report_payload(dict(base, **{field_name: value}))
    with pytest.raises(ValidationFailure) as exc:
        validate_report_payload(dict(base, **{field_name: 'b' + value}))
    assert exc.value.extra['fields'] == [field_name]


def test_pagination_bounds():
    assert normalize_pagination(None, None) == (50, 0)
    assert normalize_pagination('500', '-3') == (200, 0)
    with pytest.raises(ValidationFailure):
        normalize_pagination('ten', None)


def test_fingerprint_header_precedence(app_context: Flask):
    with app_context.test_request_context('/issues', headers={'X-Device-Fingerprint': 'kiosk-lobby-01'}):
        from flask import request
        assert device_fingerprint(request) == 'kiosk-lobby-01'


def test_fingerprint_derived_from_request_traits(app_context: Flask):
    from flask import request
    env = {'REMOTE_ADDR': '10.0.0.5'}
    with app_context.test_request_context('/issues', headers={'User-Agent': 'UA-1'}, environ_base=env):
        first = device_fingerprint(request)
        assert len(first) == 64
        assert client_ip(request) == '10.0.0.5'
    with app_context.test_request_context('/issues', headers={'User-Agent': 'UA-2'}, environ_base=env):
        assert device_fingerprint(request) != first
    with app_context.test_request_context('/issues', headers={'X-Forwarded-For': '203.0.113.9, 10.0.0.1'}):
        assert client_ip(request) == '203.0.113.9'
