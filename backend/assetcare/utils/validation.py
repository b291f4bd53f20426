"""Reusable validation helpers.

Covers status value checks and normalisation of inbound report payloads.
Every failure raises ValidationFailure (400) and is never retried.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from assetcare.constants.lifecycle import TicketCategory, TicketPriority, values
from assetcare.errors import ValidationFailure

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MAX_DESCRIPTION = 5000
MAX_PHOTOS = 10
MAX_NAME = 128
MAX_EMAIL = 128
MAX_PHONE = 32
MAX_TITLE = 255


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises ValidationFailure.
    """
    if new_status not in allowed:
        raise ValidationFailure(f"{field_name} invalid", fields=[field_name])
    return new_status


@dataclass(frozen=True)
class ReportDraft:
    asset_ref: str
    reporter_name: str
    reporter_email: str
    description: str
    category: str = TicketCategory.OTHER.value
    priority: str = TicketPriority.MEDIUM.value
    reporter_phone: Optional[str] = None
    title: Optional[str] = None
    photos: Tuple[Dict[str, str], ...] = field(default_factory=tuple)


def _pick(data: Dict[str, Any], *keys: str):
    # accept both camelCase (QR form) and snake_case bodies
    for k in keys:
        if data.get(k) is not None:
            return data.get(k)
    return None


def _clean(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def _check_length(value: Optional[str], limit: int, field_name: str) -> None:
    # mirrors the column sizes on ReportEntry and Ticket
    if value is not None and len(value) > limit:
        raise ValidationFailure(f'{field_name} longer than {limit} characters', fields=[field_name])


def validate_report_payload(data: Optional[Dict[str, Any]]) -> ReportDraft:
    if not isinstance(data, dict):
        raise ValidationFailure('JSON object body required')
    asset_ref = _clean(_pick(data, 'assetId', 'asset_id'))
    name = _clean(_pick(data, 'reporterName', 'reporter_name'))
    email = _clean(_pick(data, 'reporterEmail', 'reporter_email'))
    description = _clean(data.get('description'))
    missing: List[str] = [k for k, v in (
        ('assetId', asset_ref), ('reporterName', name), ('reporterEmail', email), ('description', description),
    ) if not v]
    if missing:
        raise ValidationFailure('Asset, your name, email and description are required', fields=missing)
    email = email.lower()
    if not EMAIL_RE.match(email):
        raise ValidationFailure('reporterEmail invalid', fields=['reporterEmail'])
    if len(description) > MAX_DESCRIPTION:
        raise ValidationFailure(f'description longer than {MAX_DESCRIPTION} characters', fields=['description'])
    phone = _clean(_pick(data, 'reporterPhone', 'reporter_phone'))
    title = _clean(data.get('title'))
    for value, limit, field_name in (
        (name, MAX_NAME, 'reporterName'), (email, MAX_EMAIL, 'reporterEmail'),
        (phone, MAX_PHONE, 'reporterPhone'), (title, MAX_TITLE, 'title'),
    ):
        _check_length(value, limit, field_name)
    category = (_clean(_pick(data, 'category', 'issueType')) or TicketCategory.OTHER.value).lower()
    validate_status(category, values(TicketCategory), field_name='category')
    priority = (_clean(data.get('priority')) or TicketPriority.MEDIUM.value).lower()
    validate_status(priority, values(TicketPriority), field_name='priority')
    photos_raw = data.get('photos') or []
    if not isinstance(photos_raw, list):
        raise ValidationFailure('photos must be a list', fields=['photos'])
    photos = tuple({'url': str(p['url'])} for p in photos_raw if isinstance(p, dict) and p.get('url'))
    if len(photos) > MAX_PHOTOS:
        raise ValidationFailure(f'at most {MAX_PHOTOS} photos allowed', fields=['photos'])
    return ReportDraft(
        asset_ref=asset_ref,
        reporter_name=name,
        reporter_email=email,
        description=description,
        category=category,
        priority=priority,
        reporter_phone=phone,
        title=title,
        photos=photos,
    )

__all__ = ['validate_status', 'ReportDraft', 'validate_report_payload']
