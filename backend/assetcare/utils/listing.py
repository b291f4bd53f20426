from __future__ import annotations
from typing import Tuple
from flask import request
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select
from assetcare.errors import ValidationFailure

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def normalize_pagination(limit_raw, offset_raw) -> Tuple[int, int]:
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValidationFailure('limit/offset must be int', fields=['limit', 'offset'])
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)


def apply_pagination(session: Session, stmt: Select) -> Tuple[Select, int, int, int]:
    """Return (paged statement, total, limit, offset) using ?limit=&offset= from the request."""
    limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    total = session.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    return stmt.offset(offset).limit(limit), total, limit, offset


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }
