from __future__ import annotations
from typing import Set
from flask_jwt_extended import get_jwt


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return '*' in perms or all(c in perms for c in codes)


def current_actor() -> str:
    """Subject of the operator token, used for log lines."""
    claims = get_jwt()
    return str(claims.get('sub') or 'unknown')
