"""Central enum-like definitions for operator permission codes.

Token issuance lives outside this service; tokens carry these codes in their
`perms` claim. Never rename codes silently: add new ones and deprecate old.
"""
from __future__ import annotations
from typing import Dict, List

SERVICES = ['HEALTH', 'ISSUE']

SERVICE_ACTIONS = {
    'HEALTH': ['READ', 'MANAGE'],
    'ISSUE': ['READ', 'MANAGE'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    'Technician': ['HEALTH.READ', 'ISSUE.READ', 'ISSUE.MANAGE'],
    'Manager': ['HEALTH.READ', 'HEALTH.MANAGE', 'ISSUE.READ', 'ISSUE.MANAGE'],
    'Viewer': ['HEALTH.READ', 'ISSUE.READ'],
}
