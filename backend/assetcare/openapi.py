"""Deterministic OpenAPI document for the intake and asset-health endpoints.

Kept hand-written and minimal; tests pin the public paths and the
error envelope so drift is caught early.
"""
from typing import Any, Dict, List, Tuple
from assetcare.constants.lifecycle import AssetCondition, AssetStatus, TicketCategory, TicketStatus, values
from assetcare.routes.issues import TICKET_FSM
from assetcare.services.maintenance import ASSET_FSM

__all__ = ['build_openapi_spec']

# (path, method, summary, permission or None for public, success code)
ENDPOINTS: List[Tuple[str, str, str, Any, str]] = [
    ('/issues', 'post', 'Submit a report (public, QR)', None, '201'),
    ('/issues', 'get', 'List tickets', 'ISSUE.READ', '200'),
    ('/issues/{ticket_code}', 'get', 'Public ticket lookup', None, '200'),
    ('/issues/{ticket_code}', 'patch', 'Update ticket status', 'ISSUE.MANAGE', '200'),
    ('/issues/{ticket_code}/merge', 'post', 'Merge ticket into another', 'ISSUE.MANAGE', '200'),
    ('/asset-health/summary', 'get', 'Counts by condition and active thresholds', 'HEALTH.READ', '200'),
    ('/asset-health/check-all', 'post', 'Run fleet health sweep', 'HEALTH.MANAGE', '200'),
    ('/asset-health/check/{asset_ref}', 'post', 'Run health check for one asset', 'HEALTH.MANAGE', '200'),
    ('/asset-health/maintenance', 'get', 'Assets under maintenance', 'HEALTH.READ', '200'),
    ('/asset-health/{asset_ref}/maintenance', 'patch', 'Start or complete maintenance', 'HEALTH.MANAGE', '200'),
]

# Documented rejection codes per operation
ERROR_CODES: Dict[Tuple[str, str], List[str]] = {
    ('/issues', 'post'): ['400', '404', '409', '410', '429', '503'],
    ('/issues/{ticket_code}', 'get'): ['404'],
    ('/issues/{ticket_code}', 'patch'): ['400', '404'],
    ('/issues/{ticket_code}/merge', 'post'): ['400', '404'],
    ('/asset-health/check/{asset_ref}', 'post'): ['404', '409'],
    ('/asset-health/{asset_ref}/maintenance', 'patch'): ['400', '404', '409'],
}


def _transitions(fsm) -> Dict[str, List[str]]:
    return {state: sorted(targets) for state, targets in sorted(fsm.graph.items())}


def _error_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "error": {
                "type": "object",
                "properties": {
                    "status": {"type": "integer"},
                    "title": {"type": "string"},
                    "kind": {"type": "string", "enum": [
                        "validation_failure", "invalid_transition", "not_found", "asset_retired",
                        "asset_under_maintenance", "rate_limited", "conflict", "transient_store_failure",
                        "http_error", "internal",
                    ]},
                    "detail": {"type": "string"},
                    "retry_after": {"type": "integer"},
                },
                "required": ["status", "title", "kind", "detail"],
            }
        },
        "required": ["error"],
    }


def _schemas() -> Dict[str, Any]:
    return {
        "ReportSubmission": {
            "type": "object",
            "properties": {
                "assetId": {"type": "string"},
                "reporterName": {"type": "string"},
                "reporterEmail": {"type": "string", "format": "email"},
                "reporterPhone": {"type": "string"},
                "description": {"type": "string"},
                "category": {"type": "string", "enum": list(values(TicketCategory))},
                "photos": {"type": "array", "items": {"type": "object", "properties": {"url": {"type": "string"}}}},
            },
            "required": ["assetId", "reporterName", "reporterEmail", "description"],
        },
        "Ticket": {
            "type": "object",
            "properties": {
                "ticket_id": {"type": "string", "example": "ISS-2025-001"},
                "status": {"type": "string", "enum": list(values(TicketStatus))},
                "category": {"type": "string", "enum": list(values(TicketCategory))},
            },
            "x-transitions": _transitions(TICKET_FSM),
        },
        "Asset": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "enum": list(values(AssetStatus))},
                "condition": {"type": "string", "enum": list(values(AssetCondition))},
            },
            "x-transitions": _transitions(ASSET_FSM),
        },
        "SweepResult": {
            "type": "object",
            "properties": {k: {"type": "integer"} for k in ("total", "updated", "maintenance", "critical")},
            "required": ["updated", "maintenance", "critical"],
        },
        "Error": _error_schema(),
    }


def build_openapi_spec() -> Dict[str, Any]:
    paths: Dict[str, Any] = {}
    for path, method, summary, perm, ok in ENDPOINTS:
        op: Dict[str, Any] = {
            "summary": summary,
            "responses": {ok: {"description": "OK" if ok == '200' else "Created"}},
            "operationId": f"{method}_{path.strip('/').replace('/', '_').replace('{', '').replace('}', '')}",
            "tags": [path.split('/')[1]],
        }
        if perm:
            op["x-required-permissions"] = [perm]
        else:
            op["security"] = []
        for code in ERROR_CODES.get((path, method), []):
            op["responses"][code] = {
                "description": "Error",
                "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Error"}}},
            }
        if (path, method) == ('/issues', 'post'):
            op["requestBody"] = {
                "required": True,
                "content": {"application/json": {"schema": {"$ref": "#/components/schemas/ReportSubmission"}}},
            }
            op["responses"]["429"]["headers"] = {"Retry-After": {"schema": {"type": "integer"}}}
        paths.setdefault(path, {})[method] = op

    tags = sorted({p.split('/')[1] for p in paths})
    return {
        "openapi": "3.0.3",
        "info": {"title": "Asset Health & Issue Intake API", "version": "0.1.0"},
        "paths": paths,
        "components": {
            "schemas": _schemas(),
            "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        },
        "security": [{"BearerAuth": []}],
        "tags": [{"name": t, "description": f"{t} endpoints"} for t in tags],
    }
