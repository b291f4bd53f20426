"""Domain error taxonomy shared by intake, maintenance and sweep services.

Services raise these; the app-level error handler renders them into the
standard JSON envelope:

    {"error": {"status": 429, "title": "Too Many Requests", "kind": "rate_limited", "detail": "..."}}

`kind` is stable and machine readable so clients can decide whether to ask the
user to wait, show "asset currently serviced" or fall back to a generic error.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class AssetCareError(Exception):
    status = 500
    kind = 'internal'
    title = 'Internal Server Error'
    retryable = False

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        super().__init__(detail or self.title)
        self.detail = detail or self.title
        self.extra = extra

    def to_payload(self) -> Dict[str, Any]:
        body = {
            'status': self.status,
            'title': self.title,
            'kind': self.kind,
            'detail': self.detail,
        }
        body.update(self.extra)
        return {'error': body}


class ValidationFailure(AssetCareError):
    status = 400
    kind = 'validation_failure'
    title = 'Bad Request'

    def __init__(self, detail: str, fields: Optional[list] = None):
        super().__init__(detail, fields=fields or [])


class InvalidTransition(AssetCareError):
    status = 400
    kind = 'invalid_transition'
    title = 'Bad Request'


class NotFound(AssetCareError):
    status = 404
    kind = 'not_found'
    title = 'Not Found'


class AssetRetired(NotFound):
    status = 410
    kind = 'asset_retired'
    title = 'Gone'


class AssetUnderMaintenance(AssetCareError):
    status = 409
    kind = 'asset_under_maintenance'
    title = 'Conflict'

    def __init__(self, asset_tag: str, reason: Optional[str] = None):
        super().__init__(
            f'Asset {asset_tag} is currently under maintenance and cannot accept reports',
            maintenance_reason=reason,
        )


class RateLimited(AssetCareError):
    status = 429
    kind = 'rate_limited'
    title = 'Too Many Requests'
    retryable = True

    def __init__(self, retry_after: int):
        super().__init__(
            f'Too many reports from this device for this asset. Try again in {retry_after} seconds',
            retry_after=retry_after,
        )
        self.retry_after = retry_after


class ConflictRetryable(AssetCareError):
    status = 409
    kind = 'conflict'
    title = 'Conflict'
    retryable = True


class TransientStoreFailure(AssetCareError):
    status = 503
    kind = 'transient_store_failure'
    title = 'Service Unavailable'
    retryable = True


__all__ = [
    'AssetCareError', 'ValidationFailure', 'InvalidTransition', 'NotFound', 'AssetRetired',
    'AssetUnderMaintenance', 'RateLimited', 'ConflictRetryable', 'TransientStoreFailure',
]
