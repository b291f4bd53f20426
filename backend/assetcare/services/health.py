"""Asset health evaluation.

`evaluate()` is a pure function of the asset's dates, its open-issue count, a
reference time and a ThresholdConfig. Rules run most severe first and the
first match wins:

  1. open issues >= OPEN_ISSUES_CRITICAL or age >= AGE_CRITICAL_YEARS
     -> critical, recommend under_maintenance
  2. open issues >= OPEN_ISSUES_MAINTENANCE or age >= AGE_MAINTENANCE_YEARS
     -> poor, recommend under_maintenance
  3. open issues >= OPEN_ISSUES_WARNING or warranty/AMC expiry within
     WARRANTY_EXPIRY_DAYS (already expired counts) -> fair, status unchanged
  4. no open issues, younger than AGE_NEW_YEARS and under warranty -> excellent
  5. otherwise -> good
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
from assetcare.config.thresholds import ThresholdConfig, DEFAULT_THRESHOLDS
from assetcare.constants.lifecycle import AssetCondition, AssetStatus

SEVERITY_MAINTENANCE = 'maintenance'
SEVERITY_WARNING = 'warning'
SEVERITY_OK = 'ok'


@dataclass(frozen=True)
class HealthAssessment:
    condition: AssetCondition
    recommended_status: AssetStatus
    severity: str
    reasons: List[str] = field(default_factory=list)
    factors: Dict[str, Any] = field(default_factory=dict)

    @property
    def requires_maintenance(self) -> bool:
        return self.recommended_status is AssetStatus.UNDER_MAINTENANCE

    @property
    def reason_text(self) -> Optional[str]:
        return '; '.join(self.reasons) if self.reasons else None

    def as_dict(self) -> Dict[str, Any]:
        return {
            'condition': self.condition.value,
            'recommended_status': self.recommended_status.value,
            'severity': self.severity,
            'reasons': list(self.reasons),
            'factors': dict(self.factors),
        }


def _as_date(value: Union[date, datetime, None]) -> Optional[date]:
    if value is None:
        return None
    return value.date() if isinstance(value, datetime) else value


def age_in_years(purchase_date: Union[date, datetime, None], now: datetime) -> int:
    """Whole calendar years since purchase (floor). Unknown purchase date counts as new."""
    purchased = _as_date(purchase_date)
    if purchased is None:
        return 0
    today = _as_date(now)
    years = today.year - purchased.year - ((today.month, today.day) < (purchased.month, purchased.day))
    return max(0, years)


def days_until(expiry: Union[date, datetime, None], now: datetime) -> Optional[int]:
    """Days from now to expiry; negative once expired, None when no date is known."""
    target = _as_date(expiry)
    if target is None:
        return None
    return (target - _as_date(now)).days


def warranty_days_left(asset, now: datetime) -> Optional[int]:
    """Nearest of warranty / AMC expiry among those that are set."""
    candidates = [d for d in (days_until(getattr(asset, 'warranty_expiry', None), now),
                              days_until(getattr(asset, 'amc_expiry', None), now)) if d is not None]
    return min(candidates) if candidates else None


def _current_status(asset) -> AssetStatus:
    raw = getattr(asset, 'status', None) or AssetStatus.AVAILABLE.value
    return raw if isinstance(raw, AssetStatus) else AssetStatus(raw)


def evaluate(asset, open_issue_count: int, now: datetime,
             config: ThresholdConfig = DEFAULT_THRESHOLDS) -> HealthAssessment:
    age = age_in_years(getattr(asset, 'purchase_date', None), now)
    warranty_left = warranty_days_left(asset, now)
    current = _current_status(asset)
    factors = {
        'age_years': age,
        'open_issue_count': open_issue_count,
        'warranty_days_left': warranty_left,
        'warranty_expired': warranty_left is not None and warranty_left < 0,
    }

    reasons: List[str] = []
    if open_issue_count >= config.OPEN_ISSUES_CRITICAL:
        reasons.append(f'{open_issue_count} open issues (critical threshold {config.OPEN_ISSUES_CRITICAL})')
    if age >= config.AGE_CRITICAL_YEARS:
        reasons.append(f'asset age {age} years (critical threshold {config.AGE_CRITICAL_YEARS})')
    if reasons:
        return HealthAssessment(AssetCondition.CRITICAL, AssetStatus.UNDER_MAINTENANCE,
                                SEVERITY_MAINTENANCE, reasons, factors)

    if open_issue_count >= config.OPEN_ISSUES_MAINTENANCE:
        reasons.append(f'{open_issue_count} open issues (maintenance threshold {config.OPEN_ISSUES_MAINTENANCE})')
    if age >= config.AGE_MAINTENANCE_YEARS:
        reasons.append(f'asset age {age} years (maintenance threshold {config.AGE_MAINTENANCE_YEARS})')
    if reasons:
        return HealthAssessment(AssetCondition.POOR, AssetStatus.UNDER_MAINTENANCE,
                                SEVERITY_MAINTENANCE, reasons, factors)

    if open_issue_count >= config.OPEN_ISSUES_WARNING:
        reasons.append(f'warning: {open_issue_count} open issues (warning threshold {config.OPEN_ISSUES_WARNING})')
    if warranty_left is not None and warranty_left <= config.WARRANTY_EXPIRY_DAYS:
        if warranty_left < 0:
            reasons.append(f'warning: warranty/AMC expired {-warranty_left} days ago')
        else:
            reasons.append(f'warning: warranty/AMC expires in {warranty_left} days')
    if reasons:
        return HealthAssessment(AssetCondition.FAIR, current, SEVERITY_WARNING, reasons, factors)

    under_warranty = warranty_left is not None and warranty_left > config.WARRANTY_EXPIRY_DAYS
    if open_issue_count == 0 and age < config.AGE_NEW_YEARS and under_warranty:
        return HealthAssessment(AssetCondition.EXCELLENT, current, SEVERITY_OK, [], factors)
    return HealthAssessment(AssetCondition.GOOD, current, SEVERITY_OK, [], factors)


__all__ = ['HealthAssessment', 'evaluate', 'age_in_years', 'days_until', 'warranty_days_left']
