"""Health policy thresholds.

ThresholdConfig is an immutable value handed to the evaluator, the maintenance
state machine and the sweep. Nothing reads thresholds from module globals at
evaluation time, so tests (or tenants) can pass their own instance.

Ladders must be ordered from mildest to most severe:
    OPEN_ISSUES_WARNING <= OPEN_ISSUES_MAINTENANCE <= OPEN_ISSUES_CRITICAL
    AGE_NEW_YEARS <= AGE_MAINTENANCE_YEARS <= AGE_CRITICAL_YEARS
"""
from __future__ import annotations
from dataclasses import dataclass, asdict, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping


class IssueCountBasis(str, Enum):
    TICKETS = 'tickets'  # active tickets referencing the asset
    REPORTS = 'reports'  # report entries on those tickets


@dataclass(frozen=True)
class ThresholdConfig:
    AGE_CRITICAL_YEARS: int = 5
    AGE_MAINTENANCE_YEARS: int = 3
    AGE_NEW_YEARS: int = 1
    OPEN_ISSUES_WARNING: int = 3
    OPEN_ISSUES_MAINTENANCE: int = 5
    OPEN_ISSUES_CRITICAL: int = 8
    WARRANTY_EXPIRY_DAYS: int = 30
    MAINTENANCE_OVERDUE_DAYS: int = 2
    OPEN_ISSUE_BASIS: IssueCountBasis = IssueCountBasis.TICKETS

    def __post_init__(self):
        for f in fields(self):
            val = getattr(self, f.name)
            if isinstance(val, int) and not isinstance(val, bool) and val < 0:
                raise ValueError(f'{f.name} must be >= 0')
        if not (self.OPEN_ISSUES_WARNING <= self.OPEN_ISSUES_MAINTENANCE <= self.OPEN_ISSUES_CRITICAL):
            raise ValueError('open issue thresholds must satisfy WARNING <= MAINTENANCE <= CRITICAL')
        if not (self.AGE_NEW_YEARS <= self.AGE_MAINTENANCE_YEARS <= self.AGE_CRITICAL_YEARS):
            raise ValueError('age thresholds must satisfy NEW <= MAINTENANCE <= CRITICAL')
        if not isinstance(self.OPEN_ISSUE_BASIS, IssueCountBasis):
            # frozen dataclass: coerce through object.__setattr__
            object.__setattr__(self, 'OPEN_ISSUE_BASIS', IssueCountBasis(self.OPEN_ISSUE_BASIS))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], prefix: str = 'HEALTH_') -> 'ThresholdConfig':
        """Build from a config mapping (Flask app.config or os.environ).

        Only keys of the form HEALTH_<FIELD> are read; missing keys keep defaults.
        """
        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            raw = mapping.get(prefix + f.name)
            if raw is None or raw == '':
                continue
            if f.name == 'OPEN_ISSUE_BASIS':
                overrides[f.name] = IssueCountBasis(str(raw).lower())
                continue
            try:
                overrides[f.name] = int(raw)
            except (TypeError, ValueError):
                raise ValueError(f'{prefix}{f.name} must be an integer, got {raw!r}')
        return cls(**overrides)

    def with_overrides(self, **kwargs) -> 'ThresholdConfig':
        return replace(self, **kwargs)

    def as_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out['OPEN_ISSUE_BASIS'] = self.OPEN_ISSUE_BASIS.value
        return out


DEFAULT_THRESHOLDS = ThresholdConfig()

__all__ = ['ThresholdConfig', 'IssueCountBasis', 'DEFAULT_THRESHOLDS']
