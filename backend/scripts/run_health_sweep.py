#!/usr/bin/env python
"""Cron entry point for the fleet health sweep.

Usage:
  python backend/scripts/run_health_sweep.py [--workers N] [--purge-rate-limits]

Prints the sweep summary as JSON. Exits 1 when any asset could not be
checked (the summary's `errors` list is non-empty), 3 when the store is
unavailable.
"""
from __future__ import annotations
import argparse, json, pathlib, sys

BACKEND = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from assetcare import create_app, get_db, domain_services  # noqa: E402
from assetcare.errors import TransientStoreFailure  # noqa: E402
from assetcare.services.sweep import HealthSweep  # noqa: E402
from assetcare.utils.clock import utcnow  # noqa: E402


def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(description="Run the asset health sweep once")
    p.add_argument('--workers', type=int, default=None, help='Parallel workers (default HEALTH_SWEEP_WORKERS)')
    p.add_argument('--purge-rate-limits', action='store_true', help='Also delete expired rate-limit records')
    args = p.parse_args(argv)

    app = create_app()
    with app.app_context():
        now = utcnow()
        sweep = HealthSweep(get_db, domain_services()['thresholds'],
                            workers=args.workers or app.config['HEALTH_SWEEP_WORKERS'])
        try:
            summary = sweep.run_all(now)
            if args.purge_rate_limits:
                session = get_db()
                removed = domain_services()['intake'].rate_limiter.purge_expired(session, now)
                session.commit()
                app.logger.info('purged %s expired rate-limit records', removed)
        except TransientStoreFailure as e:
            print(e.detail, file=sys.stderr)
            return 3
        print(json.dumps(summary.as_dict(), sort_keys=True))
    return 1 if summary.errors else 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main(sys.argv[1:]))
