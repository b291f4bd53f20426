"""Flask CLI commands for scheduled jobs.

    flask --app assetcare health-sweep
    flask --app assetcare purge-rate-limits
"""
from __future__ import annotations
import json
import click
from flask import Flask, current_app


def register_cli(app: Flask):
    @app.cli.command('health-sweep')
    @click.option('--workers', type=int, default=None, help='Parallel workers (default HEALTH_SWEEP_WORKERS)')
    def health_sweep_command(workers):
        """Re-evaluate every non-retired asset and apply maintenance transitions."""
        from assetcare import get_db, domain_services
        from assetcare.services.sweep import HealthSweep
        from assetcare.utils.clock import utcnow
        sweep = HealthSweep(get_db, domain_services()['thresholds'],
                            workers=workers or current_app.config['HEALTH_SWEEP_WORKERS'])
        summary = sweep.run_all(utcnow())
        click.echo(json.dumps(summary.as_dict(), sort_keys=True))

    @app.cli.command('purge-rate-limits')
    def purge_rate_limits_command():
        """Delete rate-limit records older than one window."""
        from assetcare import get_db, domain_services
        from assetcare.utils.clock import utcnow
        session = get_db()
        removed = domain_services()['intake'].rate_limiter.purge_expired(session, utcnow())
        session.commit()
        click.echo(f'purged {removed} expired rate-limit records')
