"""
Flask CLI commands.

Commands:
- flask init-db: Create tables and stamp the schema version
- flask stamp-schema: Record the schema version of an existing database
- flask seed-settings: Insert the settings singleton if missing
- flask run-jobs: Run due background jobs once
- flask run-worker: Poll and run background jobs until interrupted
"""

import click
from storefront import database
from storefront.models import Settings


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--version', 'version', type=int, default=database.CURRENT_SCHEMA_VERSION, show_default=True,
                  help='Schema version to stamp')
    def init_db_command(version):
        """Create all tables and stamp the schema version."""
        database.create_schema(version)
        click.echo(click.style(f'Database initialized (schema version {version}).', fg='green'))

    @app.cli.command('stamp-schema')
    @click.argument('version', type=int)
    def stamp_schema_command(version):
        """Record the schema version an existing database has been migrated to."""
        if version < 1 or version > database.CURRENT_SCHEMA_VERSION:
            click.echo(click.style(
                f'Version must be between 1 and {database.CURRENT_SCHEMA_VERSION}.', fg='red'
            ))
            raise SystemExit(1)
        database.stamp_schema_version(version)
        click.echo(click.style(f'Schema stamped at version {version}.', fg='green'))

    @app.cli.command('seed-settings')
    def seed_settings_command():
        """Insert the settings row with defaults (ordering on, delivery off)."""
        session = database.get_session()
        if session.query(Settings).filter_by(id=Settings.SINGLETON_ID).first():
            click.echo('Settings row already exists.')
            return
        try:
            session.add(Settings(id=Settings.SINGLETON_ID))
            session.commit()
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'Could not create settings: {e}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style('Settings row created.', fg='green'))

    @app.cli.command('run-jobs')
    @click.option('--once', is_flag=True, help='Run a single batch and exit')
    @click.option('--limit', type=int, default=None, help='Batch size')
    def run_jobs_command(once, limit):
        """Run due background jobs (POS sync, SMS) until none are left."""
        from storefront.services.job_service import process_pending_jobs

        session = database.get_session()
        while True:
            stats = process_pending_jobs(session, limit=limit)
            click.echo(
                f"claimed={stats['claimed']} done={stats['done']} "
                f"failed={stats['failed']} retrying={stats['pending']}"
            )
            if once or not stats['claimed']:
                break

    @app.cli.command('run-worker')
    @click.option('--poll-interval', type=float, default=None, help='Seconds between polls when idle')
    def run_worker_command(poll_interval):
        """Poll for background jobs until interrupted."""
        from storefront.services.job_service import run_worker

        run_worker(database.get_session(), poll_interval=poll_interval)
