"""
Monitoring Center command line: python -m monitoring_center
"""
import logging
import sys
from datetime import timedelta

import click
import psycopg2
import yaml

from logcore import get_logger
from monitoring_center.api import create_app, run_server
from monitoring_center.db import Database, get_database_url
from monitoring_center.errors import StorageError
from monitoring_center.hosts import InMemoryHostDirectory, PostgresHostDirectory
from monitoring_center.schemas import Host
from monitoring_center.store import InMemoryMetricStore, PostgresMetricStore


def load_seed_hosts(path: str):
    """Read a YAML list of host records for the in-memory directory"""
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get('hosts', [])
    return [Host(**{**entry, 'id': str(entry['id'])}) for entry in data]


def _open_database() -> Database:
    """Connect and ping once so a bad POSTGRES_URL fails at startup"""
    try:
        database = Database(get_database_url())
    except ValueError as e:
        click.echo(click.style(f'❌ {e}', fg='red'), err=True)
        sys.exit(1)
    except psycopg2.Error as e:
        click.echo(click.style(f'❌ Database connection failed: {e}', fg='red'), err=True)
        sys.exit(1)

    try:
        database.ping()
    except psycopg2.Error as e:
        database.close()
        click.echo(click.style(f'❌ Database ping failed: {e}', fg='red'), err=True)
        sys.exit(1)
    return database


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
@click.option('--plain-logs', is_flag=True, help='Human-readable logs instead of JSON')
@click.version_option(version='1.0.0')
def cli(verbose: bool, plain_logs: bool):
    """Monitoring Center: host metrics ingestion and query service"""
    get_logger(
        'monitoring_center',
        level=logging.DEBUG if verbose else logging.INFO,
        use_json=not plain_logs
    )


@cli.command()
@click.option('--host', default='0.0.0.0', help='Host to bind to')
@click.option('--port', default=8080, help='Port to bind to')
@click.option('--storage', type=click.Choice(['postgres', 'memory']), default='postgres',
              help='Where hosts and metrics are kept')
@click.option('--seed-hosts', type=click.Path(exists=True), default=None,
              help='YAML list of hosts to register (memory storage only)')
def serve(host: str, port: int, storage: str, seed_hosts):
    """Run the API server"""
    if storage == 'memory':
        hosts = InMemoryHostDirectory(load_seed_hosts(seed_hosts) if seed_hosts else ())
        store = InMemoryMetricStore()
    else:
        if seed_hosts:
            click.echo(click.style('⚠ --seed-hosts is ignored with postgres storage', fg='yellow'), err=True)
        database = _open_database()
        hosts = PostgresHostDirectory(database)
        store = PostgresMetricStore(database)

    click.echo(f'Starting Monitoring Center on {host}:{port} ({storage} storage)')
    click.echo(f'API documentation at http://localhost:{port}/docs')
    run_server(create_app(hosts, store), host=host, port=port)


@cli.command('init-db')
def init_db():
    """Create tables and indexes"""
    database = _open_database()
    try:
        database.create_schema()
    except psycopg2.Error as e:
        click.echo(click.style(f'❌ Schema creation failed: {e}', fg='red'), err=True)
        sys.exit(1)
    finally:
        database.close()
    click.echo(click.style('✓ Schema ready', fg='green'))


@cli.command()
@click.option('--days', default=30, type=click.IntRange(min=0), help='Delete samples older than this many days')
def purge(days: int):
    """Delete metric samples past the retention window"""
    database = _open_database()
    try:
        deleted = PostgresMetricStore(database).purge(timedelta(days=days))
    except StorageError as e:
        click.echo(click.style(f'❌ {e}', fg='red'), err=True)
        sys.exit(1)
    finally:
        database.close()
    click.echo(f'Deleted {deleted} metric samples older than {days} days')


def main():
    cli()


if __name__ == '__main__':
    main()
