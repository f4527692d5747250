#!/usr/bin/env python3
"""
Group Predictions Management CLI

Command-line access to settlement, rankings and database maintenance.
"""

import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy.exc import SQLAlchemyError

from groupscore import create_app, db
from groupscore.models import Fixture, Group, GroupPrediction, User
from groupscore.models.enums import FINISHED_STATES, GroupStatus
from groupscore.services.ranking_service import get_group_ranking
from groupscore.services.settlement_service import (
    close_completed_groups,
    find_pending_fixture_ids,
    lookback_start,
    settle_predictions_for_fixtures,
)
from groupscore.utils.cache_utils import CacheManager

app = create_app()


@click.group()
def cli():
    """Group Predictions Management CLI"""
    pass


# Settlement Commands
@cli.command()
@click.argument("fixture_ids", nargs=-1, type=int, required=True)
@with_appcontext
def settle(fixture_ids):
    """Settle predictions for the given fixtures"""
    try:
        result = settle_predictions_for_fixtures(list(fixture_ids))
        click.echo(
            f"✅ Settled {result.settled} predictions "
            f"(skipped {result.skipped}, groups ended {result.groups_ended})"
        )
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error during settlement: {str(e)}")
        logging.error(f"Settlement failed - SQL error: {e}")


@cli.command()
@click.option(
    "--hours",
    type=int,
    default=None,
    help="Only fixtures that started within this many hours (default: all)",
)
@with_appcontext
def settle_pending(hours):
    """Settle every finished fixture that still has unsettled predictions"""
    since = lookback_start(hours) if hours else None
    fixture_ids = find_pending_fixture_ids(since=since)
    if not fixture_ids:
        click.echo("Nothing to settle.")
        return

    click.echo(f"Found {len(fixture_ids)} fixtures with unsettled predictions")
    try:
        result = settle_predictions_for_fixtures(fixture_ids)
        click.echo(
            f"✅ Settled {result.settled} predictions "
            f"(skipped {result.skipped}, groups ended {result.groups_ended})"
        )
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error during settlement: {str(e)}")
        logging.error(f"Pending settlement failed - SQL error: {e}")


@cli.command()
@with_appcontext
def close_groups():
    """End active groups whose fixtures are all finished or cancelled"""
    try:
        ended = close_completed_groups()
        click.echo(f"✅ Ended {ended} groups")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error closing groups: {str(e)}")
        logging.error(f"Closing groups failed - SQL error: {e}")


@cli.command()
@click.argument("group_id", type=int)
@click.option("--fresh", is_flag=True, help="Bypass the ranking cache")
@with_appcontext
def ranking(group_id, fresh):
    """Show the standings of a group"""
    group = db.session.get(Group, group_id)
    if not group:
        click.echo(f"❌ Group {group_id} not found!")
        return

    entries = get_group_ranking(group_id, use_cache=not fresh)
    click.echo(f"🏆 {group.name} ({group.status})")
    click.echo(f"{'#':>3}  {'User':<20} {'Pts':>5} {'Exact':>6} {'Diff':>5} {'Hits':>5}")
    for entry in entries:
        click.echo(
            f"{entry.rank:>3}  {(entry.username or '-'):<20} {entry.total_points:>5} "
            f"{entry.exact_hit_count:>6} {entry.difference_hit_count:>5} "
            f"{entry.any_hit_count:>5}"
        )


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except Exception as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except Exception as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    try:
        if os.path.exists("migrations"):
            click.echo("❌ Migrations directory already exists!")
            return

        from flask_migrate import init as flask_migrate_init

        flask_migrate_init()
        click.echo("✅ Migrations repository initialized!")
    except Exception as e:
        click.echo(f"❌ Error initializing migrations: {str(e)}")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    try:
        migrate(message=message)
        click.echo(f"✅ Migration created: {message}")
    except Exception as e:
        click.echo(f"❌ Error creating migration: {str(e)}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    try:
        upgrade(revision=revision)
        click.echo(f"✅ Migrations applied to {revision}")
    except Exception as e:
        click.echo(f"❌ Error applying migrations: {str(e)}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    try:
        downgrade(revision=revision)
        click.echo(f"✅ Rolled back to {revision}")
    except Exception as e:
        click.echo(f"❌ Error rolling back: {str(e)}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("📊 Group Predictions Status")
    click.echo("=" * 40)

    click.echo(f"👥 Users: {User.query.count()}")

    for group_status in GroupStatus:
        count = Group.query.filter_by(status=group_status.value).count()
        click.echo(f"🏆 Groups ({group_status.value}): {count}")

    fixture_count = Fixture.query.count()
    finished_count = Fixture.query.filter(Fixture.state.in_(sorted(FINISHED_STATES))).count()
    click.echo(f"⚽ Fixtures: {finished_count}/{fixture_count} finished")

    unsettled = GroupPrediction.query.filter(GroupPrediction.settled_at.is_(None)).count()
    click.echo(f"📝 Unsettled predictions: {unsettled}")

    pending = find_pending_fixture_ids()
    if pending:
        click.echo(f"⏳ Finished fixtures awaiting settlement: {len(pending)}")

    cache_stats = CacheManager.get_cache_stats()
    click.echo(f"🗄️  Cache: {cache_stats['type']} (ranking TTL {cache_stats['ranking_ttl']}s)")


if __name__ == "__main__":
    with app.app_context():
        cli()
