#!/usr/bin/env python3
"""
Fantasy Corps Management CLI

Command-line management for seasons, the historical archive and manual
re-runs of the daily scoring pipeline.
"""

import json
import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from fantasy_corps import create_app, db
from fantasy_corps.errors import ScoringError
from fantasy_corps.models import Corps, DailyRecap, League, Season, User
from fantasy_corps.models.season import LIVE_SEASON, OFF_SEASON
from fantasy_corps.services.historical_import import (
    import_historical_events,
    parse_event_date,
)
from fantasy_corps.services.matchup_resolver import WeeklyMatchupResolver
from fantasy_corps.services.scheduler_service import run_scoring_day, scheduler_service
from fantasy_corps.services.store import ScoringStore
from fantasy_corps.utils.cache_utils import invalidate_scoring_cache
from fantasy_corps.utils.regression import HistoricalIndex, caption_statistics

app = create_app()


def _load_json(path):
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


@click.group()
def cli():
    """Fantasy Corps Management CLI"""
    pass


# Season Management Commands
@cli.group()
def season():
    """Season management commands"""
    pass


@season.command()
@click.argument("season_uid")
@click.argument("start_date", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option(
    "--status",
    type=click.Choice([OFF_SEASON, LIVE_SEASON]),
    default=OFF_SEASON,
    help="Season type",
)
@click.option("--name", help="Display name (defaults to the uid)")
@click.option("--data-set-id", help="Corps value set the season drafts from")
@click.option("--year", type=int, help="Calendar year scored during a live season")
@click.option("--activate", is_flag=True, help="Activate this season")
@with_appcontext
def create(season_uid, start_date, status, name, data_set_id, year, activate):
    """Create a new season starting on START_DATE (YYYY-MM-DD)"""
    try:
        if Season.query.filter_by(season_uid=season_uid).first():
            click.echo(f"Season {season_uid} already exists!")
            return

        season = Season.create_season(
            season_uid,
            start_date.date(),
            status=status,
            name=name,
            data_set_id=data_set_id,
            season_year=year,
        )
        db.session.commit()
        click.echo(f"✅ Created {status} {season_uid} starting {start_date.date()}")

        if activate:
            season.activate()
            click.echo(f"✅ Activated season {season_uid}")
            invalidate_scoring_cache(f"activating {season_uid}")

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ Season {season_uid} already exists!")
        logging.error(f"Season creation failed - integrity error: {e}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating season: {str(e)}")
        logging.error(f"Season creation failed - SQL error: {e}")


@season.command()
@click.argument("season_uid")
@with_appcontext
def activate(season_uid):
    """Activate a season"""
    try:
        season = Season.query.filter_by(season_uid=season_uid).first()
        if not season:
            click.echo(f"❌ Season {season_uid} not found!")
            return

        season.activate()
        click.echo(f"✅ Activated season {season_uid}")
        invalidate_scoring_cache(f"activating {season_uid}")

    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error activating season: {str(e)}")
        logging.error(f"Season activation failed - SQL error: {e}")


@season.command("list")
@with_appcontext
def list_seasons():
    """List all seasons"""
    seasons = Season.query.order_by(Season.schedule_start_date.desc()).all()

    if not seasons:
        click.echo("No seasons found.")
        return

    click.echo("Seasons:")
    for s in seasons:
        status = "🟢 ACTIVE" if s.is_active else "⚪ Inactive"
        click.echo(f"  {s.season_uid} ({s.status}, starts {s.schedule_start_date}) - {status}")


@season.command("schedule-import")
@click.argument("season_uid")
@click.argument("schedule_file", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def schedule_import(season_uid, schedule_file):
    """Load a season schedule from a JSON list of {day, eventName, location, date}"""
    season = Season.query.filter_by(season_uid=season_uid).first()
    if not season:
        click.echo(f"❌ Season {season_uid} not found!")
        return

    try:
        shows = _load_json(schedule_file)
        existing = {(s.day, s.event_name) for s in season.shows}
        added = 0
        for show in shows:
            key = (int(show["day"]), show["eventName"])
            if key in existing:
                continue
            season.add_show(
                key[0],
                key[1],
                location=show.get("location"),
                event_date=parse_event_date(show.get("date")),
            )
            existing.add(key)
            added += 1
        db.session.commit()
        click.echo(f"✅ Added {added} shows to {season_uid} ({len(shows) - added} already scheduled)")

    except (KeyError, ValueError) as e:
        db.session.rollback()
        click.echo(f"❌ Invalid schedule file: {str(e)}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error importing schedule: {str(e)}")
        logging.error(f"Schedule import failed - SQL error: {e}")


# Scoring Commands
@cli.group()
def scoring():
    """Daily scoring commands"""
    pass


@scoring.command("run-day")
@click.argument("day", type=int, required=False)
@click.option("--no-resolve", is_flag=True, help="Skip weekly matchup resolution")
@with_appcontext
def run_day(day, no_resolve):
    """Score (or re-score) a season day of the active season

    Without DAY, runs yesterday's scored day the way the daily job does.
    """
    if day is None:
        result = scheduler_service.force_run(resolve=not no_resolve)
        if result is None:
            click.echo("❌ No scoring run completed (no active season or the run failed, see the log)")
            raise SystemExit(1)
        day = result["processing"]["day"]
    else:
        try:
            result = run_scoring_day(day, resolve=not no_resolve)
        except ScoringError as e:
            db.session.rollback()
            click.echo(f"❌ Scoring day {day} failed: {str(e)}")
            logging.error(f"Scoring run failed for day {day}: {e}", exc_info=True)
            raise SystemExit(1)

    processing = result["processing"]
    if processing["skipped"]:
        click.echo(f"⚠️  Day {day} skipped: {processing['reason']}")
    else:
        click.echo(
            f"✅ Day {day}: {processing['results']} results across {processing['shows']} shows, "
            f"{processing['corps_updated']} corps updated, "
            f"{processing['coins_awarded']} CorpsCoin, {processing['trophies']} trophies"
        )

    resolution = result["resolution"]
    if resolution and not resolution["skipped"]:
        click.echo(
            f"✅ Week {resolution['week']}: {resolution['resolved']} matchups resolved "
            f"({resolution['byes']} byes, {resolution['ties']} ties)"
        )


@scoring.command("resolve-week")
@click.argument("day", type=int)
@with_appcontext
def resolve_week(day):
    """Resolve league matchups for the week ending on DAY"""
    try:
        result = WeeklyMatchupResolver.from_config().resolve_day(day)
    except ScoringError as e:
        db.session.rollback()
        click.echo(f"❌ Matchup resolution failed: {str(e)}")
        raise SystemExit(1)

    if result.skipped:
        click.echo(f"⚠️  {result.reason}")
    else:
        click.echo(
            f"✅ Week {result.week}: {result.resolved} resolved, "
            f"{result.already_resolved} already resolved"
        )


@scoring.command()
@click.argument("entity")
@click.argument("year")
@with_appcontext
def stats(entity, year):
    """Caption statistics for a historical corps in a source year"""
    history = ScoringStore().get_historical_data({year})
    if not history:
        click.echo(f"⚠️  No historical data for {year}")
        return

    index = HistoricalIndex(history)
    click.echo(f"{entity} ({year}):")
    for caption, values in caption_statistics(index, entity, year).items():
        click.echo(
            f"  {caption:<4} avg {values['avg']:>7} max {values['max']:>7} "
            f"min {values['min']:>7} ({values['count']} scores)"
        )


# Historical Archive Commands
@cli.group()
def historical():
    """Historical score archive commands"""
    pass


@historical.command("import")
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_events(events_file):
    """Merge scraped events (a JSON object or list of objects) into the archive"""
    payload = _load_json(events_file)
    payloads = payload if isinstance(payload, list) else [payload]

    try:
        results = import_historical_events(payloads)
    except ScoringError as e:
        click.echo(f"❌ Import failed: {str(e)}")
        raise SystemExit(1)

    for result in results:
        if result.skipped:
            click.echo(f"⚠️  Skipped {result.event_name}: {result.reason}")
        elif result.created:
            click.echo(
                f"✅ Added {result.event_name} ({result.source_year}, day {result.day_index}) "
                f"with {result.corps_added} corps"
            )
        elif result.changed:
            click.echo(
                f"✅ Merged {result.event_name}: {result.corps_added} corps, "
                f"{result.captions_filled} captions"
            )
        else:
            click.echo(f"   {result.event_name}: nothing new")


# Database Management Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
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
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command("init")
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    if os.path.exists("migrations"):
        click.echo("❌ Migrations directory already exists!")
        return

    # Use the Flask-Migrate init function
    from flask_migrate import init as flask_migrate_init

    flask_migrate_init()
    click.echo("✅ Migrations repository initialized!")


@db_migrate.command("create")
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    migrate(message=message)
    click.echo(f"✅ Migration created: {message}")


@db_migrate.command("apply")
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied up to {revision}")


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🥁 Fantasy Corps Scoring Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    current_season = Season.get_current_season()
    if current_season:
        recap_count = DailyRecap.query.filter_by(season_id=current_season.id).count()
        click.echo(
            f"✅ Current Season: {current_season.season_uid} ({current_season.status}), "
            f"{recap_count} days scored"
        )
        corps_count = Corps.query.filter_by(
            season_id=current_season.id, is_retired=False
        ).count()
        click.echo(f"🎺 Active Corps: {corps_count}")
    else:
        click.echo("⚠️  Current Season: None active")

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Participants: {user_count}")

    league_count = League.query.filter_by(is_active=True).count()
    click.echo(f"🏆 Active Leagues: {league_count}")


if __name__ == "__main__":
    with app.app_context():
        cli()
