from functools import wraps

from flask import jsonify, request

from fantasy_corps.models import DailyRecap, Season, Trophy, User
from fantasy_corps.models.corps import CORPS_CLASSES
from fantasy_corps.routes.api import bp
from fantasy_corps.services.scheduler_service import scheduler_service
from fantasy_corps.services.store import RecapBook
from fantasy_corps.utils.cache_utils import cached_route, get_cache_stats


def add_security_headers(f):
    """Add security headers to API responses"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = f(*args, **kwargs)
        if hasattr(response, "headers"):
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
        return response

    return decorated_function


def _season_or_404(season_uid):
    return Season.query.filter_by(season_uid=season_uid).first_or_404()


@bp.route("/seasons/current")
@cached_route(timeout=1800, key_prefix="current_season")  # Cache for 30 minutes
def current_season():
    """Get current active season"""
    season = Season.get_current_season()
    if season:
        return jsonify(season.to_dict())
    return jsonify({"error": "No active season"}), 404


@bp.route("/seasons/<season_uid>/recaps")
@cached_route(timeout=3600, key_prefix="season_recaps")
def season_recaps(season_uid):
    """All daily recaps of a season, ordered by day"""
    season = _season_or_404(season_uid)
    recaps = DailyRecap.get_for_season(season.id)
    return jsonify(
        {
            "season_uid": season.season_uid,
            "season_name": season.name,
            "recaps": [recap.to_dict() for recap in recaps],
        }
    )


@bp.route("/seasons/<season_uid>/recaps/<int:day>")
@cached_route(timeout=3600, key_prefix="season_recap_day")
def season_recap_day(season_uid, day):
    """One day's recap with the awards earned on it"""
    season = _season_or_404(season_uid)
    recap = DailyRecap.query.filter_by(season_id=season.id, day=day).first()
    if recap is None:
        return jsonify({"error": f"No recap for day {day}"}), 404

    data = recap.to_dict()
    data["awards"] = [
        dict(award.to_dict(), uid=award.user.uid)
        for award in Trophy.get_awards_for_day(season.id, day)
    ]
    return jsonify(data)


@bp.route("/seasons/<season_uid>/standings")
@cached_route(timeout=3600, key_prefix="season_standings")
def season_standings(season_uid):
    """
    Season standings per class: best show total on any day before the
    championship rounds. ``?class=worldClass`` narrows to one class.
    """
    season = _season_or_404(season_uid)
    corps_class = request.args.get("class")
    if corps_class and corps_class not in CORPS_CLASSES:
        return jsonify({"error": f"Unknown class {corps_class}"}), 400

    book = RecapBook(r.to_dict() for r in DailyRecap.get_for_season(season.id))
    classes = [corps_class] if corps_class else CORPS_CLASSES

    standings = {}
    for cls in classes:
        best = book.best_totals(corps_classes={cls})
        ranked = sorted(best.items(), key=lambda item: (-item[1], item[0][0]))
        standings[cls] = [
            {"rank": index + 1, "uid": uid, "bestScore": score}
            for index, ((uid, _), score) in enumerate(ranked)
        ]

    return jsonify({"season_uid": season.season_uid, "standings": standings})


@bp.route("/scheduler/status")
@add_security_headers
def scheduler_status():
    """Daily scoring scheduler status and run statistics"""
    status = scheduler_service.get_status()
    status["cache"] = get_cache_stats()
    return jsonify(status)


@bp.route("/seasons/<season_uid>/participants/<uid>")
@cached_route(timeout=1800, key_prefix="participant_profile")
def participant_profile(season_uid, uid):
    """A participant's corps, CorpsCoin, trophies and head-to-head records for a season"""
    season = _season_or_404(season_uid)
    user = User.get_by_uid(uid)
    if user is None:
        return jsonify({"error": f"Unknown participant {uid}"}), 404

    corps = user.corps.filter_by(season_id=season.id).all()
    records = {}
    for cls in CORPS_CLASSES:
        record = user.get_season_record(season.id, cls)
        if record:
            records[cls] = {"w": record.wins, "l": record.losses, "t": record.ties}

    data = user.to_dict()
    data.update(
        {
            "corps": [c.to_dict() for c in corps],
            "trophies": [t.to_dict() for t in user.get_trophy_case(season.id)],
            "coin_awards": [
                a.to_dict() for a in user.coin_awards.filter_by(season_id=season.id)
            ],
            "records": records,
        }
    )
    return jsonify(data)
