from fantasy_corps import create_app, db
from fantasy_corps.models import Corps, DailyRecap, HistoricalEvent, League, Season, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Season": Season,
        "Corps": Corps,
        "DailyRecap": DailyRecap,
        "HistoricalEvent": HistoricalEvent,
        "League": League,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
