"""
Read-only projections: leaderboard, player statistics, global statistics,
game history and the admin dashboard.

Stale reads are fine here; clients poll. Leaderboard and global statistics
are cached until the next settlement.
"""

from datetime import datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from app import db
from app.errors import NotFound
from app.models import Bet, Game, GameOutcome, Player, User
from app.utils.cache_utils import cached_query
from app.utils.timezone_utils import (
    convert_to_app_timezone,
    get_app_timezone,
    isoformat_utc,
    to_naive_utc,
)

MIN_BETS_FOR_ACCURACY = 3
RECENT_GAMES = 10

DISTRIBUTION_RANGES = [
    ("Early (< -10 min)", float("-inf"), -10),
    ("Slightly Early (-10 to 0)", -10, 0),
    ("On Time (0 to 10)", 0, 10),
    ("Late (10 to 30)", 10, 30),
    ("Very Late (30 to 60)", 30, 60),
    ("Extremely Late (> 60)", 60, float("inf")),
]


def _round1(value):
    return round(value * 10) / 10


def _settled_filter():
    return Game.outcome != GameOutcome.UNSETTLED


def _distribution(values):
    ranges = [
        {"label": label, "min": low, "max": high, "count": 0}
        for label, low, high in DISTRIBUTION_RANGES
    ]
    for value in values:
        for r in ranges:
            if r["min"] <= value < r["max"]:
                r["count"] += 1
                break

    return [
        {"label": r["label"], "count": r["count"]} for r in ranges if r["count"] > 0
    ]


@cached_query("players")
def leaderboard():
    """Players by points, leaving out admins' own profiles"""
    players = (
        Player.query.options(joinedload(Player.user))
        .order_by(Player.points.desc(), Player.name.asc())
        .all()
    )
    return [player.to_dict() for player in players if not player.is_admin_linked]


def calculate_streak(bets):
    """Current win/loss streak over settled bets ordered newest first"""
    if not bets:
        return {"type": "none", "count": 0}

    streak_type = "win" if bets[0].winnings > 0 else "loss"
    count = 0
    for bet in bets:
        won = bet.winnings > 0
        if (streak_type == "win") != won:
            break
        count += 1

    return {"type": streak_type, "count": count}


def player_stats(player_name):
    """Betting history and statistics for one player"""
    player = Player.get_by_name(player_name)
    if player is None:
        raise NotFound("Player not found")

    completed_bets = (
        Bet.query.join(Game)
        .options(joinedload(Bet.game))
        .filter(Bet.player_id == player.id, _settled_filter())
        .order_by(Bet.created_at.desc(), Bet.id.desc())
        .all()
    )

    total_games = len(completed_bets)
    games_won = sum(1 for bet in completed_bets if bet.winnings > 0)
    games_lost = total_games - games_won
    total_points_earned = sum(bet.winnings for bet in completed_bets)

    # Accuracy only makes sense for time bets on games she came to
    normal_bets = [
        bet
        for bet in completed_bets
        if not bet.is_wont_come_bet and not bet.game.didnt_come
    ]
    differences = [abs(bet.prediction - bet.game.actual_time) for bet in normal_bets]
    avg_accuracy = sum(differences) / len(differences) if differences else 0

    best_prediction = None
    best_difference = None
    for bet, difference in zip(normal_bets, differences):
        if best_difference is None or difference < best_difference:
            best_difference = difference
            best_prediction = {
                "prediction": bet.prediction,
                "actualTime": bet.game.actual_time,
                "difference": difference,
                "date": isoformat_utc(bet.created_at),
                "winnings": bet.winnings,
            }

    recent_games = [
        {
            "id": bet.id,
            "prediction": bet.prediction,
            "actualTime": bet.game.actual_time,
            "didntCome": bet.game.didnt_come,
            "isWontComeBet": bet.is_wont_come_bet,
            "winnings": bet.winnings,
            "difference": bet.difference,
            "date": isoformat_utc(bet.created_at),
            "gameDate": isoformat_utc(bet.game.played_at),
        }
        for bet in completed_bets[:RECENT_GAMES]
    ]

    # Monthly performance, oldest month first
    monthly = {}
    for bet in completed_bets:
        month = convert_to_app_timezone(bet.created_at).strftime("%b %Y")
        stats = monthly.setdefault(month, {"games": 0, "points": 0, "wins": 0})
        stats["games"] += 1
        stats["points"] += bet.winnings
        if bet.winnings > 0:
            stats["wins"] += 1

    monthly_performance = [
        {
            "month": month,
            "games": stats["games"],
            "points": stats["points"],
            "wins": stats["wins"],
            "winRate": stats["wins"] / stats["games"] * 100,
        }
        for month, stats in reversed(list(monthly.items()))
    ]

    return {
        "player": {
            "name": player.name,
            "points": player.points,
            "gamesWon": player.games_won,
            "gamesLost": player.games_lost,
        },
        "stats": {
            "totalGames": total_games,
            "gamesWon": games_won,
            "gamesLost": games_lost,
            "winRate": (games_won / total_games * 100) if total_games else 0,
            "totalPointsEarned": total_points_earned,
            "avgAccuracy": _round1(avg_accuracy),
            "bestPrediction": best_prediction,
            "currentStreak": calculate_streak(completed_bets),
        },
        "recentGames": recent_games,
        "monthlyPerformance": monthly_performance,
    }


@cached_query("games")
def global_stats():
    """Statistics across all settled games and players"""
    completed_games = (
        Game.query.filter(_settled_filter()).order_by(Game.played_at.desc()).all()
    )
    total_players = Player.query.count()
    total_games = len(completed_games)

    if total_games == 0:
        return {
            "totalGames": 0,
            "totalBets": 0,
            "totalPlayers": total_players,
            "averageActualTime": None,
            "averagePrediction": None,
            "didntComeCount": 0,
            "didntComePercentage": 0,
            "mostAccuratePlayer": None,
            "mostCommonPrediction": None,
            "predictionDistribution": [],
            "actualTimeDistribution": [],
            "averagePointsPerGame": 0,
        }

    games_she_came = [game for game in completed_games if not game.didnt_come]
    actual_times = [game.actual_time for game in games_she_came]
    average_actual_time = (
        sum(actual_times) / len(actual_times) if actual_times else None
    )

    didnt_come_count = total_games - len(games_she_came)

    all_bets = []
    for game in completed_games:
        all_bets.extend(game.bets.all())
    regular_bets = [bet for bet in all_bets if not bet.is_wont_come_bet]
    predictions = [bet.prediction for bet in regular_bets]
    average_prediction = sum(predictions) / len(predictions) if predictions else None

    # Most accurate player by average minutes off, minimum number of bets
    accuracy = {}
    for game in games_she_came:
        for bet in game.bets:
            if bet.is_wont_come_bet:
                continue
            entry = accuracy.setdefault(bet.player.name, [0, 0])
            entry[0] += abs(bet.prediction - game.actual_time)
            entry[1] += 1

    most_accurate_player = None
    best_avg = None
    for name, (total_difference, count) in accuracy.items():
        if count < MIN_BETS_FOR_ACCURACY:
            continue
        avg = total_difference / count
        if best_avg is None or avg < best_avg:
            best_avg = avg
            most_accurate_player = {
                "name": name,
                "averageAccuracy": _round1(avg),
                "totalBets": count,
            }

    # Most common prediction, rounded to 5 minutes
    frequency = {}
    for prediction in predictions:
        rounded = int(round(prediction / 5.0)) * 5
        frequency[rounded] = frequency.get(rounded, 0) + 1
    most_common_prediction = None
    max_frequency = 0
    for prediction, count in frequency.items():
        if count > max_frequency:
            max_frequency = count
            most_common_prediction = prediction

    total_points = db.session.query(func.coalesce(func.sum(Player.points), 0)).scalar()

    return {
        "totalGames": total_games,
        "totalBets": len(all_bets),
        "totalPlayers": total_players,
        "averageActualTime": (
            _round1(average_actual_time) if average_actual_time is not None else None
        ),
        "averagePrediction": (
            _round1(average_prediction) if average_prediction is not None else None
        ),
        "didntComeCount": didnt_come_count,
        "didntComePercentage": _round1(didnt_come_count / total_games * 100),
        "mostAccuratePlayer": most_accurate_player,
        "mostCommonPrediction": most_common_prediction,
        "predictionDistribution": _distribution(predictions),
        "actualTimeDistribution": _distribution(actual_times),
        "averagePointsPerGame": _round1(total_points / total_games),
    }


def game_history(limit=None):
    """Settled games, newest first, each with its bets by winnings"""
    query = Game.query.filter(_settled_filter()).order_by(
        Game.played_at.desc(), Game.id.desc()
    )
    if limit:
        query = query.limit(limit)

    games = []
    for game in query.all():
        bets = (
            game.bets.options(joinedload(Bet.player))
            .order_by(Bet.winnings.desc(), Bet.created_at.asc())
            .all()
        )
        games.append(
            {
                "id": game.id,
                "actualTime": game.actual_time,
                "didntCome": game.didnt_come,
                "gameType": game.game_type,
                "playedAt": isoformat_utc(game.played_at),
                "bets": [
                    {
                        "id": bet.id,
                        "playerName": bet.player.name,
                        "prediction": bet.prediction,
                        "isWontComeBet": bet.is_wont_come_bet,
                        "winnings": bet.winnings,
                        "difference": bet.difference,
                        "createdAt": isoformat_utc(bet.created_at),
                    }
                    for bet in bets
                ],
                "totalBets": len(bets),
                "winner": (
                    bets[0].player.name if bets and bets[0].winnings > 0 else None
                ),
            }
        )

    return games


def _local_day_bounds(now):
    """Naive UTC bounds of the local calendar day containing now"""
    tz = get_app_timezone()
    start = tz.localize(datetime.combine(now.date(), time.min))
    end = tz.localize(datetime.combine(now.date() + timedelta(days=1), time.min))
    return to_naive_utc(start), to_naive_utc(end)


def admin_dashboard(window):
    """Totals, today's activity and the running session for admins"""
    day_start, day_end = _local_day_bounds(window.now)

    today_games = (
        Game.query.filter(Game.played_at >= day_start, Game.played_at < day_end)
        .order_by(Game.played_at.desc())
        .all()
    )

    active_players = (
        Player.query.join(Bet)
        .filter(Bet.created_at >= day_start, Bet.created_at < day_end)
        .distinct()
        .all()
    )

    players = (
        Player.query.options(joinedload(Player.user))
        .order_by(Player.points.desc())
        .all()
    )

    recent_bets = Bet.query.order_by(Bet.created_at.desc(), Bet.id.desc()).limit(10).all()

    current = Game.find_current(window.session_start_utc)
    session_bets = (
        current.bets.order_by(Bet.created_at.desc()).all() if current else []
    )
    time_bets = [bet for bet in session_bets if not bet.is_wont_come_bet]
    avg_prediction = (
        sum(bet.prediction for bet in time_bets) / len(time_bets) if time_bets else 0
    )

    from app.services.betting_service import betting_open_for

    return {
        "stats": {
            "totalUsers": User.query.count(),
            "totalPlayers": Player.query.count(),
            "totalGames": Game.query.count(),
            "activePlayersToday": len(active_players),
        },
        "todayGames": [game.to_dict(include_bets_count=True) for game in today_games],
        "activePlayers": [player.to_dict() for player in active_players],
        "players": [
            dict(
                player.to_dict(),
                user=(
                    {"username": player.user.username, "role": player.user.role}
                    if player.user
                    else None
                ),
            )
            for player in players
        ],
        "recentBets": [bet.to_dict() for bet in recent_bets],
        "todaysBets": [bet.to_dict() for bet in session_bets],
        "currentGame": current.to_dict() if current else None,
        # Earlier sessions nobody revealed; settle by id
        "unsettledGames": [
            game.to_dict(include_bets_count=True)
            for game in Game.unsettled_before(window.session_start_utc).all()
        ],
        "bettingStatus": {
            "isOpen": betting_open_for(current, window),
            "closingTimeLabel": window.closing_time_label,
            "totalBets": len(session_bets),
            "avgPrediction": int(round(avg_prediction)),
        },
    }
