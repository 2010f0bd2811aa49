"""
Settlement Engine

Reveals the outcome of a game and awards points to every bet on it, once.
The outcome write is a conditional UPDATE on the still-unsettled game, done
in the same transaction as all bet and player updates, so a second or
concurrent settlement changes nothing.
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import AlreadySettled, NotFound, SessionClosed, ValidationError
from app.models import Bet, Game, Player
from app.utils.cache_utils import invalidate_stats_cache
from app.utils.scoring import calculate_bet_points, prediction_difference
from app.utils.session_window import get_current_window

logger = logging.getLogger(__name__)


def _validate_outcome(actual_time, didnt_come):
    if didnt_come:
        if actual_time is not None:
            raise ValidationError("Give either an actual time or didn't come, not both")
        return None, True

    if actual_time is None:
        raise ValidationError("Actual time is required unless she didn't come")
    if isinstance(actual_time, bool) or not isinstance(actual_time, int):
        raise ValidationError("Actual time must be a whole number of minutes")
    return actual_time, False


def _still_open(window, stale_game=None):
    message = (
        f"Betting is still open until {window.closing_time_label}. "
        "Results can be revealed after it closes."
    )
    if stale_game is not None:
        message += (
            f" Game {stale_game.id} from an earlier session is unsettled; "
            f"settle it with POST /api/games/{stale_game.id}/settle."
        )
    return SessionClosed(message)


def ensure_session_closed(game, window):
    """Normal games of the running session cannot be settled while bets are mutable"""
    if game.is_trip:
        return
    if game.session_start == window.session_start_utc and window.is_open:
        raise _still_open(window)


def _apply_awards(game):
    """Write winnings on every bet and add them to the owning players"""
    cfg = current_app.config
    exact_hit_points = cfg.get("EXACT_HIT_POINTS", 10)
    wont_come_bonus = cfg.get("WONT_COME_BONUS", 15)

    bets = game.bets.order_by(Bet.created_at.asc(), Bet.id.asc()).all()
    awards = []
    for bet in bets:
        earned = calculate_bet_points(
            bet.prediction,
            bet.is_wont_come_bet,
            actual_time=game.actual_time,
            didnt_come=game.didnt_come,
            exact_hit_points=exact_hit_points,
            wont_come_bonus=wont_come_bonus,
        )
        bet.winnings = earned

        # Increment in SQL so concurrent settlements of other games add up
        Player.query.filter(Player.id == bet.player_id).update(
            {
                Player.points: Player.points + earned,
                Player.games_won: Player.games_won + (1 if earned > 0 else 0),
                Player.games_lost: Player.games_lost + (0 if earned > 0 else 1),
                Player.total_bet: Player.total_bet + (bet.bet_amount or 0),
            },
            synchronize_session=False,
        )
        awards.append((bet.id, earned))

    return awards


def _results(game, awards):
    results = []
    for bet_id, earned in awards:
        bet = db.session.get(Bet, bet_id)
        results.append(
            {
                "playerName": bet.player.name,
                "prediction": bet.prediction,
                "isWontComeBet": bet.is_wont_come_bet,
                "betAmount": bet.bet_amount,
                "winnings": earned,
                "netChange": earned,
                "newPoints": bet.player.points,
                "difference": prediction_difference(
                    bet.prediction, game.actual_time, game.didnt_come
                ),
            }
        )

    # Stable: equal winnings keep bet order
    return sorted(results, key=lambda r: r["winnings"], reverse=True)


def settle_game(game_id, actual_time=None, didnt_come=False, window=None):
    """
    Settle one game.

    Raises:
        ValidationError: outcome missing or ambiguous
        NotFound: no such game
        SessionClosed: the game's session is still open for bets
        AlreadySettled: the game already has an outcome

    Returns:
        tuple: (game, results sorted by winnings)
    """
    actual_time, didnt_come = _validate_outcome(actual_time, didnt_come)
    window = window if window is not None else get_current_window()

    game = db.session.get(Game, game_id)
    if game is None:
        raise NotFound("Game not found")

    ensure_session_closed(game, window)
    return _settle(game, actual_time, didnt_come)


def settle_current(actual_time=None, didnt_come=False, window=None):
    """
    Settle the current session's game.

    A session nobody bet on gets an empty game so the outcome still shows up
    in history and statistics.
    """
    actual_time, didnt_come = _validate_outcome(actual_time, didnt_come)
    window = window if window is not None else get_current_window()

    game = Game.find_current(window.session_start_utc)
    if (game is None or not game.is_trip) and window.is_open:
        # After 18:00 the current session is the new one; point at the
        # previous night's game if it was never settled
        stale_game = Game.unsettled_before(window.session_start_utc).first()
        raise _still_open(window, stale_game)

    if game is None:
        try:
            game = Game.get_or_create_current(window.session_start_utc)
        except SQLAlchemyError:
            db.session.rollback()
            raise

    return _settle(game, actual_time, didnt_come)


def _settle(game, actual_time, didnt_come):
    outcome = "didn't come" if didnt_come else f"{actual_time} min"

    try:
        if not game.record_outcome(actual_time=actual_time, didnt_come=didnt_come):
            db.session.rollback()
            logger.warning(f"Settlement of game {game.id} rejected: already settled")
            raise AlreadySettled()

        awards = _apply_awards(game)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Settlement of game {game.id} failed, nothing applied: {e}")
        raise

    invalidate_stats_cache()

    results = _results(game, awards)
    logger.info(
        f"Game {game.id} settled ({outcome}): {len(results)} bets, "
        f"{sum(r['winnings'] for r in results)} points awarded"
    )
    return game, results
