"""
Bet placement service

Resolves the current session, its game and the player, and keeps at most
one bet per player per game. Every function takes an optional already
resolved SessionWindow so a request evaluates the clock only once.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.errors import AlreadyExists, NotFound, SessionClosed, ValidationError
from app.models import Bet, Game, GameType, Player
from app.utils.session_window import get_current_window

logger = logging.getLogger(__name__)


def _require_player_name(player_name):
    name = (player_name or "").strip() if isinstance(player_name, str) else None
    if not name:
        raise ValidationError("Player name is required")
    return name


def _is_whole_number(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _window(window):
    return window if window is not None else get_current_window()


def betting_open_for(game, window):
    """
    Whether bets may currently be placed or withdrawn.

    An unsettled trip game is always open; a settled game never is.
    Otherwise the daily window decides.
    """
    if game is not None:
        if game.is_settled:
            return False
        if game.is_trip:
            return True
    return window.is_open


def current_session(window=None):
    """Open/closed state of the current session for banners and forms"""
    window = _window(window)
    game = Game.find_current(window.session_start_utc)

    data = window.to_dict()
    data["isOpen"] = betting_open_for(game, window)
    data["gameType"] = game.game_type if game else GameType.NORMAL
    return data


def current_game(window=None):
    """The game of the current session (trip game first), or None"""
    window = _window(window)
    return Game.find_current(window.session_start_utc)


def place_bet(
    player_name, prediction=None, is_wont_come_bet=False, bet_amount=0, window=None
):
    """
    Place or overwrite a player's bet for the current session.

    Raises:
        ValidationError: missing name or prediction
        SessionClosed: the window is closed and no trip game is running
    """
    name = _require_player_name(player_name)
    is_wont_come_bet = bool(is_wont_come_bet)

    if not is_wont_come_bet:
        if prediction is None:
            raise ValidationError(
                "Prediction is required unless betting she won't come"
            )
        if not _is_whole_number(prediction):
            raise ValidationError("Prediction must be a whole number of minutes")
    if not _is_whole_number(bet_amount):
        raise ValidationError("Bet amount must be a whole number")
    if bet_amount < 0:
        raise ValidationError("Bet amount cannot be negative")

    window = _window(window)

    existing = Game.find_current(window.session_start_utc)
    if not betting_open_for(existing, window):
        logger.warning(f"Bet from '{name}' rejected: session closed")
        raise SessionClosed(
            f"Betting is closed. Bets are accepted until {window.closing_time_label}."
        )

    try:
        player = Player.get_or_create(name)
        game = existing or Game.get_or_create_current(window.session_start_utc)
        if game.is_settled:
            # Lost the race against a settlement of the same window
            db.session.rollback()
            raise SessionClosed()

        bet, created = Bet.upsert(
            player,
            game,
            prediction=None if is_wont_come_bet else prediction,
            is_wont_come_bet=is_wont_come_bet,
            bet_amount=bet_amount,
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to save bet for '{name}': {e}")
        raise

    action = "placed" if created else "updated"
    logger.info(
        f"Bet {action}: player={name} game={bet.game_id} "
        f"prediction={bet.prediction} wont_come={bet.is_wont_come_bet}"
    )
    return bet


def remove_bet(player_name, window=None):
    """
    Withdraw a player's bet for the current session.

    Raises:
        SessionClosed: betting is no longer open
        NotFound: unknown player or no bet this session
    """
    name = _require_player_name(player_name)
    window = _window(window)

    game = Game.find_current(window.session_start_utc)
    if not betting_open_for(game, window):
        logger.warning(f"Bet removal for '{name}' rejected: session closed")
        raise SessionClosed(
            f"Betting is closed. Cannot remove bet after {window.closing_time_label}."
        )

    player = Player.get_by_name(name)
    if player is None:
        raise NotFound("Player not found")

    bet = Bet.get_for(player.id, game.id) if game else None
    if bet is None:
        raise NotFound("No bet found")

    try:
        db.session.delete(bet)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to delete bet for '{name}': {e}")
        raise

    logger.info(f"Bet removed: player={name} game={game.id}")


def get_player_bet(player_name, window=None):
    """The player's bet on the current session's game, or None"""
    name = _require_player_name(player_name)
    window = _window(window)

    player = Player.get_by_name(name)
    if player is None:
        return None

    game = Game.find_current(window.session_start_utc)
    if game is None:
        return None

    return Bet.get_for(player.id, game.id)


def todays_bets(include_details=False, window=None):
    """
    Bets of the current session.

    Predictions stay hidden until the game is settled unless the caller is
    privileged (include_details).
    """
    window = _window(window)
    game = Game.find_current(window.session_start_utc)

    if game is None:
        return {"bets": [], "resultsRevealed": False, "game": None}

    bets = game.bets.order_by(Bet.created_at.asc(), Bet.id.asc()).all()
    results_revealed = game.is_settled

    if results_revealed or include_details:
        return {
            "bets": [bet.to_dict() for bet in bets],
            "resultsRevealed": results_revealed,
            "game": {
                "id": game.id,
                "gameType": game.game_type,
                "actualTime": game.actual_time,
                "didntCome": game.didnt_come,
            },
        }

    return {
        "bets": [bet.to_public_dict() for bet in bets],
        "resultsRevealed": False,
        "game": None,
    }


def create_game(game_type, window=None):
    """
    Explicitly open a game for the current session (trip mode).

    Raises:
        ValidationError: unknown game type
        AlreadyExists: an unsettled game is already running
    """
    if game_type not in GameType.ALL:
        raise ValidationError("Invalid game type")

    window = _window(window)

    try:
        game = Game.create_for_session(window.session_start_utc, game_type)
        if game is None:
            raise AlreadyExists("An incomplete game already exists for this session")
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to create {game_type} game: {e}")
        raise

    logger.info(f"Game {game.id} created: type={game_type}")
    return game
