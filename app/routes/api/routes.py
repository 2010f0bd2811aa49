import logging

from flask import abort, current_app, jsonify, request
from flask_login import current_user, login_required

from app import db
from app.errors import ValidationError
from app.forms import form_from_json
from app.forms.bets import BetForm, CreateGameForm, PlayerForm, SettleForm
from app.models import Player
from app.routes.api import bp
from app.services import betting_service, settlement_service, stats_service
from app.utils.decorators import admin_required, no_store
from app.utils.session_window import get_current_window

logger = logging.getLogger(__name__)


def _acting_player_name(requested=None):
    """
    Player the current user acts for.

    Admins may name any player; users are limited to their own profile,
    which is created on first use.
    """
    requested = (requested or "").strip()
    if requested:
        if not current_user.can_act_for(requested):
            abort(403)
        return requested

    player = current_user.ensure_player()
    db.session.commit()
    return player.name


@bp.route("/session")
@no_store
def session_status():
    """Whether betting is open for the current session"""
    return jsonify(betting_service.current_session(get_current_window()))


@bp.route("/bets", methods=["GET"])
@login_required
@no_store
def my_bet():
    """Current session's bet of a player"""
    player_name = _acting_player_name(request.args.get("playerName"))
    bet = betting_service.get_player_bet(player_name, window=get_current_window())
    return jsonify({"bet": bet.to_player_dict() if bet else None})


@bp.route("/bets", methods=["POST"])
@login_required
def place_bet():
    """Place or update a bet for the current session"""
    form = form_from_json(BetForm, request.get_json(silent=True))
    player_name = _acting_player_name(form.player_name.data)

    bet = betting_service.place_bet(
        player_name,
        prediction=form.prediction.data,
        is_wont_come_bet=form.is_wont_come_bet.data,
        bet_amount=form.bet_amount.data or 0,
        window=get_current_window(),
    )
    return jsonify({"success": True, "bet": bet.to_player_dict()})


@bp.route("/bets", methods=["DELETE"])
@login_required
def remove_bet():
    """Withdraw a bet while the session is open"""
    player_name = _acting_player_name(request.args.get("playerName"))
    betting_service.remove_bet(player_name, window=get_current_window())
    return jsonify({"success": True})


@bp.route("/bets/today")
@login_required
@no_store
def todays_bets():
    """Bets of the current session, predictions hidden until settled"""
    include_details = request.args.get("includeDetails") == "true"
    return jsonify(
        betting_service.todays_bets(
            include_details=include_details and current_user.is_admin,
            window=get_current_window(),
        )
    )


@bp.route("/games/current", methods=["GET"])
@login_required
@no_store
def current_game():
    """The active game, used to detect trip mode"""
    game = betting_service.current_game(get_current_window())
    return jsonify(
        {
            "game": (
                {
                    "id": game.id,
                    "gameType": game.game_type,
                    "actualTime": game.actual_time,
                    "didntCome": game.didnt_come,
                }
                if game
                else None
            )
        }
    )


@bp.route("/games/current", methods=["POST"])
@login_required
@admin_required
def create_game():
    """Open a game explicitly (trip mode)"""
    form = form_from_json(CreateGameForm, request.get_json(silent=True))
    game = betting_service.create_game(form.game_type.data, window=get_current_window())
    return jsonify({"success": True, "game": {"id": game.id, "gameType": game.game_type}})


def _settlement_response(game, results):
    return jsonify(
        {
            "gameId": game.id,
            "actualTime": game.actual_time,
            "didntCome": game.didnt_come,
            "results": results,
        }
    )


@bp.route("/games", methods=["POST"])
@login_required
@admin_required
def settle_current_game():
    """Reveal the result of the current session"""
    form = form_from_json(SettleForm, request.get_json(silent=True))
    game, results = settlement_service.settle_current(
        actual_time=form.actual_time.data,
        didnt_come=form.didnt_come.data,
        window=get_current_window(),
    )
    return _settlement_response(game, results)


@bp.route("/games/<int:game_id>/settle", methods=["POST"])
@login_required
@admin_required
def settle_game(game_id):
    """Reveal the result of a specific game"""
    form = form_from_json(SettleForm, request.get_json(silent=True))
    game, results = settlement_service.settle_game(
        game_id,
        actual_time=form.actual_time.data,
        didnt_come=form.didnt_come.data,
        window=get_current_window(),
    )
    return _settlement_response(game, results)


@bp.route("/games/history")
@login_required
def game_history():
    """Settled games with their bets"""
    limit = request.args.get(
        "limit", current_app.config.get("HISTORY_DEFAULT_LIMIT"), type=int
    )
    if limit is not None and limit < 1:
        raise ValidationError("Limit must be positive")
    return jsonify({"games": stats_service.game_history(limit=limit)})


@bp.route("/players", methods=["GET"])
def players():
    """Leaderboard"""
    return jsonify(stats_service.leaderboard())


@bp.route("/players", methods=["POST"])
@login_required
def create_player():
    """Get or create a player profile by name"""
    form = form_from_json(PlayerForm, request.get_json(silent=True))
    name = form.name.data.strip()

    if current_user.is_admin:
        player = Player.get_or_create(name)
    elif current_user.player is None:
        # Profile creation for a user without one links it right away
        player = Player.get_or_create(name)
        Player.link_to_identity(player.id, current_user.id)
    elif current_user.player.name == name:
        player = current_user.player
    else:
        abort(403)

    db.session.commit()
    return jsonify(player.to_dict())


@bp.route("/stats")
@login_required
def player_stats():
    """Betting history and statistics of one player"""
    player_name = (request.args.get("playerName") or "").strip()
    if not player_name:
        raise ValidationError("Player name is required")
    return jsonify(stats_service.player_stats(player_name))


@bp.route("/stats/global")
@login_required
def global_stats():
    """Statistics across every settled game"""
    return jsonify(stats_service.global_stats())
