import logging

from flask import jsonify, request
from flask_login import current_user, login_required

from app import db
from app.errors import NotFound, ValidationError
from app.forms import form_from_json
from app.forms.auth import AdminUserForm, PasswordResetForm
from app.models import Player, Role, User
from app.routes.admin import bp
from app.services import stats_service
from app.utils.decorators import admin_required, no_store
from app.utils.session_window import get_current_window

logger = logging.getLogger(__name__)


@bp.route("/dashboard")
@login_required
@admin_required
@no_store
def dashboard():
    """Admin overview of players, games and the running session"""
    return jsonify(stats_service.admin_dashboard(get_current_window()))


@bp.route("/users", methods=["GET"])
@login_required
@admin_required
def list_users():
    users = User.query.order_by(User.created_at.desc()).all()
    return jsonify([user.to_dict() for user in users])


@bp.route("/users", methods=["POST"])
@login_required
@admin_required
def create_user():
    """Create a login, optionally linked to a (new or existing) player"""
    form = form_from_json(AdminUserForm, request.get_json(silent=True))

    user = User(username=form.username.data, role=form.role.data or Role.USER)
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.flush()

    player_name = (form.player_name.data or "").strip()
    if player_name:
        player = Player.get_or_create(player_name)
        Player.link_to_identity(player.id, user.id)

    db.session.commit()
    logger.info(
        f"Admin '{current_user.username}' created user '{user.username}' "
        f"(role={user.role}, player={player_name or '-'})"
    )
    return jsonify(user.to_dict()), 201


@bp.route("/users", methods=["PATCH"])
@login_required
@admin_required
def reset_password():
    form = form_from_json(PasswordResetForm, request.get_json(silent=True))

    user = db.session.get(User, form.user_id.data)
    if user is None:
        raise NotFound("User not found")

    user.set_password(form.password.data)
    db.session.commit()
    logger.info(f"Admin '{current_user.username}' reset password of '{user.username}'")
    return jsonify({"id": user.id, "username": user.username, "role": user.role})


@bp.route("/users", methods=["DELETE"])
@login_required
@admin_required
def delete_user():
    """Delete a login; the player profile and its history stay"""
    user_id = request.args.get("id", type=int)
    if not user_id:
        raise ValidationError("User ID required")

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account")

    username = user.username
    db.session.delete(user)
    db.session.commit()
    logger.info(f"Admin '{current_user.username}' deleted user '{username}'")
    return jsonify({"success": True})
