import logging

from flask import jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from app import db, limiter, login_manager
from app.forms import form_from_json
from app.forms.auth import LoginForm, RegistrationForm
from app.models import Player, User
from app.routes.auth import bp

logger = logging.getLogger(__name__)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@bp.route("/csrf-token")
def csrf_token():
    """Token for the X-CSRFToken header of state-changing requests"""
    return jsonify({"csrfToken": generate_csrf()})


@bp.route("/register", methods=["POST"])
@limiter.limit("5 per hour")
def register():
    form = form_from_json(RegistrationForm, request.get_json(silent=True))

    user = User(username=form.username.data)
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.flush()

    # Betting profile, named after the user unless another name was chosen
    player_name = (form.player_name.data or "").strip() or user.username
    player = Player.get_or_create(player_name)
    Player.link_to_identity(player.id, user.id)

    db.session.commit()
    logger.info(f"Registered user '{user.username}' with player '{player_name}'")

    login_user(user)
    return jsonify({"success": True, "user": user.to_dict()}), 201


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    form = form_from_json(LoginForm, request.get_json(silent=True))

    user = User.query.filter_by(username=form.username.data).first()
    if user is None or not user.check_password(form.password.data):
        logger.warning(f"Failed login for '{form.username.data}'")
        return jsonify({"error": "Invalid username or password"}), 401

    login_user(user, remember=form.remember_me.data)
    user.update_last_login()

    # First authenticated session without a profile gets one
    if not user.is_admin:
        user.ensure_player()

    db.session.commit()
    return jsonify({"success": True, "user": user.to_dict()})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})
