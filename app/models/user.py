from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from app import db
from app.utils.timezone_utils import isoformat_utc


class Role:
    USER = "user"
    ADMIN = "admin"

    ALL = (USER, ADMIN)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Site-wide role
    role = db.Column(db.String(20), nullable=False, default=Role.USER)

    # Betting profile, linked once
    player_id = db.Column(
        db.Integer, db.ForeignKey("players.id"), unique=True, nullable=True
    )

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    last_login = db.Column(db.DateTime)

    # Relationships
    player = db.relationship("Player", back_populates="user")

    __table_args__ = (db.Index("idx_user_created_at", "created_at"),)

    def __repr__(self):
        return f"<User {self.username}>"

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password)

    def update_last_login(self):
        self.last_login = datetime.now(timezone.utc)

    def ensure_player(self):
        """
        Make sure the user has a betting profile, creating one named after the
        username when none is linked yet.
        """
        from .player import Player

        if self.player_id is not None or self.player is not None:
            return self.player

        player = Player.get_or_create(self.username)
        Player.link_to_identity(player.id, self.id)
        return self.player

    def can_act_for(self, player_name):
        """Admins act for anyone, users only for their own player"""
        if self.is_admin:
            return True
        return self.player is not None and self.player.name == player_name

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "playerId": self.player_id,
            "player": (
                {"name": self.player.name, "points": self.player.points}
                if self.player
                else None
            ),
            "createdAt": isoformat_utc(self.created_at),
            "lastLogin": isoformat_utc(self.last_login),
        }
