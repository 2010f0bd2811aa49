import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from app import db
from app.utils.timezone_utils import isoformat_utc

logger = logging.getLogger(__name__)


class Player(db.Model):
    __tablename__ = "players"

    id = db.Column(db.Integer, primary_key=True)

    # Display name, case-sensitive and immutable once created
    name = db.Column(db.String(100), unique=True, nullable=False, index=True)

    # Aggregates, only ever increased by settlement
    points = db.Column(db.Integer, nullable=False, default=0)
    games_won = db.Column(db.Integer, nullable=False, default=0)
    games_lost = db.Column(db.Integer, nullable=False, default=0)
    total_bet = db.Column(db.Integer, nullable=False, default=0)  # legacy stake total

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    bets = db.relationship(
        "Bet", backref="player", lazy="dynamic", cascade="all, delete-orphan"
    )
    user = db.relationship("User", back_populates="player", uselist=False)

    __table_args__ = (db.Index("idx_player_points", "points"),)

    def __repr__(self):
        return f"<Player {self.name} points={self.points}>"

    @property
    def total_games(self):
        return (self.games_won or 0) + (self.games_lost or 0)

    @property
    def is_admin_linked(self):
        """True when the linked login identity is an admin"""
        return self.user is not None and self.user.is_admin

    @staticmethod
    def get_by_name(name):
        return Player.query.filter_by(name=name).first()

    @staticmethod
    def get_or_create(name):
        """
        Resolve a display name to a Player, creating it with zeroed aggregates.

        Two requests racing on a never-seen name both try the insert; the
        unique constraint rejects the second one inside its savepoint and it
        re-reads the winner's row.
        """
        player = Player.get_by_name(name)
        if player:
            return player

        try:
            with db.session.begin_nested():
                player = Player(
                    name=name, points=0, games_won=0, games_lost=0, total_bet=0
                )
                db.session.add(player)
            logger.info(f"Created player '{name}'")
            return player
        except IntegrityError:
            logger.info(f"Player '{name}' created concurrently, re-reading")
            return Player.get_by_name(name)

    @staticmethod
    def link_to_identity(player_id, user_id):
        """
        Link a player to a login identity, once.

        Returns True when a link was made. Users that already have a player,
        and players that already belong to someone, are left untouched.
        """
        from .user import User

        user = db.session.get(User, user_id)
        player = db.session.get(Player, player_id)
        if user is None or player is None:
            return False

        if user.player_id is not None:
            return False

        if User.query.filter_by(player_id=player_id).first() is not None:
            return False

        user.player = player
        user.player_id = player.id
        logger.info(f"Linked player '{player.name}' to user '{user.username}'")
        return True

    def to_dict(self):
        """Convert player to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "points": self.points,
            "gamesWon": self.games_won,
            "gamesLost": self.games_lost,
            "totalBet": self.total_bet,
            "createdAt": isoformat_utc(self.created_at),
        }
