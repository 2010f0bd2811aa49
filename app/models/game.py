import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from app import db
from app.utils.timezone_utils import isoformat_utc

logger = logging.getLogger(__name__)


class GameType:
    NORMAL = "normal"
    TRIP = "trip"

    ALL = (NORMAL, TRIP)


class GameOutcome:
    UNSETTLED = "unsettled"
    ARRIVED = "arrived"
    DIDNT_COME = "didnt_come"


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Session the game belongs to (naive UTC of the 18:00 session start)
    session_start = db.Column(db.DateTime, nullable=False)
    game_type = db.Column(db.String(20), nullable=False, default=GameType.NORMAL)

    # Outcome: unsettled | arrived (with actual_time) | didnt_come
    outcome = db.Column(db.String(20), nullable=False, default=GameOutcome.UNSETTLED)
    actual_time = db.Column(db.Integer)  # minutes late, negative = early
    settled_at = db.Column(db.DateTime)

    # Timestamps
    played_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    bets = db.relationship(
        "Bet", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_game_session_start", "session_start"),
        db.Index("idx_game_played_at", "played_at"),
        # At most one unsettled game per session and type
        db.Index(
            "uq_game_unsettled_session",
            "session_start",
            "game_type",
            unique=True,
            sqlite_where=db.text("outcome = 'unsettled'"),
            postgresql_where=db.text("outcome = 'unsettled'"),
        ),
        db.CheckConstraint(
            "(outcome = 'arrived') = (actual_time IS NOT NULL)",
            name="actual_time_only_when_arrived",
        ),
    )

    def __repr__(self):
        return f"<Game {self.id} {self.game_type} {self.outcome}>"

    @property
    def is_settled(self):
        return self.outcome != GameOutcome.UNSETTLED

    @property
    def didnt_come(self):
        return self.outcome == GameOutcome.DIDNT_COME

    @property
    def is_trip(self):
        return self.game_type == GameType.TRIP

    @staticmethod
    def for_session(session_start):
        """Query of every game created for a session"""
        return Game.query.filter(Game.session_start == session_start)

    @staticmethod
    def unsettled_before(session_start):
        """Unsettled games left over from earlier sessions, newest first"""
        return Game.query.filter(
            Game.outcome == GameOutcome.UNSETTLED,
            Game.session_start < session_start,
        ).order_by(Game.session_start.desc(), Game.id.desc())

    @staticmethod
    def find_current(session_start):
        """
        Find 'the' game for a session.

        An unsettled trip game wins regardless of session, since trips are not
        bound to the daily window. Otherwise the session's unsettled game, and
        failing that its most recent (settled) game.
        """
        trip = (
            Game.query.filter_by(
                game_type=GameType.TRIP, outcome=GameOutcome.UNSETTLED
            )
            .order_by(Game.played_at.desc(), Game.id.desc())
            .first()
        )
        if trip:
            return trip

        games = Game.for_session(session_start)
        game = (
            games.filter(Game.outcome == GameOutcome.UNSETTLED)
            .order_by(Game.played_at.desc(), Game.id.desc())
            .first()
        )
        if game:
            return game

        return games.order_by(Game.played_at.desc(), Game.id.desc()).first()

    @staticmethod
    def get_or_create_current(session_start):
        """Find the session's game, creating a normal one if it has none at all"""
        game = Game.find_current(session_start)
        if game:
            return game

        try:
            with db.session.begin_nested():
                game = Game(session_start=session_start, game_type=GameType.NORMAL)
                db.session.add(game)
            logger.info(f"Created game for session starting {session_start}")
            return game
        except IntegrityError:
            logger.info(
                f"Game for session {session_start} created concurrently, re-reading"
            )
            return Game.find_current(session_start)

    @staticmethod
    def create_for_session(session_start, game_type):
        """
        Create a game explicitly, returning None when an unsettled one
        already exists for the session.
        """
        current = Game.find_current(session_start)
        if current is not None and not current.is_settled:
            return None

        try:
            with db.session.begin_nested():
                game = Game(session_start=session_start, game_type=game_type)
                db.session.add(game)
        except IntegrityError:
            return None

        logger.info(f"Created {game_type} game for session starting {session_start}")
        return game

    def record_outcome(self, actual_time=None, didnt_come=False):
        """
        Flip the game to settled, but only if it is still unsettled.

        The conditional UPDATE is the guard: of two concurrent settlements
        only one sees a matched row. Returns True when this call won.
        """
        values = {
            "outcome": GameOutcome.DIDNT_COME if didnt_come else GameOutcome.ARRIVED,
            "actual_time": None if didnt_come else actual_time,
            "settled_at": datetime.now(timezone.utc),
        }
        matched = (
            Game.query.filter(
                Game.id == self.id, Game.outcome == GameOutcome.UNSETTLED
            ).update(values, synchronize_session=False)
        )
        if matched != 1:
            return False

        db.session.refresh(self)
        return True

    def to_dict(self, include_bets_count=False):
        """Convert game to dictionary for API responses"""
        data = {
            "id": self.id,
            "gameType": self.game_type,
            "actualTime": self.actual_time,
            "didntCome": self.didnt_come,
            "isSettled": self.is_settled,
            "sessionStart": isoformat_utc(self.session_start),
            "playedAt": isoformat_utc(self.played_at),
        }

        if include_bets_count:
            data["betsCount"] = self.bets.count()

        return data
