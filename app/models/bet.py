from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from app import db
from app.utils.scoring import prediction_difference
from app.utils.timezone_utils import isoformat_utc


class Bet(db.Model):
    __tablename__ = "bets"

    id = db.Column(db.Integer, primary_key=True)

    # Bet identification
    player_id = db.Column(db.Integer, db.ForeignKey("players.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    # Bet details
    prediction = db.Column(db.Integer, nullable=False, default=0)  # minutes late
    is_wont_come_bet = db.Column(db.Boolean, nullable=False, default=False)
    bet_amount = db.Column(db.Integer, nullable=False, default=0)  # legacy stake

    # Result (written once at settlement)
    winnings = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("player_id", "game_id", name="unique_player_game_bet"),
        db.Index("idx_bet_game", "game_id"),
        db.Index("idx_bet_created_at", "created_at"),
        db.CheckConstraint("winnings >= 0", name="winnings_not_negative"),
    )

    def __repr__(self):
        return f"<Bet player_id={self.player_id} game_id={self.game_id} prediction={self.prediction}>"

    @property
    def difference(self):
        """Minutes off the revealed time, None until settled or when she didn't come"""
        if not self.game or not self.game.is_settled or self.game.didnt_come:
            return None
        return prediction_difference(self.prediction, self.game.actual_time)

    @staticmethod
    def get_for(player_id, game_id):
        return Bet.query.filter_by(player_id=player_id, game_id=game_id).first()

    @staticmethod
    def upsert(player, game, prediction, is_wont_come_bet=False, bet_amount=0):
        """
        Place or overwrite the player's bet on a game.

        Returns:
            tuple: (bet, created)
        """
        prediction = 0 if prediction is None else prediction

        bet = Bet.get_for(player.id, game.id)
        if bet is None:
            try:
                with db.session.begin_nested():
                    bet = Bet(
                        player_id=player.id,
                        game_id=game.id,
                        prediction=prediction,
                        is_wont_come_bet=is_wont_come_bet,
                        bet_amount=bet_amount,
                        winnings=0,
                    )
                    db.session.add(bet)
                return bet, True
            except IntegrityError:
                # Same player placed a bet concurrently, overwrite it below
                bet = Bet.get_for(player.id, game.id)

        bet.prediction = prediction
        bet.is_wont_come_bet = is_wont_come_bet
        bet.bet_amount = bet_amount
        return bet, False

    def to_public_dict(self):
        """Who bet and when, without the prediction"""
        return {
            "id": self.id,
            "player": {"name": self.player.name, "points": self.player.points},
            "createdAt": isoformat_utc(self.created_at),
        }

    def to_dict(self):
        """Convert bet to dictionary for API responses"""
        return {
            "id": self.id,
            "player": {"name": self.player.name, "points": self.player.points},
            "playerName": self.player.name,
            "prediction": self.prediction,
            "isWontComeBet": self.is_wont_come_bet,
            "betAmount": self.bet_amount,
            "winnings": self.winnings,
            "difference": self.difference,
            "gameId": self.game_id,
            "createdAt": isoformat_utc(self.created_at),
        }

    def to_player_dict(self):
        """Player-facing fields returned after placing a bet"""
        return {
            "playerName": self.player.name,
            "prediction": self.prediction,
            "betAmount": self.bet_amount,
            "isWontComeBet": self.is_wont_come_bet,
        }
