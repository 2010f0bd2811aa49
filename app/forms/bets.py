from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, StringField
from wtforms.validators import AnyOf, DataRequired, Length, NumberRange, Optional

from app.models import GameType

# A prediction or outcome further off than a whole day is a typo
MAX_MINUTES = 24 * 60


class BetForm(FlaskForm):
    JSON_FIELDS = {
        "playerName": "player_name",
        "prediction": "prediction",
        "isWontComeBet": "is_wont_come_bet",
        "betAmount": "bet_amount",
    }

    player_name = StringField("Player", validators=[Optional(), Length(max=100)])
    prediction = IntegerField(
        "Minutes late",
        validators=[Optional(), NumberRange(min=-MAX_MINUTES, max=MAX_MINUTES)],
    )
    is_wont_come_bet = BooleanField("She won't come")
    bet_amount = IntegerField(
        "Bet amount", default=0, validators=[Optional(), NumberRange(min=0)]
    )

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False

        if not self.is_wont_come_bet.data and self.prediction.data is None:
            self.prediction.errors = list(self.prediction.errors) + [
                "Prediction is required unless betting she won't come"
            ]
            return False

        return True


class SettleForm(FlaskForm):
    JSON_FIELDS = {"actualTime": "actual_time", "didntCome": "didnt_come"}

    actual_time = IntegerField(
        "Actual minutes late",
        validators=[Optional(), NumberRange(min=-MAX_MINUTES, max=MAX_MINUTES)],
    )
    didnt_come = BooleanField("She didn't come")

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False

        if self.didnt_come.data and self.actual_time.data is not None:
            self.actual_time.errors = list(self.actual_time.errors) + [
                "Give either an actual time or didn't come, not both"
            ]
            return False

        if not self.didnt_come.data and self.actual_time.data is None:
            self.actual_time.errors = list(self.actual_time.errors) + [
                "Actual time is required unless she didn't come"
            ]
            return False

        return True


class CreateGameForm(FlaskForm):
    JSON_FIELDS = {"gameType": "game_type"}

    game_type = StringField(
        "Game type",
        validators=[
            DataRequired(message="Invalid game type"),
            AnyOf(GameType.ALL, message="Invalid game type"),
        ],
    )


class PlayerForm(FlaskForm):
    JSON_FIELDS = {"name": "name"}

    name = StringField(
        "Name",
        validators=[DataRequired(message="Player name is required"), Length(max=100)],
    )
