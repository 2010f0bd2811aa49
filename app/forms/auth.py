from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, PasswordField, StringField
from wtforms.validators import (
    AnyOf,
    DataRequired,
    Length,
    Optional,
    Regexp,
    ValidationError,
)

from app.models import Role
from app.models.user import User

USERNAME_VALIDATORS = [
    DataRequired(),
    Length(min=3, max=80, message="Username must be between 3 and 80 characters"),
    Regexp(
        r"^[a-zA-Z0-9_.-]+$",
        message="Username can only contain letters, numbers, dots, underscores, and hyphens",
    ),
]

PASSWORD_VALIDATORS = [
    DataRequired(),
    Length(min=6, message="Password must be at least 6 characters long"),
]


class LoginForm(FlaskForm):
    JSON_FIELDS = {
        "username": "username",
        "password": "password",
        "rememberMe": "remember_me",
    }

    username = StringField(
        "Username", validators=[DataRequired(), Length(min=3, max=80)]
    )
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember Me")


class RegistrationForm(FlaskForm):
    JSON_FIELDS = {
        "username": "username",
        "password": "password",
        "playerName": "player_name",
    }

    username = StringField("Username", validators=USERNAME_VALIDATORS)
    password = PasswordField("Password", validators=PASSWORD_VALIDATORS)
    player_name = StringField("Player name", validators=[Optional(), Length(max=100)])

    def validate_username(self, username):
        if User.query.filter_by(username=username.data).first():
            raise ValidationError("Username already exists")


class AdminUserForm(RegistrationForm):
    JSON_FIELDS = dict(RegistrationForm.JSON_FIELDS, role="role")

    role = StringField(
        "Role",
        default=Role.USER,
        validators=[Optional(), AnyOf(Role.ALL, message="Invalid role")],
    )


class PasswordResetForm(FlaskForm):
    JSON_FIELDS = {"userId": "user_id", "password": "password"}

    user_id = IntegerField("User", validators=[DataRequired()])
    password = PasswordField("Password", validators=PASSWORD_VALIDATORS)
