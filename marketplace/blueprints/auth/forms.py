# marketplace/blueprints/auth/forms.py
from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import (
    DataRequired,
    Email,
    Length,
    Optional as Opt,
    Regexp,
)


class JsonForm(FlaskForm):
    """FlaskForm fed from a JSON body; sessions are cookie based but the API has no CSRF token."""

    class Meta:
        csrf = False

    def error_message(self) -> str:
        return "; ".join(
            f"{name}: {', '.join(messages)}" for name, messages in sorted(self.errors.items())
        )


# ---------------------
# Validators / Helpers
# ---------------------

PASSWORD_VALIDATORS = [
    DataRequired(),
    Length(min=8, message="Password must be at least 8 characters."),
    Regexp(r"^(?=.*[A-Za-z])(?=.*\d).+$", message="Use letters and numbers."),
]

USERNAME_VALIDATORS = [
    DataRequired(),
    Length(min=3, max=80),
    Regexp(r"^[A-Za-z0-9_.-]+$", message="Letters, digits, '.', '_' and '-' only."),
]


class RegisterForm(JsonForm):
    username = StringField("Username", validators=USERNAME_VALIDATORS)
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    firstName = StringField("First name", validators=[Opt(), Length(max=120)])
    lastName = StringField("Last name", validators=[Opt(), Length(max=120)])
    password = PasswordField("Password", validators=PASSWORD_VALIDATORS)


class LoginForm(JsonForm):
    username = StringField("Username or email", validators=[DataRequired(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    remember = BooleanField("Keep me signed in")


class ProfileForm(JsonForm):
    username = StringField("Username", validators=[Opt()] + USERNAME_VALIDATORS[1:])
    email = StringField("Email", validators=[Opt(), Email(), Length(max=255)])
    firstName = StringField("First name", validators=[Opt(), Length(max=120)])
    lastName = StringField("Last name", validators=[Opt(), Length(max=120)])
    password = PasswordField("Password", validators=[Opt()] + PASSWORD_VALIDATORS[1:])

    def changes(self) -> dict:
        """Only the fields the client actually sent."""
        mapping = {"username": "username", "email": "email", "firstName": "first_name",
                   "lastName": "last_name", "password": "password"}
        return {attr: getattr(self, name).data for name, attr in mapping.items()
                if getattr(self, name).raw_data and getattr(self, name).data}
