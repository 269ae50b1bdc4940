# marketplace/blueprints/auth/routes.py
import logging

from flask import jsonify
from flask_login import login_user, logout_user, login_required, current_user

from ...errors import InvalidArgument
from ...models.user import User
from ...services import user_service
from ...services.stores import UserStore
from . import auth_bp
from .forms import RegisterForm, LoginForm

log = logging.getLogger(__name__)


# -----------------
# Register
# -----------------

@auth_bp.route("/register", methods=["POST"])
def register():
    form = RegisterForm()
    if not form.validate_on_submit():
        raise InvalidArgument(form.error_message(), operation="register")

    user = user_service.register(
        username=form.username.data,
        email=form.email.data,
        password=form.password.data,
        first_name=form.firstName.data or None,
        last_name=form.lastName.data or None,
    )
    login_user(user)
    return jsonify(user.to_dict()), 201


# -----------------
# Login / Logout
# -----------------

@auth_bp.route("/login", methods=["POST"])
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        raise InvalidArgument(form.error_message(), operation="login")

    ident = form.username.data.strip()
    store = UserStore()
    user = store.find_by_email(ident.lower()) if "@" in ident else store.find_by_username(ident)
    if user is None or not user.check_password(form.password.data):
        log.info("Failed login for %r", ident)
        return jsonify(error="invalid_credentials", message="Invalid username or password"), 401

    login_user(user, remember=bool(form.remember.data))
    log.info("User %s logged in", user.id)
    return jsonify(user.to_dict())


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    log.info("User %s logged out", current_user.id)
    logout_user()
    return "", 204


@auth_bp.route("/me")
@login_required
def me():
    user: User = current_user
    return jsonify(user.to_dict())
