# marketplace/blueprints/users/routes.py
from flask import current_app, jsonify, request, send_file
from flask_login import current_user, login_required

from ...errors import InvalidArgument, NotFound
from ...extensions import db
from ...models.user import User
from ...security import roles_required
from ...services import storage_service, user_service
from ...services.stores import UserStore
from ..auth.forms import ProfileForm
from . import users_bp


def _store() -> UserStore:
    return UserStore(cache=current_app.extensions.get("entity_cache"))


@users_bp.route("/")
@roles_required("admin")
def list_users():
    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("perPage", 50, type=int), 200)
    users = (db.session.query(User)
             .order_by(User.id)
             .offset((max(page, 1) - 1) * per_page)
             .limit(per_page)
             .all())
    return jsonify([u.to_dict() for u in users])


@users_bp.route("/username/<username>")
@login_required
def get_user_by_username(username: str):
    user = _store().find_by_username(username)
    if user is None:
        raise NotFound(f"User {username} not found.", operation="load_user")
    return jsonify(user.to_dict())


@users_bp.route("/<int:user_id>")
@login_required
def get_user(user_id: int):
    return jsonify(_store().read(user_id))


@users_bp.route("/<int:user_id>", methods=["PUT"])
@login_required
def update_user(user_id: int):
    form = ProfileForm()
    if not form.validate_on_submit():
        raise InvalidArgument(form.error_message(), operation="update_user", entity_id=user_id)
    user = _store().load(user_id)
    user = user_service.update_profile(user, form.changes(), actor=current_user._get_current_object())
    return jsonify(user.to_dict())


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@login_required
def delete_user(user_id: int):
    user = _store().load(user_id)
    user_service.delete_user(user, actor=current_user._get_current_object())
    return "", 204


# -----------------
# Resume
# -----------------

def _send_resume(user: User):
    resume = user_service.get_resume(user)
    return send_file(
        storage_service.load_upload(resume.path),
        mimetype=resume.mime,
        as_attachment=True,
        download_name=resume.filename,
    )


@users_bp.route("/addResume", methods=["POST"])
@login_required
def add_resume():
    resume = user_service.save_resume(
        current_user._get_current_object(),
        request.files.get("content"),
        filename=request.form.get("filename"),
    )
    return jsonify(resume.to_dict()), 201, {"Location": "/rest/users/myResume"}


@users_bp.route("/myResume")
@login_required
def my_resume():
    return _send_resume(current_user._get_current_object())


@users_bp.route("/<int:user_id>/resume")
@login_required
def user_resume(user_id: int):
    return _send_resume(_store().load(user_id))
