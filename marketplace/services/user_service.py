# marketplace/services/user_service.py
"""Account management: registration, profile updates, deletion, resumes and rating.

Each write commits on its own, drops the user's cached snapshot and then
publishes the matching user event.
"""
from __future__ import annotations
import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..errors import Forbidden, InvalidArgument, NotFound, StateConflict
from ..models.feedback import Feedback
from ..models.resume import Resume
from ..models.user import User, Role
from .events import EventKind, get_publisher, user_snapshot
from . import storage_service
from .stores import UserStore, translate_db_error

log = logging.getLogger(__name__)

PROFILE_FIELDS = ("username", "email", "first_name", "last_name", "password")


def _store() -> UserStore:
    from flask import current_app
    return UserStore(cache=current_app.extensions.get("entity_cache"))


def _commit(operation: str, entity_id=None) -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise StateConflict("Username or email is already taken", operation=operation, entity_id=entity_id) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise translate_db_error(exc, operation, entity_id) from exc


def register(*, username: str, email: str, password: str, first_name: Optional[str] = None,
             last_name: Optional[str] = None, role: Role = Role.USER) -> User:
    if not username or not email or not password:
        raise InvalidArgument("username, email and password are required", operation="register")
    store = _store()
    email = email.strip().lower()
    if store.find_by_username(username.strip()):
        raise StateConflict("Username is already taken", operation="register")
    if store.find_by_email(email):
        raise StateConflict("Email is already registered", operation="register")

    user = User(username=username.strip(), email=email, first_name=first_name, last_name=last_name, role=role)
    user.set_password(password)
    store.save(user)
    _commit("register")
    log.info("Registered user %s (%s)", user.id, user.username)
    get_publisher().publish(EventKind.USER_CREATED, user_snapshot(user))
    return user


def update_profile(user: User, changes: dict, *, actor: User) -> User:
    if user is None or changes is None:
        raise InvalidArgument("user and changes are required", operation="update_user")
    if actor is None or (actor.id != user.id and not actor.is_admin):
        raise Forbidden("You may only update your own profile", operation="update_user", entity_id=user.id)
    unknown = set(changes) - set(PROFILE_FIELDS)
    if unknown:
        raise InvalidArgument(f"Unknown profile fields: {', '.join(sorted(unknown))}",
                              operation="update_user", entity_id=user.id)

    for field, value in changes.items():
        if value is None:
            continue
        if field == "password":
            user.set_password(value)
        elif field == "email":
            user.email = value.strip().lower()
        else:
            setattr(user, field, value.strip() if isinstance(value, str) else value)
    _store().save(user)
    _commit("update_user", user.id)
    _store().invalidate(user.id)
    log.info("Updated profile of user %s", user.id)
    get_publisher().publish(EventKind.USER_UPDATED, user_snapshot(user))
    return user


def delete_user(user: User, *, actor: User) -> bool:
    if user is None:
        raise InvalidArgument("user is required", operation="delete_user")
    if actor is None or (actor.id != user.id and not actor.is_admin):
        raise Forbidden("You may only delete your own account", operation="delete_user", entity_id=user.id)
    if user.posted_tasks or user.taken_tasks:
        raise StateConflict("User still has posted or taken tasks", operation="delete_user", entity_id=user.id)

    snapshot = user_snapshot(user)
    resume_path = user.resume.path if user.resume else None
    store = _store()
    store.delete(user.id)
    _commit("delete_user", snapshot["id"])
    if resume_path:
        storage_service.remove_upload(resume_path)
    store.invalidate(snapshot["id"])
    log.info("Deleted user %s", snapshot["id"])
    get_publisher().publish(EventKind.USER_DELETED, snapshot)
    return True


def recompute_rating(user: User) -> float:
    """Average of received feedback; caller commits."""
    avg = (db.session.query(func.avg(Feedback.rating))
           .filter(Feedback.receiver_id == user.id)
           .scalar())
    user.rating = round(float(avg or 0.0), 2)
    return user.rating


# ---------------------
# Resume
# ---------------------

def save_resume(user: User, file_storage, filename: Optional[str] = None) -> Resume:
    """Store ``file_storage`` as the user's resume, replacing the previous one."""
    if user is None:
        raise InvalidArgument("user is required", operation="save_resume")
    if file_storage is None:
        raise InvalidArgument("Resume file is required", operation="save_resume", entity_id=user.id)

    old_path = user.resume.path if user.resume else None
    relpath = storage_service.save_upload(file_storage, subdir=f"resumes/{user.id}", filename=filename)
    name = Path(relpath).name

    resume = user.resume or Resume(user=user)
    resume.path = relpath
    resume.filename = name
    resume.mime = file_storage.mimetype or mimetypes.guess_type(name)[0] or "application/octet-stream"
    resume.size_bytes = storage_service.upload_size(relpath)
    resume.uploaded_at = datetime.utcnow()
    db.session.add(resume)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        if relpath != old_path:
            storage_service.remove_upload(relpath)
        raise translate_db_error(exc, "save_resume", user.id) from exc

    if old_path and old_path != relpath:
        storage_service.remove_upload(old_path)
    log.info("Stored resume %s for user %s", name, user.id)
    return resume


def get_resume(user: User) -> Resume:
    if user.resume is None:
        raise NotFound(f"User {user.id} has no resume", operation="get_resume", entity_id=user.id)
    return user.resume
