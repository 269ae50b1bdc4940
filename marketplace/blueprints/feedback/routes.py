# marketplace/blueprints/feedback/routes.py
import logging

from flask import current_app, jsonify
from flask_login import current_user, login_required

from ...errors import Forbidden, InvalidArgument, NotFound
from ...extensions import db
from ...models.feedback import Feedback
from ...services.stores import UserStore
from ...services.user_service import recompute_rating
from . import feedback_bp
from .forms import FeedbackForm

log = logging.getLogger(__name__)


def _users() -> UserStore:
    return UserStore(cache=current_app.extensions.get("entity_cache"))


@feedback_bp.route("/", methods=["POST"])
@login_required
def create_feedback():
    form = FeedbackForm()
    if not form.validate_on_submit():
        raise InvalidArgument(form.error_message(), operation="create_feedback")

    users = _users()
    receiver = users.load(form.receiverId.data)
    if receiver.id == current_user.id:
        raise InvalidArgument("You cannot rate yourself", operation="create_feedback", entity_id=receiver.id)

    fb = Feedback(
        sender_id=current_user.id,
        receiver_id=receiver.id,
        rating=form.rating.data,
        comment=(form.comment.data or "").strip() or None,
    )
    db.session.add(fb)
    db.session.flush()
    recompute_rating(receiver)
    db.session.commit()
    users.invalidate(receiver.id)
    log.info("Feedback %s from %s to %s (%s stars)", fb.id, current_user.id, receiver.id, fb.rating)
    return jsonify(fb.to_dict()), 201


@feedback_bp.route("/user/<int:user_id>")
@login_required
def received(user_id: int):
    user = _users().load(user_id)
    items = user.feedback_received.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()
    return jsonify([fb.to_dict() for fb in items])


@feedback_bp.route("/<int:feedback_id>", methods=["DELETE"])
@login_required
def delete_feedback(feedback_id: int):
    fb = db.session.get(Feedback, feedback_id)
    if fb is None:
        raise NotFound(f"Feedback identified by {feedback_id} not found.",
                       operation="delete_feedback", entity_id=feedback_id)
    if fb.sender_id != current_user.id and not current_user.is_admin:
        raise Forbidden("Only the sender can delete feedback", operation="delete_feedback", entity_id=feedback_id)

    receiver = fb.receiver
    db.session.delete(fb)
    db.session.flush()
    recompute_rating(receiver)
    db.session.commit()
    _users().invalidate(receiver.id)
    return "", 204
