# marketplace/blueprints/proposals/routes.py
import logging

from flask import jsonify
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from ...errors import Forbidden, InvalidArgument, NotFound, StateConflict
from ...extensions import db
from ...models.proposal import Proposal
from ...models.task import TaskStatus
from ...security import json_body
from ...services.stores import TaskStore
from . import proposals_bp

log = logging.getLogger(__name__)


def _load(proposal_id: int) -> Proposal:
    proposal = db.session.get(Proposal, proposal_id)
    if proposal is None:
        raise NotFound(f"Proposal identified by {proposal_id} not found.",
                       operation="load_proposal", entity_id=proposal_id)
    return proposal


@proposals_bp.route("/", methods=["POST"])
@login_required
def create_proposal():
    task_id = json_body().get("taskId")
    if not isinstance(task_id, int):
        raise InvalidArgument("taskId is required", operation="create_proposal")
    task = TaskStore().load(task_id)

    if current_user.is_guest:
        raise Forbidden("Guests cannot bid on tasks", operation="create_proposal", entity_id=task_id)
    if task.customer_id == current_user.id:
        raise InvalidArgument("You cannot bid on your own task", operation="create_proposal", entity_id=task_id)
    if task.status != TaskStatus.UNASSIGNED:
        raise StateConflict("Only unassigned tasks accept proposals", operation="create_proposal", entity_id=task_id)

    proposal = Proposal(freelancer_id=current_user.id, task_id=task.id)
    db.session.add(proposal)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise StateConflict("You already sent a proposal for this task",
                            operation="create_proposal", entity_id=task_id) from exc
    log.info("User %s proposed for task %s", current_user.id, task_id)
    return jsonify(proposal.to_dict()), 201


@proposals_bp.route("/<int:proposal_id>")
@login_required
def get_proposal(proposal_id: int):
    proposal = _load(proposal_id)
    if current_user.id not in (proposal.freelancer_id, proposal.task.customer_id) and not current_user.is_admin:
        raise Forbidden("Not your proposal", operation="get_proposal", entity_id=proposal_id)
    return jsonify(proposal.to_dict())


@proposals_bp.route("/task/<int:task_id>")
@login_required
def list_for_task(task_id: int):
    task = TaskStore().load(task_id)
    if task.customer_id != current_user.id:
        raise Forbidden("Only the customer sees proposals of a task", operation="list_proposals", entity_id=task_id)
    proposals = sorted(task.proposals, key=lambda p: (p.created_at, p.id))
    return jsonify([p.to_dict() for p in proposals])


@proposals_bp.route("/<int:proposal_id>", methods=["PUT"])
@login_required
def update_proposal(proposal_id: int):
    """Move a proposal to another task; the body carries the new ``taskId``."""
    body = json_body()
    if "id" in body and body["id"] != proposal_id:
        raise InvalidArgument("Proposal id in the body does not match the URL",
                              operation="update_proposal", entity_id=proposal_id)
    task_id = body.get("taskId")
    if not isinstance(task_id, int) or isinstance(task_id, bool):
        raise InvalidArgument("taskId is required", operation="update_proposal", entity_id=proposal_id)

    proposal = _load(proposal_id)
    if proposal.freelancer_id != current_user.id and not current_user.is_admin:
        raise Forbidden("Only the author can change a proposal", operation="update_proposal", entity_id=proposal_id)
    if task_id == proposal.task_id:
        return jsonify(proposal.to_dict())

    task = TaskStore().load(task_id)
    if task.customer_id == proposal.freelancer_id:
        raise InvalidArgument("You cannot bid on your own task", operation="update_proposal", entity_id=proposal_id)
    if task.status != TaskStatus.UNASSIGNED:
        raise StateConflict("Only unassigned tasks accept proposals", operation="update_proposal", entity_id=proposal_id)

    proposal.task = task
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise StateConflict("A proposal for this task already exists",
                            operation="update_proposal", entity_id=proposal_id) from exc
    log.info("Proposal %s moved to task %s", proposal_id, task_id)
    return jsonify(proposal.to_dict())


@proposals_bp.route("/<int:proposal_id>", methods=["DELETE"])
@login_required
def delete_proposal(proposal_id: int):
    proposal = _load(proposal_id)
    if proposal.freelancer_id != current_user.id:
        raise Forbidden("Only the author can withdraw a proposal", operation="delete_proposal", entity_id=proposal_id)
    db.session.delete(proposal)
    db.session.commit()
    log.info("Proposal %s withdrawn", proposal_id)
    return "", 204
