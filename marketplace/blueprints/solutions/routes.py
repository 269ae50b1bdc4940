# marketplace/blueprints/solutions/routes.py
import logging

from flask import current_app, jsonify
from flask_login import current_user, login_required

from ...errors import Forbidden, InvalidArgument, StateConflict
from ...extensions import db
from ...models.solution import Solution
from ...models.task import TaskStatus
from ...services.stores import SolutionStore, TaskStore
from ..tasks.forms import SolutionForm
from . import solutions_bp

log = logging.getLogger(__name__)


def _owned(solution_id: int, operation: str) -> Solution:
    """Load a solution the current user (the task's freelancer) may change."""
    solution = SolutionStore().load(solution_id)
    task = solution.task
    if task is None or task.freelancer_id != current_user.id:
        raise Forbidden("Only the task's freelancer can change its solution",
                        operation=operation, entity_id=solution_id)
    if task.status == TaskStatus.ACCEPTED:
        raise StateConflict("The solution of an accepted task is final", operation=operation, entity_id=solution_id)
    return solution


def _drop_task_cache(task_id) -> None:
    TaskStore(cache=current_app.extensions.get("entity_cache")).invalidate(task_id)


@solutions_bp.route("/<int:solution_id>")
@login_required
def get_solution(solution_id: int):
    return jsonify(SolutionStore().load(solution_id).to_dict())


@solutions_bp.route("/<int:solution_id>", methods=["PUT"])
@login_required
def update_solution(solution_id: int):
    solution = _owned(solution_id, "update_solution")
    form = SolutionForm()
    if not form.validate_on_submit():
        raise InvalidArgument(form.error_message(), operation="update_solution", entity_id=solution_id)
    if form.link.raw_data:
        solution.link = form.link.data or None
    if form.description.raw_data:
        solution.description = form.description.data or None
    db.session.commit()
    log.info("Solution %s updated", solution_id)
    return jsonify(solution.to_dict())


@solutions_bp.route("/<int:solution_id>", methods=["DELETE"])
@login_required
def delete_solution(solution_id: int):
    solution = _owned(solution_id, "delete_solution")
    task_id = solution.task_id
    solution.task.solution = None
    SolutionStore().delete(solution_id)
    db.session.commit()
    _drop_task_cache(task_id)
    log.info("Solution %s deleted from task %s", solution_id, task_id)
    return "", 204
