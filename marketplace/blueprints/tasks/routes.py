# marketplace/blueprints/tasks/routes.py
from typing import Optional

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from ...errors import InvalidArgument, NotFound
from ...extensions import db
from ...models.proposal import Proposal
from ...models.solution import Solution
from ...models.task import Task, TaskStatus, TaskType
from ...security import arg_bool, json_body
from ...services import task_queries
from ...services.stores import TaskStore
from ...services.task_lifecycle import TaskLifecycle
from . import tasks_bp
from .forms import TaskForm, TaskEditForm, SolutionForm

# request keys accepted by PUT /posted/<id>, same names as the Task attributes
EDIT_KEYS = ("title", "problem", "deadline", "type")


def _lifecycle() -> TaskLifecycle:
    return TaskLifecycle(cache=current_app.extensions.get("entity_cache"))


def _actor():
    return current_user._get_current_object()


def _load_task(task_id: int) -> Task:
    return TaskStore().load(task_id)


def _enum_arg(name: str, enum_cls):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise InvalidArgument(f"Unknown {name}: {raw}")


def _listing(tasks):
    return jsonify([t.to_dict() for t in tasks])


# -----------------
# Create / read
# -----------------

@tasks_bp.route("/", methods=["POST"])
@login_required
def create_task():
    form = TaskForm()
    if not form.validate_on_submit():
        raise InvalidArgument(form.error_message(), operation="create")

    task = Task(
        title=form.title.data,
        problem=form.problem.data or None,
        payment=form.payment.data,
        deadline=form.deadline.data,
        type=TaskType(form.type.data) if form.type.data else None,
    )
    task = _lifecycle().create(task, _actor())
    return jsonify(task.to_dict()), 201


@tasks_bp.route("/<int:task_id>")
@login_required
def get_task(task_id: int):
    return jsonify(TaskStore(cache=current_app.extensions.get("entity_cache")).read(task_id))


@tasks_bp.route("/taskBoard")
@login_required
def task_board():
    from_newest = arg_bool("fromNewest")
    tasks = task_queries.task_board(
        db.session,
        from_newest=True if from_newest is None else from_newest,
        task_type=_enum_arg("type", TaskType),
    )
    return _listing(tasks)


@tasks_bp.route("/taken")
@login_required
def taken_tasks():
    tasks = task_queries.taken_tasks(
        db.session, current_user.id,
        expired=arg_bool("expired"),
        status=_enum_arg("taskStatus", TaskStatus),
    )
    return _listing(tasks)


@tasks_bp.route("/posted")
@login_required
def posted_tasks():
    tasks = task_queries.posted_tasks(
        db.session, current_user.id,
        expired=arg_bool("expired"),
        status=_enum_arg("taskStatus", TaskStatus),
    )
    return _listing(tasks)


# -----------------
# Customer side
# -----------------

@tasks_bp.route("/posted/<int:task_id>", methods=["PUT"])
@login_required
def edit_task(task_id: int):
    body = json_body()
    unknown = set(body) - set(EDIT_KEYS)
    if unknown:
        raise InvalidArgument(f"Fields cannot be edited: {', '.join(sorted(unknown))}",
                              operation="edit", entity_id=task_id)
    form = TaskEditForm()
    if not form.validate_on_submit():
        raise InvalidArgument(form.error_message(), operation="edit", entity_id=task_id)
    task = _lifecycle().edit(_load_task(task_id), form.changes(), actor=_actor())
    return jsonify(task.to_dict())


@tasks_bp.route("/posted/<int:task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id: int):
    _lifecycle().delete(_load_task(task_id), actor=_actor())
    return "", 204


@tasks_bp.route("/posted/<int:task_id>/proposals/<int:proposal_id>", methods=["POST"])
@login_required
def assign_from_proposal(task_id: int, proposal_id: int):
    task = _load_task(task_id)
    proposal: Optional[Proposal] = db.session.get(Proposal, proposal_id)
    if proposal is None or proposal.task_id != task.id:
        raise NotFound(f"Proposal identified by {proposal_id} not found for task {task_id}.",
                       operation="assign_freelancer", entity_id=task_id)
    task = _lifecycle().assign_freelancer(task, proposal.freelancer, actor=_actor())
    return jsonify(task.to_dict())


@tasks_bp.route("/posted/<int:task_id>/accept", methods=["POST"])
@login_required
def accept_task(task_id: int):
    task = _lifecycle().accept(_load_task(task_id), actor=_actor())
    return jsonify(task.to_dict())


# -----------------
# Freelancer side
# -----------------

@tasks_bp.route("/<int:task_id>/remove-freelancer", methods=["POST"])
@login_required
def remove_freelancer(task_id: int):
    task = _lifecycle().remove_freelancer(_load_task(task_id), actor=_actor())
    return jsonify(task.to_dict())


@tasks_bp.route("/taken/<int:task_id>/attach-solution", methods=["POST"])
@login_required
def attach_solution(task_id: int):
    form = SolutionForm()
    if not form.validate_on_submit():
        raise InvalidArgument(form.error_message(), operation="attach_solution", entity_id=task_id)
    if not (form.link.data or form.description.data):
        raise InvalidArgument("A solution needs a link or a description",
                              operation="attach_solution", entity_id=task_id)

    solution = Solution(link=form.link.data or None, description=form.description.data or None)
    task = _lifecycle().attach_solution(_load_task(task_id), solution, actor=_actor())
    return jsonify(task.solution.to_dict()), 201


@tasks_bp.route("/taken/<int:task_id>", methods=["POST"])
@login_required
def send_on_review(task_id: int):
    task = _lifecycle().send_on_review(_load_task(task_id), actor=_actor())
    return jsonify(task.to_dict())
