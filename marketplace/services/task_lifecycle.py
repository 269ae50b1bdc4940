# marketplace/services/task_lifecycle.py
"""Task state machine.

    UNASSIGNED --assign_freelancer--> ASSIGNED --send_on_review--> SUBMITTED --accept--> ACCEPTED
        ^                                |                             |
        +---------remove_freelancer------+-----------------------------+

Every transition runs as one transaction on the session: the user side of a
relationship (``posted_tasks`` / ``taken_tasks``) is updated and staged
before the task itself, then everything is committed at once. Caches are
invalidated and the event is published only after the commit succeeded.

Operations take already loaded objects and the acting user. The actor is
checked with ``can_act`` before anything is written; the HTTP layer uses the
same predicate.
"""
from __future__ import annotations
import enum
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import MarketplaceError, Forbidden, InvalidArgument, NotFound, StateConflict
from ..models.task import TITLE_MAX_LENGTH, Task, TaskStatus, TaskType
from ..models.user import User
from ..models.solution import Solution
from .cache import EntityCache
from .events import EventKind, EventPublisher, get_publisher, task_snapshot, user_snapshot
from .stores import TaskStore, UserStore, SolutionStore, translate_db_error

log = logging.getLogger(__name__)


class Operation(str, enum.Enum):
    CREATE = "create"
    EDIT = "edit"
    ASSIGN_FREELANCER = "assign_freelancer"
    SEND_ON_REVIEW = "send_on_review"
    ACCEPT = "accept"
    REMOVE_FREELANCER = "remove_freelancer"
    ATTACH_SOLUTION = "attach_solution"
    DELETE = "delete"


CUSTOMER_OPERATIONS = frozenset({Operation.EDIT, Operation.ASSIGN_FREELANCER, Operation.ACCEPT, Operation.DELETE})
FREELANCER_OPERATIONS = frozenset({Operation.REMOVE_FREELANCER, Operation.SEND_ON_REVIEW, Operation.ATTACH_SOLUTION})
EDITABLE_FIELDS = ("title", "problem", "deadline", "type")


def _same_user(a: Optional[User], b: Optional[User]) -> bool:
    if a is None or b is None:
        return False
    if a.id is None or b.id is None:
        return a is b
    return a.id == b.id


def can_act(actor: Optional[User], task: Optional[Task], operation) -> bool:
    """Whether ``actor`` may perform ``operation`` on ``task``. Pure, never raises."""
    if actor is None or task is None:
        return False
    try:
        operation = Operation(operation)
    except ValueError:
        return False
    if operation is Operation.CREATE:
        return not actor.is_guest
    if operation is Operation.DELETE and actor.is_admin:
        return True
    if operation in CUSTOMER_OPERATIONS:
        return _same_user(actor, task.customer)
    if operation in FREELANCER_OPERATIONS:
        return _same_user(actor, task.freelancer)
    return False


def _coerce_changes(changes: dict) -> dict:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidArgument(f"Only {', '.join(EDITABLE_FIELDS)} can be edited, got: {', '.join(sorted(unknown))}")
    out = dict(changes)
    if "title" in out:
        title = out["title"]
        if title is not None and not isinstance(title, str):
            raise InvalidArgument("Title must be a string")
        title = (title or "").strip()
        if not title:
            raise InvalidArgument("Title must not be empty")
        if len(title) > TITLE_MAX_LENGTH:
            raise InvalidArgument(f"Title must be at most {TITLE_MAX_LENGTH} characters")
        out["title"] = title
    if out.get("problem") is not None and not isinstance(out["problem"], str):
        raise InvalidArgument("Problem must be a string")
    if out.get("type") is not None and not isinstance(out["type"], TaskType):
        try:
            out["type"] = TaskType(out["type"])
        except ValueError:
            raise InvalidArgument(f"Unknown task type: {out['type']}")
    deadline = out.get("deadline")
    if isinstance(deadline, str):
        try:
            out["deadline"] = datetime.fromisoformat(deadline)
        except ValueError:
            raise InvalidArgument(f"Invalid deadline: {deadline}")
    elif deadline is not None and not isinstance(deadline, datetime):
        raise InvalidArgument("Deadline must be a datetime or an ISO 8601 string")
    return out


class TaskLifecycle:
    def __init__(
        self,
        tasks: Optional[TaskStore] = None,
        users: Optional[UserStore] = None,
        solutions: Optional[SolutionStore] = None,
        publisher: Optional[EventPublisher] = None,
        cache: Optional[EntityCache] = None,
        session=None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._session = session
        self.cache = cache
        self.tasks = tasks or TaskStore(session, cache)
        self.users = users or UserStore(session, cache)
        self.solutions = solutions or SolutionStore(session)
        self._publisher = publisher
        self._now = clock

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    @property
    def publisher(self) -> EventPublisher:
        return self._publisher if self._publisher is not None else get_publisher()

    # ---- plumbing ----

    @contextmanager
    def _transaction(self, operation: Operation, entity_id=None):
        try:
            with self.session.no_autoflush:
                yield
            self.session.commit()
        except MarketplaceError as exc:
            self.session.rollback()
            raise exc.with_context(operation.value, entity_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.warning("%s on task %s failed: %s", operation.value, entity_id, exc)
            raise translate_db_error(exc, operation.value, entity_id) from exc

    def _require(self, value, name: str, operation: Operation):
        if value is None:
            raise InvalidArgument(f"{name} is required", operation=operation.value)
        return value

    def _require_persisted(self, task: Task, operation: Operation) -> Task:
        self._require(task, "task", operation)
        if task.id is None:
            raise NotFound("Task has not been created yet", operation=operation.value)
        try:
            return self.tasks.load(task.id)
        except MarketplaceError as exc:
            raise exc.with_context(operation.value, task.id)

    def _authorize(self, actor: Optional[User], task: Task, operation: Operation) -> None:
        if not can_act(actor, task, operation):
            raise Forbidden(
                f"User {getattr(actor, 'id', None)} may not {operation.value.replace('_', ' ')} this task",
                operation=operation.value, entity_id=task.id,
            )

    def _conflict(self, message: str, operation: Operation, task: Task) -> StateConflict:
        return StateConflict(message, operation=operation.value, entity_id=task.id)

    def _invalidate(self, task_id=None, *user_ids) -> None:
        self.tasks.invalidate(task_id)
        for user_id in user_ids:
            self.users.invalidate(user_id)

    def _publish(self, kind: EventKind, payload: dict) -> None:
        # never raises, see EventPublisher.publish
        self.publisher.publish(kind, payload)

    # ---- transitions ----

    def create(self, task: Task, customer: User) -> Task:
        op = Operation.CREATE
        self._require(task, "task", op)
        self._require(customer, "customer", op)
        if task.id is not None:
            raise StateConflict(f"Task {task.id} already exists", operation=op.value, entity_id=task.id)
        if not (task.title or "").strip():
            raise InvalidArgument("Title is required", operation=op.value)
        if customer.id is None:
            raise InvalidArgument("customer must be a registered user", operation=op.value)
        customer = self.users.load(customer.id)
        if not can_act(customer, task, op):
            raise Forbidden("Guests cannot post tasks", operation=op.value)

        log.info("Posting new task %r for customer %s", task.title, customer.id)
        with self._transaction(op):
            task.status = TaskStatus.UNASSIGNED
            task.posted_date = self._now()
            task.freelancer = None
            task.assigned_date = None
            task.submitted_date = None
            customer.add_posted_task(task)
            self.users.save(customer)
            task.customer = customer
            self.tasks.save(task)

        self._invalidate(task.id, customer.id)
        self._publish(EventKind.TASK_POSTED, task_snapshot(task))
        return task

    def edit(self, task: Task, changes: dict, *, actor: User) -> Task:
        op = Operation.EDIT
        self._require(changes, "changes", op)
        task = self._require_persisted(task, op)
        self._authorize(actor, task, op)
        if task.status != TaskStatus.UNASSIGNED:
            raise self._conflict("Task can be updated only if it is unassigned", op, task)
        try:
            changes = _coerce_changes(changes)
        except InvalidArgument as exc:
            raise exc.with_context(op.value, task.id)

        log.info("Updating task %s fields %s", task.id, sorted(changes))
        with self._transaction(op, task.id):
            for field, value in changes.items():
                setattr(task, field, value)
            self.tasks.save(task)

        self._invalidate(task.id)
        return task

    def assign_freelancer(self, task: Task, freelancer: User, *, actor: User) -> Task:
        op = Operation.ASSIGN_FREELANCER
        self._require(freelancer, "freelancer", op)
        task = self._require_persisted(task, op)
        if freelancer.id is None:
            raise InvalidArgument("freelancer must be a registered user", operation=op.value, entity_id=task.id)
        freelancer = self.users.load(freelancer.id)
        self._authorize(actor, task, op)
        if _same_user(freelancer, task.customer):
            raise InvalidArgument("Customer cannot be assigned to their own task", operation=op.value, entity_id=task.id)
        if freelancer.is_guest:
            raise InvalidArgument("Guests cannot take tasks", operation=op.value, entity_id=task.id)
        if task.status == TaskStatus.ASSIGNED and not _same_user(task.freelancer, freelancer):
            raise self._conflict(f"Task is already assigned to user {task.freelancer_id}", op, task)
        if task.status not in (TaskStatus.UNASSIGNED, TaskStatus.ASSIGNED):
            raise self._conflict(f"Cannot assign a freelancer to a {task.status.value} task", op, task)

        log.info("Assigning freelancer %s to task %s", freelancer.id, task.id)
        with self._transaction(op, task.id):
            freelancer.add_taken_task(task)
            self.users.save(freelancer)
            task.status = TaskStatus.ASSIGNED
            task.freelancer = freelancer
            task.assigned_date = self._now()
            self.tasks.save(task)

        self._invalidate(task.id, freelancer.id)
        self._publish(EventKind.FREELANCER_ASSIGNED, task_snapshot(task))
        return task

    def send_on_review(self, task: Task, *, actor: User) -> Task:
        op = Operation.SEND_ON_REVIEW
        task = self._require_persisted(task, op)
        if task.freelancer is None:
            raise self._conflict("Task has no freelancer assigned", op, task)
        self._authorize(actor, task, op)
        if task.status != TaskStatus.ASSIGNED:
            raise self._conflict(f"Only an assigned task can be sent on review, task is {task.status.value}", op, task)

        log.info("Sending task %s on review", task.id)
        with self._transaction(op, task.id):
            task.status = TaskStatus.SUBMITTED
            task.submitted_date = self._now()
            self.tasks.save(task)

        self._invalidate(task.id)
        self._publish(EventKind.TASK_SEND_ON_REVIEW, task_snapshot(task))
        return task

    def accept(self, task: Task, *, actor: User) -> Task:
        op = Operation.ACCEPT
        task = self._require_persisted(task, op)
        self._authorize(actor, task, op)
        if task.solution is None:
            raise self._conflict("Task cannot be accepted without a solution", op, task)
        if task.status != TaskStatus.SUBMITTED:
            raise self._conflict(f"Only a submitted task can be accepted, task is {task.status.value}", op, task)

        log.info("Accepting task %s", task.id)
        with self._transaction(op, task.id):
            task.status = TaskStatus.ACCEPTED
            self.tasks.save(task)

        self._invalidate(task.id)
        self._publish(EventKind.TASK_ACCEPTED, task_snapshot(task))
        return task

    def remove_freelancer(self, task: Task, *, actor: User) -> Task:
        op = Operation.REMOVE_FREELANCER
        task = self._require_persisted(task, op)
        freelancer = task.freelancer
        if freelancer is None:
            raise self._conflict("Task has no freelancer to remove", op, task)
        self._authorize(actor, task, op)
        if task.status == TaskStatus.ACCEPTED:
            raise self._conflict("Freelancer cannot be removed from an accepted task", op, task)

        log.info("Removing freelancer %s from task %s", freelancer.id, task.id)
        with self._transaction(op, task.id):
            freelancer.remove_taken_task(task)
            self.users.save(freelancer)
            task.status = TaskStatus.UNASSIGNED
            task.freelancer = None
            task.assigned_date = None
            task.submitted_date = None
            solution = task.solution
            if solution is not None:
                task.solution = None
                self.solutions.save(solution)
            self.tasks.save(task)

        self._invalidate(task.id, freelancer.id)
        payload = task_snapshot(task)
        # the removed freelancer is the one to notify
        payload["freelancer"] = user_snapshot(freelancer)
        self._publish(EventKind.FREELANCER_REMOVED, payload)
        return task

    def attach_solution(self, task: Task, solution: Solution, *, actor: User) -> Task:
        op = Operation.ATTACH_SOLUTION
        self._require(solution, "solution", op)
        task = self._require_persisted(task, op)
        if task.freelancer is None:
            raise self._conflict("Task has no freelancer assigned", op, task)
        self._authorize(actor, task, op)
        if task.status not in (TaskStatus.ASSIGNED, TaskStatus.SUBMITTED):
            raise self._conflict(f"Cannot attach a solution to a {task.status.value} task", op, task)
        if solution.task is not None and solution.task is not task:
            raise self._conflict(f"Solution is already attached to task {solution.task.id}", op, task)

        log.info("Attaching solution %s to task %s", solution.id, task.id)
        with self._transaction(op, task.id):
            previous = task.solution
            if previous is not None and previous is not solution:
                task.solution = None
                self.solutions.delete(previous.id)
            task.solution = solution
            solution.task = task
            self.tasks.save(task)
            self.solutions.save(solution)

        self._invalidate(task.id)
        return task

    def delete(self, task: Task, *, actor: User) -> Task:
        op = Operation.DELETE
        task = self._require_persisted(task, op)
        self._authorize(actor, task, op)
        task_id = task.id
        customer = task.customer
        freelancer = task.freelancer

        log.info("Deleting task %s (customer=%s, freelancer=%s)", task_id, customer.id,
                 freelancer.id if freelancer else None)
        with self._transaction(op, task_id):
            customer.remove_posted_task(task)
            if freelancer is not None:
                freelancer.remove_taken_task(task)
                self.users.save(freelancer)
            self.users.save(customer)
            solution = task.solution
            if solution is not None:
                task.solution = None
                self.solutions.save(solution)
            self.tasks.delete(task_id)

        self._invalidate(task_id, customer.id, *([freelancer.id] if freelancer else []))
        return task
