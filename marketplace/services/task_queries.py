"""Read-side task listings: the task board and a user's posted/taken tasks."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.task import Task, TaskStatus, TaskType


def _by_posted_date(query, from_newest: bool):
    order = Task.posted_date.desc() if from_newest else Task.posted_date.asc()
    return query.order_by(order, Task.id.desc() if from_newest else Task.id.asc())


def _by_deadline_status(query, expired: Optional[bool], now: datetime):
    if expired is None:
        return query
    if expired:
        return query.filter(Task.deadline.isnot(None), Task.deadline < now)
    return query.filter((Task.deadline.is_(None)) | (Task.deadline >= now))


def task_board(db: Session, from_newest: bool = True, task_type: Optional[TaskType] = None) -> List[Task]:
    query = db.query(Task).filter(Task.status == TaskStatus.UNASSIGNED)
    if task_type is not None:
        query = query.filter(Task.type == task_type)
    return _by_posted_date(query, from_newest).all()


def taken_tasks(db: Session, freelancer_id: int, expired: Optional[bool] = None,
                status: Optional[TaskStatus] = None, now: Optional[datetime] = None) -> List[Task]:
    query = db.query(Task).filter(Task.freelancer_id == freelancer_id)
    if status is not None:
        query = query.filter(Task.status == status)
    query = _by_deadline_status(query, expired, now or datetime.utcnow())
    return query.order_by(Task.deadline.asc(), Task.id.asc()).all()


def posted_tasks(db: Session, customer_id: int, expired: Optional[bool] = None,
                 status: Optional[TaskStatus] = None, now: Optional[datetime] = None) -> List[Task]:
    query = db.query(Task).filter(Task.customer_id == customer_id)
    if status is not None:
        query = query.filter(Task.status == status)
    query = _by_deadline_status(query, expired, now or datetime.utcnow())
    return _by_posted_date(query, True).all()
