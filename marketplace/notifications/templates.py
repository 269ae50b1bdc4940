"""Email text per event kind.

Each entry: (subject, body format, audience). Body formats are filled with
``title`` (task title), ``freelancer`` (freelancer username) and
``username`` (for user events).
"""
from ..services.events import EventKind

ALL_USERS = "all_users"
CUSTOMER = "customer"
FREELANCER = "freelancer"
USER = "user"

NOTIFICATIONS = {
    EventKind.TASK_POSTED: (
        "New task was posted!",
        "Task: '{title}' was posted recently. This opportunity could be perfect for you!",
        ALL_USERS,
    ),
    EventKind.FREELANCER_ASSIGNED: (
        "You have been assigned to a task!",
        "We are pleased to inform you that you have been assigned to a task '{title}'",
        FREELANCER,
    ),
    EventKind.TASK_ACCEPTED: (
        "Congratulations! One of your completed tasks has been accepted",
        "We are pleased to inform you that one of your completed tasks '{title}' has been accepted by the customer.",
        FREELANCER,
    ),
    EventKind.FREELANCER_REMOVED: (
        "We are sorry! You were removed as task assignee!",
        "We are sorry to inform you that you were removed as task assignee from task '{title}'",
        FREELANCER,
    ),
    EventKind.TASK_SEND_ON_REVIEW: (
        "One of your tasks was sent on review!",
        "We wanted to inform you that the freelancer '{freelancer}' has submitted the task '{title}' for your review",
        CUSTOMER,
    ),
    EventKind.USER_CREATED: (
        "Your account has been created!",
        "Congratulations! You have successfully created your account: '{username}'",
        USER,
    ),
    EventKind.USER_UPDATED: (
        "Your profile has been updated!",
        "Your profile '{username}' has been successfully updated",
        USER,
    ),
    EventKind.USER_DELETED: (
        "Your account has been deleted",
        "Your account '{username}' has been successfully deleted",
        USER,
    ),
}


def render(kind, payload: dict) -> tuple[str, str, str]:
    """Subject, body and audience for an event. Raises ValueError for unknown kinds."""
    kind = EventKind(kind)
    subject, body, audience = NOTIFICATIONS[kind]
    freelancer = payload.get("freelancer") or {}
    return subject, body.format(
        title=payload.get("title", ""),
        freelancer=freelancer.get("username", ""),
        username=payload.get("username", ""),
    ), audience
