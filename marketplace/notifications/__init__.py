from .dispatcher import dispatch, recipients_for
from .templates import NOTIFICATIONS, render

__all__ = ["dispatch", "recipients_for", "NOTIFICATIONS", "render"]
