from .user import User, Role
from .task import Task, TaskStatus, TaskType
from .solution import Solution
from .proposal import Proposal
from .feedback import Feedback
from .resume import Resume
