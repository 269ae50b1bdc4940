# marketplace/models/task.py
import enum
from ..extensions import db

TITLE_MAX_LENGTH = 200


class TaskStatus(enum.Enum):
    UNASSIGNED = "UNASSIGNED"
    ASSIGNED = "ASSIGNED"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"


class TaskType(enum.Enum):
    TranslationAndLanguageServices = "TranslationAndLanguageServices"
    DataEntryAndVirtualAssistance = "DataEntryAndVirtualAssistance"
    ConsultingAndBusinessServices = "ConsultingAndBusinessServices"
    CreativeAndArtisticServices = "CreativeAndArtisticServices"
    GraphicDesignAndMultimedia = "GraphicDesignAndMultimedia"
    EngineeringAndArchitecture = "EngineeringAndArchitecture"
    WritingAndContentCreation = "WritingAndContentCreation"
    ProgrammingAndDevelopment = "ProgrammingAndDevelopment"
    GamingAndVrArDevelopment = "GamingAndVrArDevelopment"
    TutoringAndEducation = "TutoringAndEducation"
    SalesAndMarketing = "SalesAndMarketing"
    DigitalMarketing = "DigitalMarketing"


class Task(db.Model):
    __tablename__ = "task"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    freelancer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)

    title = db.Column(db.String(TITLE_MAX_LENGTH), nullable=False, index=True)
    problem = db.Column(db.Text)
    payment = db.Column(db.Numeric(12, 2))
    deadline = db.Column(db.DateTime, index=True)
    type = db.Column(db.Enum(TaskType), index=True)
    status = db.Column(db.Enum(TaskStatus), nullable=False, default=TaskStatus.UNASSIGNED, index=True)

    posted_date = db.Column(db.DateTime, index=True)
    assigned_date = db.Column(db.DateTime)
    submitted_date = db.Column(db.DateTime)

    version_id = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    customer = db.relationship("User", foreign_keys=[customer_id], back_populates="posted_tasks")
    freelancer = db.relationship("User", foreign_keys=[freelancer_id], back_populates="taken_tasks")

    # One solution at a time, pairs with Solution.task
    solution = db.relationship("Solution", back_populates="task", uselist=False, lazy="selectin")

    proposals = db.relationship(
        "Proposal",
        back_populates="task",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "problem": self.problem,
            "payment": float(self.payment) if self.payment is not None else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "type": self.type.value if self.type else None,
            "status": self.status.value if self.status else None,
            "postedDate": self.posted_date.isoformat() if self.posted_date else None,
            "assignedDate": self.assigned_date.isoformat() if self.assigned_date else None,
            "submittedDate": self.submitted_date.isoformat() if self.submitted_date else None,
            "customerId": self.customer_id,
            "freelancerId": self.freelancer_id,
            "solutionId": self.solution.id if self.solution else None,
        }

    def __repr__(self):
        return f"<Task {self.id} {self.status.value if self.status else None}>"
