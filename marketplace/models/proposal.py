from datetime import datetime
from ..extensions import db


class Proposal(db.Model):
    __tablename__ = "proposal"

    id = db.Column(db.Integer, primary_key=True)
    freelancer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    freelancer = db.relationship("User", back_populates="proposals")
    task = db.relationship("Task", back_populates="proposals")

    __table_args__ = (
        db.UniqueConstraint("freelancer_id", "task_id", name="uq_proposal_freelancer_task"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "freelancerId": self.freelancer_id,
            "taskId": self.task_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
