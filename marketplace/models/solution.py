from ..extensions import db


class Solution(db.Model):
    __tablename__ = "solution"

    id = db.Column(db.Integer, primary_key=True)
    # nullable: a detached solution outlives its task.
    # One solution per task is kept by TaskLifecycle.attach_solution.
    task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=True, index=True)
    link = db.Column(db.String(512))
    description = db.Column(db.Text)

    task = db.relationship("Task", back_populates="solution")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "taskId": self.task_id,
            "link": self.link,
            "description": self.description,
        }
