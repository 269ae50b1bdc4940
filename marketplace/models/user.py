# marketplace/models/user.py
import enum
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from ..extensions import db


class Role(enum.Enum):
    GUEST = "GUEST"
    USER = "USER"
    ADMIN = "ADMIN"


class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(120))
    last_name = db.Column(db.String(120))

    password_hash = db.Column(db.String(255))

    role = db.Column(db.Enum(Role), nullable=False, default=Role.USER, index=True)
    # average of received feedback, 0 until the first one arrives
    rating = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    version_id = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    # Tasks this user posted as a customer
    posted_tasks = db.relationship(
        "Task",
        foreign_keys="Task.customer_id",
        back_populates="customer",
        lazy="selectin",
    )
    # Tasks this user works on as the assigned freelancer
    taken_tasks = db.relationship(
        "Task",
        foreign_keys="Task.freelancer_id",
        back_populates="freelancer",
        lazy="selectin",
    )

    proposals = db.relationship(
        "Proposal",
        back_populates="freelancer",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    feedback_sent = db.relationship(
        "Feedback",
        foreign_keys="Feedback.sender_id",
        back_populates="sender",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    feedback_received = db.relationship(
        "Feedback",
        foreign_keys="Feedback.receiver_id",
        back_populates="receiver",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    resume = db.relationship(
        "Resume",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    # --- Auth helpers ---
    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    # --- Convenience flags ---
    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_guest(self) -> bool:
        return self.role == Role.GUEST

    # --- Back-reference maintenance (driven by the task lifecycle) ---
    def add_posted_task(self, task):
        if task not in self.posted_tasks:
            self.posted_tasks.append(task)

    def remove_posted_task(self, task):
        if task in self.posted_tasks:
            self.posted_tasks.remove(task)

    def add_taken_task(self, task):
        if task not in self.taken_tasks:
            self.taken_tasks.append(task)

    def remove_taken_task(self, task):
        if task in self.taken_tasks:
            self.taken_tasks.remove(task)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "rating": self.rating,
            "role": self.role.value if self.role else None,
        }

    def __repr__(self):
        return f"<User {self.id} {self.username}>"
