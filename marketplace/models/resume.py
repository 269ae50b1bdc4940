from datetime import datetime
from ..extensions import db


class Resume(db.Model):
    __tablename__ = "resume"

    id = db.Column(db.Integer, primary_key=True)
    # one resume per user, a new upload replaces it
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, unique=True, index=True)

    # storage info
    path = db.Column(db.String(512), nullable=False)  # relative to UPLOAD_FOLDER
    filename = db.Column(db.String(255), nullable=False)
    mime = db.Column(db.String(120))
    size_bytes = db.Column(db.Integer)
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", back_populates="resume")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "filename": self.filename,
            "mime": self.mime,
            "sizeBytes": self.size_bytes,
            "uploadedAt": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }
