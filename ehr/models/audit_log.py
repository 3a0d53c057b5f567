"""
Append-only audit trail: who changed what, when, from where.
"""
from sqlalchemy import event

from ehr.extensions import db
from .base import isoformat, utcnow


class AuditLogImmutableError(Exception):
    pass


class AuditLog(db.Model):
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)  # None for system changes
    action = db.Column(db.String(32), nullable=False, index=True)  # create, update, delete, login, ...
    entity_type = db.Column(db.String(64), nullable=False)  # Patient, Appointment, User, ...
    entity_id = db.Column(db.String(64), nullable=False)

    old_data = db.Column(db.JSON, nullable=True)
    new_data = db.Column(db.JSON, nullable=True)

    ip_address = db.Column(db.String(64), nullable=True, index=True)
    user_agent = db.Column(db.Text, nullable=True)
    additional_info = db.Column(db.JSON, nullable=True)  # typed event context, see ehr.utils.audit

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    user = db.relationship("User", lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user": {
                "id": self.user.id,
                "email": self.user.email,
                "first_name": self.user.first_name,
                "last_name": self.user.last_name,
            } if self.user else None,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "old_data": self.old_data,
            "new_data": self.new_data,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "additional_info": self.additional_info,
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise AuditLogImmutableError("Audit records cannot be modified after creation")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise AuditLogImmutableError("Audit records cannot be deleted")
