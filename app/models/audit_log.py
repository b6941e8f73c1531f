"""
Audit Log model for tracking catalog changes.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from app.database import Base, BigId


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    REORDER = "REORDER"
    MOVE = "MOVE"
    TOGGLE = "TOGGLE"
    PUBLISH = "PUBLISH"
    ACTIVATE = "ACTIVATE"
    DEACTIVATE = "DEACTIVATE"


class AuditLog(Base):
    """
    Audit log for tracking user actions.
    Multi-tenant: filtered by tenant_id. Users live in the external auth
    service, so user_id is not a foreign key.
    """
    __tablename__ = 'audit_log'

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    entity_type = Column(String(50))  # e.g., 'menu_line', 'item', 'menu_publication'
    entity_id = Column(Integer)  # ID of the affected entity
    old_values = Column(Text)  # JSON
    new_values = Column(Text)  # JSON
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    tenant = relationship('Tenant')

    def __repr__(self):
        return f"<AuditLog {self.action.value} {self.entity_type} {self.entity_id} by user {self.user_id}>"
