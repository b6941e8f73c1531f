"""Location model - a physical restaurant where menus are served."""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigId


class Location(Base):
    """Physical location of a tenant."""

    __tablename__ = 'location'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'slug', name='uq_location_tenant_slug'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(80), nullable=False)
    city = Column(String(120), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    tenant = relationship('Tenant')

    def __repr__(self):
        return f"<Location(id={self.id}, slug='{self.slug}')>"
