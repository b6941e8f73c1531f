"""Tenant model - represents each restaurant/brand using the platform."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from app.database import Base, BigId


class Tenant(Base):
    """Tenant model - each restaurant organization."""

    __tablename__ = 'tenant'

    id = Column(BigId, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe identifier
    name = Column(String(200), nullable=False)  # Display name
    default_locale = Column(String(10), nullable=False, default='en-US')
    default_currency = Column(String(3), nullable=False, default='EUR')
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Tenant(id={self.id}, slug='{self.slug}', name='{self.name}')>"
