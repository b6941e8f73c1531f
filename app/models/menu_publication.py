"""MenuPublication model - a published menu served at a location."""
from sqlalchemy import Column, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigId


class MenuPublication(Base):
    """
    Link between a published menu and a location.

    Several publications may be current at the same location (e.g. a lunch
    and a drinks menu). One row per (location, menu); re-activation reuses it.
    """

    __tablename__ = 'menu_publication'
    __table_args__ = (
        UniqueConstraint('location_id', 'menu_id', name='uq_menu_publication_location_menu'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    location_id = Column(BigId, ForeignKey('location.id', ondelete='CASCADE'), nullable=False, index=True)
    menu_id = Column(BigId, ForeignKey('menu.id', ondelete='CASCADE'), nullable=False, index=True)
    is_current = Column(Boolean, nullable=False, default=True)
    goes_live_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    retires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    location = relationship('Location')
    menu = relationship('Menu')

    def __repr__(self):
        return (
            f"<MenuPublication(id={self.id}, location_id={self.location_id}, "
            f"menu_id={self.menu_id}, is_current={self.is_current})>"
        )
