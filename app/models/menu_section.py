"""MenuSection model - the sections a menu uses, in roster order."""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigId


class MenuSection(Base):
    """
    Attachment of a reusable section to a menu.

    One row per (menu, section). display_order is contiguous (0..n-1) within
    a menu. Section lines of a menu always reference an attached section.
    """

    __tablename__ = 'menu_section'
    __table_args__ = (
        UniqueConstraint('menu_id', 'section_id', name='uq_menu_section_menu_section'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    menu_id = Column(BigId, ForeignKey('menu.id', ondelete='CASCADE'), nullable=False, index=True)
    section_id = Column(BigId, ForeignKey('section.id', ondelete='CASCADE'), nullable=False, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    menu = relationship('Menu')
    section = relationship('Section')

    def __repr__(self):
        return (
            f"<MenuSection(menu_id={self.menu_id}, section_id={self.section_id}, "
            f"order={self.display_order})>"
        )
