"""Section model - reusable, tenant-scoped group of items (e.g. "Starters")."""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigId


class Section(Base):
    """
    Reusable menu section.

    A section is placed into menus through MenuLine rows; the same section may
    appear in many menus. `is_active` is global across every menu.
    """

    __tablename__ = 'section'

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    translations = relationship(
        'SectionI18n',
        back_populates='section',
        cascade='all, delete-orphan',
        order_by='SectionI18n.locale'
    )

    def __repr__(self):
        return f"<Section(id={self.id}, is_active={self.is_active})>"


class SectionI18n(Base):
    """Localized title/description of a section."""

    __tablename__ = 'section_i18n'
    __table_args__ = (
        UniqueConstraint('section_id', 'locale', name='uq_section_i18n_locale'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    section_id = Column(BigId, ForeignKey('section.id', ondelete='CASCADE'), nullable=False, index=True)
    locale = Column(String(10), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    section = relationship('Section', back_populates='translations')

    def __repr__(self):
        return f"<SectionI18n(section_id={self.section_id}, locale='{self.locale}')>"
