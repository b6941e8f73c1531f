"""Menu model."""
import enum
from sqlalchemy import Column, String, Text, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigId


class MenuStatus(str, enum.Enum):
    """Menu lifecycle. draft -> published is one-way."""
    DRAFT = 'draft'
    PUBLISHED = 'published'


class Menu(Base):
    """
    Menu of a tenant.

    The line tree of a menu may only be restructured while the menu is a
    draft. Publishing freezes the structure; enable/disable toggles remain
    allowed.
    """

    __tablename__ = 'menu'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_menu_tenant_code'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    code = Column(String(80), nullable=False)
    status = Column(Enum(MenuStatus, name='menu_status'), nullable=False, default=MenuStatus.DRAFT)
    currency = Column(String(3), nullable=False, default='EUR')
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    translations = relationship(
        'MenuI18n',
        back_populates='menu',
        cascade='all, delete-orphan',
        order_by='MenuI18n.locale'
    )
    # Lines are created/deleted only through menu_line_service
    lines = relationship('MenuLine', viewonly=True, order_by='MenuLine.display_order')

    @property
    def is_draft(self):
        return self.status == MenuStatus.DRAFT

    @property
    def is_published(self):
        return self.status == MenuStatus.PUBLISHED

    def __repr__(self):
        return f"<Menu(id={self.id}, code='{self.code}', status={self.status.value})>"


class MenuI18n(Base):
    """Localized name/description of a menu."""

    __tablename__ = 'menu_i18n'
    __table_args__ = (
        UniqueConstraint('menu_id', 'locale', name='uq_menu_i18n_locale'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    menu_id = Column(BigId, ForeignKey('menu.id', ondelete='CASCADE'), nullable=False, index=True)
    locale = Column(String(10), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    menu = relationship('Menu', back_populates='translations')

    def __repr__(self):
        return f"<MenuI18n(menu_id={self.menu_id}, locale='{self.locale}')>"
