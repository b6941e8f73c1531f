"""Item model - reusable, tenant-scoped dish or drink."""
from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime, ForeignKey, Table, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigId


item_allergen = Table(
    'item_allergen',
    Base.metadata,
    Column('item_id', BigId, ForeignKey('item.id', ondelete='CASCADE'), primary_key=True),
    Column('allergen_id', BigId, ForeignKey('allergen.id', ondelete='CASCADE'), primary_key=True),
)

item_dietary_flag = Table(
    'item_dietary_flag',
    Base.metadata,
    Column('item_id', BigId, ForeignKey('item.id', ondelete='CASCADE'), primary_key=True),
    Column('dietary_flag_id', BigId, ForeignKey('dietary_flag.id', ondelete='CASCADE'), primary_key=True),
)

item_ingredient = Table(
    'item_ingredient',
    Base.metadata,
    Column('item_id', BigId, ForeignKey('item.id', ondelete='CASCADE'), primary_key=True),
    Column('ingredient_id', BigId, ForeignKey('ingredient.id', ondelete='CASCADE'), primary_key=True),
)


class Item(Base):
    """
    Reusable menu item.

    `is_visible` is global: it is the single source of truth for whether the
    item may be enabled on any menu line. MenuLine.is_enabled for item lines
    is kept in sync with it by the visibility service.
    """

    __tablename__ = 'item'

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    is_visible = Column(Boolean, nullable=False, default=True)
    price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    translations = relationship(
        'ItemI18n',
        back_populates='item',
        cascade='all, delete-orphan',
        order_by='ItemI18n.locale'
    )
    allergens = relationship('Allergen', secondary=item_allergen, order_by='Allergen.code')
    dietary_flags = relationship('DietaryFlag', secondary=item_dietary_flag, order_by='DietaryFlag.code')
    ingredients = relationship('Ingredient', secondary=item_ingredient, order_by='Ingredient.name')

    def __repr__(self):
        return f"<Item(id={self.id}, is_visible={self.is_visible})>"


class ItemI18n(Base):
    """Localized name/description of an item."""

    __tablename__ = 'item_i18n'
    __table_args__ = (
        UniqueConstraint('item_id', 'locale', name='uq_item_i18n_locale'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    item_id = Column(BigId, ForeignKey('item.id', ondelete='CASCADE'), nullable=False, index=True)
    locale = Column(String(10), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    item = relationship('Item', back_populates='translations')

    def __repr__(self):
        return f"<ItemI18n(item_id={self.item_id}, locale='{self.locale}')>"
