"""Tenant-scoped reference data attached to items: allergens, dietary flags, ingredients."""
from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from app.database import Base, BigId


class Allergen(Base):
    """Allergen declared on items (e.g. GLUTEN, NUTS)."""

    __tablename__ = 'allergen'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_allergen_tenant_code'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    code = Column(String(40), nullable=False)
    name = Column(String(120), nullable=False)

    def __repr__(self):
        return f"<Allergen(id={self.id}, code='{self.code}')>"


class DietaryFlag(Base):
    """Dietary flag declared on items (e.g. VEGAN, HALAL)."""

    __tablename__ = 'dietary_flag'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_dietary_flag_tenant_code'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    code = Column(String(40), nullable=False)
    name = Column(String(120), nullable=False)

    def __repr__(self):
        return f"<DietaryFlag(id={self.id}, code='{self.code}')>"


class Ingredient(Base):
    """Ingredient used by items."""

    __tablename__ = 'ingredient'

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(120), nullable=False)

    def __repr__(self):
        return f"<Ingredient(id={self.id}, name='{self.name}')>"
