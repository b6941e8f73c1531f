"""MenuLine model - the per-menu placement of a section or an item."""
import enum
from sqlalchemy import Column, Integer, Boolean, DateTime, Enum, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigId


class LineType(str, enum.Enum):
    """Discriminant of a menu line."""
    SECTION = 'section'
    ITEM = 'item'


class MenuLine(Base):
    """
    Node of the two-level menu tree.

    Exactly one of section_id/item_id is set, matching line_type. A non-null
    parent_line_id references a SECTION line of the same menu, and section
    lines are always top level, so the tree never exceeds depth 2.
    display_order is contiguous among siblings (same menu, same parent).
    """

    __tablename__ = 'menu_line'
    __table_args__ = (
        CheckConstraint(
            "(line_type = 'SECTION' AND section_id IS NOT NULL AND item_id IS NULL) OR "
            "(line_type = 'ITEM' AND item_id IS NOT NULL AND section_id IS NULL)",
            name='ck_menu_line_reference'
        ),
        CheckConstraint(
            "line_type = 'ITEM' OR parent_line_id IS NULL",
            name='ck_menu_line_section_top_level'
        ),
        Index('ix_menu_line_siblings', 'menu_id', 'parent_line_id', 'display_order'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigId, ForeignKey('tenant.id'), nullable=False, index=True)
    menu_id = Column(BigId, ForeignKey('menu.id', ondelete='CASCADE'), nullable=False)
    line_type = Column(Enum(LineType, name='menu_line_type'), nullable=False)
    section_id = Column(BigId, ForeignKey('section.id', ondelete='CASCADE'), nullable=True, index=True)
    item_id = Column(BigId, ForeignKey('item.id', ondelete='CASCADE'), nullable=True, index=True)
    parent_line_id = Column(BigId, ForeignKey('menu_line.id', ondelete='CASCADE'), nullable=True, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    menu = relationship('Menu')
    section = relationship('Section')
    item = relationship('Item')
    parent_line = relationship('MenuLine', remote_side=[id])
    child_lines = relationship(
        'MenuLine',
        viewonly=True,
        order_by='MenuLine.display_order'
    )

    @property
    def is_section(self):
        return self.line_type == LineType.SECTION

    @property
    def is_item(self):
        return self.line_type == LineType.ITEM

    @property
    def ref_id(self):
        """Id of the referenced section or item."""
        return self.section_id if self.is_section else self.item_id

    def __repr__(self):
        return (
            f"<MenuLine(id={self.id}, menu_id={self.menu_id}, type={self.line_type.value}, "
            f"parent={self.parent_line_id}, order={self.display_order}, enabled={self.is_enabled})>"
        )
