"""ORM model for navigation menus (a tree ordered by order_index within siblings)."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, false

from app.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin

MENU_ACTIVE = 1


class Menu(Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """
    A menu entry. parent_id None marks a root menu.

    order_index is contiguous (0..n-1) among non-deleted siblings.
    status: 1 active, 0 inactive.
    """

    __tablename__ = "menus"
    __table_args__ = (Index("ix_menus_parent_order", "parent_id", "order_index"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    menu_key = Column(String(128), nullable=False, index=True)
    menu_name = Column(String(255), nullable=False)
    route = Column(String(512), nullable=False)
    icon = Column(String(64), nullable=False, default="circle", server_default="circle")
    is_parent = Column(Boolean, nullable=False, default=False, server_default=false())
    parent_id = Column(Integer, ForeignKey("menus.id"), nullable=True)
    order_index = Column(Integer, nullable=False, default=0, server_default="0")
    status = Column(Integer, nullable=False, default=MENU_ACTIVE, server_default=str(MENU_ACTIVE))
