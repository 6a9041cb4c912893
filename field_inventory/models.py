from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER primary keys.
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')


class Base(DeclarativeBase):
    pass


class MainInventory(Base):
    __tablename__ = 'main_inventory'
    __table_args__ = (
        Index('main_inventory_site_updated_idx', 'site_id_canonical', 'updated_at'),
    )

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    site_id: Mapped[str] = mapped_column(Text, nullable=False)
    site_id_canonical: Mapped[str] = mapped_column(Text, nullable=False)
    sheet_source: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(Text)
    equipment_type: Mapped[str | None] = mapped_column(Text)
    product_name: Mapped[str | None] = mapped_column(Text)
    product_number: Mapped[str | None] = mapped_column(Text)
    serial_number: Mapped[str | None] = mapped_column(Text)
    tag_id: Mapped[str | None] = mapped_column(Text)
    tag_category: Mapped[str | None] = mapped_column(Text)
    photo_category: Mapped[str | None] = mapped_column(Text)
    serial_pic_url: Mapped[str | None] = mapped_column(Text)
    tag_pic_url: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())


class HelperCatalog(Base):
    __tablename__ = 'helper_catalog'
    __table_args__ = (
        UniqueConstraint(
            'category',
            'equipment_type',
            'product_name',
            'product_number',
            name='helper_catalog_tuple_key',
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    equipment_type: Mapped[str | None] = mapped_column(Text)
    product_name: Mapped[str | None] = mapped_column(Text)
    product_number: Mapped[str | None] = mapped_column(Text)


class SiteCategoryRequirement(Base):
    __tablename__ = 'site_category_requirements'
    __table_args__ = (
        UniqueConstraint('site_id_norm', 'category', name='site_category_requirements_site_category_key'),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    site_id_norm: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    required_flag: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default='1')
    rule_text: Mapped[str | None] = mapped_column(Text)
    parse_note: Mapped[str | None] = mapped_column(Text)


class TagCategoryHelper(Base):
    __tablename__ = 'tag_category_helper'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')


class PhotoCategoryHelper(Base):
    __tablename__ = 'photo_category_helper'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    site_id_canonical: Mapped[str | None] = mapped_column(Text)
    record_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False))
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict, server_default='{}')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
