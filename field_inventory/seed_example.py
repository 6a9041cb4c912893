from sqlalchemy import select

from field_inventory.db import SessionLocal, engine
from field_inventory.models import (
    Base,
    HelperCatalog,
    MainInventory,
    PhotoCategoryHelper,
    SiteCategoryRequirement,
    TagCategoryHelper,
)
from field_inventory.services.mock_inventory_store import MockInventoryStore
from field_inventory.services.normalization import requirement_site_key


def seed() -> None:
    Base.metadata.create_all(engine)
    demo = MockInventoryStore()

    with SessionLocal() as db:
        if not db.execute(select(HelperCatalog.id).limit(1)).scalar_one_or_none():
            db.add_all(
                [
                    HelperCatalog(
                        category=entry.category,
                        equipment_type=entry.equipment_type,
                        product_name=entry.product_name,
                        product_number=entry.product_number,
                    )
                    for entry in demo.catalog
                ]
            )

        if not db.execute(select(TagCategoryHelper.id).limit(1)).scalar_one_or_none():
            db.add_all(
                [TagCategoryHelper(value=value, sort_order=idx) for idx, value in enumerate(demo.tag_categories)]
            )

        if not db.execute(select(PhotoCategoryHelper.id).limit(1)).scalar_one_or_none():
            db.add_all(
                [PhotoCategoryHelper(value=value, sort_order=idx) for idx, value in enumerate(demo.photo_categories)]
            )

        for site_key, requirements in demo.requirements.items():
            for requirement in requirements:
                existing = db.execute(
                    select(SiteCategoryRequirement).where(
                        SiteCategoryRequirement.site_id_norm == site_key,
                        SiteCategoryRequirement.category == requirement.category,
                    )
                ).scalar_one_or_none()
                if existing:
                    continue
                db.add(
                    SiteCategoryRequirement(
                        site_id_norm=site_key,
                        category=requirement.category,
                        required_flag=1 if requirement.required else 0,
                        rule_text=requirement.rule_text,
                        parse_note=requirement.parse_note,
                    )
                )

        for record in demo.records:
            if db.execute(select(MainInventory.id).where(MainInventory.id == record.id)).scalar_one_or_none():
                continue
            db.add(
                MainInventory(
                    id=record.id,
                    site_id=requirement_site_key(record.site_id),
                    site_id_canonical=record.site_id,
                    sheet_source=record.sheet_source,
                    updated_at=record.updated_at,
                    **record.editable_values(),
                )
            )

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
