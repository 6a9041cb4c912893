from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from field_inventory.services.normalization import clean_text


@dataclass(frozen=True)
class CatalogEntry:
    category: str
    equipment_type: str | None = None
    product_name: str | None = None
    product_number: str | None = None


@dataclass(frozen=True)
class CascadeOptions:
    categories: list[str]
    equipment_types: list[str]
    product_names: list[str]
    product_numbers: list[str]


@dataclass(frozen=True)
class CatalogIndex:
    """Cascading lookup over the product catalog.

    Built once from the flat catalog tuples. Each level only knows the values
    legal under its parents; an unknown or missing parent yields an empty list.
    """

    categories: list[str] = field(default_factory=list)
    _equipment_types: dict[str, list[str]] = field(default_factory=dict)
    _product_names: dict[tuple[str, str], list[str]] = field(default_factory=dict)
    _product_numbers: dict[tuple[str, str, str], list[str]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> CatalogIndex:
        return cls()

    @classmethod
    def build(cls, entries: Iterable[CatalogEntry]) -> CatalogIndex:
        categories: set[str] = set()
        equipment_types: dict[str, set[str]] = {}
        product_names: dict[tuple[str, str], set[str]] = {}
        product_numbers: dict[tuple[str, str, str], set[str]] = {}

        for entry in entries:
            category = clean_text(entry.category)
            equipment_type = clean_text(entry.equipment_type)
            product_name = clean_text(entry.product_name)
            product_number = clean_text(entry.product_number)

            if not category:
                continue
            categories.add(category)
            if not equipment_type:
                continue
            equipment_types.setdefault(category, set()).add(equipment_type)
            if not product_name:
                continue
            product_names.setdefault((category, equipment_type), set()).add(product_name)
            if not product_number:
                continue
            product_numbers.setdefault((category, equipment_type, product_name), set()).add(product_number)

        return cls(
            categories=sorted(categories),
            _equipment_types={key: sorted(values) for key, values in equipment_types.items()},
            _product_names={key: sorted(values) for key, values in product_names.items()},
            _product_numbers={key: sorted(values) for key, values in product_numbers.items()},
        )

    def equipment_types_for(self, category: str | None) -> list[str]:
        category_key = clean_text(category)
        if not category_key:
            return []
        return list(self._equipment_types.get(category_key, []))

    def product_names_for(self, category: str | None, equipment_type: str | None) -> list[str]:
        category_key = clean_text(category)
        equipment_key = clean_text(equipment_type)
        if not category_key or not equipment_key:
            return []
        return list(self._product_names.get((category_key, equipment_key), []))

    def product_numbers_for(
        self,
        category: str | None,
        equipment_type: str | None,
        product_name: str | None,
    ) -> list[str]:
        category_key = clean_text(category)
        equipment_key = clean_text(equipment_type)
        name_key = clean_text(product_name)
        if not category_key or not equipment_key or not name_key:
            return []
        return list(self._product_numbers.get((category_key, equipment_key, name_key), []))

    def options_for(
        self,
        category: str | None = None,
        equipment_type: str | None = None,
        product_name: str | None = None,
    ) -> CascadeOptions:
        return CascadeOptions(
            categories=list(self.categories),
            equipment_types=self.equipment_types_for(category),
            product_names=self.product_names_for(category, equipment_type),
            product_numbers=self.product_numbers_for(category, equipment_type, product_name),
        )

    @property
    def is_empty(self) -> bool:
        return not self.categories
