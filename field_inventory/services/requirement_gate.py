from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from field_inventory.services.normalization import clean_text, normalize_category_key


@dataclass(frozen=True)
class CategoryRequirement:
    category: str
    required: bool
    rule_text: str | None = None
    parse_note: str | None = None


def _sentence(text: str | None) -> str:
    cleaned = clean_text(text).rstrip('.')
    return f'{cleaned}.' if cleaned else ''


@dataclass(frozen=True)
class RequirementGate:
    """Per-site rules stating whether new rows may be added to a category.

    A category without a rule is allowed. The gate is only consulted when a
    new row is inserted; existing rows are never blocked retroactively.
    """

    site_id: str
    _rules: dict[str, CategoryRequirement] = field(default_factory=dict)

    @classmethod
    def permissive(cls, site_id: str) -> RequirementGate:
        return cls(site_id=site_id)

    @classmethod
    def build(cls, site_id: str, requirements: Iterable[CategoryRequirement]) -> RequirementGate:
        rules: dict[str, CategoryRequirement] = {}
        for requirement in requirements:
            key = normalize_category_key(requirement.category)
            if not key:
                continue
            rules[key] = requirement
        return cls(site_id=site_id, _rules=rules)

    def requirement_for(self, category: str | None) -> CategoryRequirement | None:
        key = normalize_category_key(category)
        if not key:
            return None
        return self._rules.get(key)

    def is_allowed(self, category: str | None) -> bool:
        requirement = self.requirement_for(category)
        return requirement is None or requirement.required

    def explanation_for(self, category: str | None) -> str:
        requirement = self.requirement_for(category)
        if requirement is None:
            return ''
        return ' '.join(
            text for text in (clean_text(requirement.rule_text), clean_text(requirement.parse_note)) if text
        )

    def rejection_reason(self, category: str | None) -> str | None:
        requirement = self.requirement_for(category)
        if requirement is None or requirement.required:
            return None
        label = clean_text(category) or 'This category'
        details = ' '.join(
            sentence for sentence in (_sentence(requirement.parse_note), _sentence(requirement.rule_text)) if sentence
        )
        message = f'Not allowed: {label} is not required for this Site.'
        return f'{message} {details}' if details else message

    @property
    def rule_count(self) -> int:
        return len(self._rules)
