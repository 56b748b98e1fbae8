"""Fixed category and color vocabularies for uploaded images.

Category labels are stored verbatim in ``image_metadata.category`` and in the
``categories`` list, so the labels here must match what the database holds.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

BLEBS = "Blebs (clear to brown)"
FIBER_BUNDLES = "Fiber Bundles"
FIBERS = "Fibers"

# URL slug -> category label
SLUG_TO_CATEGORY: Dict[str, str] = {
    "clear_to_brown_blebs": BLEBS,
    "biofilm": "Biofilm",
    "fiber_bundles": FIBER_BUNDLES,
    "fibers": FIBERS,
    "hexagons": "Hexagons",
    "crystalline_structures": "Crystalline Structures",
    "feathers": "Feathers",
    "miscellaneous": "Miscellaneous",
    "hairs": "Hairs",
    "skin": "Skin",
    "wounds": "Wounds",
}

COLORS: Tuple[str, ...] = ("Clear", "Yellow", "Orange", "Red", "Brown")

# Each color-bearing category kept its own single-valued color column before
# the shared ``colors`` list existed
LEGACY_COLOR_COLUMNS: Dict[str, str] = {
    BLEBS: "bleb_color",
    FIBER_BUNDLES: "fiber_bundles_color",
    FIBERS: "fibers_color",
}


@dataclass(frozen=True)
class AttributeFields:
    """Column pair holding one attribute in both schema generations.

    ``legacy`` is None when the attribute never had a single-valued column
    (colors on a category that is not color-bearing).
    """

    multi: str
    legacy: Optional[str] = None


CATEGORY_FIELDS = AttributeFields(multi="categories", legacy="category")


@dataclass(frozen=True)
class Vocabulary:
    categories: Tuple[str, ...]
    colors: Tuple[str, ...]
    color_categories: FrozenSet[str] = field(default_factory=frozenset)
    slugs: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    color_columns: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    def color_fields(self, category: Optional[str]) -> AttributeFields:
        """Color columns for images filed under ``category``."""
        return AttributeFields(multi="colors", legacy=self.color_columns.get(category))

    def color_fields_for(self, categories: Iterable[str]) -> AttributeFields:
        """Color columns for a record; the first category with a legacy column decides."""
        for label in categories:
            if label in self.color_columns:
                return self.color_fields(label)
        return AttributeFields(multi="colors")

    def category_for_slug(self, slug: str) -> Optional[str]:
        return self.slugs.get(slug)

    def slug_for_category(self, label: str) -> Optional[str]:
        for slug, value in self.slugs.items():
            if value == label:
                return slug
        return None

    def unknown_categories(self, labels: Iterable[str]) -> List[str]:
        return [label for label in labels if label not in self.categories]

    def unknown_colors(self, colors: Iterable[str]) -> List[str]:
        return [c for c in colors if c not in self.colors]

    def is_color_bearing(self, label: str) -> bool:
        return label in self.color_categories


DEFAULT_VOCABULARY = Vocabulary(
    categories=tuple(SLUG_TO_CATEGORY.values()),
    colors=COLORS,
    color_categories=frozenset(LEGACY_COLOR_COLUMNS),
    slugs=dict(SLUG_TO_CATEGORY),
    color_columns=dict(LEGACY_COLOR_COLUMNS),
)
