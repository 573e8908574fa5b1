"""Menu catalog schema: standard template headers and column name variations."""

from typing import Dict, List, Any

# Standard catalog template headers in order
STANDARD_HEADERS = [
    "category",
    "subcategory",
    "name_primary",
    "name_secondary",
    "price",
    "description",
    "available_meals",
    "cuisine_type",
    "modifiers",
    "key",
]

# A file without these columns is rejected as a whole
REQUIRED_HEADERS = ["category", "name_primary", "price"]

# Labels written to the header row of exported templates and snapshots
HEADER_LABELS = {
    "category": "Category",
    "subcategory": "Subcategory",
    "name_primary": "Item Name (EN)",
    "name_secondary": "Item Name (AR)",
    "price": "Price",
    "description": "Description",
    "available_meals": "Available Meals",
    "cuisine_type": "Cuisine Type",
    "modifiers": "Modifiers",
    "key": "Key",
}

# Mapping of common column name variations to standard headers.
# Variations are stored in normalized form: lowercase, punctuation and
# underscores collapsed to single spaces.
#
# Order matters for partial matches: when two headers match the same number
# of words, the one listed first wins (so "Item Name (AR)" is secondary).
COLUMN_MAPPINGS = {
    "key": [
        "key", "item key", "sku", "code", "item code", "item id", "plu",
    ],
    "subcategory": [
        "subcategory", "sub category", "subcat", "sub section",
        "فئة فرعية", "تصنيف فرعي",
    ],
    "category": [
        "category", "categories", "cat", "section", "group", "dept",
        "department", "classification", "menu", "menu section",
        "الفئة", "التصنيف", "القسم", "مجموعة",
    ],
    "name_secondary": [
        "name secondary", "name ar", "item name ar", "arabic name",
        "name arabic", "arabic", "ar", "localized name", "local name",
        "الاسم بالعربية", "الاسم العربي", "عربي",
    ],
    "name_primary": [
        "name primary", "name", "name en", "item name", "item name en",
        "english name", "item", "title", "product", "product name", "dish",
        "صنف", "الاسم", "اسم الصنف", "الاسم بالانجليزية",
    ],
    "price": [
        "price", "sar", "cost", "amount", "rate", "price sar", "unit price",
        "selling price", "السعر", "القيمة", "التكلفة",
    ],
    "description": [
        "description", "desc", "details", "notes", "الوصف",
    ],
    "available_meals": [
        "available meals", "meal", "meals", "availability", "serving",
        "timing", "meal time", "الوجبة", "أوقات", "مواعيد",
    ],
    "cuisine_type": [
        "cuisine type", "cuisine", "food type", "kitchen", "style",
        "نوع الأكل", "مطبخ",
    ],
    "modifiers": [
        "modifiers", "modifier", "add ons", "addons", "extras", "options",
        "الإضافات",
    ],
}

# Canonical field schemas for each catalog header. `expected.kind` drives
# column inference when a header cannot be matched by name.
CANONICAL_FIELDS: List[Dict[str, Any]] = [
    {
        "id": "category",
        "label": "Category",
        "expected": {"kind": "string"},
        "examples": ["Breakfast", "Lunch", "Drinks"],
        "description": "Menu section the item is listed under. Categories are created on import when a new name is seen.",
    },
    {
        "id": "subcategory",
        "label": "Subcategory",
        "expected": {"kind": "string"},
        "examples": ["Burgers", "Continental", "Desi"],
        "description": "Optional grouping inside a category, used for nested filtering.",
    },
    {
        "id": "name_primary",
        "label": "Item Name (EN)",
        "expected": {"kind": "string"},
        "examples": ["Classic Pancakes", "Cola"],
        "description": "Primary display name of the item.",
    },
    {
        "id": "name_secondary",
        "label": "Item Name (AR)",
        "expected": {"kind": "localized"},
        "examples": ["بان كيك كلاسيك"],
        "description": "Localized display name. Optional, preserved verbatim when present.",
    },
    {
        "id": "price",
        "label": "Price",
        "expected": {"kind": "decimal"},
        "examples": ["25", "12.50", "SAR 8"],
        "description": "Non-negative price with at most two decimal places; more precision is rounded half-up.",
    },
    {
        "id": "description",
        "label": "Description",
        "expected": {"kind": "string"},
        "examples": ["Served with maple syrup"],
        "description": "Free text shown with the item.",
    },
    {
        "id": "available_meals",
        "label": "Available Meals",
        "expected": {"kind": "meals"},
        "examples": ["Breakfast", "Lunch, Dinner", "High Tea"],
        "description": "Meal periods the item is served in. Defaults to Lunch and Dinner.",
    },
    {
        "id": "cuisine_type",
        "label": "Cuisine Type",
        "expected": {"kind": "cuisine"},
        "examples": ["Fast Food", "Desi", "General"],
        "description": "Cuisine family. Defaults to General.",
    },
    {
        "id": "modifiers",
        "label": "Modifiers",
        "expected": {"kind": "string"},
        "examples": ["Extra Cheese:3; No Onion"],
        "description": "Semicolon separated options, each `name` or `name:price`.",
    },
    {
        "id": "key",
        "label": "Key",
        "expected": {"kind": "string"},
        "examples": ["drinks-cola"],
        "description": "Stable natural identifier. Derived from category and name when absent.",
    },
]

# Create a lookup dictionary by field ID for easy access
FIELD_SCHEMAS: Dict[str, Dict[str, Any]] = {
    field["id"]: field for field in CANONICAL_FIELDS
}

__all__ = [
    "STANDARD_HEADERS",
    "REQUIRED_HEADERS",
    "HEADER_LABELS",
    "COLUMN_MAPPINGS",
    "CANONICAL_FIELDS",
    "FIELD_SCHEMAS",
]
