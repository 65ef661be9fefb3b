"""
Fixed vocabularies shared by the extraction pipeline.
"""

# Ingredient categories - must match the seeded reference data
INGREDIENT_CATEGORIES = (
    "蔬菜",
    "肉类",
    "海鲜",
    "调料",
    "蛋奶",
    "豆制品",
    "主食",
    "坚果",
    "干果",
    "水果",
    "其他",
)

# Category used when the inference service gives no usable answer
FALLBACK_CATEGORY = "其他"

# Unit token suggested to the model when nothing in the vocabulary fits
DEFAULT_UNIT = "piece"
