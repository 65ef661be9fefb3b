"""
Utilities for generating nanoid-based identifiers.
"""
from nanoid import generate


def generate_id(size: int = 21) -> str:
    """
    Generate a nanoid string.

    Used for vocabulary rows and downloaded images; identifiers are never
    derived from content, so two downloads of the same URL get distinct ids.

    Args:
        size: Length of the generated ID. Default is 21 characters.

    Returns:
        A URL-safe nanoid string.
    """
    return generate(size=size)
