"""MAME data support: machine descriptions for arcade ROM sets."""

from .descriptions import (
    DescriptionLookup,
    MameDataCorruptError,
    MameDataNotFoundError,
    load_mame_descriptions,
)

__all__ = [
    "DescriptionLookup",
    "MameDataCorruptError",
    "MameDataNotFoundError",
    "load_mame_descriptions",
]
