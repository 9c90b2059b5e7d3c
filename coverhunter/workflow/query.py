"""
Search query derivation from ROM names

ROM sets carry region, revision and dump annotations such as
``Super Mario World (USA) [!]`` that only add noise to an image search.
"""

import re
from typing import Mapping, Optional

# Parenthesized or bracketed tag plus the whitespace before it
TAG_PATTERN = re.compile(r'\s*(\(.*?\)|\[.*?\])')


def normalize(rom_base_name: str, alt_lookup: Optional[Mapping[str, str]] = None) -> str:
    """
    Derive a search term from a ROM base name.

    An alternate name from ``alt_lookup`` (e.g. a MAME description) wins
    when it matches case-insensitively and is non-empty. Otherwise tag
    annotations are stripped; a name made only of tags is returned as is.

    Args:
        rom_base_name: ROM filename without extension
        alt_lookup: Optional mapping of ROM name to preferred search name

    Returns:
        Search term
    """
    if alt_lookup:
        alternate = _lookup_casefold(alt_lookup, rom_base_name)
        if alternate:
            return alternate

    stripped = TAG_PATTERN.sub('', rom_base_name).strip()
    return stripped if stripped else rom_base_name


def _lookup_casefold(alt_lookup: Mapping[str, str], name: str) -> Optional[str]:
    value = alt_lookup.get(name)
    if value is None:
        folded = name.casefold()
        for key, candidate in alt_lookup.items():
            if key.casefold() == folded:
                value = candidate
                break
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_search_query(term: str, extra: Optional[str] = None) -> str:
    """
    Quote the search term and append the user's extra query words.

    Example:
        >>> build_search_query("Super Mario World", "box art")
        '"Super Mario World" box art'
    """
    query = f'"{term}"'
    if extra and extra.strip():
        query = f'{query} {extra.strip()}'
    return query


def build_api_query(query: str) -> str:
    """
    Prepare a query for a search API.

    Embedded quotes are removed and the whole query is quoted once, so a
    term like ``Street Fighter II': "Champion" Edition`` reaches the API
    as a single phrase.
    """
    cleaned = query.replace('"', '').strip()
    return f'"{cleaned}"' if cleaned else ''
