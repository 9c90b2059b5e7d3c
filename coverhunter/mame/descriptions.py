"""MAME machine descriptions used as alternate search names.

Arcade ROM sets are named after MAME short names (``sf2ce.zip``), which make
poor search queries. MAME's ``-listxml`` output maps each short name to its
full description ("Street Fighter II': Champion Edition (street fighter 2'
920313 etc)"), which searches far better.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional

from lxml import etree

logger = logging.getLogger(__name__)


class MameDataNotFoundError(Exception):
    """The MAME XML file does not exist."""
    pass


class MameDataCorruptError(Exception):
    """The MAME XML file is malformed."""
    pass


class DescriptionLookup(Mapping[str, str]):
    """Read-only, case-insensitive mapping of machine name to description."""

    def __init__(self, descriptions: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = {}
        for name, description in (descriptions or {}).items():
            # First definition wins, as in MAME's own parent-first ordering
            self._data.setdefault(name.casefold(), description)

    def __getitem__(self, key: str) -> str:
        return self._data[key.casefold()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


def load_mame_descriptions(xml_path: Path) -> DescriptionLookup:
    """Parse machine descriptions from a MAME XML file.

    Streams the file with ``iterparse`` so the full ``-listxml`` output
    (hundreds of MB) never sits in memory at once.

    Args:
        xml_path: Path to MAME XML (``mame -listxml > mame.xml``)

    Returns:
        Case-insensitive lookup of short name to description

    Raises:
        MameDataNotFoundError: If the file doesn't exist
        MameDataCorruptError: If the XML is malformed
    """
    xml_path = Path(xml_path)
    if not xml_path.exists():
        logger.warning(f"MAME data file not found: {xml_path}")
        raise MameDataNotFoundError(f"The MAME data file was not found at: {xml_path}")

    logger.info(f"Parsing MAME descriptions: {xml_path}")
    descriptions: Dict[str, str] = {}

    try:
        for _, elem in etree.iterparse(str(xml_path), events=('end',), tag=('machine', 'game')):
            name = elem.get('name')
            desc_elem = elem.find('description')
            if name and desc_elem is not None and desc_elem.text:
                descriptions.setdefault(name, desc_elem.text.strip())

            # Free parsed siblings as we go
            elem.clear()
            while elem.getprevious() is not None:
                del elem.getparent()[0]
    except etree.XMLSyntaxError as e:
        logger.error(f"The MAME data file is corrupted or in an invalid format: {e}")
        raise MameDataCorruptError(f"The MAME data file is corrupted or in an invalid format: {e}")

    lookup = DescriptionLookup(descriptions)
    logger.info(f"Successfully loaded {len(lookup)} MAME entries")
    return lookup
