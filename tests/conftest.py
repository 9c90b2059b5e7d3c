"""
Shared pytest fixtures and utilities for the coverhunter test suite.
"""

import asyncio
from io import BytesIO
from pathlib import Path
from typing import Callable, List, Optional

import pytest
import yaml
from PIL import Image

from coverhunter.api.base import ImageDescriptor, ImageProvider, ProviderId
from coverhunter.config.loader import default_config
from coverhunter.config.settings import SettingsStore
from coverhunter.ui.event_bus import EventBus


def make_image_bytes(fmt: str = "PNG", width: int = 32, height: int = 32, color: str = "red") -> bytes:
    """Encode a solid-color test image."""
    img = Image.new("RGB", (width, height), color=color)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image_file() -> Callable[..., Path]:
    """
    Write a small image file.

    Usage:
        path = make_image_file(tmp_path / "mario.jpg", "JPEG")
    """

    def _builder(path: Path, fmt: str = "PNG", width: int = 32, height: int = 32) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(make_image_bytes(fmt, width, height))
        return path

    return _builder


@pytest.fixture
def rom_dir(tmp_path: Path) -> Path:
    path = tmp_path / "roms"
    path.mkdir()
    return path


@pytest.fixture
def cover_dir(tmp_path: Path) -> Path:
    path = tmp_path / "covers"
    path.mkdir()
    return path


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[[Optional[dict]], Path]:
    """
    Create a coverhunter.yaml in a temp directory.

    Usage:
        path = make_config({"search": {"debounce_ms": 50}})
    """

    def _builder(overrides: Optional[dict] = None) -> Path:
        base = {
            "providers": {"google": {"api_key": "test-key", "search_engine_id": "test-cx"}},
            "paths": {
                "roms": str(tmp_path / "roms"),
                "covers": str(tmp_path / "covers"),
            },
        }
        if overrides:
            base = merge_dicts(base, overrides)

        cfg_path = tmp_path / "coverhunter.yaml"
        cfg_path.write_text(yaml.safe_dump(base))
        return cfg_path

    return _builder


def merge_dicts(base: dict, overrides: dict) -> dict:
    """Recursive dict merge for config fixtures."""
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


@pytest.fixture
def settings(tmp_path: Path) -> SettingsStore:
    """Settings store with Google credentials and a short debounce."""
    config = default_config()
    config["providers"]["google"]["api_key"] = "test-key"
    config["providers"]["google"]["search_engine_id"] = "test-cx"
    config["search"]["debounce_ms"] = 20
    return SettingsStore(tmp_path / "coverhunter.yaml", config=config)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


class FakeProvider(ImageProvider):
    """
    Scriptable provider.

    ``script`` items are consumed per fetch: an exception instance is
    raised, a list is returned. When exhausted, ``default`` is returned.
    """

    provider_id = ProviderId.GOOGLE
    requires_credential = False

    def __init__(self, script=None, default=None, delay: float = 0.0):
        self.script = list(script or [])
        self.default = default if default is not None else []
        self.delay = delay
        self.queries: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.queries)

    async def fetch(self, query, token):
        self.queries.append(query)
        if self.delay:
            await token.run(asyncio.sleep(self.delay))
        token.raise_if_cancelled()
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return list(self.default)


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def sample_images() -> List[ImageDescriptor]:
    return [
        ImageDescriptor(
            source_url="https://img.example/mario-box.jpg",
            display_name="Mario Box",
            byte_size=20480,
            width=640,
            height=480,
            mime_type="image/jpeg",
        ),
        ImageDescriptor(
            source_url="https://img.example/mario-cart.png",
            display_name="Mario Cart",
            byte_size=10240,
            width=320,
            height=240,
            mime_type="image/png",
        ),
    ]


class StubPrompter:
    """Credential prompter that stores a key (or declines) without asking."""

    def __init__(self, settings: Optional[SettingsStore] = None, supply: bool = True):
        self.settings = settings
        self.supply = supply
        self.calls = 0

    async def prompt_for_credential(self, provider_id):
        self.calls += 1
        if self.supply and self.settings is not None:
            self.settings.set_credential(provider_id, "entered-key", search_engine_id="entered-cx")
        return self.supply


@pytest.fixture
def stub_prompter_cls():
    return StubPrompter
