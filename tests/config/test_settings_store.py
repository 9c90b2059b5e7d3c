"""Tests for SettingsStore persistence and the credential store."""

import threading

import pytest
import yaml

from coverhunter.api.base import ProviderId
from coverhunter.config.loader import DEFAULT_SUPPORTED_EXTENSIONS, default_config
from coverhunter.config.settings import SettingsStore


@pytest.mark.unit
def test_missing_file_writes_defaults(tmp_path):
    path = tmp_path / "coverhunter.yaml"
    store = SettingsStore(path)

    config = store.load()

    assert path.exists()
    assert config == default_config()
    assert yaml.safe_load(path.read_text()) == default_config()


@pytest.mark.unit
def test_corrupt_file_reverts_to_defaults(tmp_path):
    path = tmp_path / "coverhunter.yaml"
    path.write_text("providers: [broken")
    store = SettingsStore(path)

    config = store.load()

    assert config == default_config()
    assert yaml.safe_load(path.read_text()) == default_config()


@pytest.mark.unit
def test_invalid_values_revert_to_defaults(make_config):
    path = make_config({"display": {"thumbnail_size": 5}})
    store = SettingsStore(path)

    store.load()

    assert store.thumbnail_size == 300
    assert not store.has_credential(ProviderId.GOOGLE)


@pytest.mark.unit
def test_empty_extension_list_repopulated(make_config):
    path = make_config({"scanner": {"supported_extensions": []}})
    store = SettingsStore(path)

    store.load()

    assert store.supported_extensions == DEFAULT_SUPPORTED_EXTENSIONS
    assert yaml.safe_load(path.read_text())["scanner"]["supported_extensions"] == DEFAULT_SUPPORTED_EXTENSIONS


@pytest.mark.unit
def test_typed_accessors(make_config):
    path = make_config({
        "search": {"debounce_ms": 150, "extra_query": "cover", "use_mame_descriptions": True},
        "paths": {"mame_xml": "~/mame.xml"},
    })
    store = SettingsStore(path)
    store.load()

    assert store.provider_name == "Google"
    assert store.debounce_seconds == pytest.approx(0.15)
    assert store.extra_query == "cover"
    assert store.use_mame_descriptions is True
    assert store.mame_xml_path.name == "mame.xml"
    assert "~" not in str(store.mame_xml_path)
    assert store.readable_timeout == 10.0
    assert store.watch_queue_size == 256


@pytest.mark.unit
def test_set_persist(tmp_path):
    path = tmp_path / "coverhunter.yaml"
    store = SettingsStore(path)
    store.load()

    store.set("search.extra_query", "box art", persist=True)

    assert yaml.safe_load(path.read_text())["search"]["extra_query"] == "box art"


@pytest.mark.unit
def test_has_credential_requires_key_and_engine(settings):
    assert settings.has_credential(ProviderId.GOOGLE)

    settings.set("providers.google.search_engine_id", "")
    assert not settings.has_credential(ProviderId.GOOGLE)


@pytest.mark.unit
def test_set_credential_saves(tmp_path):
    path = tmp_path / "coverhunter.yaml"
    store = SettingsStore(path)
    store.load()
    assert not store.has_credential(ProviderId.GOOGLE)

    assert store.set_credential(ProviderId.GOOGLE, "  new-key  ", search_engine_id="cx-1")

    assert store.has_credential(ProviderId.GOOGLE)
    saved = yaml.safe_load(path.read_text())
    assert saved["providers"]["google"] == {"api_key": "new-key", "search_engine_id": "cx-1"}


@pytest.mark.unit
def test_concurrent_sets_are_serialized(tmp_path):
    store = SettingsStore(tmp_path / "coverhunter.yaml")
    store.load()

    def writer(n):
        for i in range(20):
            store.set("search.extra_query", f"writer-{n}-{i}", persist=True)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    saved = yaml.safe_load((tmp_path / "coverhunter.yaml").read_text())
    assert saved["search"]["extra_query"].startswith("writer-")
