"""Tests for the interactive console frontend."""

import asyncio
import io
import logging
from pathlib import Path

import pytest
import pytest_asyncio
from rich.console import Console

from coverhunter.api.base import ProviderId, ProviderRegistry
from coverhunter.ui.console import ConsoleApp
from coverhunter.ui.event_log_handler import EventLogHandler
from coverhunter.ui.prompts import PromptSystem
from coverhunter.workflow.session import CoverSession


def scripted(*lines):
    remaining = list(lines)

    def _input(prompt):
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return _input


class RecordingSaver:
    def __init__(self):
        self.saved = []

    async def save(self, url, output_path, overwrite=False):
        output_path.write_bytes(b"png")
        self.saved.append((url, output_path.name, overwrite))
        return True, None


@pytest_asyncio.fixture
async def session(settings, event_bus, fake_provider_cls, sample_images, cover_dir):
    s = CoverSession(settings, event_bus, ProviderRegistry([fake_provider_cls(default=sample_images)]),
                     saver=RecordingSaver())
    await s.start(watch=False)
    await s.rescan([Path(f"/roms/{name}.nes") for name in ["mario", "metroid", "zelda"]], cover_dir)
    yield s
    await s.stop()


def make_app(session, *lines):
    output = io.StringIO()
    console = Console(file=output, width=120, color_system=None)
    app = ConsoleApp(session, console=console, prompts=PromptSystem(scripted(*lines)))
    return app, output


async def wait_for_search(session):
    await asyncio.sleep(0.1)
    task = session.orchestrator._task
    if task is not None:
        await asyncio.gather(task, return_exceptions=True)
    await session.event_bus.drain()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_app_becomes_credential_prompter(session):
    app, _ = make_app(session)

    assert session.orchestrator.prompter is app


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_marks_selection(session):
    app, output = make_app(session)

    await app.execute("2")
    await app.execute("l")

    text = output.getvalue()
    assert "Selected metroid" in text
    assert "Missing covers (3)" in text
    assert "> metroid" in text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_results_rendered(session):
    app, output = make_app(session)

    await app.execute("1")
    await wait_for_search(session)

    text = output.getvalue()
    assert "Mario Box" in text
    assert "640x480" in text
    assert "Found 2 images." in text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_candidate(session):
    app, output = make_app(session)
    await app.execute("1")
    await wait_for_search(session)

    await app.execute("s 2")
    await session.event_bus.drain()

    assert session.saver.saved == [("https://img.example/mario-cart.png", "mario.png", False)]
    assert "mario" not in session.missing_set
    assert "Removed mario (2 remaining)" in output.getvalue()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_existing_cover_asks_before_overwrite(session, cover_dir):
    app, _ = make_app(session, "n")
    await app.execute("1")
    await wait_for_search(session)
    (cover_dir / "mario.png").write_bytes(b"old")

    await app.execute("s 1")

    assert session.saver.saved == []
    assert (cover_dir / "mario.png").read_bytes() == b"old"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_usage(session):
    app, output = make_app(session)

    await app.execute("s")
    await app.execute("s 9")

    assert output.getvalue().count("Usage: s <n>") == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remove_by_number(session):
    app, _ = make_app(session)

    await app.execute("r 3")
    await app.execute("r 9")

    assert session.missing_set.names == ["mario", "metroid"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_remove_without_selection(session):
    app, output = make_app(session)

    await app.execute("r")

    assert "Nothing selected" in output.getvalue()
    assert len(session.missing_set) == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_extra_query_command(session, settings):
    app, _ = make_app(session)

    await app.execute("q box art")

    assert settings.extra_query == "box art"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_web_search_opens_browser(session, monkeypatch):
    opened = []
    monkeypatch.setattr("coverhunter.ui.console.webbrowser.open", opened.append)
    app, _ = make_app(session)

    await app.execute("3")
    await app.execute("w google")

    assert opened == ["https://www.google.com/search?tbm=isch&q=%22zelda%22"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_web_search_unknown_engine_prints_usage(session, monkeypatch):
    opened = []
    monkeypatch.setattr("coverhunter.ui.console.webbrowser.open", opened.append)
    app, output = make_app(session)

    await app.execute("3")
    await app.execute("w yahoo")

    assert opened == []
    assert "Usage: w [bing|google]" in output.getvalue()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_help_and_unknown_commands(session):
    app, output = make_app(session)

    await app.execute("h")
    await app.execute("frobnicate")

    text = output.getvalue()
    assert "w [bing|google]" in text
    assert "Unknown command 'frobnicate'" in text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_until_quit(session):
    app, output = make_app(session, "2", "x", "1")

    assert await app.run() == 0

    assert session.missing_set.selected_key == "metroid"
    assert "Type 'h' for help." in output.getvalue()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_stops_on_eof(session):
    app, _ = make_app(session)

    assert await app.run() == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_credential_answered_by_next_line(session, settings):
    settings.set("providers.google.api_key", "")
    app, output = make_app(session, "typed-key", "typed-cx")

    prompt = asyncio.create_task(app.prompt_for_credential(ProviderId.GOOGLE))
    await asyncio.sleep(0)
    await app._answer_credential("y")

    assert await prompt is True
    assert settings.google_api_key == "typed-key"
    assert settings.google_search_engine_id == "typed-cx"
    assert "API key is not set" in output.getvalue()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_credential_declined(session, settings):
    app, _ = make_app(session)

    prompt = asyncio.create_task(app.prompt_for_credential(ProviderId.GOOGLE))
    await asyncio.sleep(0)
    await app._answer_credential("n")

    assert await prompt is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_log_command_shows_messages_logged_during_run(session):
    lines = ["log", "x"]

    def _input(prompt):
        if lines[0] == "log":
            logging.getLogger("coverhunter.workflow.watch_reactor").warning(
                "Watch queue full, dropping event for mario.jpg"
            )
        return lines.pop(0)

    output = io.StringIO()
    app = ConsoleApp(session, console=Console(file=output, width=160, color_system=None),
                     prompts=PromptSystem(_input))

    assert await app.run() == 0

    assert "Watch queue full, dropping event for mario.jpg" in output.getvalue()
    assert app.log_history[-1].level == logging.WARNING
    assert not any(isinstance(handler, EventLogHandler) for handler in logging.root.handlers)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_log_command_usage_and_empty_history(session):
    app, output = make_app(session)

    await app.execute("log abc")
    await app.execute("log")

    text = output.getvalue()
    assert "Usage: log [n]" in text
    assert "No log messages" in text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_stops_rendering(session):
    app, output = make_app(session)

    app.close()
    session.display.set_status("Rendered after close")
    await session.event_bus.drain()

    assert "Rendered after close" not in output.getvalue()
    assert session.orchestrator.prompter is None
