from io import BytesIO

import httpx
import pytest
from PIL import Image

from coverhunter.media.downloader import ImageSaver


def make_image_bytes(fmt="PNG", width=32, height=32):
    buf = BytesIO()
    Image.new("RGB", (width, height), color="red").save(buf, format=fmt)
    return buf.getvalue()


class DummyClient:
    def __init__(self, content: bytes, content_type: str = "image/png", status_code: int = 200):
        self._content = content
        self._content_type = content_type
        self._status_code = status_code
        self.calls = 0

    async def get(self, url, timeout=None, follow_redirects=None, headers=None):
        self.calls += 1
        return httpx.Response(
            self._status_code,
            content=self._content,
            headers={"Content-Type": self._content_type},
            request=httpx.Request("GET", url),
        )


class FailingClient(DummyClient):
    def __init__(self, content: bytes, errors_before_success=1):
        super().__init__(content)
        self._errors_before_success = errors_before_success

    async def get(self, url, timeout=None, follow_redirects=None, headers=None):
        if self._errors_before_success > 0:
            self._errors_before_success -= 1
            self.calls += 1
            raise httpx.ConnectTimeout("timeout")
        return await super().get(url, timeout=timeout, follow_redirects=follow_redirects, headers=headers)


@pytest.fixture
def no_sleep(monkeypatch):
    async def _sleep(_delay):
        return None

    monkeypatch.setattr("coverhunter.media.downloader.asyncio.sleep", _sleep)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_converts_jpeg_to_png(tmp_path):
    client = DummyClient(make_image_bytes("JPEG", 64, 48), content_type="image/jpeg")
    saver = ImageSaver(client)
    out = tmp_path / "mario.png"

    ok, err = await saver.save("http://example/mario.jpg", out)

    assert ok is True
    assert err is None
    with Image.open(out) as img:
        assert img.format == "PNG"
        assert img.size == (64, 48)
    assert client.calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_refuses_to_overwrite(tmp_path):
    out = tmp_path / "mario.png"
    out.write_bytes(b"existing")
    client = DummyClient(make_image_bytes())

    ok, err = await ImageSaver(client).save("http://example/mario.png", out)

    assert ok is False
    assert "already exists" in err
    assert out.read_bytes() == b"existing"
    assert client.calls == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_overwrite_replaces(tmp_path):
    out = tmp_path / "mario.png"
    out.write_bytes(b"existing")

    ok, _ = await ImageSaver(DummyClient(make_image_bytes())).save("http://example/m.png", out, overwrite=True)

    assert ok
    assert out.read_bytes() != b"existing"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_rejects_small_images(tmp_path):
    saver = ImageSaver(DummyClient(make_image_bytes(width=4, height=4)), min_width=16, min_height=16)

    ok, err = await saver.save("http://example/tiny.png", tmp_path / "tiny.png")

    assert ok is False
    assert "Image too small" in err
    assert not (tmp_path / "tiny.png").exists()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_http_error_is_not_retried(tmp_path):
    client = DummyClient(b"", status_code=404)

    ok, err = await ImageSaver(client, max_retries=3).save("http://example/404.png", tmp_path / "x.png")

    assert ok is False
    assert "HTTP Status: 404" in err
    assert client.calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_rejects_bad_content_type(tmp_path, no_sleep):
    client = DummyClient(b"<html></html>", content_type="text/html")

    ok, err = await ImageSaver(client, max_retries=1).save("http://example/page", tmp_path / "x.png")

    assert ok is False
    assert "Invalid content type" in err


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_retries_transport_errors(tmp_path, no_sleep):
    client = FailingClient(make_image_bytes(), errors_before_success=1)

    ok, err = await ImageSaver(client, max_retries=2).save("http://example/retry.png", tmp_path / "retry.png")

    assert ok is True
    assert err is None
    assert client.calls == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_gives_up_after_max_retries(tmp_path, no_sleep):
    client = FailingClient(make_image_bytes(), errors_before_success=5)

    ok, err = await ImageSaver(client, max_retries=2).save("http://example/down.png", tmp_path / "down.png")

    assert ok is False
    assert "after 2 attempts" in err
    assert client.calls == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_corrupt_payload(tmp_path):
    client = DummyClient(b"\x89PNG\r\n\x1a\n garbage", content_type="image/png")

    ok, err = await ImageSaver(client).save("http://example/bad.png", tmp_path / "bad.png")

    assert ok is False
    assert "Validation failed" in err
    assert not (tmp_path / "bad.png").exists()
