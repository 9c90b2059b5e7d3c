from io import BytesIO

import pytest
from PIL import Image

from coverhunter.media.converter import (
    ConversionError,
    convert_bytes_to_canonical,
    convert_to_canonical,
    decode,
    encode_canonical,
)


@pytest.mark.unit
@pytest.mark.parametrize("fmt, suffix", [("JPEG", ".jpg"), ("BMP", ".bmp"), ("GIF", ".gif"), ("TIFF", ".tif")])
def test_convert_to_canonical_writes_png(tmp_path, make_image_file, fmt, suffix):
    source = make_image_file(tmp_path / f"mario{suffix}", fmt, width=40, height=30)
    target = tmp_path / "mario.png"

    ok, err = convert_to_canonical(source, target)

    assert ok is True
    assert err is None
    with Image.open(target) as img:
        assert img.format == "PNG"
        assert img.size == (40, 30)
    assert not (tmp_path / "mario.png.tmp").exists()
    # The source is left for the caller to delete
    assert source.exists()


@pytest.mark.unit
def test_convert_keeps_first_frame_of_animation(tmp_path):
    frames = [Image.new("RGB", (16, 16), color=c) for c in ("red", "blue", "green")]
    source = tmp_path / "anim.gif"
    frames[0].save(source, format="GIF", save_all=True, append_images=frames[1:])

    ok, _ = convert_to_canonical(source, tmp_path / "anim.png")

    assert ok
    with Image.open(tmp_path / "anim.png") as img:
        assert getattr(img, "n_frames", 1) == 1
        assert img.convert("RGB").getpixel((0, 0)) == (255, 0, 0)


@pytest.mark.unit
def test_convert_corrupt_source_leaves_no_target(tmp_path):
    source = tmp_path / "broken.jpg"
    source.write_bytes(b"\xff\xd8\xff\xe0 definitely not a jpeg")
    target = tmp_path / "broken.png"

    ok, err = convert_to_canonical(source, target)

    assert ok is False
    assert "Unsupported or corrupt image" in err
    assert not target.exists()
    assert not (tmp_path / "broken.png.tmp").exists()


@pytest.mark.unit
def test_convert_missing_source(tmp_path):
    ok, err = convert_to_canonical(tmp_path / "gone.jpg", tmp_path / "gone.png")

    assert ok is False
    assert "not found" in err


@pytest.mark.unit
def test_convert_replaces_existing_target(tmp_path, make_image_file):
    target = tmp_path / "zelda.png"
    target.write_bytes(b"stale")
    source = make_image_file(tmp_path / "zelda.bmp", "BMP")

    ok, _ = convert_to_canonical(source, target)

    assert ok
    with Image.open(target) as img:
        assert img.format == "PNG"


@pytest.mark.unit
def test_decode_converts_unsupported_modes():
    buf = BytesIO()
    Image.new("CMYK", (8, 8)).save(buf, format="JPEG")
    buf.seek(0)

    image = decode(buf)

    assert image.mode == "RGB"


@pytest.mark.unit
def test_decode_rejects_garbage():
    with pytest.raises(ConversionError):
        decode(BytesIO(b"plain text"))


@pytest.mark.unit
def test_encode_canonical_creates_parent(tmp_path):
    target = tmp_path / "nested" / "covers" / "metroid.png"

    encode_canonical(Image.new("RGBA", (4, 4)), target)

    assert target.exists()


@pytest.mark.unit
def test_convert_bytes_to_canonical(tmp_path):
    buf = BytesIO()
    Image.new("RGB", (20, 20), color="blue").save(buf, format="WEBP")

    ok, err = convert_bytes_to_canonical(buf.getvalue(), tmp_path / "sonic.png")

    assert ok and err is None
    with Image.open(tmp_path / "sonic.png") as img:
        assert img.format == "PNG"


@pytest.mark.unit
def test_convert_bytes_rejects_garbage(tmp_path):
    ok, err = convert_bytes_to_canonical(b"<html></html>", tmp_path / "x.png")

    assert ok is False
    assert err
    assert not (tmp_path / "x.png").exists()
