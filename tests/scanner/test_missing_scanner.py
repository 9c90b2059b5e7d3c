from pathlib import Path

import pytest

from coverhunter.scanner.missing_scanner import ScannerError, compute_missing, list_rom_files
from coverhunter.scanner.rom_types import RomEntry, rom_key


@pytest.mark.unit
def test_rom_entry_key_is_case_insensitive():
    entry = RomEntry.from_path(Path("/roms/Super Mario World (USA).sfc"))
    assert entry.name == "Super Mario World (USA)"
    assert entry.key == rom_key("SUPER MARIO WORLD (usa)")
    assert str(entry) == "Super Mario World (USA)"


@pytest.mark.unit
def test_compute_missing_returns_uncovered_in_input_order(cover_dir):
    (cover_dir / "zelda.png").write_bytes(b"x")
    (cover_dir / "castlevania.jpg").write_bytes(b"x")
    roms = [Path(f"/roms/{name}.nes") for name in ["castlevania", "mario", "metroid", "zelda"]]

    missing = compute_missing(roms, cover_dir, (".png", ".JPG"))

    assert [entry.name for entry in missing] == ["mario", "metroid"]


@pytest.mark.unit
def test_compute_missing_matches_cover_names_case_insensitively(cover_dir, make_image_file):
    make_image_file(cover_dir / "mario.JPG", fmt="JPEG")
    make_image_file(cover_dir / "ZELDA.Png")
    roms = [Path(f"/roms/{name}.nes") for name in ["mario", "metroid", "zelda"]]

    missing = compute_missing(roms, cover_dir)

    assert [entry.name for entry in missing] == ["metroid"]


@pytest.mark.unit
def test_compute_missing_any_recognized_extension_counts(cover_dir):
    for name, ext in [("a", "png"), ("b", "jpeg"), ("c", "bmp"), ("d", "tif")]:
        (cover_dir / f"{name}.{ext}").write_bytes(b"x")
    roms = [Path(f"{name}.zip") for name in "abcde"]

    missing = compute_missing(roms, cover_dir)

    assert [entry.name for entry in missing] == ["e"]


@pytest.mark.unit
def test_compute_missing_collapses_duplicate_base_names(cover_dir):
    roms = [Path("Game.nes"), Path("game.zip"), Path("Other.zip")]

    missing = compute_missing(roms, cover_dir)

    assert [entry.name for entry in missing] == ["Game", "Other"]


@pytest.mark.unit
def test_compute_missing_empty_input(cover_dir):
    assert compute_missing([], cover_dir) == []


@pytest.mark.unit
def test_compute_missing_missing_cover_dir_is_precondition(tmp_path):
    with pytest.raises(ScannerError, match="does not exist"):
        compute_missing([Path("mario.nes")], tmp_path / "nope")


@pytest.mark.unit
def test_compute_missing_cover_path_is_file(tmp_path):
    not_a_dir = tmp_path / "covers"
    not_a_dir.write_text("")

    with pytest.raises(ScannerError, match="not a directory"):
        compute_missing([Path("mario.nes")], not_a_dir)


@pytest.mark.unit
def test_list_rom_files_filters_and_sorts(rom_dir):
    for name in ["zelda.nes", "Mario.SFC", "readme.txt", "metroid.zip"]:
        (rom_dir / name).write_bytes(b"rom")
    (rom_dir / "subdir.zip").mkdir()
    nested = rom_dir / "nested"
    nested.mkdir()
    (nested / "hidden.nes").write_bytes(b"rom")

    files = list_rom_files(rom_dir, ["nes", ".sfc", "ZIP"])

    assert [f.name for f in files] == ["Mario.SFC", "metroid.zip", "zelda.nes"]


@pytest.mark.unit
def test_list_rom_files_requires_extensions(rom_dir):
    with pytest.raises(ScannerError, match="No supported ROM file extensions"):
        list_rom_files(rom_dir, [])


@pytest.mark.unit
def test_list_rom_files_missing_directory(tmp_path):
    with pytest.raises(ScannerError):
        list_rom_files(tmp_path / "missing", ["nes"])
