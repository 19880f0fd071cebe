import os

import pytest
from PIL import Image

from conftest import FakeResponse, ok
from logocache import cache as cache_module
from logocache.cache import ERROR, SAVED, SKIPPED, existing_cache_file, list_cache_files
from logocache.keys import derive_key
from logocache.models import Organization
from logocache.resolver import FROM_LOGO_URL, PLACEHOLDER


def test_placeholder_written_under_identity_key(make_writer, logos_dir):
    writer, session = make_writer()

    result = writer.write_if_needed(Organization("Acme Corp", "https://acme.bd", ""))

    assert result.status == SAVED
    assert result.source_kind == PLACEHOLDER
    assert result.key == "acme-corp-2dc97ff2"
    path = logos_dir / "acme-corp-2dc97ff2.png"
    assert result.path == path
    assert path.read_bytes().startswith(b"\x89PNG")
    assert session.calls == []


def test_identical_rows_write_once(make_writer, logo_png):
    logo = "https://acme.bd/logo.png"
    writer, session = make_writer({logo: ok(logo_png)})
    first = Organization("Acme", "https://acme.bd", logo)
    second = Organization("Acme", "https://acme.bd", logo)

    assert writer.write_if_needed(first).status == SAVED
    result = writer.write_if_needed(second)

    assert result.status == SKIPPED
    assert result.detail == "exists"
    assert session.urls == [logo]


@pytest.mark.parametrize("ext", ["png", "svg", "jpg", "webp", "gif"])
def test_any_known_extension_counts_as_cached(make_writer, logos_dir, ext):
    writer, session = make_writer()
    org = Organization("Acme", "https://acme.bd", "https://acme.bd/logo.svg")
    existing = logos_dir / f"{derive_key(org)}.{ext}"
    existing.write_bytes(b"cached")

    result = writer.write_if_needed(org)

    assert result.status == SKIPPED
    assert result.path == existing
    assert existing.read_bytes() == b"cached"
    assert session.calls == []


def test_force_overwrites_existing_file(make_writer, logos_dir, logo_png):
    logo = "https://acme.bd/logo.png"
    writer, session = make_writer({logo: ok(logo_png)})
    org = Organization("Acme", "https://acme.bd", logo)
    target = writer.path_for(derive_key(org))
    target.write_bytes(b"stale")

    result = writer.write_if_needed(org, force=True)

    assert result.status == SAVED
    assert result.source_kind == FROM_LOGO_URL
    assert target.read_bytes() != b"stale"
    assert session.urls == [logo]


def test_undecodable_bytes_are_written_raw(make_writer):
    logo = "https://acme.bd/logo.svg"
    svg = b"<svg xmlns='http://www.w3.org/2000/svg'><rect/></svg>"
    writer, _ = make_writer({logo: ok(svg)})

    result = writer.write_if_needed(Organization("Acme", "https://acme.bd", logo))

    assert result.status == SAVED
    assert result.detail == "raw"
    assert result.path.read_bytes() == svg


def test_logo_only_skips_without_writing(make_writer, logos_dir):
    logo = "https://acme.bd/logo.png"
    writer, _ = make_writer({logo: FakeResponse(403)})

    with_url = writer.write_if_needed(Organization("Acme", "https://acme.bd", logo), logo_only=True)
    without_url = writer.write_if_needed(Organization("Beta", "https://beta.io"), logo_only=True)

    assert with_url.status == SKIPPED
    assert with_url.detail.startswith("logo-only")
    assert without_url.status == SKIPPED
    assert list_cache_files(logos_dir) == []


def test_write_failure_is_returned_not_raised(make_writer, logos_dir, monkeypatch):
    writer, _ = make_writer()

    def broken_write(path, data):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(cache_module, "atomic_write", broken_write)

    result = writer.write_if_needed(Organization("Acme", "https://acme.bd"))

    assert result.status == ERROR
    assert "read-only" in result.detail
    assert list_cache_files(logos_dir) == []


def test_atomic_write_leaves_no_temp_files(tmp_path):
    target = tmp_path / "logos" / "acme-1.png"

    cache_module.atomic_write(target, b"first")
    cache_module.atomic_write(target, b"second")

    assert target.read_bytes() == b"second"
    assert os.listdir(target.parent) == ["acme-1.png"]


def test_atomic_write_cleans_up_after_failure(tmp_path, monkeypatch):
    target = tmp_path / "acme-1.png"
    target.write_bytes(b"original")

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(cache_module.os, "replace", failing_replace)

    with pytest.raises(OSError):
        cache_module.atomic_write(target, b"partial")

    assert target.read_bytes() == b"original"
    assert os.listdir(tmp_path) == ["acme-1.png"]


def test_list_cache_files_ignores_archive_and_other_files(logos_dir):
    (logos_dir / "a.png").write_bytes(b"1")
    (logos_dir / "b.SVG").write_bytes(b"2")
    (logos_dir / "notes.txt").write_text("x")
    (logos_dir / "_archive").mkdir()
    (logos_dir / "_archive" / "c.png").write_bytes(b"3")

    assert [p.name for p in list_cache_files(logos_dir)] == ["a.png", "b.SVG"]
    assert existing_cache_file(logos_dir, "c") is None


def test_oversized_logo_is_written_raw(make_writer, monkeypatch, logo_png):
    logo = "https://acme.bd/huge.png"
    writer, _ = make_writer({logo: ok(logo_png)})
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

    result = writer.write_if_needed(Organization("Acme", "https://acme.bd", logo))

    assert result.status == SAVED
    assert result.detail == "raw"
    assert result.path.read_bytes() == logo_png


def test_uppercase_extension_counts_as_cached(make_writer, logos_dir):
    writer, session = make_writer()
    org = Organization("Acme", "https://acme.bd")
    existing = logos_dir / f"{derive_key(org)}.PNG"
    existing.write_bytes(b"cached")

    result = writer.write_if_needed(org)

    assert result.status == SKIPPED
    assert result.path == existing
    assert existing_cache_file(logos_dir, derive_key(org)) == existing
    assert [p.name for p in list_cache_files(logos_dir)] == [existing.name]
    assert session.calls == []


def test_existing_cache_file_ignores_longer_names(logos_dir):
    (logos_dir / "acme-1234abcd.png.bak").write_bytes(b"x")
    (logos_dir / "acme-1234abcd-old.png").write_bytes(b"x")

    assert existing_cache_file(logos_dir, "acme-1234abcd") is None
    assert existing_cache_file(logos_dir / "missing", "acme-1234abcd") is None
