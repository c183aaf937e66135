"""Tests for the verification pass: extract, hash, check or record, persist."""

import lzma
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from speedload.cdn.structures import DownloadData, DownloadSelection, SectionFileRecord
from speedload.digest import compute_digest
from speedload.download.hash_manager import HashManager
from speedload.download.verifier import filter_records, verify_records
from pydantic import ValidationError

from speedload.errors import DecompressionError, IntegrityError, UnsafePathError

SECTION0 = b"".join(bytes([i]) * 16 for i in range(8))  # 128 bytes, 16-byte runs
SECTION1 = b"uncompressed section one payload"


def _rec(name: str, section: int, offset: int, length: int, compressed_length: int = -1) -> SectionFileRecord:
    return SectionFileRecord(
        path="Data", original_path="src/Data", file=name, section=section,
        offset=offset, length=length, compressed_length=compressed_length,
    )


@pytest.fixture
def raw_sections():
    packed = lzma.compress(SECTION0, format=lzma.FORMAT_ALONE)
    return {0: packed, 1: SECTION1}


@pytest.fixture
def records(raw_sections):
    return [
        _rec("a.bin", 0, 0, 16, len(raw_sections[0])),
        _rec("b.bin", 0, 32, 16, len(raw_sections[0])),
        _rec("c.txt", 1, 0, 12),
    ]


@pytest.fixture
def store(tmp_path: Path) -> HashManager:
    s = HashManager("Base", tmp_path / "hashes")
    s.create_if_missing()
    s.load()
    return s


def test_first_pass_records_digests(store, records, raw_sections, tmp_path: Path) -> None:
    """Unknown paths are recorded with the digest of the extracted bytes and written out."""
    fetch = MagicMock(side_effect=lambda sid: raw_sections[sid])
    out = tmp_path / "game"
    report = verify_records(store, records, fetch, output_root=out)

    assert report.ok
    assert len(report.recorded) == 3
    assert report.verified == []
    assert store.get("Data/a.bin").value == compute_digest(SECTION0[0:16])
    assert store.get("Data/b.bin").value == compute_digest(SECTION0[32:48])
    assert store.get("Data/c.txt").value == compute_digest(SECTION1[0:12])
    assert {r.digest for r in report.recorded} == set(store.entries().values())
    assert (out / "Data" / "b.bin").read_bytes() == SECTION0[32:48]
    assert (out / "Data" / "c.txt").read_bytes() == b"uncompressed"
    # Each section fetched once
    assert sorted(c.args[0] for c in fetch.call_args_list) == [0, 1]


def test_second_pass_verifies(store, records, raw_sections) -> None:
    """Known paths with matching content are verified, store unchanged."""
    fetch = raw_sections.__getitem__
    verify_records(store, records, fetch)
    before = store.entries()
    report = verify_records(store, records, fetch)
    assert report.ok
    assert len(report.verified) == 3
    assert report.recorded == []
    assert store.entries() == before


def test_corrupt_content_is_reported(store, records, raw_sections) -> None:
    """Stored digest differing from fresh content yields IntegrityError in the report."""
    store.put("Data/c.txt", "AAA")
    report = verify_records(store, records, raw_sections.__getitem__)
    assert not report.ok
    assert report.corrupt == [IntegrityError("Data/c.txt", "AAA", compute_digest(SECTION1[0:12]))]
    assert store.get("Data/c.txt").value == "AAA"


def test_bad_section_payload_fails_its_records_only(store, records, raw_sections) -> None:
    """Malformed compressed section fails that section's files, others still processed."""
    raw_sections[0] = b"garbage"
    report = verify_records(store, records, raw_sections.__getitem__)
    assert [p for p, _ in report.failed] == ["Data/a.bin", "Data/b.bin"]
    assert all(isinstance(e, DecompressionError) and e.section_id == 0 for _, e in report.failed)
    assert [r.full_path for r in report.recorded] == ["Data/c.txt"]


def test_out_of_range_record_fails(store, raw_sections) -> None:
    """Record extending past the section content is a per-file failure."""
    report = verify_records(store, [_rec("big", 1, 20, 100)], raw_sections.__getitem__)
    assert len(report.failed) == 1
    assert isinstance(report.failed[0][1], ValueError)
    assert not store.has("Data/big")


def test_transport_error_propagates(store, records) -> None:
    """fetch_section failures are not swallowed."""
    fetch = MagicMock(side_effect=ConnectionError("down"))
    with pytest.raises(ConnectionError):
        verify_records(store, records, fetch)


def test_progress_reaches_total(store, records, raw_sections) -> None:
    seen = []
    verify_records(store, records, raw_sections.__getitem__, on_progress=lambda c, t: seen.append((c, t)))
    assert seen[-1] == (3, 3)


def test_with_open_store_persists(tmp_path: Path, records, raw_sections) -> None:
    """Pass inside HashManager.open is saved for the next session."""
    with HashManager.open("Tracks", tmp_path) as s:
        verify_records(s, records, raw_sections.__getitem__, max_workers=1)
    fresh = HashManager("Tracks", tmp_path)
    fresh.load()
    assert len(fresh) == 3


def test_filter_records_by_selection(records) -> None:
    """Only selected categories are processed; ALL takes everything."""
    by_category = {
        DownloadData.GAME_BASE: records[:2],
        DownloadData.SPEECH: records[2:],
    }
    assert filter_records(by_category, DownloadSelection([DownloadData.GAME_BASE])) == records[:2]
    assert filter_records(by_category, DownloadSelection([DownloadData.ALL])) == records
    assert filter_records(by_category, DownloadSelection()) == []


def test_hash_algorithm_from_settings(monkeypatch, store, raw_sections) -> None:
    """Without an explicit digest function, the configured algorithm is used."""
    monkeypatch.setenv("SPEEDLOAD_HASH_ALGORITHM", "md5")
    verify_records(store, [_rec("c.txt", 1, 0, 12)], raw_sections.__getitem__)
    assert store.get("Data/c.txt").value == compute_digest(SECTION1[0:12], "md5")


@pytest.mark.parametrize("path", ["../../escaped", "Data/../../escaped", "Data/./x", "Data//x"])
def test_output_stays_inside_root(store, raw_sections, tmp_path: Path, path: str) -> None:
    """Catalog paths with '..', '.' or empty segments are per-file failures and never written."""
    out = tmp_path / "a" / "b" / "game"
    bad = SectionFileRecord(path=path, original_path="o", file="x.bin", section=1, offset=0, length=4)
    good = _rec("c.txt", 1, 0, 12)
    report = verify_records(store, [bad, good], raw_sections.__getitem__, output_root=out)

    assert [p for p, _ in report.failed] == [bad.full_path]
    assert isinstance(report.failed[0][1], UnsafePathError)
    assert not store.has(bad.full_path)
    assert [r.full_path for r in report.recorded] == ["Data/c.txt"]
    assert not (tmp_path / "a" / "escaped").exists()
    written = sorted(p.relative_to(tmp_path) for p in tmp_path.rglob("*.*") if p.is_file() and "hashes" not in p.parts)
    assert written == [Path("a/b/game/Data/c.txt")]


def test_unknown_hash_algorithm_fails_the_session(monkeypatch, store, records, raw_sections) -> None:
    """A bad configured algorithm is a settings error, not a list of per-file failures."""
    monkeypatch.setenv("SPEEDLOAD_HASH_ALGORITHM", "nope256")
    with pytest.raises(ValidationError):
        verify_records(store, records, raw_sections.__getitem__)
    assert len(store) == 0


def test_digest_errors_propagate(store, records, raw_sections) -> None:
    """Only extraction errors are per-file; a failing digest function is raised."""

    def broken(data: bytes) -> str:
        raise ValueError("digest backend unavailable")

    with pytest.raises(ValueError, match="digest backend unavailable"):
        verify_records(store, records, raw_sections.__getitem__, digest=broken)
