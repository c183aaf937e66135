"""Verification pass: fetch sections, carve out records, hash them, check or record in the store.

Policy per file: if the store already has a hash, the fresh digest is checked
against it; otherwise the fresh digest is recorded. Hashing of different
records runs in a thread pool; every store call happens on the calling thread
so one store instance only ever sees serialized check/put calls.

Per-file failures (corrupt content, bad payload, out-of-range record, path escaping
output_root) are collected in the report. Transport errors from fetch_section and
errors from the digest function propagate unchanged.
"""

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from speedload.cdn.sections import (
    Decompressor,
    decompress_section,
    decompressor_for,
    extract_range,
    lzma_decompress,
)
from speedload.cdn.structures import DownloadData, DownloadSelection, SectionFileRecord
from speedload.config import get_settings
from speedload.digest import compute_digest
from speedload.download.hash_manager import HashManager
from speedload.errors import DecompressionError, IntegrityError, UnsafePathError

log = logging.getLogger(__name__)

# Progress callback: (current_index, total_count)
ProgressCallback = Callable[[int, int], None]
DigestFunction = Callable[[bytes], str]


@dataclass
class VerifyReport:
    """Outcome of one pass. recorded holds records with their new digest filled in."""

    recorded: List[SectionFileRecord] = field(default_factory=list)
    verified: List[SectionFileRecord] = field(default_factory=list)
    corrupt: List[IntegrityError] = field(default_factory=list)
    failed: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.corrupt and not self.failed

    @property
    def total(self) -> int:
        return len(self.recorded) + len(self.verified) + len(self.corrupt) + len(self.failed)


def filter_records(
    records_by_category: Mapping[DownloadData, Iterable[SectionFileRecord]],
    selection: DownloadSelection,
) -> List[SectionFileRecord]:
    """Records of every category the selection includes, in category order."""
    out: List[SectionFileRecord] = []
    for category, records in records_by_category.items():
        if selection.includes(category):
            out.extend(records)
    return out


def _group_by_section(records: Iterable[SectionFileRecord]) -> Dict[int, List[SectionFileRecord]]:
    grouped: Dict[int, List[SectionFileRecord]] = defaultdict(list)
    for r in records:
        grouped[r.section].append(r)
    return grouped


def _output_target(output_root: Path, record: SectionFileRecord) -> Path:
    """Where a record is written under output_root. Rejects '.', '..' and empty segments."""
    parts = record.full_path.replace("\\", "/").strip("/").split("/")
    if any(p.strip() in ("", ".", "..") for p in parts):
        raise UnsafePathError(record.full_path, "contains empty, '.' or '..' segment")
    root = output_root.resolve()
    target = root.joinpath(*parts).resolve()
    if target == root or root not in target.parents:
        raise UnsafePathError(record.full_path, f"resolves outside {root}")
    return target


def _write_output(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


def verify_records(
    store: HashManager,
    records: Iterable[SectionFileRecord],
    fetch_section: Callable[[int], bytes],
    decompress: Decompressor = lzma_decompress,
    digest: Optional[DigestFunction] = None,
    output_root: Optional[Path] = None,
    max_workers: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> VerifyReport:
    """
    Run one pass over records. digest and max_workers default to settings. The store
    must already be loaded; saving it is the caller's decision (HashManager.open saves on clean exit).
    Errors raised by the digest function are not per-file failures and propagate.
    """
    settings = get_settings()
    hash_fn = digest or partial(compute_digest, algorithm=settings.hash_algorithm)
    max_workers = max_workers or settings.max_workers
    report = VerifyReport()
    grouped = _group_by_section(records)
    total = sum(len(v) for v in grouped.values())
    done = 0
    log.info("Verifying %d files in %d sections (%d workers)", total, len(grouped), max_workers)

    def progress() -> None:
        if on_progress:
            on_progress(done, total)

    def fail(path: str, err: Exception) -> None:
        nonlocal done
        report.failed.append((path, err))
        done += 1
        progress()

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        for section_id in sorted(grouped):
            section_records = grouped[section_id]
            raw = fetch_section(section_id)
            # Decompressed once per section; identity for records stored uncompressed
            contents: Dict[bool, bytes] = {}
            errors: Dict[bool, DecompressionError] = {}
            futures = {}
            for record in section_records:
                key = record.is_compressed
                if key not in contents and key not in errors:
                    try:
                        contents[key] = decompress_section(section_id, raw, decompressor_for(record, decompress))
                    except DecompressionError as e:
                        log.error("Section %d: %s", section_id, e)
                        errors[key] = e
                if key in errors:
                    fail(record.full_path, errors[key])
                    continue
                target = None
                try:
                    if output_root is not None:
                        target = _output_target(output_root, record)
                    data = extract_range(contents[key], record)
                except (UnsafePathError, ValueError) as e:
                    log.error("Extract %s: %s", record.full_path, e)
                    fail(record.full_path, e)
                    continue
                futures[executor.submit(hash_fn, data)] = (record, data, target)

            for fut in as_completed(futures):
                record, data, target = futures[fut]
                fresh = fut.result()
                done += 1
                path = record.full_path
                if store.has(path):
                    outcome = store.check(path, fresh)
                    if outcome.ok:
                        report.verified.append(record)
                    else:
                        report.corrupt.append(outcome.error)
                        progress()
                        continue
                else:
                    store.put(path, fresh)
                    report.recorded.append(record.with_digest(fresh))
                if target is not None:
                    _write_output(target, data)
                progress()

    log.info(
        "Verify pass done: %d recorded, %d verified, %d corrupt, %d failed",
        len(report.recorded), len(report.verified), len(report.corrupt), len(report.failed),
    )
    return report
