"""Section archives: naming, decompression and carving a record's bytes out."""

import logging
import lzma
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Tuple

from speedload.cdn.structures import SectionFileRecord
from speedload.errors import DecompressionError

log = logging.getLogger(__name__)

SECTION_FILE_FORMAT = "section{0}.dat"

Decompressor = Callable[[bytes], bytes]


def section_file_name(section_id: int) -> str:
    return SECTION_FILE_FORMAT.format(section_id)


def identity_decompress(raw: bytes) -> bytes:
    """Uncompressed sections: raw bytes are the content."""
    return raw


def lzma_decompress(raw: bytes) -> bytes:
    """Decompress a legacy .lzma ("alone") section blob."""
    try:
        return lzma.decompress(raw, format=lzma.FORMAT_ALONE)
    except lzma.LZMAError as e:
        raise DecompressionError(-1, str(e)) from e


def decompressor_for(record: SectionFileRecord, decompress: Decompressor) -> Decompressor:
    """Identity for uncompressed records so one offset semantic covers both paths."""
    return decompress if record.is_compressed else identity_decompress


def decompress_section(section_id: int, raw: bytes, decompress: Decompressor) -> bytes:
    """Run decompress and tag any DecompressionError with the section id."""
    try:
        return decompress(raw)
    except DecompressionError as e:
        if e.section_id == section_id:
            raise
        raise DecompressionError(section_id, e.reason) from e


def extract_range(content: bytes, record: SectionFileRecord) -> bytes:
    """Bytes [offset, offset+length) of decompressed section content."""
    if record.end > len(content):
        raise ValueError(
            f"{record.full_path}: range {record.offset}..{record.end} exceeds "
            f"{section_file_name(record.section)} content of {len(content)} bytes"
        )
    return bytes(content[record.offset:record.end])


def find_overlaps(records: Iterable[SectionFileRecord]) -> List[Tuple[SectionFileRecord, SectionFileRecord]]:
    """Pairs of records in the same section whose byte ranges intersect. Empty ranges never overlap."""
    by_section: Dict[int, List[SectionFileRecord]] = defaultdict(list)
    for r in records:
        if r.length > 0:
            by_section[r.section].append(r)
    out: List[Tuple[SectionFileRecord, SectionFileRecord]] = []
    for section_id in sorted(by_section):
        ordered = sorted(by_section[section_id], key=lambda r: (r.offset, r.end))
        # Sweep: compare each range against all still-open earlier ranges
        open_ranges: List[SectionFileRecord] = []
        for r in ordered:
            open_ranges = [o for o in open_ranges if o.end > r.offset]
            out.extend((o, r) for o in open_ranges)
            open_ranges.append(r)
    if out:
        log.debug("Found %d overlapping record pairs", len(out))
    return out
