"""CDN data model: where a logical file lives inside a numbered section archive."""

from enum import Enum
from pathlib import Path
from typing import FrozenSet, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

# compressed_length value meaning "stored as-is"
UNCOMPRESSED = -1


class SectionFileRecord(BaseModel):
    """
    One file packed into section{section}.dat.

    offset is relative to the decompressed section content and is only meaningful
    after decompression. For uncompressed records the raw bytes are that content.
    Non-overlap of ranges within one section is the catalog builder's job
    (see sections.find_overlaps); this model only checks its own fields.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    original_path: str
    file: str
    hash: Optional[str] = None
    revision: int = Field(default=0, ge=0)
    section: int = Field(ge=0)
    offset: int = Field(ge=0)
    length: int = Field(ge=0)
    compressed_length: int = Field(default=UNCOMPRESSED, ge=UNCOMPRESSED)

    @property
    def full_path(self) -> str:
        return f"{self.path}/{self.file}"

    @property
    def original_full_path(self) -> str:
        return f"{self.original_path}/{self.file}"

    @property
    def is_compressed(self) -> bool:
        return self.compressed_length != UNCOMPRESSED

    @property
    def stored_length(self) -> int:
        """Bytes occupied in the raw archive."""
        return self.compressed_length if self.is_compressed else self.length

    @property
    def end(self) -> int:
        """Exclusive end of the range in decompressed section content."""
        return self.offset + self.length

    # Descriptive names used by callers that think in terms of the address model
    @property
    def section_id(self) -> int:
        return self.section

    @property
    def decompressed_length(self) -> int:
        return self.length

    @property
    def logical_path(self) -> str:
        return self.path

    @property
    def original_logical_path(self) -> str:
        return self.original_path

    @property
    def file_name(self) -> str:
        return self.file

    @property
    def digest(self) -> Optional[str]:
        return self.hash

    def with_digest(self, digest: str) -> "SectionFileRecord":
        """Copy with hash filled in once computed."""
        return self.model_copy(update={"hash": digest})


class DownloadData(Enum):
    """Content groups a download pass can include. ALL is its own value, not a combination."""

    ALL = "All"
    GAME_BASE = "GameBase"
    TRACKS = "Tracks"
    TRACKS_HIGH = "TracksHigh"
    SPEECH = "Speech"


class DownloadSelection:
    """Immutable set of DownloadData categories; ALL includes every category."""

    __slots__ = ("_categories",)

    def __init__(self, categories: Iterable[DownloadData] = ()) -> None:
        self._categories: FrozenSet[DownloadData] = frozenset(categories)

    @classmethod
    def parse(cls, text: str) -> "DownloadSelection":
        """Comma-separated category names, e.g. "GameBase,Tracks" (case-insensitive)."""
        by_name = {d.value.lower(): d for d in DownloadData}
        by_name.update({d.name.lower(): d for d in DownloadData})
        out = []
        for part in text.split(","):
            name = part.strip().lower()
            if not name:
                continue
            if name not in by_name:
                raise ValueError(f"Unknown download category: {part.strip()!r}")
            out.append(by_name[name])
        return cls(out)

    @property
    def categories(self) -> FrozenSet[DownloadData]:
        return self._categories

    def includes(self, category: DownloadData) -> bool:
        return DownloadData.ALL in self._categories or category in self._categories

    def __or__(self, other: "DownloadSelection") -> "DownloadSelection":
        return DownloadSelection(self._categories | other._categories)

    def __contains__(self, category: object) -> bool:
        return isinstance(category, DownloadData) and self.includes(category)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DownloadSelection):
            return NotImplemented
        return self._categories == other._categories

    def __hash__(self) -> int:
        return hash(self._categories)

    def __bool__(self) -> bool:
        return bool(self._categories)

    def __repr__(self) -> str:
        names = ",".join(sorted(d.value for d in self._categories))
        return f"DownloadSelection({names})"


class CDNDownloadOptions(BaseModel):
    """What to download and where. game_language matters mostly for speech."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    download: DownloadSelection
    game_directory: Path
    game_version: str
    game_language: str = "en"
