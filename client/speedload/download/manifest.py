"""Hash file format: JSON document with one "Files" list of {FilePath, Hash} pairs."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from speedload.errors import ManifestReadError, ManifestWriteError

log = logging.getLogger(__name__)

HASH_FILE_FORMAT = "HashFile{0}.hsh"


class HashFileEntry(BaseModel):
    """One recorded file: relative path and its base64 digest (opaque, compared as-is)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    file_path: str = Field(alias="FilePath")
    hash: str = Field(alias="Hash")


class HashList(BaseModel):
    """On-disk unit. No version field: an unparseable file is a read error, never reset."""

    model_config = ConfigDict(populate_by_name=True)

    files: List[HashFileEntry] = Field(alias="Files")

    @classmethod
    def from_mapping(cls, mapping: Dict[str, str]) -> "HashList":
        """Build a list sorted by path so saved files are reproducible."""
        return cls(files=[HashFileEntry(file_path=p, hash=h) for p, h in sorted(mapping.items())])

    def to_mapping(self) -> Dict[str, str]:
        """Path -> digest; a later duplicate entry wins."""
        out: Dict[str, str] = {}
        for entry in self.files:
            out[entry.file_path] = entry.hash
        return out


def hash_file_name(manifest_id: str) -> str:
    """HashFile<id>.hsh for a category/session id."""
    return HASH_FILE_FORMAT.format(manifest_id)


def read_hash_list(path: Path) -> HashList:
    """Read and validate a hash file. Raises ManifestReadError if missing or malformed."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ManifestReadError(path, "file does not exist") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestReadError(path, str(e)) from e
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ManifestReadError(path, f"invalid JSON: {e}") from e
    try:
        return HashList.model_validate(data)
    except ValidationError as e:
        raise ManifestReadError(path, f"does not match hash file schema: {e.error_count()} error(s)") from e


def write_hash_list(path: Path, hash_list: HashList) -> None:
    """Overwrite the hash file entirely. Temp file + os.replace so readers never see a partial write."""
    payload = json.dumps(hash_list.model_dump(by_alias=True), indent=2, ensure_ascii=False)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=path.name, suffix=".tmp", delete=False
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(payload)
        os.replace(tmp_name, path)
        tmp_name = None
    except (OSError, UnicodeEncodeError) as e:
        raise ManifestWriteError(path, str(e)) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
    log.debug("Wrote %d entries to %s", len(hash_list.files), path)
