"""Hash manifest store: path -> base64 digest mapping backed by one HashFile<id>.hsh.

One instance per manifest id and per orchestration pass. The in-memory mapping is
the only owner of state while the instance lives; the backing file is overwritten
wholesale on save. The file is not locked: concurrent processes on the same id
give last-save-wins. Calls into one instance must be serialized by the caller.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from speedload.config import get_settings
from speedload.download.manifest import HashList, hash_file_name, read_hash_list, write_hash_list
from speedload.errors import IntegrityError, MissingKeyError
from speedload.result import Outcome

log = logging.getLogger(__name__)


class HashManager:
    """
    Load, query, update and save the hashes for one manifest id.
    get() and check() return an Outcome so callers must handle the missing-key
    and mismatch cases; file I/O failures raise ManifestReadError/ManifestWriteError.
    """

    def __init__(self, manifest_id: str, directory: Optional[Path] = None) -> None:
        self._id = manifest_id
        base = directory if directory is not None else get_settings().manifest_path
        self._path = Path(base) / hash_file_name(manifest_id)
        self._hash_map: Dict[str, str] = {}

    @property
    def manifest_id(self) -> str:
        return self._id

    @property
    def path(self) -> Path:
        """Full path of the backing hash file."""
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def create_if_missing(self) -> None:
        """Write an empty hash file if none exists. Never overwrites."""
        if self.exists():
            return
        write_hash_list(self._path, HashList(files=[]))
        log.info("Created empty hash file %s", self._path)

    def load(self) -> None:
        """Replace in-memory state with the file's entries. Raises ManifestReadError."""
        self._hash_map.clear()
        hash_list = read_hash_list(self._path)
        self._hash_map.update(hash_list.to_mapping())
        log.debug("Loaded %d hashes from %s", len(self._hash_map), self._path)

    def has(self, file_path: str) -> bool:
        return file_path in self._hash_map

    def get(self, file_path: str) -> Outcome[str]:
        if not self.has(file_path):
            return Outcome.failure(MissingKeyError(file_path))
        return Outcome.success(self._hash_map[file_path])

    def put(self, file_path: str, digest: str) -> None:
        """Insert or overwrite; digest is opaque and not validated."""
        self._hash_map[file_path] = digest

    def check(self, file_path: str, digest: str) -> Outcome[None]:
        """Compare a freshly computed digest against the stored one."""
        if not self.has(file_path):
            return Outcome.failure(MissingKeyError(file_path))
        expected = self._hash_map[file_path]
        if expected != digest:
            log.warning("Hash mismatch for %s: expected %s, got %s", file_path, expected, digest)
            return Outcome.failure(IntegrityError(file_path, expected, digest))
        return Outcome.success()

    def save(self) -> None:
        """Overwrite the hash file with the full current mapping (sorted by path)."""
        write_hash_list(self._path, HashList.from_mapping(self._hash_map))
        log.debug("Saved %d hashes to %s", len(self._hash_map), self._path)

    def reset(self) -> None:
        """Forget in-memory hashes; the hash file is left untouched."""
        self._hash_map.clear()

    def entries(self) -> Dict[str, str]:
        """Copy of the current path -> digest mapping."""
        return dict(self._hash_map)

    def __len__(self) -> int:
        return len(self._hash_map)

    @classmethod
    @contextmanager
    def open(cls, manifest_id: str, directory: Optional[Path] = None) -> Iterator["HashManager"]:
        """Create-if-missing and load; save on clean exit, discard changes on error."""
        store = cls(manifest_id, directory)
        store.create_if_missing()
        store.load()
        try:
            yield store
        except Exception:
            log.warning("Discarding unsaved hashes for %s after error", store.path)
            store.reset()
            raise
        store.save()
