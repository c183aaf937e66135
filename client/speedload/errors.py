"""Errors reported by the hash manifest store and section extraction."""

from pathlib import Path
from typing import Union


class HashManifestError(Exception):
    """Base class for every failure reported by this package."""


class MissingKeyError(HashManifestError):
    """No hash is recorded for the requested path."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No value found for key {path}")


class IntegrityError(HashManifestError):
    """Freshly computed digest disagrees with the stored one (corrupt or tampered content)."""

    def __init__(self, path: str, expected: str, actual: str) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"Integrity check failed for {path}: expected {expected}, got {actual}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntegrityError):
            return NotImplemented
        return (self.path, self.expected, self.actual) == (other.path, other.expected, other.actual)

    def __hash__(self) -> int:
        return hash((self.path, self.expected, self.actual))


class ManifestReadError(HashManifestError):
    """Hash file is missing, unreadable or does not match the manifest schema."""

    def __init__(self, path: Union[str, Path], reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Cannot read hash file {self.path}: {reason}")


class ManifestWriteError(HashManifestError):
    """Hash file could not be written."""

    def __init__(self, path: Union[str, Path], reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Cannot write hash file {self.path}: {reason}")


class DecompressionError(HashManifestError):
    """Section payload is malformed and cannot be decompressed."""

    def __init__(self, section_id: int, reason: str) -> None:
        self.section_id = section_id
        self.reason = reason
        super().__init__(f"Cannot decompress section{section_id}.dat: {reason}")


class UnsafePathError(HashManifestError):
    """Record path would be written outside the output directory."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Refusing to write {path}: {reason}")
