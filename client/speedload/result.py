"""Tagged outcome for lookups that can fail with a missing key or an integrity mismatch."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from speedload.errors import HashManifestError

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value (success) or one of the named errors (failure). Never both."""

    value: Optional[T] = None
    error: Optional[HashManifestError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: HashManifestError) -> "Outcome[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[T]:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value
