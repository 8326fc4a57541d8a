"""Error types raised by uploadstore.

Backends translate vendor exceptions into these types so callers only
ever deal with one taxonomy.
"""

from typing import Optional


class StorageError(Exception):
    """Error talking to the object store.

    Attributes:
        key: Object key involved, if any
        operation: Name of the failing operation (e.g. "put", "sign")
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        self.message = message
        self.key = key
        self.operation = operation
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.key:
            context.append(f"key={self.key}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class NotFoundError(StorageError):
    """The object does not exist."""

    pass


class UploadError(StorageError):
    """Writing an object (put or copy) failed."""

    pass


class SignatureError(StorageError):
    """A signed URL could not be produced from the given inputs."""

    pass


class UnparseableKeyError(StorageError):
    """A cache key does not carry a recognizable cache id."""

    pass
