"""Local upload source.

LocalFile wraps whatever the caller uploaded (raw bytes, a path on disk,
or an open stream) and buffers its body on first read, so a single-use
stream can be uploaded and read back without touching the original
handle again.
"""

import mimetypes
from pathlib import Path
from typing import BinaryIO, Optional, Union

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class LocalFile:
    """A file about to be written to the object store.

    Attributes:
        filename: Base filename (no directories)
    """

    def __init__(
        self,
        filename: str,
        body: Optional[bytes] = None,
        path: Optional[Path] = None,
        stream: Optional[BinaryIO] = None,
        content_type: Optional[str] = None,
    ):
        """Initialize the local file.

        Exactly one of body, path or stream must be given.

        Args:
            filename: Filename used for the content type guess and default keys
            body: Raw bytes
            path: Path to a file on disk
            stream: Readable binary stream, read once
            content_type: Explicit content type (guessed from filename if None)

        Raises:
            ValueError: If not exactly one source is given
        """
        sources = [source for source in (body, path, stream) if source is not None]
        if len(sources) != 1:
            raise ValueError("LocalFile needs exactly one of body, path or stream")

        self.filename = Path(filename).name
        self._body = body
        self._path = path
        self._stream = stream
        self._content_type = content_type

    @classmethod
    def from_bytes(cls, body: bytes, filename: str, content_type: Optional[str] = None) -> "LocalFile":
        return cls(filename, body=body, content_type=content_type)

    @classmethod
    def from_path(cls, path: Union[str, Path], content_type: Optional[str] = None) -> "LocalFile":
        path = Path(path)
        return cls(path.name, path=path, content_type=content_type)

    @classmethod
    def from_stream(
        cls, stream: BinaryIO, filename: str, content_type: Optional[str] = None
    ) -> "LocalFile":
        return cls(filename, stream=stream, content_type=content_type)

    @property
    def content_type(self) -> str:
        if self._content_type:
            return self._content_type
        guessed, _ = mimetypes.guess_type(self.filename)
        return guessed or DEFAULT_CONTENT_TYPE

    @content_type.setter
    def content_type(self, value: str) -> None:
        self._content_type = value

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lstrip(".")

    @property
    def size(self) -> int:
        return len(self.read())

    def read(self) -> bytes:
        """Return the full body, reading the source at most once."""
        if self._body is None:
            if self._path is not None:
                self._body = self._path.read_bytes()
            else:
                data = self._stream.read()
                self._body = data.encode("utf-8") if isinstance(data, str) else data
                self._stream = None
        return self._body

    def __repr__(self) -> str:
        return f"LocalFile(filename={self.filename!r}, content_type={self.content_type!r})"
