"""Handle to one object in the remote store.

A RemoteFile is bound to a key and fetches nothing until asked. Its
lifecycle is an explicit state machine:

    BOUND --(head/get finds it)--> FETCHED
    BOUND --(head/get misses)----> NOT_FOUND
    any   --(store)--------------> FETCHED
    any   --(delete)-------------> DELETED

Metadata readers (size, content_type, exists) never raise: missing
objects and read-path store errors come back as None/False. Writes and
explicit deletes propagate their errors.
"""

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Dict, Optional, Union

from uploadstore.errors import NotFoundError, StorageError
from uploadstore.local_file import LocalFile
from uploadstore.object_store import ObjectMetadata

if TYPE_CHECKING:
    from uploadstore.storage import ObjectStorage

logger = logging.getLogger(__name__)


class FileState(Enum):
    """Lifecycle state of a RemoteFile."""

    BOUND = "bound"
    FETCHED = "fetched"
    NOT_FOUND = "not_found"
    DELETED = "deleted"


class RemoteFile:
    """A stored object, fetched lazily.

    Attributes:
        path: Object key
        storage: Owning storage adapter (not owned by the file)
    """

    def __init__(self, storage: "ObjectStorage", path: str):
        self.storage = storage
        self.path = path
        self.state = FileState.BOUND
        self._metadata: Optional[ObjectMetadata] = None
        self._body: Optional[bytes] = None

    @property
    def config(self):
        return self.storage.config

    @property
    def client(self):
        return self.storage.client

    @property
    def bucket(self) -> str:
        return self.storage.directory

    def __repr__(self) -> str:
        return f"RemoteFile(path={self.path!r}, state={self.state.value})"

    # Lazy fetching

    def _fetch_metadata(self) -> Optional[ObjectMetadata]:
        """Resolve metadata, heading the object only while still BOUND."""
        if self.state in (FileState.DELETED, FileState.NOT_FOUND):
            return None
        if self._metadata is not None:
            return self._metadata

        logger.debug(f"Fetching metadata for {self.path}")
        try:
            metadata = self.client.head(self.bucket, self.path)
        except StorageError as e:
            logger.warning(f"Could not read metadata for {self.path}: {e}")
            return None

        if metadata is None:
            self.state = FileState.NOT_FOUND
            return None
        self._metadata = metadata
        self.state = FileState.FETCHED
        return metadata

    def read(self) -> bytes:
        """Return the object body, fetching it on first access.

        Raises:
            NotFoundError: If the object does not exist
        """
        if self._body is not None:
            return self._body
        if self.state == FileState.DELETED:
            raise NotFoundError("File has been deleted", key=self.path, operation="read")

        logger.debug(f"Fetching body for {self.path}")
        try:
            body, metadata = self.client.get(self.bucket, self.path)
        except NotFoundError:
            self.state = FileState.NOT_FOUND
            raise
        self._body = body
        self._metadata = metadata
        self.state = FileState.FETCHED
        return body

    # Metadata

    @property
    def filename(self) -> str:
        """Last path segment of the key."""
        return PurePosixPath(self.path).name

    @property
    def extension(self) -> str:
        """Extension of the filename, "" when there is none."""
        return PurePosixPath(self.path).suffix.lstrip(".")

    @property
    def size(self) -> Optional[int]:
        metadata = self._fetch_metadata()
        return metadata.size if metadata else None

    @property
    def content_type(self) -> Optional[str]:
        metadata = self._fetch_metadata()
        return metadata.content_type if metadata else None

    @property
    def last_modified(self) -> Optional[datetime]:
        metadata = self._fetch_metadata()
        return metadata.last_modified if metadata else None

    def exists(self) -> bool:
        """Return True if the object currently exists in the store."""
        try:
            metadata = self.client.head(self.bucket, self.path)
        except StorageError as e:
            logger.warning(f"Could not check existence of {self.path}: {e}")
            return False

        if metadata is None:
            if self.state != FileState.DELETED:
                self.state = FileState.NOT_FOUND
            return False
        if self.state != FileState.FETCHED or self._metadata is None:
            self._metadata = metadata
            self.state = FileState.FETCHED
        return True

    # Writes

    def store(self, new_file: Union[LocalFile, "RemoteFile"]) -> "RemoteFile":
        """Write a file to this key.

        A RemoteFile in the same bucket of the same store is copied
        server-side instead of being downloaded and uploaded again.

        Args:
            new_file: LocalFile or RemoteFile to write

        Returns:
            self

        Raises:
            UploadError: If the write fails
        """
        if (
            isinstance(new_file, RemoteFile)
            and new_file.client is self.client
            and new_file.bucket == self.bucket
        ):
            if new_file.path != self.path:
                new_file.copy_to(self.path)
            self._reset()
            return self

        body = new_file.read()
        content_type = new_file.content_type
        generator = self.storage.url_generator
        metadata = self.client.put(
            self.bucket,
            self.path,
            body,
            content_type=content_type,
            acl=generator.put_acl(),
            attributes=self.config.attributes,
        )
        logger.info(f"Stored {self.path} ({len(body)} bytes, {content_type})")

        self._body = body
        self._metadata = metadata
        self.state = FileState.FETCHED
        return self

    def copy_to(self, new_path: str) -> "RemoteFile":
        """Copy this object to new_path with the store's native copy.

        Returns:
            RemoteFile bound to new_path

        Raises:
            UploadError: If the copy fails
        """
        options = self.copy_options()
        self.client.copy(self.bucket, self.path, new_path, options)
        logger.info(f"Copied {self.path} to {new_path}")
        return RemoteFile(self.storage, new_path)

    def copy_options(self) -> Dict[str, str]:
        return self.storage.url_generator.copy_options(self.content_type)

    def acl_header(self) -> Dict[str, str]:
        return self.storage.url_generator.acl_header()

    def delete(self) -> None:
        """Remove the object. Deleting twice is not an error.

        Raises:
            StorageError: If the store rejects the delete
        """
        self.client.delete(self.bucket, self.path)
        logger.info(f"Deleted {self.path}")
        self._body = None
        self._metadata = None
        self.state = FileState.DELETED

    def _reset(self) -> None:
        self._body = None
        self._metadata = None
        self.state = FileState.BOUND

    # Local copies

    def to_local_file(self) -> LocalFile:
        """Buffer the body into a LocalFile, e.g. to process a stored file."""
        return LocalFile.from_bytes(self.read(), self.filename, content_type=self.content_type)

    def download(self, destination: Path) -> Path:
        """Write the body to a local path.

        Returns:
            *destination* after the write completes
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(self.read())
        return destination

    # URLs

    def url(self, query: Optional[Dict[str, str]] = None) -> Optional[str]:
        """Public URL for public files, signed URL otherwise.

        Query parameters need a signature, so passing any selects the
        signed URL even for public files.
        """
        if self.config.public and not query:
            return self.public_url()
        return self.authenticated_url(query=query)

    def public_url(self) -> Optional[str]:
        return self.storage.url_generator.public_url(self)

    def authenticated_url(
        self,
        expire_at: Optional[datetime] = None,
        query: Optional[Dict[str, str]] = None,
    ) -> str:
        """Signed URL valid until expire_at (default: now + configured lifetime).

        Raises:
            SignatureError: If the URL cannot be signed
        """
        return self.storage.url_generator.authenticated_url(self, expire_at=expire_at, query=query)
