"""uploadstore - object storage for uploaded files.

This package provides tools for:
- Caching and storing uploaded files in a remote object store
- Retrieving stored files through lazily-fetched remote handles
- Generating public and signed URLs per storage provider
- Sweeping stale cached uploads
"""

__version__ = "0.3.0"

from uploadstore.config import StorageConfig
from uploadstore.errors import (
    NotFoundError,
    SignatureError,
    StorageError,
    UnparseableKeyError,
    UploadError,
)
from uploadstore.local_file import LocalFile
from uploadstore.remote_file import FileState, RemoteFile
from uploadstore.storage import ObjectStorage

__all__ = [
    "FileState",
    "LocalFile",
    "NotFoundError",
    "ObjectStorage",
    "RemoteFile",
    "SignatureError",
    "StorageConfig",
    "StorageError",
    "UnparseableKeyError",
    "UploadError",
]
