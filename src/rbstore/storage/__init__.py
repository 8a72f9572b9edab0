"""
    Provides remote storage functionality for backups.

    In general, one should use the StorageController to build the configured backend.
    The backend offers the same file-system-like operations regardless of where the
    data actually lives: walk(), open_reader(), put_file(), stat_file(), delete_file(),
    delete_object_disk_file() and copy_object().

    Object stores do not have directories, only a flat space of keys. Directories are
    simulated by listing with a delimiter: keys below the next "/" are grouped into a
    single RemotePrefix entry whose name ends with the delimiter. Recursive walks do not
    group anything and only ever report RemoteObject entries.

    Paths passed to the backend are relative. They are mapped onto backend keys under
    one of two roots: the main root (path) for ordinary backup files and the object disk
    root (object_disk_path) for files copied from object disks, which are only ever
    touched by delete_object_disk_file() and copy_object().
"""
from .core import StorageController
from .base import (
    BaseRemoteStorage,
    RemoteFile,
    RemoteObject,
    RemotePrefix,
    StorageError,
    StorageNotFound,
    TransportError,
    WriteFinalizationError,
)
from .config import GCSConfig
from .gcs import GCSStorage
