from __future__ import annotations
import datetime
import pathlib
import typing as t

from rbstore.exc import RBStoreError
from rbstore.util import HaltFlag, HaltInterrupt


DEFAULT_CHUNK_SIZE = 4194304


class StorageError(RBStoreError):
    """Error class specifically for storage errors."""

    def __init__(self, msg, code, is_recoverable: bool = False):
        super().__init__(msg, "STORAGE", code, is_recoverable=is_recoverable)


class StorageNotFound(StorageError):
    """The requested object does not exist."""

    def __init__(self, msg):
        super().__init__(msg, 2004)


class TransportError(StorageError):
    """Any other failure talking to the storage backend."""

    def __init__(self, msg, code: int = 2000, is_recoverable: bool = False):
        super().__init__(msg, code, is_recoverable)


class WriteFinalizationError(StorageError):
    """Closing a write stream failed, the object must be treated as not uploaded."""

    def __init__(self, msg):
        super().__init__(msg, 2010, True)


class RemoteFile:
    """Description of one entry returned by a listing or stat call."""

    __slots__ = ("_name",)

    def __init__(self, name: str):
        object.__setattr__(self, "_name", name)

    def __setattr__(self, key, value):
        raise AttributeError(f"{self.__class__.__name__} is immutable")

    def name(self) -> str:
        return self._name

    def size(self) -> int:
        return 0

    def last_modified(self) -> t.Optional[datetime.datetime]:
        return None

    def is_dir(self) -> bool:
        raise NotImplementedError

    def __eq__(self, other):
        if other.__class__ is not self.__class__:
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash((self.__class__.__name__,) + self._key())

    def _key(self) -> tuple:
        return (self._name,)

    def __repr__(self):
        return f"{self.__class__.__name__}{self._key()!r}"


class RemoteObject(RemoteFile):
    """A real object, with a size and modification time."""

    __slots__ = ("_size", "_last_modified")

    def __init__(self, name: str, size: int, last_modified: t.Optional[datetime.datetime]):
        super().__init__(name)
        object.__setattr__(self, "_size", int(size or 0))
        object.__setattr__(self, "_last_modified", last_modified)

    def size(self) -> int:
        return self._size

    def last_modified(self) -> t.Optional[datetime.datetime]:
        return self._last_modified

    def is_dir(self) -> bool:
        return False

    def _key(self) -> tuple:
        return self._name, self._size, self._last_modified


class RemotePrefix(RemoteFile):
    """A virtual directory, grouped by the backend from the keys below it."""

    __slots__ = ()

    def is_dir(self) -> bool:
        return True


class BaseRemoteStorage:
    """Operations every remote storage backend supports.

        Paths given to these methods are relative to the configured root of
        the backend; backends map them onto their own key space.
    """

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def kind(self) -> str:
        """Identifier of the backend implementation."""
        raise NotImplementedError

    def connect(self):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError

    def walk(self, path: str, recursive: bool, visit: t.Callable[[RemoteFile], t.Any], halt_flag: HaltFlag = None):
        """Call visit() for every entry below path, in backend order.

            Non-recursive walks report immediate children only, with deeper keys
            grouped into RemotePrefix entries. An exception from visit() stops
            the walk and is raised to the caller.
        """
        raise NotImplementedError

    def open_reader(self, path: str, halt_flag: HaltFlag = None) -> t.BinaryIO:
        raise NotImplementedError

    def open_reader_with_local_path(self, path: str, local_path: t.Union[str, pathlib.Path], halt_flag: HaltFlag = None) -> t.BinaryIO:
        return self.open_reader(path, halt_flag)

    def put_file(self, path: str, source, halt_flag: HaltFlag = None):
        """Store the content of source (bytes, a readable object or an iterable of bytes) at path."""
        raise NotImplementedError

    def stat_file(self, path: str) -> RemoteObject:
        """Retrieve the description of the object, raises StorageNotFound if it doesn't exist."""
        raise NotImplementedError

    def delete_file(self, path: str):
        raise NotImplementedError

    def delete_object_disk_file(self, path: str):
        raise NotImplementedError

    def copy_object(self, src_bucket: str, src_key: str, dst_path: str, halt_flag: HaltFlag = None) -> int:
        """Copy an object server-side into the object disk area and return its size."""
        raise NotImplementedError

    def list_files(self, path: str, recursive: bool = True, halt_flag: HaltFlag = None) -> list[RemoteFile]:
        files = []
        self.walk(path, recursive, files.append, halt_flag)
        return files

    def file_exists(self, path: str) -> bool:
        try:
            self.stat_file(path)
            return True
        except StorageNotFound:
            return False

    def download_file(self,
                      path: str,
                      local_path: t.Union[str, pathlib.Path],
                      allow_overwrite: bool = False,
                      buffer_size: int = DEFAULT_CHUNK_SIZE,
                      halt_flag: HaltFlag = None):
        """Download the object to the given local path."""
        local_path = pathlib.Path(local_path)
        if (not allow_overwrite) and local_path.exists():
            raise StorageError(f"Path [{local_path}] already exists, cannot download [{path}]", 1000, True)
        reader = self.open_reader_with_local_path(path, local_path, halt_flag)
        try:
            with open(local_path, "wb") as dest:
                chunk = reader.read(buffer_size)
                while chunk:
                    if halt_flag is not None:
                        halt_flag.check_continue(True)
                    dest.write(chunk)
                    chunk = reader.read(buffer_size)
        except (Exception, HaltInterrupt) as ex:
            local_path.unlink(True)
            raise ex
        finally:
            reader.close()

    def upload_file(self, path: str, local_path: t.Union[str, pathlib.Path], halt_flag: HaltFlag = None):
        """Upload a local file to the given path."""
        local_path = pathlib.Path(local_path)
        if not local_path.is_file():
            raise StorageError(f"Local file [{local_path}] not found", 1002)
        with open(local_path, "rb") as src:
            self.put_file(path, src, halt_flag)
