from autoinject import injector
import zirconium as zr
import typing as t

from rbstore.storage.base import BaseRemoteStorage, StorageError
from rbstore.storage.gcs import GCSStorage


@injector.injectable_global
class StorageController:
    """Controller class that builds the remote storage backend for a given kind.

        gcs -> GCSStorage
    """

    config: zr.ApplicationConfig = None

    @injector.construct
    def __init__(self):
        self.storage_classes: dict[str, type] = {
            "gcs": GCSStorage,
        }

    def default_kind(self) -> str:
        return self.config.as_str(("rbstore", "remote_storage"), default="gcs")

    def get_storage(self, kind: t.Optional[str] = None, *args, **kwargs) -> BaseRemoteStorage:
        """Build an unconnected storage backend of the given kind (or the configured one)."""
        kind = (kind or self.default_kind()).strip().lower()
        if kind not in self.storage_classes:
            raise StorageError(f"Unknown remote storage kind [{kind}]", 1020)
        return self.storage_classes[kind](*args, **kwargs)
