import typing as t

import zirconium as zr

from rbstore.storage.base import StorageError


DEFAULT_POOL_SIZE = 500


class GCSConfig:
    """Settings for the Google Cloud Storage backend.

        Only one form of credentials is used, in this order: endpoint (anonymous
        access to a custom endpoint), credentials_json, credentials_json_encoded,
        credentials_file. Without any of them, application default credentials apply.
    """

    def __init__(self,
                 bucket: str,
                 path: str = "",
                 object_disk_path: str = "",
                 endpoint: str = "",
                 project: t.Optional[str] = None,
                 credentials_json: str = "",
                 credentials_json_encoded: str = "",
                 credentials_file: str = "",
                 storage_class: str = "STANDARD",
                 object_labels: t.Optional[dict[str, str]] = None,
                 client_pool_size: int = DEFAULT_POOL_SIZE,
                 client_pool_wait_seconds: t.Optional[float] = None,
                 debug: bool = False):
        if not bucket:
            raise StorageError("Missing GCS bucket name", 1010)
        self.bucket = bucket
        self.path = path or ""
        self.object_disk_path = object_disk_path or ""
        self.endpoint = endpoint or ""
        self.project = project or None
        self.credentials_json = credentials_json or ""
        self.credentials_json_encoded = credentials_json_encoded or ""
        self.credentials_file = credentials_file or ""
        self.storage_class = storage_class or None
        self.object_labels = {str(k): str(v) for k, v in (object_labels or {}).items()}
        self.client_pool_size = max(1, int(client_pool_size or 1))
        self.client_pool_wait_seconds = float(client_pool_wait_seconds) if client_pool_wait_seconds is not None else None
        self.debug = bool(debug)

    @staticmethod
    def from_config(config: zr.ApplicationConfig, prefix: tuple = ("rbstore", "gcs")):
        """Build the settings from the application configuration."""
        return GCSConfig(
            bucket=config.as_str(prefix + ("bucket",), default=""),
            path=config.as_str(prefix + ("path",), default=""),
            object_disk_path=config.as_str(prefix + ("object_disk_path",), default=""),
            endpoint=config.as_str(prefix + ("endpoint",), default=""),
            project=config.as_str(prefix + ("project",), default=None),
            credentials_json=config.as_str(prefix + ("credentials_json",), default=""),
            credentials_json_encoded=config.as_str(prefix + ("credentials_json_encoded",), default=""),
            credentials_file=config.as_str(prefix + ("credentials_file",), default=""),
            storage_class=config.as_str(prefix + ("storage_class",), default="STANDARD"),
            object_labels=config.as_dict(prefix + ("object_labels",), default={}),
            client_pool_size=config.get(prefix + ("client_pool_size",), default=DEFAULT_POOL_SIZE),
            client_pool_wait_seconds=config.get(prefix + ("client_pool_wait_seconds",), default=None),
            debug=config.as_bool(prefix + ("debug",), default=False),
        )
