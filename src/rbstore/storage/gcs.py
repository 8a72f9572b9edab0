"""Google Cloud Storage backend."""
import base64
import binascii
import functools
import json
import typing as t

import google.api_core.exceptions as gae
import google.auth
import google.auth.credentials
import google.auth.exceptions
import requests
import zirconium as zr
import zrlog
from autoinject import injector
from google.auth.transport.requests import AuthorizedSession
from google.cloud import storage

from rbstore.util import HaltFlag, iter_chunks
from rbstore.util.pool import ClientPool
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
from .debug import install_debug_transport
from .keys import KeyMapper, SEPARATOR, strip_prefix


FULL_CONTROL_SCOPE = "https://www.googleapis.com/auth/devstorage.full_control"

# Uploads are copied through a buffer of this size, whatever the size of the object
COPY_BUFFER_SIZE = 512 * 1024


def wrap_gcs_errors(cb):
    """Converts errors from the Google libraries into StorageErrors with recoverable set properly."""

    @functools.wraps(cb)
    def _inner(*args, **kwargs):
        try:
            return cb(*args, **kwargs)
        except gae.NotFound as ex:
            raise StorageNotFound(f"GCS: Object not found: {ex.__class__.__name__}: {str(ex)}") from ex
        except (gae.Unauthorized, gae.Forbidden, google.auth.exceptions.GoogleAuthError) as ex:
            raise TransportError(f"GCS: Client authentication error: {ex.__class__.__name__}: {str(ex)}", 2003) from ex
        except requests.Timeout as ex:
            raise TransportError(f"GCS: Connection timeout error: {ex.__class__.__name__}: {str(ex)}", 2001, True) from ex
        except requests.ConnectionError as ex:
            raise TransportError(f"GCS: Connection error: {ex.__class__.__name__}: {str(ex)}", 2002, True) from ex
        except (gae.ServerError, gae.TooManyRequests) as ex:
            raise TransportError(f"GCS: Server error: {ex.__class__.__name__}: {str(ex)}", 2005, True) from ex
        except (gae.GoogleAPIError, requests.RequestException) as ex:
            raise TransportError(f"GCS: {ex.__class__.__name__}: {str(ex)}", 2000) from ex

    return _inner


class GCSStorage(BaseRemoteStorage):
    """Pooled client for a Google Cloud Storage bucket.

        Every operation borrows one storage.Client from the pool for as long as it
        talks to the backend. The client goes back to the pool when the operation
        succeeds and is destroyed when anything goes wrong while it is borrowed, so
        a broken client is never reused. Missing objects during stat_file() are the
        exception: absence says nothing about the health of the client.
    """

    config: zr.ApplicationConfig = None

    @injector.construct
    def __init__(self, gcs_config: t.Optional[GCSConfig] = None):
        self._config = gcs_config if gcs_config is not None else GCSConfig.from_config(self.config)
        self._keys = KeyMapper(self._config.path, self._config.object_disk_path)
        self._credentials: t.Optional[google.auth.credentials.Credentials] = None
        self._project: t.Optional[str] = None
        self._pool: t.Optional[ClientPool] = None
        self._client: t.Optional[storage.Client] = None
        self._log = zrlog.get_logger("rbstore.storage.gcs")

    @property
    def keys(self) -> KeyMapper:
        return self._keys

    @property
    def pool(self) -> t.Optional[ClientPool]:
        return self._pool

    def kind(self) -> str:
        return "GCS"

    @wrap_gcs_errors
    def connect(self):
        if self._pool is not None and not self._pool.closed and self._client is not None:
            return
        self._credentials, self._project = self._load_credentials()
        client = self._create_client()
        self._pool = ClientPool(
            factory=self._create_client,
            destroy=self._destroy_client,
            validate=self._validate_client,
            max_size=self._config.client_pool_size,
            wait_timeout=self._config.client_pool_wait_seconds,
            name="GCS client"
        )
        self._client = client
        self._log.debug(f"Connected to GCS bucket [{self._config.bucket}], pool size [{self._config.client_pool_size}]")

    def _load_credentials(self) -> tuple[google.auth.credentials.Credentials, t.Optional[str]]:
        if self._config.endpoint:
            return google.auth.credentials.AnonymousCredentials(), self._config.project
        scopes = [FULL_CONTROL_SCOPE]
        if self._config.credentials_json:
            info = self._parse_credentials(self._config.credentials_json)
            credentials, project = google.auth.load_credentials_from_dict(info, scopes=scopes)
        elif self._config.credentials_json_encoded:
            try:
                decoded = base64.b64decode(self._config.credentials_json_encoded, validate=True)
            except (binascii.Error, ValueError) as ex:
                raise StorageError("GCS: credentials_json_encoded is not valid base64", 1011) from ex
            info = self._parse_credentials(decoded)
            credentials, project = google.auth.load_credentials_from_dict(info, scopes=scopes)
        elif self._config.credentials_file:
            credentials, project = google.auth.load_credentials_from_file(self._config.credentials_file, scopes=scopes)
        else:
            credentials, project = google.auth.default(scopes=scopes)
        return credentials, self._config.project or project

    @staticmethod
    def _parse_credentials(raw: t.Union[str, bytes]) -> dict:
        try:
            return json.loads(raw)
        except ValueError as ex:
            raise StorageError("GCS: credentials are not valid JSON", 1012) from ex

    def _create_client(self) -> storage.Client:
        kwargs = {
            "project": self._project,
            "credentials": self._credentials,
        }
        if self._config.endpoint:
            kwargs["client_options"] = {"api_endpoint": self._config.endpoint}
        if self._config.debug:
            kwargs["_http"] = install_debug_transport(AuthorizedSession(self._credentials))
        return storage.Client(**kwargs)

    @staticmethod
    def _destroy_client(client: storage.Client):
        client.close()

    @staticmethod
    def _validate_client(client: storage.Client) -> bool:
        # Health shows in whether the next call succeeds, a failing client is invalidated then
        return True

    def close(self):
        if self._pool is not None:
            self._pool.close()
        if self._client is not None:
            client, self._client = self._client, None
            client.close()

    def _borrow(self, halt_flag: HaltFlag = None, keep_on: tuple = ()):
        if self._pool is None:
            raise StorageError("GCS: storage is not connected", 1013)
        return self._pool.borrowed(halt_flag, keep_on=keep_on)

    def walk(self, path: str, recursive: bool, visit: t.Callable[[RemoteFile], t.Any], halt_flag: HaltFlag = None):
        """Call visit() for every entry below path, one backend page at a time.

            Errors from the listing are translated to StorageErrors. Errors raised by
            visit() abort the walk and reach the caller unchanged.
        """
        prefix = self._keys.listing_prefix(path)
        delimiter = None if recursive else SEPARATOR
        with self._borrow(halt_flag) as client:
            pages = self._list_pages(client, prefix, delimiter)
            while True:
                if halt_flag is not None:
                    halt_flag.check_continue(True)
                page = self._next_page(pages)
                if page is None:
                    break
                for blob in page:
                    visit(RemoteObject(strip_prefix(blob.name, prefix), blob.size, blob.updated))
                for dir_prefix in page.prefixes:
                    visit(RemotePrefix(strip_prefix(dir_prefix, prefix)))

    @wrap_gcs_errors
    def _list_pages(self, client: storage.Client, prefix: str, delimiter: t.Optional[str]) -> t.Iterator:
        return iter(client.list_blobs(self._config.bucket, prefix=prefix or None, delimiter=delimiter).pages)

    @staticmethod
    @wrap_gcs_errors
    def _next_page(pages: t.Iterator):
        return next(pages, None)

    @wrap_gcs_errors
    def open_reader(self, path: str, halt_flag: HaltFlag = None) -> t.BinaryIO:
        key = self._keys.to_primary_key(path)
        with self._borrow(halt_flag) as client:
            blob = client.bucket(self._config.bucket).blob(key)
            blob.reload()
        # The stream outlives the borrow, so it must not depend on the pooled client
        stream_client = self._client
        if stream_client is None:
            raise StorageError("GCS: storage is not connected", 1013)
        stream_blob = stream_client.bucket(self._config.bucket).blob(key, generation=blob.generation)
        return stream_blob.open("rb")

    @wrap_gcs_errors
    def put_file(self, path: str, source, halt_flag: HaltFlag = None):
        key = self._keys.to_primary_key(path)
        with self._borrow(halt_flag) as client:
            blob = client.bucket(self._config.bucket).blob(key)
            if self._config.storage_class:
                blob.storage_class = self._config.storage_class
            if self._config.object_labels:
                blob.metadata = dict(self._config.object_labels)
            writer = blob.open("wb")
            for chunk in iter_chunks(source, COPY_BUFFER_SIZE, halt_flag):
                writer.write(chunk)
            try:
                writer.close()
            except Exception as ex:
                self._log.warning(f"can't close writer for [{key}]: {ex.__class__.__name__}: {str(ex)}")
                raise WriteFinalizationError(f"GCS: Could not finalize upload of [{key}]: {ex.__class__.__name__}: {str(ex)}") from ex

    @wrap_gcs_errors
    def stat_file(self, path: str) -> RemoteObject:
        key = self._keys.to_primary_key(path)
        with self._borrow(keep_on=(StorageNotFound, gae.NotFound)) as client:
            blob = client.bucket(self._config.bucket).get_blob(key)
            if blob is None:
                raise StorageNotFound(f"GCS: Object [{key}] not found in [{self._config.bucket}]")
        return RemoteObject(strip_prefix(blob.name, self._keys.listing_prefix("")), blob.size, blob.updated)

    @wrap_gcs_errors
    def _delete_key(self, key: str):
        with self._borrow() as client:
            client.bucket(self._config.bucket).delete_blob(key)

    def delete_file(self, path: str):
        self._delete_key(self._keys.to_primary_key(path))

    def delete_object_disk_file(self, path: str):
        self._delete_key(self._keys.to_secondary_key(path))

    @wrap_gcs_errors
    def copy_object(self, src_bucket: str, src_key: str, dst_path: str, halt_flag: HaltFlag = None) -> int:
        dst_key = self._keys.to_secondary_key(dst_path)
        with self._borrow(halt_flag) as client:
            src = client.bucket(src_bucket).get_blob(src_key)
            if src is None:
                raise StorageNotFound(f"GCS: Source object [{src_bucket}/{src_key}] not found")
            dst = client.bucket(self._config.bucket).blob(dst_key)
            token, _, _ = dst.rewrite(src)
            while token is not None:
                if halt_flag is not None:
                    halt_flag.check_continue(True)
                token, _, _ = dst.rewrite(src, token=token)
        self._log.debug(f"GCS->CopyObject {src_bucket}/{src_key} -> {self._config.bucket}/{dst_key}")
        return src.size
