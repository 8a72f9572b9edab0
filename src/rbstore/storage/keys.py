"""Mapping between caller-facing paths and backend object keys.

    Object stores have a flat namespace in which "" (list the whole bucket) and
    "/" (list the keys under an empty-named directory) are different queries, so
    every key built here is normalized: no leading, trailing or repeated slashes,
    and an empty path or root never turns into a lone separator.
"""
import posixpath

SEPARATOR = "/"


def normalize_path(path: str) -> str:
    """Normalize a relative path, dot segments cannot climb above its root."""
    if not path:
        return ""
    cleaned = posixpath.normpath(SEPARATOR + path.replace("\\", SEPARATOR))
    return cleaned.lstrip(SEPARATOR)


def join_key(root: str, path: str) -> str:
    root = normalize_path(root)
    path = normalize_path(path)
    if not root:
        return path
    if not path:
        return root
    return f"{root}{SEPARATOR}{path}"


def strip_prefix(key: str, prefix: str) -> str:
    """Remove a listing prefix from a key returned by the backend."""
    if prefix and key.startswith(prefix):
        return key[len(prefix):]
    return key


class KeyMapper:

    def __init__(self, primary_root: str = "", secondary_root: str = ""):
        self._primary_root = normalize_path(primary_root)
        self._secondary_root = normalize_path(secondary_root)

    @property
    def primary_root(self) -> str:
        return self._primary_root

    @property
    def secondary_root(self) -> str:
        return self._secondary_root

    def to_primary_key(self, path: str) -> str:
        return join_key(self._primary_root, path)

    def to_secondary_key(self, path: str) -> str:
        """Key of an object in the object disk area."""
        return join_key(self._secondary_root, path)

    def listing_prefix(self, path: str) -> str:
        root_key = self.to_primary_key(path)
        if not root_key:
            return ""
        return root_key + SEPARATOR
