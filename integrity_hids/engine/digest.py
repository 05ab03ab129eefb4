"""Digest engine — computes file fingerprints under a selectable algorithm."""

import hashlib
import os
from enum import Enum

from ..errors import (
    InvalidPathError,
    MissingFileError,
    UnreadableFileError,
    UnsupportedAlgorithmError,
)

CHUNK_SIZE = 8192


class HashAlgorithm(Enum):
    """Supported digest algorithms, valued by their hashlib name."""

    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"

    @classmethod
    def parse(cls, value: "str | HashAlgorithm") -> "HashAlgorithm":
        """Resolve ``MD5``/``SHA1``/``SHA256`` (case and dashes ignored)."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace("-", "")
        try:
            return cls[key]
        except KeyError:
            raise UnsupportedAlgorithmError(
                f"Unsupported hash algorithm {value!r}; expected one of "
                f"{', '.join(a.name for a in cls)}"
            ) from None

    @property
    def hex_length(self) -> int:
        return hashlib.new(self.value, usedforsecurity=False).digest_size * 2


DEFAULT_ALGORITHM = HashAlgorithm.SHA1


def check_file_path(path: str) -> None:
    """Ensure ``path`` is canonical, exists and is readable.

    Raises:
        InvalidPathError: the path differs from its resolved canonical form.
        MissingFileError: nothing exists at the path.
        UnreadableFileError: the path exists but cannot be read as a file.
    """
    canonical = os.path.realpath(path)
    if canonical != path:
        raise InvalidPathError(path, canonical)
    if not os.path.exists(path):
        raise MissingFileError(path)
    if not os.path.isfile(path) or not os.access(path, os.R_OK):
        raise UnreadableFileError(path)


def compute_digest(path: str, algorithm: "HashAlgorithm | str" = DEFAULT_ALGORITHM) -> bytes:
    """Return the raw digest of the file at ``path``."""
    algorithm = HashAlgorithm.parse(algorithm)
    check_file_path(path)

    try:
        hasher = hashlib.new(algorithm.value, usedforsecurity=False)
    except ValueError as e:
        raise UnsupportedAlgorithmError(
            f"Algorithm {algorithm.name} is not supported by this platform"
        ) from e

    try:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                hasher.update(chunk)
    except FileNotFoundError as e:
        raise MissingFileError(path) from e
    except OSError as e:
        raise UnreadableFileError(path) from e
    return hasher.digest()


def digest_hex(path: str, algorithm: "HashAlgorithm | str" = DEFAULT_ALGORITHM) -> str:
    """Return the lower-case hex digest of the file at ``path``."""
    return compute_digest(path, algorithm).hex()


def digests_equal(left: str, right: str) -> bool:
    """Compare two hex digests ignoring case and surrounding whitespace."""
    return left.strip().lower() == right.strip().lower()
