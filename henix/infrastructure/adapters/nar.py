"""
NAR Hashing

Computes the same digest as `nix-hash <path>`: the MD5 (base16) of the path's
Nix ARchive serialisation. Used when the nix-hash binary is not installed, so
the staging directory name does not depend on which machine ran the deploy.
"""

import hashlib
import os
import stat
import struct
from pathlib import Path
from typing import Union

_PADDING = b"\0" * 8
_CHUNK_SIZE = 1 << 16


def _write_int(digest, value: int) -> None:
    digest.update(struct.pack("<Q", value))


def _write_padding(digest, length: int) -> None:
    if length % 8:
        digest.update(_PADDING[: 8 - length % 8])


def _write_str(digest, data: bytes) -> None:
    _write_int(digest, len(data))
    digest.update(data)
    _write_padding(digest, len(data))


def _write_contents(digest, path: bytes, size: int) -> None:
    _write_int(digest, size)
    written = 0
    with open(path, "rb") as f:
        while True:
            chunk = f.read(_CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
            written += len(chunk)
    if written != size:
        raise OSError(f"File changed while hashing: {os.fsdecode(path)}")
    _write_padding(digest, size)


def _serialise(digest, path: bytes) -> None:
    _write_str(digest, b"(")
    st = os.lstat(path)

    if stat.S_ISLNK(st.st_mode):
        _write_str(digest, b"type")
        _write_str(digest, b"symlink")
        _write_str(digest, b"target")
        _write_str(digest, os.readlink(path))
    elif stat.S_ISDIR(st.st_mode):
        _write_str(digest, b"type")
        _write_str(digest, b"directory")
        for name in sorted(os.listdir(path)):
            _write_str(digest, b"entry")
            _write_str(digest, b"(")
            _write_str(digest, b"name")
            _write_str(digest, name)
            _write_str(digest, b"node")
            _serialise(digest, os.path.join(path, name))
            _write_str(digest, b")")
    elif stat.S_ISREG(st.st_mode):
        _write_str(digest, b"type")
        _write_str(digest, b"regular")
        if st.st_mode & stat.S_IXUSR:
            _write_str(digest, b"executable")
            _write_str(digest, b"")
        _write_str(digest, b"contents")
        _write_contents(digest, path, st.st_size)
    else:
        raise OSError(f"Unsupported file type: {os.fsdecode(path)}")

    _write_str(digest, b")")


def nar_hash(path: Union[str, Path], algorithm: str = "md5") -> str:
    """Base16 digest of the NAR serialisation of `path`."""
    digest = hashlib.new(algorithm)
    _write_str(digest, b"nix-archive-1")
    _serialise(digest, os.fsencode(path))
    return digest.hexdigest()
