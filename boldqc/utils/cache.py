"""Content-addressed cache for derived QC series.

Entries are keyed by the tool name, a hash of every input file and the
parameters used, so a changed input or option always yields a new key.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np
import structlog

log = structlog.get_logger()

_CHUNK = 1 << 20


def sha256_file(path: str | Path) -> str:
    """Compute SHA256 hex digest of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def fingerprint(
    tool: str,
    inputs: Iterable[str | Path],
    params: Mapping[str, Any],
    digest: Optional[Callable[[str | Path], str]] = None,
) -> str:
    """Return the cache key for *tool* run on *inputs* with *params*.

    *digest* hashes one input file; it defaults to :func:`sha256_file`.
    """
    digest = digest or sha256_file
    payload = {
        "tool": tool,
        "inputs": [digest(p) for p in inputs],
        "params": params,
    }
    blob = json.dumps(payload, sort_keys=True, default=str).encode()
    return hashlib.sha256(blob).hexdigest()


class ArtifactCache:
    """Directory of ``<key>.npy`` arrays."""

    def __init__(self, directory: str | Path):
        """Store the cache directory; it is created on first write."""
        self.directory = Path(directory)
        self._digests: Dict[Tuple[str, int, int], str] = {}

    def file_digest(self, path: str | Path) -> str:
        """Return the SHA-256 of *path*, hashing each file version once."""
        p = Path(path).resolve()
        st = p.stat()
        memo = (str(p), st.st_size, st.st_mtime_ns)
        if memo not in self._digests:
            self._digests[memo] = sha256_file(p)
        return self._digests[memo]

    def path_for(self, key: str) -> Path:
        """Return the file holding the entry for *key*."""
        return self.directory / f"{key}.npy"

    def get(self, key: str) -> Optional[np.ndarray]:
        """Return the cached array or ``None`` when absent or unreadable."""
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return np.load(path, allow_pickle=False)
        except (OSError, ValueError):
            log.warning("cache_corrupt", path=str(path))
            return None

    def put(self, key: str, array: np.ndarray) -> Path:
        """Store *array* under *key*; the write is atomic."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".npy.tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                np.save(fh, np.asarray(array), allow_pickle=False)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return path

    def clear(self) -> None:
        """Remove every entry."""
        if self.directory.exists():
            shutil.rmtree(self.directory)

    def cached(
        self,
        tool: str,
        inputs: Iterable[str | Path],
        params: Mapping[str, Any],
        compute: Callable[[], np.ndarray],
        overwrite: bool = False,
    ) -> np.ndarray:
        """Return the cached result for this call or compute and store it."""
        key = fingerprint(tool, list(inputs), params, digest=self.file_digest)
        if not overwrite:
            hit = self.get(key)
            if hit is not None:
                log.info("cache_hit", tool=tool, key=key[:12])
                return hit
        log.debug("cache_miss", tool=tool, key=key[:12])
        result = np.asarray(compute())
        self.put(key, result)
        return result


__all__ = ["ArtifactCache", "fingerprint", "sha256_file"]
