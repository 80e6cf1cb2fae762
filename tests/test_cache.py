from pathlib import Path

import numpy as np

from boldqc.utils.cache import ArtifactCache, fingerprint


def _input(tmp_path: Path, content: bytes = b"abc") -> Path:
    """Write a small input file and return its path."""
    p = tmp_path / "input.bin"
    p.write_bytes(content)
    return p


def test_fingerprint_tracks_content_and_params(tmp_path: Path):
    """Keys change with file content, parameters and tool name."""
    p = _input(tmp_path)
    key = fingerprint("dvars", [p], {"drop": 0})
    assert key == fingerprint("dvars", [p], {"drop": 0})
    assert key != fingerprint("dvars", [p], {"drop": 1})
    assert key != fingerprint("fd", [p], {"drop": 0})
    p.write_bytes(b"abd")
    assert key != fingerprint("dvars", [p], {"drop": 0})


def test_cached_computes_once(tmp_path: Path):
    """A second call with the same key is served from disk."""
    cache = ArtifactCache(tmp_path / "cache")
    p = _input(tmp_path)
    calls = []

    def compute():
        calls.append(1)
        return np.arange(3.0)

    first = cache.cached("fd", [p], {}, compute)
    second = cache.cached("fd", [p], {}, compute)
    np.testing.assert_array_equal(first, second)
    assert len(calls) == 1
    cache.cached("fd", [p], {}, compute, overwrite=True)
    assert len(calls) == 2


def test_corrupt_entry_is_a_miss(tmp_path: Path):
    """Unreadable entries are recomputed and replaced."""
    cache = ArtifactCache(tmp_path / "cache")
    p = _input(tmp_path)
    key = fingerprint("fd", [p], {})
    cache.directory.mkdir()
    cache.path_for(key).write_bytes(b"not a numpy file")
    assert cache.get(key) is None
    out = cache.cached("fd", [p], {}, lambda: np.ones(2))
    np.testing.assert_array_equal(out, [1.0, 1.0])
    np.testing.assert_array_equal(cache.get(key), [1.0, 1.0])


def test_clear(tmp_path: Path):
    """Clearing removes every entry."""
    cache = ArtifactCache(tmp_path / "cache")
    cache.put("k", np.zeros(1))
    cache.clear()
    assert cache.get("k") is None
    assert not cache.directory.exists()


def test_input_hashed_once_per_cache(tmp_path: Path, monkeypatch):
    """Several tools keyed on the same file share a single digest."""
    import boldqc.utils.cache as cache_mod

    hashed = []
    real = cache_mod.sha256_file

    def counting(path):
        hashed.append(path)
        return real(path)

    monkeypatch.setattr(cache_mod, "sha256_file", counting)
    cache = ArtifactCache(tmp_path / "cache")
    p = _input(tmp_path)
    cache.cached("dvars", [p], {}, lambda: np.zeros(2))
    cache.cached("tsnr", [p], {}, lambda: np.ones(2))
    assert len(hashed) == 1
    p.write_bytes(b"a longer payload")
    cache.cached("dvars", [p], {}, lambda: np.zeros(2))
    assert len(hashed) == 2
