import sys
import os
import json
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.screenshot_cache import CacheIndexError, ScreenshotCache

PNG_BYTES = b'\x89PNG\r\n\x1a\nfake-image-data'

@pytest.fixture
def cache(tmp_path):
    return ScreenshotCache(tmp_path / 'cache')

def read_index(cache):
    with open(cache.index_path, 'r', encoding='utf-8') as f:
        return json.load(f)

def test_starts_empty_without_index(cache):
    assert len(cache) == 0
    assert cache.lookup('tz:Etc/UTC') is None

def test_store_then_lookup_round_trip(cache):
    path = cache.store('tz:Etc/UTC', PNG_BYTES)
    found = cache.lookup('tz:Etc/UTC')
    assert found == path
    assert found.read_bytes() == PNG_BYTES
    assert cache.read('tz:Etc/UTC') == PNG_BYTES

def test_store_writes_png_in_cache_dir(cache):
    path = cache.store('k', PNG_BYTES)
    assert path.parent == cache.cache_dir
    assert path.suffix == '.png'
    assert path.is_absolute()

def test_store_persists_formatted_index(cache):
    path = cache.store('k', PNG_BYTES)
    assert read_index(cache) == {'k': str(path)}
    with open(cache.index_path, 'r', encoding='utf-8') as f:
        assert '\n    "k"' in f.read()

def test_index_reloaded_on_construction(tmp_path):
    first = ScreenshotCache(tmp_path)
    path = first.store('k', PNG_BYTES)
    second = ScreenshotCache(tmp_path)
    assert second.lookup('k') == path

def test_lookup_heals_missing_file(cache):
    path = cache.store('k', PNG_BYTES)
    path.unlink()
    assert cache.lookup('k') is None
    assert 'k' not in cache
    assert read_index(cache) == {}

def test_read_heals_missing_file(cache):
    cache.store('k', PNG_BYTES).unlink()
    assert cache.read('k') is None
    assert 'k' not in cache

def test_invalidate_removes_file_and_entry(cache):
    path = cache.store('k', PNG_BYTES)
    cache.invalidate('k')
    assert not path.exists()
    assert 'k' not in cache
    assert read_index(cache) == {}

def test_invalidate_unknown_key_is_noop(cache):
    cache.invalidate('missing')
    assert len(cache) == 0

def test_store_replaces_previous_file(cache):
    old = cache.store('k', PNG_BYTES)
    new = cache.store('k', PNG_BYTES + b'2')
    assert old != new
    assert not old.exists()
    assert cache.read('k') == PNG_BYTES + b'2'

def test_distinct_keys_get_distinct_files(cache):
    a = cache.store('a', PNG_BYTES)
    b = cache.store('b', PNG_BYTES)
    assert a != b
    assert len(cache) == 2

def test_corrupt_index_is_fatal(tmp_path):
    (tmp_path / 'cache.json').write_text('{not json', encoding='utf-8')
    with pytest.raises(CacheIndexError):
        ScreenshotCache(tmp_path)

def test_index_with_wrong_shape_is_fatal(tmp_path):
    (tmp_path / 'cache.json').write_text('["a", "b"]', encoding='utf-8')
    with pytest.raises(CacheIndexError):
        ScreenshotCache(tmp_path)

def test_custom_index_path(tmp_path):
    cache = ScreenshotCache(tmp_path / 'images', tmp_path / 'index.json')
    cache.store('k', PNG_BYTES)
    assert (tmp_path / 'index.json').exists()
