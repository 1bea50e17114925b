import io
import os
from contextlib import closing

import pytest

from providers.impl.storage_local_files import LocalFilesStorageProvider
from providers.storage import UNKNOWN_SIZE, StorageError


@pytest.fixture
def local(tmp_path):
    return LocalFilesStorageProvider(str(tmp_path))


def test_put_get_stat_round_trip(local):
    n = local.put_object("b", "docs/a.txt", io.BytesIO(b"hello"), 5, "text/plain")

    assert n == 5
    with local.get_object("b", "docs/a.txt") as reader:
        assert reader.read() == b"hello"
    info = local.stat_object("b", "docs/a.txt")
    assert info.content_type == "text/plain"
    assert info.size == 5


def test_unknown_size_put_reads_to_the_end(local):
    n = local.put_object("b", "k", io.BytesIO(b"x" * 3000000), UNKNOWN_SIZE)

    assert n == 3000000
    assert local.stat_object("b", "k").content_type == "application/octet-stream"


def test_short_body_is_not_committed(local, tmp_path):
    local.put_object("b", "k", io.BytesIO(b"old"), 3)

    n = local.put_object("b", "k", io.BytesIO(b"new"), 10)

    assert n == 3
    with local.get_object("b", "k") as reader:
        assert reader.read() == b"old"
    # no temp files left behind
    assert sorted(os.listdir(tmp_path / "b")) == ["k"]


def test_put_never_reads_past_the_declared_size(local):
    n = local.put_object("b", "k", io.BytesIO(b"abcdef"), 4)

    assert n == 4
    with local.get_object("b", "k") as reader:
        assert reader.read() == b"abcd"


def test_missing_object_is_no_such_key(local):
    with pytest.raises(StorageError) as info:
        local.get_object("b", "missing.txt")

    assert info.value.code == "NoSuchKey"
    assert info.value.status_code == 404


def test_keys_cannot_escape_the_bucket(local):
    with pytest.raises(StorageError) as info:
        local.put_object("b", "../../etc/passwd", io.BytesIO(b"x"), 1)

    assert info.value.code == "InvalidObjectName"


def test_list_filters_by_prefix_and_skips_metadata(local):
    for key in ("docs/a", "docs/sub/b", "images/c"):
        local.put_object("b", key, io.BytesIO(b"1"), 1)

    keys = [e.key for e in local.list_objects("b", "docs")]

    assert sorted(keys) == ["docs/a", "docs/sub/b"]


def test_shallow_listing(local):
    for key in ("docs/a", "docs/sub/b"):
        local.put_object("b", key, io.BytesIO(b"1"), 1)

    keys = [e.key for e in local.list_objects("b", "docs/", recursive=False)]

    assert keys == ["docs/a"]


def test_list_missing_bucket_yields_one_error(local):
    entries = list(local.list_objects("nope", "p"))

    assert len(entries) == 1
    assert entries[0].error.code == "NoSuchBucket"


def test_listing_can_be_closed_early(local):
    for key in ("a", "b", "c"):
        local.put_object("b", key, io.BytesIO(b"1"), 1)

    with closing(local.list_objects("b", "")) as entries:
        first = next(entries)

    assert first.key == "a"
    with pytest.raises(StopIteration):
        next(entries)


def test_remove_is_idempotent(local):
    local.put_object("b", "k", io.BytesIO(b"1"), 1)

    local.remove_object("b", "k")
    local.remove_object("b", "k")

    with pytest.raises(StorageError):
        local.stat_object("b", "k")


def test_ping_creates_root(tmp_path):
    root = tmp_path / "store"

    LocalFilesStorageProvider(str(root)).ping()

    assert root.is_dir()
