import os

import pytest

from debassemble.listener import CollectingListener

# Keep the build timestamp out of the environment of the tests
os.environ.pop("SOURCE_DATE_EPOCH", None)

MTIME = 1668973695


@pytest.fixture()
def listener() -> CollectingListener:
    return CollectingListener()


@pytest.fixture()
def mtime() -> int:
    return MTIME


@pytest.fixture()
def chdir_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path
