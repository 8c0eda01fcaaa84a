"""Tests for the indexing memory limit."""

from unittest.mock import patch

import pytest

from elastisync.memory import increase_memory_limit_to, parse_size

resource = pytest.importorskip("resource")

INF = resource.RLIM_INFINITY


@pytest.mark.parametrize("size, expected", [
    ("512M", 512 * 1024 ** 2),
    ("2GB", 2 * 1024 ** 3),
    ("1.5k", 1536),
    ("1048576", 1048576),
])
def test_parse_size(size, expected):
    assert parse_size(size) == expected


def test_parse_size_rejects_garbage():
    with pytest.raises(ValueError):
        parse_size("lots")


@pytest.fixture
def limits():
    with patch("resource.getrlimit") as getrlimit, patch("resource.setrlimit") as setrlimit:
        yield getrlimit, setrlimit


def test_raises_soft_limit(limits):
    getrlimit, setrlimit = limits
    getrlimit.return_value = (1024, INF)

    assert increase_memory_limit_to("1M") is True
    setrlimit.assert_called_once_with(resource.RLIMIT_AS, (1024 ** 2, INF))


def test_never_lowers(limits):
    getrlimit, setrlimit = limits
    getrlimit.return_value = (1024 ** 3, INF)

    assert increase_memory_limit_to("1M") is False
    setrlimit.assert_not_called()


def test_already_unlimited(limits):
    getrlimit, setrlimit = limits
    getrlimit.return_value = (INF, INF)

    assert increase_memory_limit_to("unlimited") is False
    setrlimit.assert_not_called()


def test_capped_at_hard_limit(limits):
    getrlimit, setrlimit = limits
    getrlimit.return_value = (1024, 4096)

    assert increase_memory_limit_to(None) is True
    setrlimit.assert_called_once_with(resource.RLIMIT_AS, (4096, 4096))


def test_not_adjustable_on_windows(limits):
    getrlimit, setrlimit = limits
    with patch("elastisync.memory.sys.platform", "win32"):
        assert increase_memory_limit_to("1G") is False
    getrlimit.assert_not_called()
