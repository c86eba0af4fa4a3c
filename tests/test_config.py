import pytest

from mpsearch import config, core


def test_change_excl_zone_denom():
    assert core.get_excl_zone(8) == 4

    config.MPSEARCH_EXCL_ZONE_DENOM = 4
    assert core.get_excl_zone(8) == 2

    config._reset("MPSEARCH_EXCL_ZONE_DENOM")
    assert core.get_excl_zone(8) == 4


def test_reset_one_var():
    ref = config.MPSEARCH_EXCL_ZONE_DENOM

    config.MPSEARCH_EXCL_ZONE_DENOM += 1
    config._reset("MPSEARCH_EXCL_ZONE_DENOM")

    assert config.MPSEARCH_EXCL_ZONE_DENOM == ref


def test_reset_all_vars():
    ref_threads_per_block = config.MPSEARCH_THREADS_PER_BLOCK
    ref_excl_zone_denom = config.MPSEARCH_EXCL_ZONE_DENOM
    ref_backend = config.MPSEARCH_DEFAULT_BACKEND

    config.MPSEARCH_THREADS_PER_BLOCK = 10
    config.MPSEARCH_EXCL_ZONE_DENOM += 1
    config.MPSEARCH_DEFAULT_BACKEND = "numba"

    config._reset()
    assert config.MPSEARCH_THREADS_PER_BLOCK == ref_threads_per_block
    assert config.MPSEARCH_EXCL_ZONE_DENOM == ref_excl_zone_denom
    assert config.MPSEARCH_DEFAULT_BACKEND == ref_backend


def test_reset_unrecognized_var():
    with pytest.warns(UserWarning):
        config._reset("MPSEARCH_UNRECOGNIZED")
