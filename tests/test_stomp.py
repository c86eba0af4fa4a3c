import naive
import numpy as np
import numpy.testing as npt
import pytest

from mpsearch import Context, config, core, stomp, stomp_self_join

test_data = [
    (
        np.array([9, 8100, -60, 7], dtype=np.float64),
        np.array([584, -11, 23, 79, 1001, 0, -19], dtype=np.float64),
    ),
    (
        np.random.uniform(-1000, 1000, [8]).astype(np.float64),
        np.random.uniform(-1000, 1000, [64]).astype(np.float64),
    ),
]

batch_data = [
    (
        np.random.uniform(-1000, 1000, [32, 2]).astype(np.float64),
        np.random.uniform(-1000, 1000, [64, 3]).astype(np.float64),
    ),
]

backends = ["cpu", "numba"]
window_size = [3, 8, 16]
substitution_locations = [0, -1, slice(1, 3), [0, 3]]
substitution_values = [np.nan, np.inf]


def test_stomp_int_input():
    with pytest.raises(TypeError):
        stomp_self_join(np.arange(10), 5)


@pytest.mark.parametrize("T_A, T_B", test_data)
@pytest.mark.parametrize("backend", backends)
def test_stomp_self_join(T_A, T_B, backend):
    m = 3
    ref_P, ref_I = naive.stomp_batch(T_B, m)
    comp_P, comp_I = stomp_self_join(T_B, m, context=Context(backend))

    assert comp_P.shape == (T_B.shape[0] - m + 1, 1, 1)
    npt.assert_almost_equal(ref_P, comp_P, decimal=config.MPSEARCH_TEST_PRECISION)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("T_A, T_B", test_data)
@pytest.mark.parametrize("m", window_size)
@pytest.mark.parametrize("backend", backends)
def test_stomp_self_join_larger_window(T_A, T_B, m, backend):
    if len(T_B) > 2 * m:
        ref_P, ref_I = naive.stomp_batch(T_B, m)
        comp_P, comp_I = stomp_self_join(T_B, m, context=Context(backend))

        npt.assert_almost_equal(ref_P, comp_P, decimal=config.MPSEARCH_TEST_PRECISION)
        npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("T_A, T_B", test_data)
def test_stomp_self_join_dispatch(T_A, T_B):
    m = 3
    ref_P, ref_I = stomp_self_join(T_B, m)
    comp_P, comp_I = stomp(T_B, m)

    npt.assert_almost_equal(ref_P, comp_P)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("T_A, T_B", test_data)
@pytest.mark.parametrize("backend", backends)
def test_stomp_A_B_join(T_A, T_B, backend):
    m = 3
    ref_P, ref_I = naive.stomp_batch(T_A, m, T_B)
    comp_P, comp_I = stomp(T_A, T_B, m, context=Context(backend))

    assert comp_P.shape == (T_B.shape[0] - m + 1, 1, 1)
    npt.assert_almost_equal(ref_P, comp_P, decimal=config.MPSEARCH_TEST_PRECISION)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("T_A, T_B", test_data)
@pytest.mark.parametrize("backend", backends)
def test_stomp_B_A_join(T_A, T_B, backend):
    m = 3
    ref_P, ref_I = naive.stomp_batch(T_B, m, T_A)
    comp_P, comp_I = stomp(T_B, T_A, m, context=Context(backend))

    assert comp_P.shape == (T_A.shape[0] - m + 1, 1, 1)
    npt.assert_almost_equal(ref_P, comp_P, decimal=config.MPSEARCH_TEST_PRECISION)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("T_A, T_B", batch_data)
@pytest.mark.parametrize("backend", backends)
def test_stomp_A_B_join_batch(T_A, T_B, backend):
    m = 8
    ref_P, ref_I = naive.stomp_batch(T_A, m, T_B)
    comp_P, comp_I = stomp(T_A, T_B, m, context=Context(backend))

    assert comp_P.shape == (T_B.shape[0] - m + 1, T_A.shape[1], T_B.shape[1])
    npt.assert_almost_equal(ref_P, comp_P, decimal=config.MPSEARCH_TEST_PRECISION)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("T_A, T_B", batch_data)
@pytest.mark.parametrize("backend", backends)
def test_stomp_self_join_batch(T_A, T_B, backend):
    m = 8
    ref_P, ref_I = naive.stomp_batch(T_B, m)
    comp_P, comp_I = stomp_self_join(T_B, m, context=Context(backend))

    assert comp_P.shape == (T_B.shape[0] - m + 1, 1, T_B.shape[1])
    npt.assert_almost_equal(ref_P, comp_P, decimal=config.MPSEARCH_TEST_PRECISION)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("T_A, T_B", batch_data)
def test_stomp_chunked(T_A, T_B):
    m = 8
    ref_P, ref_I = stomp(T_A, T_B, m)
    # Only a single pair fits into the budget at once
    comp_P, comp_I = stomp(T_A, T_B, m, context=Context(memory_gb=10000 / 1024**3))

    npt.assert_almost_equal(ref_P, comp_P)
    npt.assert_array_equal(ref_I, comp_I)


def test_stomp_memory_too_small():
    T = np.random.uniform(-1000, 1000, [64])
    with pytest.raises(MemoryError):
        stomp_self_join(T, 8, context=Context(memory_gb=1e-9))


@pytest.mark.parametrize("T_A, T_B", test_data)
@pytest.mark.parametrize("substitute", substitution_values)
@pytest.mark.parametrize("substitution_location", substitution_locations)
@pytest.mark.parametrize("backend", backends)
def test_stomp_nan_inf_self_join(T_A, T_B, substitute, substitution_location, backend):
    m = 3

    T_B_sub = T_B.copy()
    T_B_sub[substitution_location] = substitute

    ref_P, ref_I = naive.stomp_batch(T_B_sub, m)
    comp_P, comp_I = stomp_self_join(T_B_sub, m, context=Context(backend))

    npt.assert_almost_equal(ref_P, comp_P, decimal=config.MPSEARCH_TEST_PRECISION)
    npt.assert_array_equal(ref_I, comp_I)
    assert not np.any(np.isnan(comp_P))
    # Subsequences with a non-finite value have no nearest neighbor
    T_subseq_isfinite = core.rolling_isfinite(T_B_sub, m)
    assert np.all(np.isinf(comp_P[~T_subseq_isfinite, 0, 0]))
    assert np.all(comp_I[~T_subseq_isfinite, 0, 0] == -1)


@pytest.mark.parametrize("T_A, T_B", test_data)
@pytest.mark.parametrize("substitute", substitution_values)
@pytest.mark.parametrize("substitution_location", substitution_locations)
@pytest.mark.parametrize("backend", backends)
def test_stomp_nan_inf_A_B_join(
    T_A, T_B, substitute, substitution_location, backend
):
    m = 3

    T_A_sub = T_A.copy()
    T_A_sub[substitution_location] = substitute

    ref_P, ref_I = naive.stomp_batch(T_A_sub, m, T_B)
    comp_P, comp_I = stomp(T_A_sub, T_B, m, context=Context(backend))

    npt.assert_almost_equal(ref_P, comp_P, decimal=config.MPSEARCH_TEST_PRECISION)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("T_A, T_B", batch_data)
@pytest.mark.parametrize("backend", backends)
def test_stomp_self_join_no_trivial_match(T_A, T_B, backend):
    m = 8
    excl_zone = core.get_excl_zone(m)
    comp_P, comp_I = stomp_self_join(T_B, m, context=Context(backend))

    l = T_B.shape[0] - m + 1
    positions = np.arange(l)[:, np.newaxis, np.newaxis]
    assert np.all(comp_I >= 0)
    assert np.all(comp_I < l)
    assert np.all(np.abs(comp_I - positions) > excl_zone)


@pytest.mark.parametrize("T_A, T_B", batch_data)
@pytest.mark.parametrize("backend", backends)
def test_stomp_index_range(T_A, T_B, backend):
    m = 8
    comp_P, comp_I = stomp(T_A, T_B, m, context=Context(backend))

    assert np.all(comp_I >= 0)
    assert np.all(comp_I <= T_A.shape[0] - m)


@pytest.mark.parametrize("T_A, T_B", batch_data)
@pytest.mark.parametrize("backend", backends)
def test_stomp_deterministic(T_A, T_B, backend):
    m = 8
    ref_P, ref_I = stomp(T_A, T_B, m, context=Context(backend))
    comp_P, comp_I = stomp(T_A, T_B, m, context=Context(backend))

    npt.assert_array_equal(ref_P, comp_P)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("backend", backends)
def test_stomp_backends_agree(backend):
    T = np.random.uniform(-1000, 1000, [64, 2])
    m = 8

    ref_P, ref_I = stomp_self_join(T, m, context=Context("cpu"))
    comp_P, comp_I = stomp_self_join(T, m, context=Context(backend))

    npt.assert_almost_equal(ref_P, comp_P)
    npt.assert_array_equal(ref_I, comp_I)


@pytest.mark.parametrize("backend", backends)
def test_stomp_constant_subsequences(backend):
    T = np.array([0, 0, 0, 5, 5, 5, 0, 0, 0, 5, 5, 5], dtype=np.float64)
    m = 3

    comp_P, comp_I = stomp_self_join(T, m, context=Context(backend))

    npt.assert_almost_equal(comp_P[[0, 3, 6, 9], 0, 0], 0.0)
    # Constant subsequences only match constant subsequences at the same level
    npt.assert_array_equal(comp_I[[0, 3, 6, 9], 0, 0], [6, 9, 0, 3])


@pytest.mark.parametrize("backend", backends)
def test_stomp_repeated_pattern(backend):
    T = np.array([0, 1, 2, 9, 4, 7, 0, 1, 2, 9, 4, 7], dtype=np.float64)
    m = 3

    comp_P, comp_I = stomp_self_join(T, m, context=Context(backend))

    assert np.all(comp_P[[0, 3, 6, 9], 0, 0] < 1e-4)
    npt.assert_array_equal(comp_I[[0, 3, 6, 9], 0, 0], [6, 9, 0, 3])


def test_stomp_float32():
    T = np.random.uniform(-1000, 1000, [64])
    m = 8

    ref_P, ref_I = naive.stomp_batch(T, m)
    comp_P, comp_I = stomp_self_join(T, m, context=Context(dtype=np.float32))

    assert comp_P.dtype == np.float32
    npt.assert_allclose(ref_P, comp_P, atol=1e-2)


def test_stomp_bad_window_size():
    T = np.random.uniform(-1000, 1000, [16])
    for m in [-1, 0, 1, 17]:
        with pytest.raises(ValueError):
            stomp_self_join(T, m)
        with pytest.raises(ValueError):
            stomp(T, T, m)


def test_stomp_A_B_join_window_too_large():
    T_A = np.random.uniform(-1000, 1000, [8])
    T_B = np.random.uniform(-1000, 1000, [64])
    with pytest.raises(ValueError):
        stomp(T_A, T_B, 9)


def test_stomp_missing_window_size():
    T = np.random.uniform(-1000, 1000, [16])
    with pytest.raises(ValueError):
        stomp(T, T)


def test_stomp_self_join_window_too_large_warning():
    T = np.random.uniform(-1000, 1000, [10])
    with pytest.warns(UserWarning):
        stomp_self_join(T, 7)
