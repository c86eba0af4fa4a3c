import naive
import numpy as np
import numpy.testing as npt
import pytest

from mpsearch import Context, config, find_best_n_occurrences

test_data = [
    (np.random.uniform(-1000, 1000, [8]), np.random.uniform(-1000, 1000, [64])),
    (
        np.random.uniform(-1000, 1000, [8, 2]),
        np.random.uniform(-1000, 1000, [64, 3]),
    ),
]

backends = ["cpu", "numba"]


@pytest.mark.parametrize("Q, T", test_data)
@pytest.mark.parametrize("backend", backends)
def test_find_best_n_occurrences(Q, T, backend):
    n = 5
    ref_distances, ref_indexes = naive.best_n_occurrences(Q, T, n)
    comp_distances, comp_indexes = find_best_n_occurrences(
        Q, T, n, context=Context(backend)
    )

    assert comp_distances.shape == ref_distances.shape
    npt.assert_almost_equal(
        ref_distances, comp_distances, decimal=config.MPSEARCH_TEST_PRECISION
    )
    npt.assert_array_equal(ref_indexes, comp_indexes)


@pytest.mark.parametrize("Q, T", test_data)
def test_find_best_n_occurrences_sorted(Q, T):
    comp_distances, _ = find_best_n_occurrences(Q, T, 10)
    assert np.all(np.diff(comp_distances, axis=0) >= 0)


def test_find_best_n_occurrences_repeated_query():
    Q = np.array([1.0, 2.0, 3.0])
    T = np.array([9.0, 9.0, 1.0, 2.0, 3.0, 9.0, 9.0, 1.0, 2.0, 3.0, 9.0])

    comp_distances, comp_indexes = find_best_n_occurrences(Q, T, 2)

    assert comp_indexes[:, 0, 0].tolist() == [2, 7]
    npt.assert_allclose(comp_distances[:, 0, 0], 0.0, atol=1e-5)


def test_find_best_n_occurrences_ranked_by_distance():
    Q = np.array([1.0, 2.0, 3.0])
    T = np.array([9.0, 9.0, 1.0, 2.0, 3.5, 9.0, 9.0, 1.0, 2.0, 3.0, 9.0])

    comp_distances, comp_indexes = find_best_n_occurrences(Q, T, 2)

    assert comp_indexes[:, 0, 0].tolist() == [7, 2]
    assert comp_distances[0, 0, 0] < comp_distances[1, 0, 0]


def test_find_best_n_occurrences_skip_non_finite():
    Q = np.array([1.0, 2.0, 3.0])
    T = np.array([1.0, 2.0, 3.0, np.nan, 1.0, 2.0, 3.0])

    comp_distances, comp_indexes = find_best_n_occurrences(Q, T, 2)

    assert comp_indexes[:, 0, 0].tolist() == [0, 4]
    assert np.all(np.isfinite(comp_distances))


def test_find_best_n_occurrences_too_few_finite():
    Q = np.array([1.0, 2.0, 3.0])
    T = np.array([1.0, 2.0, 3.0, np.nan, 1.0, 2.0, 3.0])

    with pytest.raises(ValueError):
        find_best_n_occurrences(Q, T, 5)


def test_find_best_n_occurrences_ties():
    Q = np.array([1.0, 1.0, 1.0])
    T = np.array([1.0, 1.0, 1.0, 0.0, 1.0, 2.0, 1.0, 1.0, 1.0, 5.0, 5.0, 5.0])

    # Constant subsequences at 0 and 6 are tied, the rest are tied at sqrt(m)
    comp_distances, comp_indexes = find_best_n_occurrences(Q, T, 4)

    npt.assert_array_equal([0, 6, 1, 2], comp_indexes[:, 0, 0])
    npt.assert_almost_equal([0.0, 0.0, np.sqrt(3), np.sqrt(3)], comp_distances[:, 0, 0])


def test_find_best_n_occurrences_all():
    Q = np.random.uniform(-1000, 1000, [8])
    T = np.random.uniform(-1000, 1000, [64])

    comp_distances, comp_indexes = find_best_n_occurrences(Q, T, 64 - 8 + 1)
    npt.assert_array_equal(np.arange(64 - 8 + 1), np.sort(comp_indexes[:, 0, 0]))


@pytest.mark.parametrize("n", [0, -1, 64 - 8 + 2])
def test_find_best_n_occurrences_bad_n(n):
    Q = np.random.uniform(-1000, 1000, [8])
    T = np.random.uniform(-1000, 1000, [64])

    with pytest.raises(ValueError):
        find_best_n_occurrences(Q, T, n)
