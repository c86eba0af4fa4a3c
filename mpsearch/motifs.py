# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging

import numpy as np
from numba import njit, prange

from . import config, core

logger = logging.getLogger(__name__)


@njit(parallel=True, fastmath=config.MPSEARCH_FASTMATH_FLAGS)
def _select_best_n(P, I, n, excl_zone, self_join, discords):
    """
    A Numba JIT-compiled and parallelized function for greedily selecting the `n`
    best, mutually non-overlapping, positions of every matrix profile column

    Parameters
    ----------
    P : numpy.ndarray
        Matrix profile with one column per query/time series pair

    I : numpy.ndarray
        Matrix profile indices with the same shape as `P`

    n : int
        The number of positions to select per column

    excl_zone : int
        The half width of the exclusion zone around every selected position

    self_join : bool
        When `True`, the exclusion zone is also applied around the nearest neighbor
        of every selected position

    discords : bool
        When `True`, the largest distances are selected. Otherwise, the smallest
        distances are selected.

    Returns
    -------
    distances : numpy.ndarray
        The selected distances with shape `(n, n_columns)`

    indexes : numpy.ndarray
        The selected positions with shape `(n, n_columns)`

    subsequence_indexes : numpy.ndarray
        The nearest neighbors of the selected positions with shape `(n, n_columns)`

    counts : numpy.ndarray
        The number of positions that could be selected for every column
    """
    l, n_columns = P.shape
    distances = np.full((n, n_columns), np.nan)
    indexes = np.full((n, n_columns), -1, dtype=np.int64)
    subsequence_indexes = np.full((n, n_columns), -1, dtype=np.int64)
    counts = np.zeros(n_columns, dtype=np.int64)

    for c in prange(n_columns):
        if discords:
            order = np.argsort(-P[:, c], kind="mergesort")
        else:
            order = np.argsort(P[:, c], kind="mergesort")

        excluded = np.zeros(l, dtype=np.bool_)
        count = 0
        for idx in order:
            if count == n:
                break
            if excluded[idx] or not np.isfinite(P[idx, c]):
                continue

            distances[count, c] = P[idx, c]
            indexes[count, c] = idx
            subsequence_indexes[count, c] = I[idx, c]
            count += 1

            core._apply_exclusion_zone(excluded, idx, excl_zone, True)
            if self_join and I[idx, c] >= 0:
                core._apply_exclusion_zone(excluded, I[idx, c], excl_zone, True)

        counts[c] = count

    return distances, indexes, subsequence_indexes, counts


def _find_best_n(profile, index, m, n, self_join, discords):
    """
    Validate a matrix profile and select its `n` best, mutually non-overlapping,
    positions per query/time series pair

    Parameters
    ----------
    profile : numpy.ndarray
        Matrix profile with shape `(l, n_queries, n_series)` or `(l,)`

    index : numpy.ndarray
        Matrix profile indices with the same shape as `profile`

    m : int
        Window size

    n : int
        The number of positions to select

    self_join : bool
        Whether the matrix profile is the result of a self-join

    discords : bool
        When `True`, the largest distances are selected

    Returns
    -------
    distances : numpy.ndarray
        The selected distances

    indexes : numpy.ndarray
        The selected positions

    subsequence_indexes : numpy.ndarray
        The nearest neighbors of the selected positions
    """
    P = np.asarray(profile)
    I = np.asarray(index)
    core.check_dtype(P)
    core.check_dtype(I, dtype=np.integer)

    if P.shape != I.shape:
        raise ValueError(
            f"The matrix profile {P.shape} and its indices {I.shape} must have the "
            "same shape"
        )

    if P.ndim not in (1, 3):
        raise ValueError(
            f"profile is {P.ndim}-dimensional and must be 1 or 3-dimensional"
        )

    core.check_window_size(m)
    core.check_n(n, P.shape[0])
    n = int(n)

    out_shape = (n,) + P.shape[1:]
    l = P.shape[0]
    excl_zone = core.get_excl_zone(m)

    distances, indexes, subsequence_indexes, counts = _select_best_n(
        P.reshape(l, -1).astype(np.float64),
        I.reshape(l, -1).astype(np.int64),
        n,
        excl_zone,
        bool(self_join),
        discords,
    )

    if counts.size and counts.min() < n:
        kind = "discords" if discords else "motifs"
        raise ValueError(
            f"Only {counts.min()} non-overlapping {kind} with a finite distance were "
            f"found but `n = {n}` were requested"
        )

    logger.debug(
        "Selected the %d best %s per column", n, "discords" if discords else "motifs"
    )

    return (
        distances.astype(P.dtype).reshape(out_shape),
        indexes.reshape(out_shape),
        subsequence_indexes.reshape(out_shape),
    )


def find_best_n_motifs(profile, index, m, n, self_join=False):
    """
    Find the `n` best motifs, the subsequences with the smallest matrix profile
    values, of every query/time series pair

    Selected motifs never overlap each other. After a motif is selected, every
    position within its exclusion zone is ignored.

    Parameters
    ----------
    profile : numpy.ndarray
        Matrix profile with shape `(l, n_queries, n_series)` or `(l,)`

    index : numpy.ndarray
        Matrix profile indices with the same shape as `profile`

    m : int
        Window size

    n : int
        The number of motifs to find

    self_join : bool, default False
        Set to `True` when `profile` is the result of a self-join so that the
        exclusion zone is also applied around the nearest neighbor of every motif.
        This prevents a pair of motifs from being reported twice.

    Returns
    -------
    distances : numpy.ndarray
        The motif distances in non-decreasing order with shape
        `(n, n_queries, n_series)`

    indexes : numpy.ndarray
        The positions of the motifs in `profile`

    subsequence_indexes : numpy.ndarray
        The nearest neighbors of the motifs taken from `index`

    See Also
    --------
    mpsearch.stomp_self_join : Compute the matrix profile of a self-join
    mpsearch.find_best_n_discords : Find the best discords
    """
    return _find_best_n(profile, index, m, n, self_join, False)


def find_best_n_discords(profile, index, m, n, self_join=False):
    """
    Find the `n` best discords, the subsequences with the largest finite matrix
    profile values, of every query/time series pair

    Parameters
    ----------
    profile : numpy.ndarray
        Matrix profile with shape `(l, n_queries, n_series)` or `(l,)`

    index : numpy.ndarray
        Matrix profile indices with the same shape as `profile`

    m : int
        Window size

    n : int
        The number of discords to find

    self_join : bool, default False
        Set to `True` when `profile` is the result of a self-join

    Returns
    -------
    distances : numpy.ndarray
        The discord distances in non-increasing order with shape
        `(n, n_queries, n_series)`

    indexes : numpy.ndarray
        The positions of the discords in `profile`

    subsequence_indexes : numpy.ndarray
        The nearest neighbors of the discords taken from `index`
    """
    return _find_best_n(profile, index, m, n, self_join, True)
