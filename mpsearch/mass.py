# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging

import numpy as np

from . import core
from .library import resolve_context

logger = logging.getLogger(__name__)


def _mass(
    Q, T, m, μ_Q, σ_Q, Q_subseq_isconstant, M_T, Σ_T, T_subseq_isconstant, backend
):
    """
    Compute the distance profiles of every query against every time series with the
    MASS algorithm

    Parameters
    ----------
    Q : numpy.ndarray
        Preprocessed queries with shape `(n_Q, m)`

    T : numpy.ndarray
        Preprocessed time series with shape `(n_T, n)`

    m : int
        Window size

    μ_Q : numpy.ndarray
        Mean of every query

    σ_Q : numpy.ndarray
        Standard deviation of every query

    Q_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a query is constant (True)

    M_T : numpy.ndarray
        Sliding mean of every time series

    Σ_T : numpy.ndarray
        Sliding standard deviation of every time series

    T_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a subsequence in `T` is constant (True)

    backend : _Backend
        The compute backend

    Returns
    -------
    D : numpy.ndarray
        Distance profiles with shape `(n_Q, n_T, n - m + 1)`

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0179 \
    <https://www.cs.ucr.edu/~eamonn/PID4481997_extend_Matrix%20Profile_I.pdf>`__

    See Table II
    """
    QT = backend.sliding_dot_product(Q[:, np.newaxis, :], T[np.newaxis, :, :])

    return backend.distance_profile(
        m, QT, μ_Q, σ_Q, Q_subseq_isconstant, M_T, Σ_T, T_subseq_isconstant
    )


def mass(Q, T, context=None):
    """
    Compute the z-normalized Euclidean distance profiles of a batch of queries
    against a batch of time series using the MASS algorithm

    Parameters
    ----------
    Q : numpy.ndarray
        Query batch with shape `(m, n_queries)` or a single query with shape `(m,)`.
        The length of the queries is the window size.

    T : numpy.ndarray
        Time series batch with shape `(n, n_series)` or a single time series with
        shape `(n,)`

    context : Context, default None
        The execution context. When `None`, the default context is used.

    Returns
    -------
    distance_profile : numpy.ndarray
        Distance profiles with shape `(n - m + 1, n_queries, n_series)`, where
        `distance_profile[j, q, t]` is the distance between query `q` and the
        subsequence of time series `t` that starts at `j`. Every subsequence that
        contains a `np.nan`/`np.inf` value has a distance of `np.inf`.

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0179 \
    <https://www.cs.ucr.edu/~eamonn/PID4481997_extend_Matrix%20Profile_I.pdf>`__

    See Table II

    Examples
    --------
    >>> import mpsearch
    >>> import numpy as np
    >>> mpsearch.mass(
    ...     np.array([-11.1, 23.4, 79.5, 1001.0]),
    ...     np.array([584., -11., 23., 79., 1001., 0., -19.]))[:, 0, 0]
    array([3.18792463e+00, 1.11297393e-03, 3.23874018e+00, 3.34470195e+00])
    """
    context = resolve_context(context)

    m = np.asarray(Q).shape[0]
    core.check_window_size(m)
    Q, μ_Q, σ_Q, Q_subseq_isconstant = core.preprocess(Q, m, dtype=context.dtype)
    T, M_T, Σ_T, T_subseq_isconstant = core.preprocess(T, m, dtype=context.dtype)

    n_Q = Q.shape[0]
    n_T, n = T.shape
    l = n - m + 1

    D = np.empty((l, n_Q, n_T), dtype=context.dtype)

    # FFT buffers are complex and padded to `n + m`
    item_nbytes = n_Q * (3 * 16 * (n + m) + 2 * context.dtype.itemsize * l)
    chunk_size = context.get_chunk_size(n_T, item_nbytes)
    logger.debug(
        "MASS of %d queries against %d time series on the '%s' backend",
        n_Q,
        n_T,
        context.backend.name,
    )

    for start, stop in core._get_chunk_ranges(n_T, chunk_size):
        D[:, :, start:stop] = np.moveaxis(
            _mass(
                Q,
                T[start:stop],
                m,
                μ_Q[:, 0],
                σ_Q[:, 0],
                Q_subseq_isconstant[:, 0],
                M_T[start:stop],
                Σ_T[start:stop],
                T_subseq_isconstant[start:stop],
                context.backend,
            ),
            -1,
            0,
        )

    return D
