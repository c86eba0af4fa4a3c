# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging
import numbers

import numpy as np

from . import core
from .library import resolve_context

logger = logging.getLogger(__name__)


class _STOMPAccumulator:
    """
    The running state of a single STOMP call over a batch of time series pairs

    Row `p` of every array belongs to the `p`th pair. The query side of a pair is
    `T_A`, which is walked one subsequence at a time, and the reference side is
    `T_B`, whose subsequences are annotated with their nearest neighbor in `T_A`.

    Parameters
    ----------
    T_A : numpy.ndarray
        The preprocessed query side time series, one row per pair

    T_B : numpy.ndarray
        The preprocessed reference side time series, one row per pair

    m : int
        Window size

    μ_Q : numpy.ndarray
        Sliding mean of `T_A`

    σ_Q : numpy.ndarray
        Sliding standard deviation of `T_A`

    Q_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a subsequence in `T_A` is constant

    M_T : numpy.ndarray
        Sliding mean of `T_B`

    Σ_T : numpy.ndarray
        Sliding standard deviation of `T_B`

    T_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a subsequence in `T_B` is constant

    QT : numpy.ndarray
        Dot product between the first subsequence of `T_A` and `T_B`

    QT_first : numpy.ndarray
        Dot product between the first subsequence of `T_B` and `T_A`

    excl_zone : int, default None
        The half width of the exclusion zone for a self-join. `None` for an AB-join.

    Attributes
    ----------
    P : numpy.ndarray
        The matrix profile of every pair, initialized to `np.inf`

    I : numpy.ndarray
        The matrix profile indices of every pair, initialized to `-1`

    l : int
        The number of subsequences in `T_A`
    """

    def __init__(
        self,
        T_A,
        T_B,
        m,
        μ_Q,
        σ_Q,
        Q_subseq_isconstant,
        M_T,
        Σ_T,
        T_subseq_isconstant,
        QT,
        QT_first,
        excl_zone=None,
    ):
        self.T_A = T_A
        self.T_B = T_B
        self.m = m
        self.μ_Q = μ_Q
        self.σ_Q = σ_Q
        self.Q_subseq_isconstant = Q_subseq_isconstant
        self.M_T = M_T
        self.Σ_T = Σ_T
        self.T_subseq_isconstant = T_subseq_isconstant
        self.QT = QT
        self.QT_first = QT_first
        self.ignore_trivial = excl_zone is not None
        self.excl_zone = 0 if excl_zone is None else excl_zone

        self.l = μ_Q.shape[1]
        self.P = np.full(M_T.shape, np.inf, dtype=QT.dtype)
        self.I = np.full(M_T.shape, -1, dtype=np.int64)

    def advance(self, i):
        """
        Update `QT` in place from the `i - 1`th to the `i`th subsequence of `T_A`

        Parameters
        ----------
        i : int
            The index of the new subsequence in `T_A`

        Returns
        -------
        None
        """
        m = self.m
        self.QT[:, 1:] = (
            self.QT[:, :-1]
            - self.T_A[:, i - 1, np.newaxis] * self.T_B[:, : self.QT.shape[1] - 1]
            + self.T_A[:, i + m - 1, np.newaxis] * self.T_B[:, m:]
        )
        self.QT[:, 0] = self.QT_first[:, i]

    def update(self, i, D):
        """
        Fold the distance profiles of the `i`th subsequence of `T_A` into the matrix
        profile

        Parameters
        ----------
        i : int
            The index of the subsequence in `T_A`

        D : numpy.ndarray
            The distance profile of every pair. Entries inside of the exclusion zone
            are overwritten for a self-join.

        Returns
        -------
        None
        """
        if self.ignore_trivial:
            core._apply_exclusion_zone(D, i, self.excl_zone, np.inf)

        cond = D < self.P
        self.P[cond] = D[cond]
        self.I[cond] = i


def _stomp(T_A, T_B, m, pairs_A, pairs_B, context, excl_zone=None):
    """
    Compute the matrix profile of every requested time series pair

    The pairs are processed in chunks that fit into the memory budget of `context`.

    Parameters
    ----------
    T_A : tuple
        The preprocessed query side time series and its sliding statistics

    T_B : tuple
        The preprocessed reference side time series and its sliding statistics

    m : int
        Window size

    pairs_A : numpy.ndarray
        The row in `T_A` of every pair

    pairs_B : numpy.ndarray
        The row in `T_B` of every pair

    context : Context
        The execution context

    excl_zone : int, default None
        The half width of the exclusion zone for a self-join. `None` for an AB-join.

    Returns
    -------
    P : numpy.ndarray
        The matrix profile with shape `(n_pairs, n_B - m + 1)`

    I : numpy.ndarray
        The matrix profile indices with shape `(n_pairs, n_B - m + 1)`
    """
    T_A, μ_Q, σ_Q, Q_subseq_isconstant = T_A
    T_B, M_T, Σ_T, T_subseq_isconstant = T_B
    backend = context.backend

    n_pairs = pairs_A.shape[0]
    l = μ_Q.shape[1]
    w = M_T.shape[1]

    P = np.empty((n_pairs, w), dtype=context.dtype)
    I = np.empty((n_pairs, w), dtype=np.int64)

    itemsize = context.dtype.itemsize
    item_nbytes = itemsize * (2 * T_A.shape[1] + 2 * T_B.shape[1] + 5 * l + 7 * w)
    item_nbytes += np.dtype(np.int64).itemsize * w
    chunk_size = context.get_chunk_size(n_pairs, item_nbytes)
    logger.debug(
        "STOMP over %d time series pairs on the '%s' backend (device %d)",
        n_pairs,
        backend.name,
        context.device_id,
    )

    for start, stop in core._get_chunk_ranges(n_pairs, chunk_size):
        a = pairs_A[start:stop]
        b = pairs_B[start:stop]

        QT = backend.sliding_dot_product(T_A[a, :m], T_B[b])
        QT = np.array(QT, dtype=context.dtype)
        if excl_zone is None:
            QT_first = backend.sliding_dot_product(T_B[b, :m], T_A[a])
            QT_first = np.array(QT_first, dtype=context.dtype)
        else:
            QT_first = QT.copy()

        acc = _STOMPAccumulator(
            T_A[a],
            T_B[b],
            m,
            μ_Q[a],
            σ_Q[a],
            Q_subseq_isconstant[a],
            M_T[b],
            Σ_T[b],
            T_subseq_isconstant[b],
            QT,
            QT_first,
            excl_zone=excl_zone,
        )
        backend.stomp(acc, device_id=context.device_id)

        P[start:stop] = acc.P
        I[start:stop] = acc.I

    return P, I


def stomp(T_A, T_B, m=None, context=None):
    """
    Compute the z-normalized matrix profile between every time series in `T_A` and
    every time series in `T_B` with the "Scalable Time series Ordered-search Matrix
    Profile" (STOMP) algorithm

    When called as `stomp(T, m)`, with an integer window size as the second argument,
    this computes the self-join of every time series in `T` (see `stomp_self_join`).

    Parameters
    ----------
    T_A : numpy.ndarray
        The query batch with shape `(n_A, n_series_A)` or a single time series with
        shape `(n_A,)`

    T_B : numpy.ndarray
        The reference batch with shape `(n_B, n_series_B)` or a single time series
        with shape `(n_B,)`. For every subsequence in `T_B`, its nearest neighbor in
        `T_A` will be recorded.

    m : int
        Window size

    context : Context, default None
        The execution context. When `None`, the default context is used.

    Returns
    -------
    P : numpy.ndarray
        The matrix profile with shape `(n_B - m + 1, n_series_A, n_series_B)`, where
        `P[j, a, b]` is the distance between the subsequence of `T_B[:, b]` that
        starts at `j` and its nearest neighbor in `T_A[:, a]`

    I : numpy.ndarray
        The matrix profile indices with the same shape as `P`. `I[j, a, b]` is the
        start of the nearest neighbor in `T_A[:, a]` or `-1` when there is none.

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0085 \
    <https://www.cs.ucr.edu/~eamonn/STOMP_GPU_final_submission_camera_ready.pdf>`__

    See Table II

    Unlike in the Table II where T_A.shape is expected to be equal to T_B.shape,
    this implementation is generalized so that the shapes of T_A and T_B can be
    different.

    Ties are broken in favor of the earliest subsequence in `T_A`.
    """
    if m is None:
        if isinstance(T_B, numbers.Integral):
            return stomp_self_join(T_A, T_B, context=context)
        raise ValueError("The window size, `m`, is missing")

    context = resolve_context(context)

    core.check_window_size(m)
    T_A = core.preprocess(T_A, m, dtype=context.dtype)
    T_B = core.preprocess(T_B, m, dtype=context.dtype)

    n_A = T_A[0].shape[0]
    n_B = T_B[0].shape[0]
    w = T_B[1].shape[1]

    pairs = np.arange(n_A * n_B)
    P, I = _stomp(T_A, T_B, m, pairs // n_B, pairs % n_B, context)

    P = np.moveaxis(P.reshape(n_A, n_B, w), -1, 0)
    I = np.moveaxis(I.reshape(n_A, n_B, w), -1, 0)

    return np.ascontiguousarray(P), np.ascontiguousarray(I)


def stomp_self_join(T, m, context=None):
    """
    Compute the z-normalized matrix profile of every time series in `T` joined with
    itself with the "Scalable Time series Ordered-search Matrix Profile" (STOMP)
    algorithm

    Trivial matches, which are subsequences within the exclusion zone of each other,
    are ignored.

    Parameters
    ----------
    T : numpy.ndarray
        The time series batch with shape `(n, n_series)` or a single time series with
        shape `(n,)`

    m : int
        Window size

    context : Context, default None
        The execution context. When `None`, the default context is used.

    Returns
    -------
    P : numpy.ndarray
        The matrix profile with shape `(n - m + 1, 1, n_series)`

    I : numpy.ndarray
        The matrix profile indices with the same shape as `P`

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0085 \
    <https://www.cs.ucr.edu/~eamonn/STOMP_GPU_final_submission_camera_ready.pdf>`__

    See Table II

    The exclusion zone is `ceil(m / config.MPSEARCH_EXCL_ZONE_DENOM)` on either side
    of every subsequence.
    """
    context = resolve_context(context)

    core.check_window_size(m)
    T = core.preprocess(T, m, dtype=context.dtype)
    n_series, n = T[0].shape
    core.check_window_size(m, max_size=n, n=n)

    excl_zone = core.get_excl_zone(m)
    pairs = np.arange(n_series)
    P, I = _stomp(T, T, m, pairs, pairs, context, excl_zone=excl_zone)

    return np.ascontiguousarray(P.T[:, np.newaxis, :]), np.ascontiguousarray(
        I.T[:, np.newaxis, :]
    )
