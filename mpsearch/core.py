# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging
import math
import warnings

import numpy as np
from numba import njit, prange
from scipy.signal import fftconvolve

from . import config

logger = logging.getLogger(__name__)


def rolling_window(a, window):
    """
    Get a read-only strided view of every window of the last axis of `a`

    Parameters
    ----------
    a : numpy.ndarray
        The input array

    window : int
        Window size

    Returns
    -------
    output : numpy.ndarray
        A view with shape `a.shape[:-1] + (a.shape[-1] - window + 1, window)`
    """
    a = np.asarray(a)
    n_windows = a.shape[-1] - window + 1

    return np.lib.stride_tricks.as_strided(
        a,
        shape=a.shape[:-1] + (n_windows, window),
        strides=a.strides + a.strides[-1:],
        writeable=False,
    )


def check_dtype(a, dtype=np.floating):
    """
    Check that the elements of `a` are of the kind `dtype`

    Parameters
    ----------
    a : numpy.ndarray
        The input array

    dtype : dtype, default np.floating
        A numpy type

    Returns
    -------
    True

    Raises
    ------
    TypeError
        If `a` holds elements of another kind
    """
    if not np.issubdtype(a.dtype, dtype):
        raise TypeError(
            f"{getattr(dtype, '__name__', dtype)} elements were expected but found "
            f"{a.dtype}. Convert the input with `.astype()`"
        )

    return True


def get_excl_zone(m):
    """
    Get the half width of the exclusion zone for a window size `m`

    Parameters
    ----------
    m : int
        Window size

    Returns
    -------
    excl_zone : int
        Every position within `excl_zone` positions of an excluded position is
        excluded as well
    """
    return int(math.ceil(m / config.MPSEARCH_EXCL_ZONE_DENOM))


def check_window_size(m, max_size=None, n=None):
    """
    Check the window size and ensure that it is an integer greater than or equal to
    two and, if ``max_size`` is provided, ensure that the window size is less than or
    equal to the ``max_size``. Furthermore, if ``n`` is provided, then a self-join is
    assumed and it checks whether all subsequences have at least one non-trivial
    neighbor.

    Parameters
    ----------
    m : int
        Window size

    max_size : int, default None
        The maximum window size allowed

    n : int, default None
        The length of the time series in the case of a self-join.
        ``n`` should not be supplied (or set to ``None``) in the case of an AB-join.

    Returns
    -------
    None
    """
    if isinstance(m, (bool, np.bool_)) or not isinstance(m, (int, np.integer)):
        raise ValueError(f"The window size must be an integer but found {m!r}")

    if m < 2:
        raise ValueError(
            "All window sizes must be greater than or equal to two",
            """A window size of one produces a standard deviation of zero for every
            subsequence and so the z-normalized Euclidean distance is undefined.
            """,
        )

    if max_size is not None and m > max_size:
        raise ValueError(f"The window size must be less than or equal to {max_size}")

    if n is not None:
        # The central-most subsequence is the one with the closest farthest
        # neighbor, which is `l // 2` positions away. If the exclusion zone
        # swallows it, then at least one subsequence has no eligible neighbor.
        l = n - m + 1
        if l // 2 <= get_excl_zone(m):
            msg = (
                f"The window size, 'm = {m}', may be too large and could lead to "
                + "meaningless results. Consider reducing 'm' where necessary"
            )
            warnings.warn(msg)


def check_n(n, max_n):
    """
    Check the number of requested top-n results

    Parameters
    ----------
    n : int
        The number of results requested

    max_n : int
        The number of candidates available

    Returns
    -------
    None
    """
    if isinstance(n, (bool, np.bool_)) or not isinstance(n, (int, np.integer)):
        raise ValueError(f"`n` must be an integer but found {n!r}")

    if n < 1:
        raise ValueError(f"`n` must be greater than or equal to 1 but found {n}")

    if n > max_n:
        raise ValueError(
            f"`n` ({n}) must be less than or equal to the number of "
            f"available subsequences ({max_n})"
        )


def _preprocess(T, dtype=np.float64):
    """
    Convert a time series batch into a new 2-D array with one time series per row

    Time series batches are laid out with time along the first axis and one column
    per time series, so the returned array is the transpose of the input. A 1-D input
    is treated as a batch with a single time series.

    Parameters
    ----------
    T : numpy.ndarray
        Time series batch

    dtype : dtype, default np.float64
        The floating point type to compute with

    Returns
    -------
    T : numpy.ndarray
        A copy of the time series batch with shape `(n_series, n)`
    """
    T = np.asarray(T)
    check_dtype(T)

    if T.ndim == 1:
        T = T[:, np.newaxis]

    if T.ndim != 2:
        raise ValueError(f"T is {T.ndim}-dimensional and must be 1 or 2-dimensional")

    return np.array(T.T, dtype=dtype, order="C")


@njit(parallel=True, fastmath=config.MPSEARCH_FASTMATH_FLAGS)
def _rolling_isconstant(a, w):
    """
    Flag the windows of every row of `a` whose peak-to-peak is zero

    Parameters
    ----------
    a : numpy.ndarray
        A 2-D array with one time series per row

    w : int
        Window size

    Returns
    -------
    output : numpy.ndarray
        A boolean array with shape `(a.shape[0], a.shape[1] - w + 1)`
    """
    n_rows = a.shape[0]
    l = a.shape[1] - w + 1
    out = np.empty((n_rows, l), dtype=np.bool_)
    for k in prange(n_rows * l):
        r = k // l
        i = k % l
        out[r, i] = np.ptp(a[r, i : i + w]) == 0

    return out


def rolling_isconstant(a, w):
    """
    Flag the constant windows over the last axis of a 1-D or 2-D array

    A window is constant when all of its values are finite and identical.

    Parameters
    ----------
    a : numpy.ndarray
        The input array

    w : int
        Window size

    Returns
    -------
    output : numpy.ndarray
        A boolean array with `a.shape[-1] - w + 1` entries along the last axis
    """
    a = np.asarray(a)
    out_shape = a.shape[:-1] + (a.shape[-1] - w + 1,)
    isconstant = _rolling_isconstant(a.reshape(-1, a.shape[-1]), w)

    return np.logical_and(rolling_isfinite(a, w), isconstant.reshape(out_shape))


def rolling_isfinite(a, w):
    """
    Flag the windows over the last axis of `a` that only hold finite values

    Parameters
    ----------
    a : numpy.ndarray
        The input array

    w : int
        Window size

    Returns
    -------
    output : numpy.ndarray
        A boolean array with `a.shape[-1] - w + 1` entries along the last axis
    """
    return np.all(rolling_window(np.isfinite(a), w), axis=-1)


@njit(parallel=True, fastmath=config.MPSEARCH_FASTMATH_FLAGS)
def _rolling_nanstd(a, w):
    """
    Compute the standard deviation, ignoring NaN, of every window of every row of
    `a`

    Parameters
    ----------
    a : numpy.ndarray
        A 2-D array with one time series per row

    w : int
        Window size

    Returns
    -------
    out : numpy.ndarray
        An array with shape `(a.shape[0], a.shape[1] - w + 1)`
    """
    n_rows = a.shape[0]
    l = a.shape[1] - w + 1
    out = np.empty((n_rows, l), dtype=np.float64)
    for k in prange(n_rows * l):
        r = k // l
        i = k % l
        out[r, i] = np.nanstd(a[r, i : i + w])

    return out


def rolling_nanstd(a, w):
    """
    Compute the rolling standard deviation over the last axis of `a` while
    ignoring NaN

    Parameters
    ----------
    a : numpy.ndarray
        A 1-D or 2-D input array

    w : int
        Window size

    Returns
    -------
    out : numpy.ndarray
        The standard deviation of every window
    """
    a = np.asarray(a)
    out_shape = a.shape[:-1] + (a.shape[-1] - w + 1,)

    return _rolling_nanstd(a.reshape(-1, a.shape[-1]), w).reshape(out_shape)


def compute_mean_std(T, m):
    """
    Compute the sliding mean and standard deviation for the array `T` with
    a window size of `m`

    Parameters
    ----------
    T : numpy.ndarray
        Time series or a 2-D array with one time series per row

    m : int
        Window size

    Returns
    -------
    M_T : numpy.ndarray
        Sliding mean. All nan values are replaced with np.inf

    Σ_T : numpy.ndarray
        Sliding standard deviation

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0179 \
    <https://www.cs.ucr.edu/~eamonn/PID4481997_extend_Matrix%20Profile_I.pdf>`__

    See Table II

    Every window is reduced on its own rather than with a running sum so that
    long time series with a large offset do not lose precision.
    """
    if T.ndim > 2:
        raise ValueError("T has to be one or two dimensional!")

    M_T = np.mean(rolling_window(T, m), axis=T.ndim)
    Σ_T = rolling_nanstd(T, m)

    M_T[np.isnan(M_T)] = np.inf
    Σ_T[np.isnan(Σ_T)] = 0

    return M_T.astype(T.dtype), Σ_T.astype(T.dtype)


def preprocess(T, m, dtype=np.float64):
    """
    Creates a copy of the time series batch where all NaN and inf values
    are replaced with zero. Also computes mean and standard deviation
    for every subsequence. Every subsequence that contains at least
    one NaN or inf value, will have a mean of np.inf. For the standard
    deviation these values are ignored. Also, compute the rolling isconstant,
    a boolean array that indicates if a subsequence is constant (True) or not
    (False). A subsequence is constant if it contains finite values that are
    identical.

    Parameters
    ----------
    T : numpy.ndarray
        Time series batch with time along the first axis

    m : int
        Window size

    dtype : dtype, default np.float64
        The floating point type to compute with

    Returns
    -------
    T : numpy.ndarray
        Modified time series batch with shape `(n_series, n)`

    M_T : numpy.ndarray
        Rolling mean with shape `(n_series, n - m + 1)`. The mean of a constant
        subsequence is its exact value.

    Σ_T : numpy.ndarray
        Rolling standard deviation with shape `(n_series, n - m + 1)`

    T_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a subsequence in `T`
        is constant (True)
    """
    T = _preprocess(T, dtype)
    check_window_size(m, max_size=T.shape[-1])

    T[np.isinf(T)] = np.nan

    T_subseq_isconstant = rolling_isconstant(T, m)
    M_T, Σ_T = compute_mean_std(T, m)
    # Exact level of constant subsequences so that equal levels compare equal
    M_T = np.where(T_subseq_isconstant, T[..., : M_T.shape[-1]], M_T)
    T[np.isnan(T)] = 0

    return T, M_T, Σ_T, T_subseq_isconstant


def sliding_dot_product(Q, T):
    """
    Use FFT convolution to calculate the sliding window dot product.

    Every axis but the last one is a batch axis and these are broadcast against each
    other, so a `(n_Q, 1, m)` query batch and a `(1, n_T, n)` time series batch give
    the `(n_Q, n_T, n - m + 1)` sliding dot products of every query/time series pair.

    Parameters
    ----------
    Q : numpy.ndarray
        Query array or subsequence

    T : numpy.ndarray
        Time series or sequence

    Returns
    -------
    output : numpy.ndarray
        Sliding dot product between `Q` and `T`.

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0179 \
    <https://www.cs.ucr.edu/~eamonn/PID4481997_extend_Matrix%20Profile_I.pdf>`__

    See Table I, Figure 4

    Following the inverse FFT, Fig. 4 states that only cells [m-1:n]
    contain valid dot products

    Padding is done automatically in fftconvolve step
    """
    n = T.shape[-1]
    m = Q.shape[-1]
    Qr = np.flip(Q, axis=-1)  # Reverse/flip Q
    QT = fftconvolve(Qr, T, axes=-1)

    return QT.real[..., m - 1 : n]


@njit(fastmath=config.MPSEARCH_FASTMATH_FLAGS)
def _calculate_squared_distance(
    m, QT, μ_Q, σ_Q, M_T, Σ_T, Q_subseq_isconstant, T_subseq_isconstant
):
    """
    Compute a single squared distance given all scalar inputs.

    Parameters
    ----------
    m : int
        Window size

    QT : float
        Pre-computed dot product between `Q` and the ith subsequence in `T`, each with
        length `m`

    μ_Q : float
        Mean of `Q`

    σ_Q : float
        Standard deviation of `Q`

    M_T : float
        Mean of the ith subsequence in `T`

    Σ_T : float
        Standard deviation of the ith subsequence in `T`

    Q_subseq_isconstant : bool
        A boolean value that indicates whether the subsequence `Q` is constant (True)

    T_subseq_isconstant : bool
        A boolean value that indicates whether the ith subsequence in `T` is
        constant (True)

    Returns
    -------
    D_squared : float
        Squared distance

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0179 \
    <https://www.cs.ucr.edu/~eamonn/PID4481997_extend_Matrix%20Profile_I.pdf>`__

    See Equation on Page 4
    """
    if np.isinf(M_T) or np.isinf(μ_Q):
        D_squared = np.inf
    elif Q_subseq_isconstant and T_subseq_isconstant and μ_Q == M_T:
        D_squared = 0.0
    elif Q_subseq_isconstant or T_subseq_isconstant:
        D_squared = float(m)
    else:
        denom = (σ_Q * Σ_T) * m
        denom = max(denom, config.MPSEARCH_DENOM_THRESHOLD)

        ρ = (QT - (μ_Q * M_T) * m) / denom
        ρ = min(ρ, 1.0)

        D_squared = np.abs(2 * m * (1.0 - ρ))

    if np.isnan(D_squared):
        D_squared = np.inf

    return D_squared


@njit(parallel=True, fastmath=config.MPSEARCH_FASTMATH_FLAGS)
def _compute_distance_profile(
    m, QT, μ_Q, σ_Q, Q_subseq_isconstant, M_T, Σ_T, T_subseq_isconstant
):
    """
    A Numba JIT-compiled and parallelized function for computing the distance
    profiles of every query/time series pair

    Parameters
    ----------
    m : int
        Window size

    QT : numpy.ndarray
        Sliding dot products with shape `(n_Q, n_T, l)`

    μ_Q : numpy.ndarray
        Mean of every query

    σ_Q : numpy.ndarray
        Standard deviation of every query

    Q_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a query is constant (True)

    M_T : numpy.ndarray
        Sliding mean of every time series with shape `(n_T, l)`

    Σ_T : numpy.ndarray
        Sliding standard deviation of every time series with shape `(n_T, l)`

    T_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a subsequence in `T` is constant (True)

    Returns
    -------
    D : numpy.ndarray
        Distance profiles with the same shape as `QT`
    """
    n_Q, n_T, l = QT.shape
    D = np.empty_like(QT)
    for pair in prange(n_Q * n_T):
        q = pair // n_T
        t = pair % n_T
        for j in range(l):
            D[q, t, j] = np.sqrt(
                _calculate_squared_distance(
                    m,
                    QT[q, t, j],
                    μ_Q[q],
                    σ_Q[q],
                    M_T[t, j],
                    Σ_T[t, j],
                    Q_subseq_isconstant[q],
                    T_subseq_isconstant[t, j],
                )
            )

    return D


def calculate_distance_profile(
    m, QT, μ_Q, σ_Q, Q_subseq_isconstant, M_T, Σ_T, T_subseq_isconstant
):
    """
    Compute the z-normalized distance profile from the sliding dot product

    All array arguments are broadcast against each other so that a whole batch of
    distance profiles is computed at once.

    Parameters
    ----------
    m : int
        Window size

    QT : numpy.ndarray
        Dot product between `Q` and `T`

    μ_Q : numpy.ndarray
        Mean of `Q`

    σ_Q : numpy.ndarray
        Standard deviation of `Q`

    Q_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether `Q` is constant (True)

    M_T : numpy.ndarray
        Sliding mean of `T`

    Σ_T : numpy.ndarray
        Sliding standard deviation of `T`

    T_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a subsequence in `T` is constant (True)

    Returns
    -------
    output : numpy.ndarray
        Distance profile

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0179 \
    <https://www.cs.ucr.edu/~eamonn/PID4481997_extend_Matrix%20Profile_I.pdf>`__

    See Equation on Page 4
    """
    with np.errstate(invalid="ignore", over="ignore"):
        denom = np.maximum((σ_Q * Σ_T) * m, config.MPSEARCH_DENOM_THRESHOLD)
        ρ = np.minimum((QT - (μ_Q * M_T) * m) / denom, 1.0)
        D_squared = np.abs(2 * m * (1.0 - ρ))

    D_squared = np.where(
        Q_subseq_isconstant | T_subseq_isconstant, float(m), D_squared
    )
    D_squared = np.where(
        Q_subseq_isconstant & T_subseq_isconstant & (μ_Q == M_T), 0.0, D_squared
    )
    D_squared = np.where(np.isinf(μ_Q) | np.isinf(M_T), np.inf, D_squared)
    D_squared[np.isnan(D_squared)] = np.inf

    return np.sqrt(D_squared)


@njit(fastmath=config.MPSEARCH_FASTMATH_FLAGS)
def _apply_exclusion_zone(a, idx, excl_zone, val):
    """
    Set every entry along the last axis of `a` that lies within `excl_zone`
    positions of `idx` (both ends included) to `val`, in place

    Parameters
    ----------
    a : numpy.ndarray
        The array to update

    idx : int
        The center of the exclusion zone

    excl_zone : int
        The half width of the exclusion zone

    val : float or bool
        The fill value

    Returns
    -------
    None
    """
    start = max(0, idx - excl_zone)
    stop = min(a.shape[-1], idx + excl_zone + 1)
    a[..., start:stop] = val


def _get_chunk_ranges(size, chunk_size):
    """
    Split `size` items into the fewest consecutive chunks of at most `chunk_size`
    items each, with chunk sizes differing by at most one

    Parameters
    ----------
    size : int
        The number of items to chunk

    chunk_size : int
        The maximum number of items per chunk

    Returns
    -------
    array_ranges : numpy.ndarray
        A two column array of (inclusive) start and (exclusive) stop indices
    """
    n_chunks = max(1, -(-size // chunk_size))
    # Ceiling division keeps the bounds exact
    bounds = -(-np.arange(n_chunks + 1, dtype=np.int64) * size // n_chunks)
    if n_chunks > 1:
        logger.debug("Split %d items into %d chunks", size, n_chunks)

    return np.column_stack((bounds[:-1], bounds[1:]))
