# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging
import math

import numpy as np
from numba import cuda

from . import config

logger = logging.getLogger(__name__)


@cuda.jit
def _compute_and_update_PI_kernel(
    i,
    T_A,
    T_B,
    m,
    QT_even,
    QT_odd,
    QT_first,
    μ_Q,
    σ_Q,
    M_T,
    Σ_T,
    Q_subseq_isconstant,
    T_subseq_isconstant,
    w,
    ignore_trivial,
    excl_zone,
    P,
    I,
    compute_QT,
):
    """
    A Numba CUDA kernel to update the matrix profile and matrix profile indices of
    every time series pair for the `i`th subsequence of `T_A`

    Every thread handles a strided set of (pair, position) cells so that a single
    launch covers the whole batch.

    Parameters
    ----------
    i : int
        The index of the current subsequence in `T_A`

    T_A : numpy.ndarray
        The query side time series, one row per pair

    T_B : numpy.ndarray
        The reference side time series, one row per pair. For every subsequence in
        `T_B`, its nearest neighbor in `T_A` will be recorded.

    m : int
        Window size

    QT_even : numpy.ndarray
        The input QT array (dot product between the query sequence,`Q`, and
        time series, `T`) to use when `i` is even

    QT_odd : numpy.ndarray
        The input QT array (dot product between the query sequence,`Q`, and
        time series, `T`) to use when `i` is odd

    QT_first : numpy.ndarray
        Dot product between the first subsequence of `T_B` and `T_A`

    μ_Q : numpy.ndarray
        Sliding mean of `T_A`

    σ_Q : numpy.ndarray
        Sliding standard deviation of `T_A`

    M_T : numpy.ndarray
        Sliding mean of `T_B`

    Σ_T : numpy.ndarray
        Sliding standard deviation of `T_B`

    Q_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a subsequence in `T_A` is constant

    T_subseq_isconstant : numpy.ndarray
        A boolean array that indicates whether a subsequence in `T_B` is constant

    w : int
        The number of subsequences in `T_B`

    ignore_trivial : bool
        Set to `True` if this is a self-join. Otherwise, for AB-join, set this to
        `False`.

    excl_zone : int
        The half width for the exclusion zone relative to `i`

    P : numpy.ndarray
        The squared matrix profile of every pair

    I : numpy.ndarray
        The matrix profile indices of every pair

    compute_QT : bool
        A boolean flag for whether or not to compute QT

    Returns
    -------
    None

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0085 \
    <https://www.cs.ucr.edu/~eamonn/STOMP_GPU_final_submission_camera_ready.pdf>`__

    See Table II, Figure 5, and Figure 6
    """
    start = cuda.grid(1)
    stride = cuda.gridsize(1)

    if i % 2 == 0:
        QT_out = QT_even
        QT_in = QT_odd
    else:
        QT_out = QT_odd
        QT_in = QT_even

    for k in range(start, P.shape[0] * w, stride):
        p = k // w
        j = k % w

        if compute_QT:
            if j == 0:
                QT_out[p, 0] = QT_first[p, i]
            else:
                QT_out[p, j] = (
                    QT_in[p, j - 1]
                    - T_A[p, i - 1] * T_B[p, j - 1]
                    + T_A[p, i + m - 1] * T_B[p, j + m - 1]
                )

        if math.isinf(μ_Q[p, i]) or math.isinf(M_T[p, j]):
            p_norm = np.inf
        elif (
            Q_subseq_isconstant[p, i]
            and T_subseq_isconstant[p, j]
            and μ_Q[p, i] == M_T[p, j]
        ):
            p_norm = 0.0
        elif Q_subseq_isconstant[p, i] or T_subseq_isconstant[p, j]:
            p_norm = float(m)
        else:
            denom = (σ_Q[p, i] * Σ_T[p, j]) * m
            denom = max(denom, config.MPSEARCH_DENOM_THRESHOLD)
            ρ = (QT_out[p, j] - (μ_Q[p, i] * M_T[p, j]) * m) / denom
            ρ = min(ρ, 1.0)
            p_norm = abs(2 * m * (1.0 - ρ))

        if math.isnan(p_norm):
            p_norm = np.inf

        if ignore_trivial and abs(i - j) <= excl_zone:
            p_norm = np.inf

        if p_norm < P[p, j]:
            P[p, j] = p_norm
            I[p, j] = i


def gpu_stomp(acc, device_id=0):
    """
    Run the STOMP recurrence of an accumulator on a single GPU device

    Parameters
    ----------
    acc : _STOMPAccumulator
        The per-call STOMP state. Its matrix profile and matrix profile indices are
        updated in place.

    device_id : int, default 0
        The (GPU) device id to run on

    Returns
    -------
    None
    """
    n_pairs, w = acc.P.shape
    threads_per_block = config.MPSEARCH_THREADS_PER_BLOCK
    blocks_per_grid = math.ceil(n_pairs * w / threads_per_block)
    logger.debug(
        "Launching %d blocks of %d threads on device %d",
        blocks_per_grid,
        threads_per_block,
        device_id,
    )

    with cuda.gpus[device_id]:
        device_T_A = cuda.to_device(acc.T_A)
        device_QT_odd = cuda.to_device(acc.QT)
        device_QT_even = cuda.to_device(acc.QT)
        device_QT_first = cuda.to_device(acc.QT_first)
        device_μ_Q = cuda.to_device(acc.μ_Q)
        device_σ_Q = cuda.to_device(acc.σ_Q)
        device_Q_subseq_isconstant = cuda.to_device(acc.Q_subseq_isconstant)

        if acc.ignore_trivial:
            device_T_B = device_T_A
            device_M_T = device_μ_Q
            device_Σ_T = device_σ_Q
            device_T_subseq_isconstant = device_Q_subseq_isconstant
        else:
            device_T_B = cuda.to_device(acc.T_B)
            device_M_T = cuda.to_device(acc.M_T)
            device_Σ_T = cuda.to_device(acc.Σ_T)
            device_T_subseq_isconstant = cuda.to_device(acc.T_subseq_isconstant)

        device_P = cuda.to_device(acc.P)
        device_I = cuda.to_device(acc.I)

        for i in range(acc.l):
            _compute_and_update_PI_kernel[blocks_per_grid, threads_per_block](
                i,
                device_T_A,
                device_T_B,
                acc.m,
                device_QT_even,
                device_QT_odd,
                device_QT_first,
                device_μ_Q,
                device_σ_Q,
                device_M_T,
                device_Σ_T,
                device_Q_subseq_isconstant,
                device_T_subseq_isconstant,
                w,
                acc.ignore_trivial,
                acc.excl_zone,
                device_P,
                device_I,
                i > 0,
            )

        acc.P[:, :] = np.sqrt(device_P.copy_to_host())
        acc.I[:, :] = device_I.copy_to_host()
