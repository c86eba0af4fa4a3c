# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging

import numba
import numpy as np
import scipy
from numba import cuda, njit, prange

from . import config, core
from .gpu_stomp import gpu_stomp

logger = logging.getLogger(__name__)


@njit(parallel=True, fastmath=config.MPSEARCH_FASTMATH_FLAGS)
def _stomp(
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
    P,
    I,
    excl_zone,
    ignore_trivial,
):
    """
    A Numba JIT-compiled and parallelized version of STOMP over a batch of time
    series pairs

    Every pair is independent and is assigned to its own thread so `QT`, `P`, and `I`
    are only ever written to by a single thread per row.

    Parameters
    ----------
    T_A : numpy.ndarray
        The query side time series, one row per pair

    T_B : numpy.ndarray
        The reference side time series, one row per pair

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
        Dot product between the first subsequence of `T_A` and `T_B`. This is
        overwritten.

    QT_first : numpy.ndarray
        Dot product between the first subsequence of `T_B` and `T_A`

    P : numpy.ndarray
        Matrix profile of every pair, updated in place

    I : numpy.ndarray
        Matrix profile indices of every pair, updated in place

    excl_zone : int
        The half width for the exclusion zone

    ignore_trivial : bool
        Set to `True` if this is a self-join

    Returns
    -------
    None

    Notes
    -----
    `DOI: 10.1109/ICDM.2016.0085 \
    <https://www.cs.ucr.edu/~eamonn/STOMP_GPU_final_submission_camera_ready.pdf>`__

    See Table II
    """
    n_pairs, w = P.shape
    l = μ_Q.shape[1]
    for p in prange(n_pairs):
        for i in range(l):
            if i > 0:
                # Walk backwards so that `QT[p, j - 1]` still holds the previous row
                for j in range(w - 1, 0, -1):
                    QT[p, j] = (
                        QT[p, j - 1]
                        - T_A[p, i - 1] * T_B[p, j - 1]
                        + T_A[p, i + m - 1] * T_B[p, j + m - 1]
                    )
                QT[p, 0] = QT_first[p, i]

            for j in range(w):
                if ignore_trivial and abs(i - j) <= excl_zone:
                    continue

                D_squared = core._calculate_squared_distance(
                    m,
                    QT[p, j],
                    μ_Q[p, i],
                    σ_Q[p, i],
                    M_T[p, j],
                    Σ_T[p, j],
                    Q_subseq_isconstant[p, i],
                    T_subseq_isconstant[p, j],
                )
                if D_squared < P[p, j]:
                    P[p, j] = D_squared
                    I[p, j] = i

        for j in range(w):
            P[p, j] = np.sqrt(P[p, j])


class _Backend:
    """
    The base class for every compute backend

    Subclasses only override the kernels that they accelerate. Every array that is
    passed in or returned is a host side numpy array.
    """

    name = None

    @classmethod
    def is_available(cls):
        return True

    def device_count(self):
        return 1

    def check_device(self, device_id):
        """
        Check that `device_id` refers to a device of this backend

        Parameters
        ----------
        device_id : int
            The device id

        Returns
        -------
        None
        """
        if device_id not in range(self.device_count()):
            raise ValueError(
                f"Device {device_id} is not available for the '{self.name}' "
                f"backend which has {self.device_count()} device(s)"
            )

    def info(self, device_id=0):
        return f"{self.name}: numpy {np.__version__}, scipy {scipy.__version__}"

    def sliding_dot_product(self, Q, T):
        return core.sliding_dot_product(Q, T)

    def distance_profile(
        self, m, QT, μ_Q, σ_Q, Q_subseq_isconstant, M_T, Σ_T, T_subseq_isconstant
    ):
        """
        Compute the distance profiles of every query against every time series

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
            A boolean array that indicates whether a subsequence in `T` is constant

        Returns
        -------
        D : numpy.ndarray
            Distance profiles with shape `(n_Q, n_T, l)`
        """
        return core.calculate_distance_profile(
            m,
            QT,
            μ_Q[:, np.newaxis, np.newaxis],
            σ_Q[:, np.newaxis, np.newaxis],
            Q_subseq_isconstant[:, np.newaxis, np.newaxis],
            M_T[np.newaxis, :, :],
            Σ_T[np.newaxis, :, :],
            T_subseq_isconstant[np.newaxis, :, :],
        )

    def stomp(self, acc, device_id=0):
        """
        Run the STOMP recurrence over every pair of an accumulator

        Parameters
        ----------
        acc : _STOMPAccumulator
            The per-call STOMP state, updated in place

        device_id : int, default 0
            The device id to run on

        Returns
        -------
        None
        """
        for i in range(acc.l):
            if i > 0:
                acc.advance(i)
            D = core.calculate_distance_profile(
                acc.m,
                acc.QT,
                acc.μ_Q[:, i, np.newaxis],
                acc.σ_Q[:, i, np.newaxis],
                acc.Q_subseq_isconstant[:, i, np.newaxis],
                acc.M_T,
                acc.Σ_T,
                acc.T_subseq_isconstant,
            )
            acc.update(i, D)


class CPUBackend(_Backend):
    """
    Vectorized numpy backend where a whole batch is computed by broadcasting
    """

    name = "cpu"


class NumbaBackend(_Backend):
    """
    Numba JIT-compiled backend that is parallelized over time series pairs
    """

    name = "numba"

    def info(self, device_id=0):
        return (
            f"{self.name}: numba {numba.__version__} with "
            f"{numba.config.NUMBA_NUM_THREADS} threads"
        )

    def distance_profile(
        self, m, QT, μ_Q, σ_Q, Q_subseq_isconstant, M_T, Σ_T, T_subseq_isconstant
    ):
        return core._compute_distance_profile(
            m, QT, μ_Q, σ_Q, Q_subseq_isconstant, M_T, Σ_T, T_subseq_isconstant
        )

    def stomp(self, acc, device_id=0):
        _stomp(
            acc.T_A,
            acc.T_B,
            acc.m,
            acc.μ_Q,
            acc.σ_Q,
            acc.Q_subseq_isconstant,
            acc.M_T,
            acc.Σ_T,
            acc.T_subseq_isconstant,
            acc.QT,
            acc.QT_first,
            acc.P,
            acc.I,
            acc.excl_zone,
            acc.ignore_trivial,
        )


class CUDABackend(_Backend):
    """
    Numba CUDA backend where the STOMP recurrence runs on a GPU device

    The FFT based sliding dot products and distance profiles are computed on the
    host.
    """

    name = "cuda"

    @classmethod
    def is_available(cls):
        return cuda.is_available()

    def device_count(self):
        return len(cuda.list_devices())

    def info(self, device_id=0):
        device_name = cuda.list_devices()[device_id].name
        if isinstance(device_name, bytes):
            device_name = device_name.decode()
        return (
            f"{self.name}: device {device_id} ({device_name}), "
            f"numba {numba.__version__}"
        )

    def stomp(self, acc, device_id=0):
        gpu_stomp(acc, device_id=device_id)


_BACKENDS = {
    backend.name: backend for backend in (CPUBackend, NumbaBackend, CUDABackend)
}


def get_backends():
    """
    Get the names of all backends that are available on this machine

    Returns
    -------
    backends : list
        A list of backend names
    """
    return [name for name, backend in _BACKENDS.items() if backend.is_available()]


def get_backend(name):
    """
    Get a new instance of the backend called `name`

    Parameters
    ----------
    name : str
        The name of the backend

    Returns
    -------
    backend : _Backend
        The backend
    """
    if name not in _BACKENDS:
        raise ValueError(
            f"Unknown backend '{name}'. Choose one of {sorted(_BACKENDS.keys())}"
        )

    if not _BACKENDS[name].is_available():
        raise ValueError(f"The '{name}' backend is not available on this machine")

    return _BACKENDS[name]()
