# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging

import numpy as np

from . import backends, config

logger = logging.getLogger(__name__)

_SUPPORTED_DTYPES = (np.dtype(np.float64), np.dtype(np.float32))


class Context:
    """
    An execution context that bundles the compute backend, the device, the memory
    budget, and the floating point type used by every engine call

    Parameters
    ----------
    backend : str, default None
        The name of the compute backend. One of `"cpu"`, `"numba"`, or `"cuda"`. When
        `None`, `config.MPSEARCH_DEFAULT_BACKEND` is used.

    device_id : int, default 0
        The device to compute on. Only the `"cuda"` backend has more than one device.

    memory_gb : float, default None
        The memory budget in gigabytes. When set, batches are processed in chunks of
        time series whose working set fits into the budget. `None` means unbounded.

    dtype : dtype, default np.float64
        The floating point type to compute with. Either `np.float64` or `np.float32`.

    Attributes
    ----------
    backend : _Backend
        The compute backend

    device_id : int
        The device to compute on

    memory_gb : float
        The memory budget in gigabytes

    dtype : numpy.dtype
        The floating point type to compute with

    Notes
    -----
    A context is not thread safe and must only be used by one caller at a time.
    """

    def __init__(self, backend=None, device_id=0, memory_gb=None, dtype=np.float64):
        if backend is None:
            backend = config.MPSEARCH_DEFAULT_BACKEND
        self._backend = backends.get_backend(backend)

        if isinstance(device_id, (bool, np.bool_)) or not isinstance(
            device_id, (int, np.integer)
        ):
            raise ValueError(
                f"The device id must be an integer but found {device_id!r}"
            )
        self._backend.check_device(device_id)
        self._device_id = int(device_id)

        if memory_gb is not None and not memory_gb > 0:
            raise ValueError(
                f"The memory budget must be a positive number of GB but found "
                f"{memory_gb}"
            )
        self._memory_gb = memory_gb

        try:
            dtype = np.dtype(dtype)
        except TypeError as e:
            raise ValueError(f"Unrecognized dtype {dtype!r}") from e
        if dtype not in _SUPPORTED_DTYPES:
            raise ValueError(
                f"Unsupported dtype {dtype}. Choose one of "
                f"{[str(d) for d in _SUPPORTED_DTYPES]}"
            )
        self._dtype = dtype

        logger.debug("Created %r", self)

    @property
    def backend(self):
        return self._backend

    @property
    def device_id(self):
        return self._device_id

    @property
    def memory_gb(self):
        return self._memory_gb

    @property
    def dtype(self):
        return self._dtype

    def __repr__(self):
        return (
            f"Context(backend={self._backend.name!r}, device_id={self._device_id}, "
            f"memory_gb={self._memory_gb}, dtype={self._dtype.name})"
        )

    def device_count(self):
        """
        Get the number of devices of the backend

        Returns
        -------
        n_devices : int
            The number of devices
        """
        return self._backend.device_count()

    def info(self):
        """
        Get a human readable description of the context

        Returns
        -------
        info : str
            The backend, device, memory budget, and dtype of the context
        """
        memory = "unbounded" if self._memory_gb is None else f"{self._memory_gb} GB"
        return (
            f"{self._backend.info(self._device_id)} | device {self._device_id} | "
            f"memory {memory} | dtype {self._dtype.name}"
        )

    def get_chunk_size(self, n_items, item_nbytes):
        """
        Get the number of items that fit into the memory budget at once

        Parameters
        ----------
        n_items : int
            The total number of items to be processed

        item_nbytes : int
            The estimated working set of a single item in bytes

        Returns
        -------
        chunk_size : int
            The number of items per chunk
        """
        if self._memory_gb is None or n_items == 0:
            return max(n_items, 1)

        budget = int(self._memory_gb * 1024**3)
        chunk_size = budget // int(item_nbytes)
        if chunk_size < 1:
            raise MemoryError(
                f"The memory budget of {self._memory_gb} GB is too small to hold "
                f"a single item of {item_nbytes} bytes"
            )

        return min(n_items, chunk_size)
