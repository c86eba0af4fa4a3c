# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging

import numpy as np

from . import core
from .mass import mass

logger = logging.getLogger(__name__)


def find_best_n_occurrences(Q, T, n, context=None):
    """
    Find the `n` subsequences of every time series in `T` that are closest to every
    query in `Q`

    Parameters
    ----------
    Q : numpy.ndarray
        Query batch with shape `(m, n_queries)` or a single query with shape `(m,)`

    T : numpy.ndarray
        Time series batch with shape `(n, n_series)` or a single time series with
        shape `(n,)`

    n : int
        The number of occurrences to find

    context : Context, default None
        The execution context. When `None`, the default context is used.

    Returns
    -------
    distances : numpy.ndarray
        The distances of the occurrences in ascending order with shape
        `(n, n_queries, n_series)`

    indexes : numpy.ndarray
        The start positions of the occurrences with the same shape as `distances`

    Raises
    ------
    ValueError
        If fewer than `n` subsequences of a time series have a finite distance to a
        query

    Notes
    -----
    Occurrences may overlap each other since no exclusion zone is applied. Ties are
    broken in favor of the earliest position.

    Examples
    --------
    >>> import mpsearch
    >>> import numpy as np
    >>> distances, indexes = mpsearch.find_best_n_occurrences(
    ...     np.array([1., 2., 3.]),
    ...     np.array([9., 9., 1., 2., 3., 9., 9., 1., 2., 3., 9.]),
    ...     2)
    >>> indexes[:, 0, 0].tolist()
    [2, 7]
    """
    D = mass(Q, T, context=context)
    core.check_n(n, D.shape[0])
    n = int(n)

    counts = np.isfinite(D).sum(axis=0)
    if counts.size and counts.min() < n:
        raise ValueError(
            f"Only {counts.min()} occurrences with a finite distance were found but "
            f"`n = {n}` were requested"
        )

    indexes = np.argsort(D, axis=0, kind="stable")[:n]
    distances = np.take_along_axis(D, indexes, axis=0)
    logger.debug("Found the %d best occurrences of %d queries", n, D.shape[1])

    return distances, indexes.astype(np.int64)
