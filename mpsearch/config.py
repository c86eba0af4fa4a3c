# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import warnings

_MPSEARCH_DEFAULTS = {
    "MPSEARCH_THREADS_PER_BLOCK": 512,
    "MPSEARCH_DENOM_THRESHOLD": 1e-14,
    "MPSEARCH_TEST_PRECISION": 5,
    "MPSEARCH_EXCL_ZONE_DENOM": 2,
    "MPSEARCH_DEFAULT_BACKEND": "cpu",
    "MPSEARCH_DEVICE_MEMORY_GB": None,
    "MPSEARCH_FASTMATH_FLAGS": {"nsz", "arcp", "contract", "afn", "reassoc"},
}

MPSEARCH_THREADS_PER_BLOCK = _MPSEARCH_DEFAULTS["MPSEARCH_THREADS_PER_BLOCK"]
MPSEARCH_DENOM_THRESHOLD = _MPSEARCH_DEFAULTS["MPSEARCH_DENOM_THRESHOLD"]
MPSEARCH_TEST_PRECISION = _MPSEARCH_DEFAULTS["MPSEARCH_TEST_PRECISION"]
MPSEARCH_EXCL_ZONE_DENOM = _MPSEARCH_DEFAULTS["MPSEARCH_EXCL_ZONE_DENOM"]
MPSEARCH_DEFAULT_BACKEND = _MPSEARCH_DEFAULTS["MPSEARCH_DEFAULT_BACKEND"]
MPSEARCH_DEVICE_MEMORY_GB = _MPSEARCH_DEFAULTS["MPSEARCH_DEVICE_MEMORY_GB"]
MPSEARCH_FASTMATH_FLAGS = _MPSEARCH_DEFAULTS["MPSEARCH_FASTMATH_FLAGS"]


def _reset(var=None):
    """
    Reset the value of a configuration variable(s) to their default value(s)

    Parameters
    ----------
    var : str, default None
        The name of the configuration variable. If None, then all
        configuration variables are reset to their default values.

    Returns
    -------
    None
    """
    config_vars = [
        k for k, _ in globals().items() if k.isupper() and k.startswith("MPSEARCH")
    ]

    if var is None:
        for config_var in config_vars:
            globals()[config_var] = _MPSEARCH_DEFAULTS[config_var]
    elif var in config_vars:
        globals()[var] = _MPSEARCH_DEFAULTS[var]
    else:
        msg = f"Configuration reset was skipped for unrecognized '{var}'"
        warnings.warn(msg)

    return
