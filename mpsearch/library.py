# MPSEARCH
# Copyright 2019 TD Ameritrade. Released under the terms of the 3-Clause BSD license.

import logging

from . import backends, config
from .context import Context

logger = logging.getLogger(__name__)

_DEFAULT_CONTEXT = None


def get_default_context():
    """
    Get the context that is used whenever an engine call is made without one

    The default context is created lazily from `config.MPSEARCH_DEFAULT_BACKEND` and
    `config.MPSEARCH_DEVICE_MEMORY_GB`.

    Returns
    -------
    context : Context
        The default context
    """
    global _DEFAULT_CONTEXT
    if _DEFAULT_CONTEXT is None:
        _DEFAULT_CONTEXT = Context(
            backend=config.MPSEARCH_DEFAULT_BACKEND,
            memory_gb=config.MPSEARCH_DEVICE_MEMORY_GB,
        )

    return _DEFAULT_CONTEXT


def resolve_context(context=None):
    """
    Return `context` or the default context when `context` is `None`

    Parameters
    ----------
    context : Context, default None
        An execution context

    Returns
    -------
    context : Context
        The execution context to use
    """
    if context is None:
        return get_default_context()

    if not isinstance(context, Context):
        raise TypeError(f"Context expected but found {type(context).__name__}")

    return context


def _replace_default_context(**kwargs):
    global _DEFAULT_CONTEXT
    context = get_default_context()
    settings = {
        "backend": context.backend.name,
        "device_id": context.device_id,
        "memory_gb": context.memory_gb,
        "dtype": context.dtype,
    }
    settings.update(kwargs)
    _DEFAULT_CONTEXT = Context(**settings)
    logger.debug("Replaced the default context with %r", _DEFAULT_CONTEXT)


def _reset():
    """
    Discard the default context so that it is re-created from the configuration
    """
    global _DEFAULT_CONTEXT
    _DEFAULT_CONTEXT = None


def backend_info():
    """
    Get a human readable description of the default context

    Returns
    -------
    info : str
        The backend, device, memory budget, and dtype of the default context
    """
    return get_default_context().info()


def get_backends():
    """
    Get the names of all backends that are available on this machine

    Returns
    -------
    backends : list
        A list of backend names
    """
    return backends.get_backends()


def set_backend(backend):
    """
    Switch the default context to another backend

    The device is reset to `0` since device ids are only meaningful per backend.

    Parameters
    ----------
    backend : str
        The name of the backend

    Returns
    -------
    None
    """
    _replace_default_context(backend=backend, device_id=0)


def get_backend():
    """
    Get the name of the backend of the default context

    Returns
    -------
    backend : str
        The backend name
    """
    return get_default_context().backend.name


def set_device(device_id):
    """
    Switch the default context to another device of its backend

    Parameters
    ----------
    device_id : int
        The device id

    Returns
    -------
    None
    """
    _replace_default_context(device_id=device_id)


def get_device_id():
    """
    Get the device id of the default context

    Returns
    -------
    device_id : int
        The device id
    """
    return get_default_context().device_id


def get_device_count():
    """
    Get the number of devices of the backend of the default context

    Returns
    -------
    n_devices : int
        The number of devices
    """
    return get_default_context().device_count()


def set_device_memory_in_gb(memory_gb):
    """
    Set the memory budget of the default context

    Parameters
    ----------
    memory_gb : float
        The memory budget in gigabytes. `None` removes the budget.

    Returns
    -------
    None
    """
    _replace_default_context(memory_gb=memory_gb)


def version():
    """
    Get the version of the package

    Returns
    -------
    version : str
        The version string
    """
    from . import __version__

    return __version__
