import os.path
from importlib.metadata import distribution
from site import getsitepackages

from . import config  # noqa: F401
from .context import Context  # noqa: F401
from .library import (  # noqa: F401
    backend_info,
    get_backend,
    get_backends,
    get_device_count,
    get_device_id,
    set_backend,
    set_device,
    set_device_memory_in_gb,
    version,
)
from .mass import mass  # noqa: F401
from .motifs import find_best_n_discords, find_best_n_motifs  # noqa: F401
from .search import find_best_n_occurrences  # noqa: F401
from .stomp import stomp, stomp_self_join  # noqa: F401

try:
    _dist = distribution("mpsearch")
    # Normalize case for Windows systems
    dist_loc = os.path.normcase(getsitepackages()[0])
    here = os.path.normcase(__file__)
    if not here.startswith(os.path.join(dist_loc, "mpsearch")):
        # not installed, but there is another version that *is*
        raise ModuleNotFoundError  # pragma: no cover
except ModuleNotFoundError:  # pragma: no cover
    __version__ = "Please install this project with setup.py"
else:  # pragma: no cover
    __version__ = _dist.version
