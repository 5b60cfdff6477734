import logging
import random

import numpy as np
import torch

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
DEFAULT_LOG_FILE = 'gradplay.log'

# datatype of tensors
dtype = torch.float32

_DTYPES = {
    "float32": torch.float32,
    "float64": torch.float64,
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
}

# Detect hardware availability
RUN_ON_GPU = torch.cuda.is_available()
RUN_ON_MPS = torch.backends.mps.is_available() and torch.backends.mps.is_built() if not RUN_ON_GPU else False
RUN_ON_CPU = not RUN_ON_GPU and not RUN_ON_MPS

# Determine active device
if RUN_ON_GPU:
    device = torch.device("cuda")
elif RUN_ON_MPS:
    device = torch.device("mps")
else:
    device = torch.device("cpu")

device_summary = f"Running on: {'GPU' if RUN_ON_GPU else 'MPS' if RUN_ON_MPS else 'CPU'}"


def setup_logging(filename=DEFAULT_LOG_FILE, level=logging.DEBUG):
    """Configure the root logger. ``filename=None`` logs to stderr."""
    kwargs = dict(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, force=True)
    if filename is not None:
        kwargs["filename"] = filename
    logging.basicConfig(**kwargs)
    logging.info(device_summary)


def resolve_device(name=None):
    if name is None or name == "auto":
        return device
    return torch.device(name)


def resolve_dtype(name=None):
    if name is None:
        return dtype
    if isinstance(name, torch.dtype):
        return name
    try:
        return _DTYPES[name]
    except KeyError:
        raise ValueError(f"Unknown dtype {name!r}, expected one of {sorted(_DTYPES)}.") from None


def seed_everything(seed=None):
    """Seed the python, numpy and torch RNGs. ``None`` leaves them untouched."""
    if seed is None:
        return None
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    return seed
