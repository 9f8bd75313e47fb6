"""Per-replicate random generators."""

import numpy as np
from numpy.random import Generator

# Independent streams derived from one replicate seed
EFFECT_STREAM = 0
COUNT_STREAM = 1


def replicate_rng(seed: int, stream: int) -> Generator:
    """Construct the generator for one stream of one replicate.

    Args:
        seed: Replicate seed.
        stream: Stream identifier, e.g. ``EFFECT_STREAM`` or ``COUNT_STREAM``.

    Returns:
        A fresh NumPy Generator; identical arguments give identical draws.
    """
    return np.random.default_rng([int(seed), int(stream)])
