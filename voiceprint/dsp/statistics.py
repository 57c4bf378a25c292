from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np


@dataclass(frozen=True)
class Statistics:
    mean: float = 0.0
    std_dev: float = 0.0
    change_rate: float = 0.0


ZERO_STATISTICS = Statistics()


def compute_statistics(values: Iterable[Optional[float]], change_factor: float = 0.1) -> Statistics:
    """Mean, population standard deviation and change rate of a frame series.

    ``change_rate`` is the share of consecutive pairs whose absolute step
    exceeds ``change_factor * std_dev``. Missing and non-finite values are
    dropped before anything is computed.
    """

    cleaned = [float(v) for v in values if v is not None and np.isfinite(v)]
    if not cleaned:
        return ZERO_STATISTICS

    arr = np.asarray(cleaned, dtype=np.float64)
    mean = float(np.mean(arr))
    std_dev = float(np.sqrt(np.mean((arr - mean) ** 2)))

    if arr.size < 2:
        change_rate = 0.0
    else:
        steps = np.abs(np.diff(arr))
        change_rate = float(np.count_nonzero(steps > change_factor * std_dev) / steps.size)

    return Statistics(mean=mean, std_dev=std_dev, change_rate=change_rate)
