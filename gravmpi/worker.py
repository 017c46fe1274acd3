from __future__ import annotations

import numpy as np

from .integrator import semi_implicit_euler
from .kernel import accelerations_on_targets
from .partition import Partition
from .state import BodySet


def compute_partition_step(
    snapshot: BodySet,
    partition: Partition,
    local: BodySet,
    *,
    softening_sq: float,
    dt: float,
) -> BodySet:
    """Advance the owned slice by one step into ``local``.

    ``snapshot`` is the canonical set as it stood after the last collective
    and is only read.  The owned rows are copied into ``local``, given
    their new acceleration and integrated there; the caller publishes
    ``local`` through the all-gather.
    """
    if len(local) != partition.length:
        raise ValueError(
            f"local buffer holds {len(local)} bodies, partition owns {partition.length}"
        )
    if partition.stop > len(snapshot):
        raise ValueError("partition exceeds body set")

    np.copyto(local.data, snapshot.data[partition.as_slice()])
    local.a[:] = accelerations_on_targets(
        snapshot.r, snapshot.mass, partition.ids(), softening_sq
    )
    semi_implicit_euler(local.r, local.v, local.a, dt)
    return local
