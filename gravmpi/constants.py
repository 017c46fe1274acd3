"""Named constants for gravmpi.

Categories
----------
DEFAULT_DEBUG_ACCELERATION_SCALE
    Scale applied to the random initial speed of every generated body
    when the optional CLI argument is omitted.

BODY_FIELDS / BODY_WIDTH
    Column layout of one body record.  A body set is an ``(N, BODY_WIDTH)``
    float64 array; the same row block is what collectives move around,
    so the column order is part of the wire contract between ranks.

OUTPUT_FLOAT_FORMAT
    ``printf``-style ``%f`` rendering (six decimals) used by every float
    in the text output protocol.

DEFAULT_KERNEL_BLOCK
    Number of target rows processed per vectorized block in the force
    kernel.  Bounds the temporary ``(block, N, 2)`` separation array.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Initial conditions
# ---------------------------------------------------------------------------
DEFAULT_DEBUG_ACCELERATION_SCALE: float = 100.0

# ---------------------------------------------------------------------------
# Body record layout
# ---------------------------------------------------------------------------
BODY_FIELDS: tuple[str, ...] = ("x", "y", "ax", "ay", "vx", "vy", "mass")
BODY_WIDTH: int = len(BODY_FIELDS)

COL_X, COL_Y, COL_AX, COL_AY, COL_VX, COL_VY, COL_MASS = range(BODY_WIDTH)

# ---------------------------------------------------------------------------
# Output protocol
# ---------------------------------------------------------------------------
OUTPUT_FLOAT_FORMAT: str = "{:f}"

# ---------------------------------------------------------------------------
# Force kernel
# ---------------------------------------------------------------------------
DEFAULT_KERNEL_BLOCK: int = 256
