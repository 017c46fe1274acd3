from __future__ import annotations

import numpy as np

from .constants import DEFAULT_DEBUG_ACCELERATION_SCALE
from .state import BodySet, empty_bodies

# Uniform draws consumed per body, in order: angle jitter, x, y, mass, speed.
_DRAWS_PER_BODY = 5


def generate_bodies(
    n_bodies: int,
    initial_body_mass: float,
    debug_acceleration_scale: float = DEFAULT_DEBUG_ACCELERATION_SCALE,
    *,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
) -> BodySet:
    """Jittered ring of bodies with near-circular initial motion.

    Body ``i`` gets a uniform position in [0,1)^2, mass in
    ``[0.5, 1.5) * initial_body_mass``, zero acceleration and a velocity
    along ``angle = i/N * 2pi + jitter`` with random speed scaled by
    ``debug_acceleration_scale``.

    Pass ``rng`` (or ``seed``) to make the draw sequence reproducible.
    """
    n = int(n_bodies)
    if n < 0:
        raise ValueError("body count must be >= 0")
    if float(initial_body_mass) <= 0.0:
        raise ValueError("initial_body_mass must be positive")
    if rng is not None and seed is not None:
        raise TypeError("pass either rng or seed, not both")
    if rng is None:
        rng = np.random.default_rng(seed)

    bodies = empty_bodies(n)
    if n == 0:
        return bodies

    u = rng.random((n, _DRAWS_PER_BODY))
    jitter, ux, uy, umass, uspeed = (u[:, k] for k in range(_DRAWS_PER_BODY))

    idx = np.arange(n, dtype=float)
    angle = idx / n * 2.0 * np.pi + (jitter - 0.5) * 0.5
    speed = uspeed * float(debug_acceleration_scale)

    bodies.r[:, 0] = ux
    bodies.r[:, 1] = uy
    bodies.a[:] = 0.0
    bodies.mass[:] = float(initial_body_mass) * (umass + 0.5)
    bodies.v[:, 0] = np.cos(angle) * speed
    bodies.v[:, 1] = np.sin(angle) * speed
    return bodies
