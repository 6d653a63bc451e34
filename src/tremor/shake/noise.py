from __future__ import annotations

from panda3d.core import PerlinNoise2

# Fixed lattice seed: every engine samples the same noise field and relies on its
# per-run phase offset for decorrelation. Zero would ask Panda3D for a random table.
NOISE_TABLE_SEED = 0x5EED


class CoherentNoise:
    """
    2D coherent noise remapped to [0, 1] (0.5 at lattice points).

    Thin wrapper around Panda3D `PerlinNoise2`; raw samples are roughly in [-1, 1].
    """

    def __init__(self, *, seed: int = NOISE_TABLE_SEED, table_size: int = 256) -> None:
        self._seed = max(1, int(seed))
        self._perlin = PerlinNoise2(1.0, 1.0, max(16, int(table_size)), self._seed)

    @property
    def seed(self) -> int:
        return int(self._seed)

    def sample(self, x: float, y: float) -> float:
        raw = float(self._perlin.noise(float(x), float(y)))
        return max(0.0, min(1.0, 0.5 + 0.5 * raw))

    def signed(self, x: float, y: float) -> float:
        """Sample remapped from [0, 1] to [-1, 1]."""

        return (self.sample(x, y) - 0.5) * 2.0


__all__ = ["CoherentNoise", "NOISE_TABLE_SEED"]
