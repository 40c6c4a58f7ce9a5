"""Aggregate statistics over uniform grids

All aggregation is expressed in terms of RunningStats, which can be accumulated
over disjoint parts of a grid independently and merged afterwards;
this is what allows these reductions to run over a ParallelFor decomposition
without any shared mutable state between workers.
"""

from collections import namedtuple

import numpy as np

from pygridmath.parallel import as_parallel


ValueStats = namedtuple('ValueStats', ['min', 'max', 'mean', 'std'])


class RunningStats(object):
    """Running min, max, sum and sum of squares of a stream of values"""

    def __init__(self):
        self.count = 0
        self.total = 0.0
        self.total2 = 0.0
        self.min = np.inf
        self.max = -np.inf

    def accumulate(self, values):
        values = np.asarray(values, dtype=np.float64).ravel()
        if values.size == 0:
            return self
        self.count += values.size
        self.total += values.sum()
        self.total2 += np.dot(values, values)
        self.min = min(self.min, values.min())
        self.max = max(self.max, values.max())
        return self

    def merge(self, other):
        """Fold the tallies of another RunningStats into self"""
        self.count += other.count
        self.total += other.total
        self.total2 += other.total2
        self.min = min(self.min, other.min)
        self.max = max(self.max, other.max)
        return self

    @classmethod
    def merged(cls, parts):
        stats = cls()
        for p in parts:
            stats.merge(p)
        return stats

    @property
    def mean(self):
        if self.count == 0:
            return 0.0
        return self.total / self.count

    @property
    def variance(self):
        """Population variance; clamped to be non-negative to absorb round-off"""
        if self.count == 0:
            return 0.0
        return max(self.total2 / self.count - self.mean ** 2, 0.0)

    @property
    def std(self):
        return np.sqrt(self.variance)

    def summary(self, cls=ValueStats):
        return cls(min=self.min, max=self.max, mean=self.mean, std=self.std)


def _slab_stats(values, transform=None):
    """Returns function accumulating the stats of a z-range of a field"""
    def inner(start, stop):
        v = values[:, :, start:stop]
        if transform is not None:
            v = transform(v)
        return RunningStats().accumulate(v)
    return inner


def _reduce(grid, transform=None, parallel=None):
    parallel = as_parallel(parallel)
    parts = parallel.map(_slab_stats(grid.field, transform), 0, grid.shape[2])
    return RunningStats.merged(parts)


def find_value_range(grid, parallel=None):
    """Find the minimum and maximum value of a scalar grid

    Returns
    -------
    min : float
    max : float
    """
    assert grid.sample_shape == (), 'Not a scalar grid'
    stats = _reduce(grid, parallel=parallel)
    return stats.min, stats.max


def find_value_stats(grid, parallel=None) -> ValueStats:
    """Find minimum, maximum, mean and standard deviation of a scalar grid"""
    assert grid.sample_shape == (), 'Not a scalar grid'
    assert not np.any(np.isnan(grid.buffer)), 'Grid contains invalid values'
    return _reduce(grid, parallel=parallel).summary()


def _magnitude2(v):
    return np.einsum('...i,...i->...', v, v)


def find_magnitude_range(grid, parallel=None):
    """Find the minimum and maximum magnitude of a vector grid

    Notes
    -----
    Extrema are tallied over the squared magnitudes, and only those two values are square-rooted;
    this is valid since the square root is monotonic over non-negative values
    """
    assert grid.sample_shape == (3,), 'Not a vector grid'
    stats = _reduce(grid, transform=_magnitude2, parallel=parallel)
    return np.sqrt(stats.min), np.sqrt(stats.max)


def find_component_range(grid):
    """Find the minimum and maximum of each component of the samples of a grid

    Returns
    -------
    min : ndarray, sample_shape
    max : ndarray, sample_shape
    """
    flat = grid.flat
    return flat.min(axis=0), flat.max(axis=0)


def find_conserved_quantities(vorticity):
    """Compute quantities conserved by an inviscid flow, from its vorticity

    Parameters
    ----------
    vorticity : UniformGrid
        vector grid

    Returns
    -------
    circulation : ndarray, [3], float
        volume integral of vorticity
    linear_impulse : ndarray, [3], float
        volume integral of position cross vorticity
    """
    assert vorticity.sample_shape == (3,), 'Not a vector grid'
    w = vorticity.field
    volume = vorticity.cell_volume
    circulation = w.sum(axis=(0, 1, 2)) * volume
    linear_impulse = np.cross(vorticity.positions, w).sum(axis=(0, 1, 2)) * volume
    return circulation, linear_impulse
