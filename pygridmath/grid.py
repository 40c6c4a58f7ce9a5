from typing import Tuple

import numpy as np
from cached_property import cached_property

from pygridmath.util import EPSILON, reciprocal, neighbor_offsets


class UniformGrid(object):
    """Uniform lattice of samples with a fixed spacing along each axis

    Samples are stored in a flat buffer with the x axis varying fastest,
    such that the linear offset of logical index (ix, iy, iz) is ix + nx * (iy + ny * iz).
    Each sample may be a scalar, a 3-vector or a 3x3 tensor, or any other fixed sample_shape.

    Notes
    -----
    The buffer is always fully allocated; the grid never grows or shrinks after construction.
    `field` and `flat` are views onto the same memory as `buffer`,
    so writes through any of them are visible through all.
    """

    INVALID = np.nan

    def __init__(self, shape: Tuple[int], spacing=(1, 1, 1), origin=(0, 0, 0), sample_shape=(), dtype=np.float64, field=None):
        """

        Parameters
        ----------
        shape : Tuple[int]
            number of samples (nx, ny, nz) along each axis
        spacing : array_like, [3], float
            physical distance between adjacent samples along each axis.
            zero spacing along an axis denotes a degenerate, lower dimensional domain
        origin : array_like, [3], float
            position of the sample with index (0, 0, 0)
        sample_shape : Tuple[int]
            shape of each individual sample
        dtype : np.dtype
        field : ndarray, [nx, ny, nz] + sample_shape, optional
            initial sample values in logical order; zeros if omitted
        """
        self.shape = tuple(int(n) for n in shape)
        assert len(self.shape) == 3, 'Only three dimensional grids are supported'
        assert all(n >= 1 for n in self.shape), 'Grid needs at least one sample along each axis'
        self.spacing = np.asarray(spacing, dtype=np.float64)
        assert self.spacing.shape == (3,)
        assert np.all(self.spacing >= 0), 'Spacing can not be negative'
        self.origin = np.asarray(origin, dtype=np.float64)
        self.sample_shape = tuple(sample_shape)

        if field is None:
            self.buffer = np.zeros(self.shape[::-1] + self.sample_shape, dtype=dtype)
        else:
            field = np.asarray(field, dtype=dtype)
            assert field.shape == self.shape + self.sample_shape, 'Field does not match grid shape'
            self.buffer = np.ascontiguousarray(np.transpose(field, self._transposition))

    @classmethod
    def scalar(cls, shape, **kwargs):
        return cls(shape, sample_shape=(), **kwargs)

    @classmethod
    def vector(cls, shape, **kwargs):
        return cls(shape, sample_shape=(3,), **kwargs)

    @classmethod
    def tensor(cls, shape, **kwargs):
        return cls(shape, sample_shape=(3, 3), **kwargs)

    def like(self, sample_shape=None, dtype=None):
        """Allocate a zero-initialized grid of matching shape, spacing and origin"""
        return type(self)(
            shape=self.shape,
            spacing=self.spacing,
            origin=self.origin,
            sample_shape=self.sample_shape if sample_shape is None else sample_shape,
            dtype=self.dtype if dtype is None else dtype,
        )

    def copy(self):
        grid = self.like()
        grid.buffer[...] = self.buffer
        return grid

    def fill(self, value):
        """Assign the same value to every sample"""
        self.buffer[...] = value
        return self

    @property
    def _transposition(self):
        n_sample = len(self.sample_shape)
        return (2, 1, 0) + tuple(range(3, 3 + n_sample))

    @property
    def field(self):
        """Writable view of the samples, indexed as [ix, iy, iz, ...]"""
        return np.transpose(self.buffer, self._transposition)

    @property
    def flat(self):
        """Writable view of the samples, indexed by linear offset"""
        return self.buffer.reshape((self.n_points,) + self.sample_shape)

    @property
    def dtype(self):
        return self.buffer.dtype

    @property
    def n_points(self):
        nx, ny, nz = self.shape
        return nx * ny * nz

    @property
    def is_allocated(self):
        return self.buffer.size == self.n_points * int(np.prod(self.sample_shape, dtype=int))

    def __len__(self):
        return self.n_points

    def __getitem__(self, offset):
        return self.flat[offset]

    def __setitem__(self, offset, value):
        self.flat[offset] = value

    def offset_from_indices(self, ix, iy, iz):
        """Linear offset of logical index (ix, iy, iz); accepts arrays of indices"""
        nx, ny, nz = self.shape
        return ix + nx * (iy + ny * iz)

    def indices_from_offset(self, offset):
        """Logical index (ix, iy, iz) of a linear offset; inverse of offset_from_indices"""
        nx, ny, nz = self.shape
        iyz, ix = np.divmod(offset, nx)
        iz, iy = np.divmod(iyz, ny)
        return ix, iy, iz

    def neighbor_offsets(self, ix, iy, iz, reach=1):
        """Linear offsets of the six axis-neighbors at the given distance

        Returns
        -------
        ndarray, [3, 2], int
            minus and plus neighbor offset, for each axis
        """
        return neighbor_offsets(self.shape, (ix, iy, iz), reach)

    def shape_matches(self, other):
        return self.shape == other.shape

    @cached_property
    def reciprocal_spacing(self):
        """Reciprocal spacing, zero along degenerate axes"""
        return reciprocal(self.spacing)

    @cached_property
    def is_degenerate(self):
        """Boolean per axis, indicating a spacing too small to differentiate along"""
        return self.spacing <= EPSILON

    @cached_property
    def cell_volume(self):
        """Volume of a single cell, measured over the non-degenerate axes only"""
        return float(np.prod(np.where(self.is_degenerate, 1, self.spacing)))

    @cached_property
    def positions(self):
        """Position of each sample

        Returns
        -------
        ndarray, [nx, ny, nz, 3], float
        """
        p = np.indices(self.shape) * self.spacing[:, None, None, None]
        return np.moveaxis(p, 0, -1) + self.origin

    @staticmethod
    def is_invalid(values):
        """Test samples for the invalid sentinel"""
        return np.isnan(values)

    def __repr__(self):
        return f'UniformGrid(shape={self.shape}, spacing={tuple(self.spacing)}, sample_shape={self.sample_shape})'
