
import numpy as np
import numpy.testing as npt

from pygridmath.util import pairs, full_weighting, reciprocal, neighbor_offsets


def test_pairs():
    assert list(pairs([0, 3, 6, 7])) == [(0, 3), (3, 6), (6, 7)]
    assert list(pairs([1])) == []
    assert list(pairs([])) == []


def test_full_weighting():
    w = full_weighting()
    assert w.sum() == 1
    npt.assert_equal(w, w[::-1])


def test_reciprocal():
    r = reciprocal([0.5, 0, 4])
    npt.assert_allclose(r, [2, 0, 0.25])


def test_neighbor_offsets():
    shape = (4, 5, 6)
    o = neighbor_offsets(shape, (1, 2, 3))
    center = 1 + 4 * (2 + 5 * 3)
    npt.assert_equal(o, [[center - 1, center + 1], [center - 4, center + 4], [center - 20, center + 20]])

    o = neighbor_offsets(shape, (1, 2, 3), reach=2)
    npt.assert_equal(o[2], [center - 40, center + 40])


def test_neighbor_offsets_array():
    shape = (4, 5, 6)
    ix, iy, iz = np.array([1, 2]), np.array([1, 3]), np.array([2, 4])
    o = neighbor_offsets(shape, (ix, iy, iz))
    assert o.shape == (2, 3, 2)
    npt.assert_equal(o[1], neighbor_offsets(shape, (2, 3, 4)))
