import numpy as np


# single precision machine epsilon; spacings below this denote a degenerate axis
EPSILON = np.finfo(np.float32).eps


def pairs(iterable):
    """Yield adjacent pairs of an iterator"""
    it = iter(iterable)
    try:
        x = next(it)
    except StopIteration:
        return
    for y in it:
        yield x, y
        x = y


def full_weighting():
    """Separable [1, 2, 1] / 4 kernel; along each axis, the weights of full weighting restriction"""
    return np.array([1, 2, 1]) / 4


def reciprocal(spacing, eps=EPSILON):
    """Reciprocal of cell spacing, with zero substituted along degenerate axes

    Parameters
    ----------
    spacing : array_like, [3], float
    eps : float
        spacings not exceeding this are treated as degenerate

    Returns
    -------
    ndarray, [3], float
    """
    spacing = np.asarray(spacing, dtype=np.float64)
    r = np.zeros_like(spacing)
    np.divide(1, spacing, out=r, where=spacing > eps)
    return r


def neighbor_offsets(shape, index, reach=1):
    """Linear offsets of the axis-neighbors of grid points

    Parameters
    ----------
    shape : Tuple[int]
        (nx, ny, nz)
    index : Tuple[int]
        (ix, iy, iz) of the center point; each may also be an array of indices, of shape [n]
    reach : int
        distance to the neighbors along each axis

    Returns
    -------
    ndarray, [3, 2] or [n, 3, 2], int
        for each axis, the offset of the minus and plus neighbor

    Notes
    -----
    No bounds checking is performed; callers are responsible for only
    requesting neighbors that exist
    """
    nx, ny, nz = shape
    strides = np.array([1, nx, nx * ny])
    center = np.tensordot(strides, np.asarray(index), axes=1)
    step = strides * reach
    return center[..., None, None] + np.stack([-step, step], axis=1)
