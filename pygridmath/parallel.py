"""Parallel-for over contiguous sub-ranges of an index range

Operators and solvers in this package decompose the slowest (z) axis of a grid into
contiguous, disjoint ranges and process each range independently.
All they depend upon is the contract of ParallelFor.map:

    each index in [start, stop) is handed to exactly one call of func,
    and map returns only after every call has completed

The return from map thus acts as a barrier between successive passes.

Rather than a process-wide worker count, an instance of one of these classes is passed
explicitly to every call that can make use of it; None means sequential execution.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor

from pygridmath.util import pairs


logger = logging.getLogger(__name__)


class ParallelFor(object):
    """Abstract interface for executing a function over disjoint index ranges"""

    n_workers = 1

    def grain_size(self, n):
        """Static grain size heuristic; not adaptive to runtime load"""
        return max(1, n // self.n_workers)

    def partition(self, start, stop):
        """Split [start, stop) into contiguous disjoint ranges

        Returns
        -------
        List[Tuple[int, int]]
            (range_start, range_stop) pairs, in increasing order
        """
        if stop <= start:
            return []
        grain = self.grain_size(stop - start)
        bounds = list(range(start, stop, grain)) + [stop]
        return list(pairs(bounds))

    def map(self, func, start, stop):
        """Call func(range_start, range_stop) for each range in the partition of [start, stop)

        Returns
        -------
        list
            return values of func, ordered by range
        """
        raise NotImplementedError


class Sequential(ParallelFor):
    """Executes all ranges one after the other, in the calling thread"""

    def map(self, func, start, stop):
        return [func(s, e) for s, e in self.partition(start, stop)]

    def __repr__(self):
        return 'Sequential()'


class ThreadPool(ParallelFor):
    """Executes ranges concurrently on a pool of worker threads

    Numpy releases the GIL for the bulk of the array arithmetic,
    so threads do execute concurrently for sufficiently large slabs.
    """

    def __init__(self, n_workers=None):
        self.n_workers = n_workers or os.cpu_count() or 1
        assert self.n_workers >= 1
        self.executor = ThreadPoolExecutor(max_workers=self.n_workers)

    def map(self, func, start, stop):
        ranges = self.partition(start, stop)
        logger.debug('dispatching %d ranges of [%d, %d) to %d workers', len(ranges), start, stop, self.n_workers)
        futures = [self.executor.submit(func, s, e) for s, e in ranges]
        # collecting every result is the barrier; exceptions in workers propagate from here
        return [f.result() for f in futures]

    def close(self):
        self.executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self):
        return f'ThreadPool(n_workers={self.n_workers})'


SEQUENTIAL = Sequential()


def as_parallel(parallel):
    """Substitute sequential execution for None"""
    if parallel is None:
        return SEQUENTIAL
    assert isinstance(parallel, ParallelFor)
    return parallel
