
import pytest

from pygridmath.parallel import Sequential, ThreadPool


@pytest.fixture(params=['sequential', 'threads'])
def parallel(request):
    """Every test using this fixture runs both in the calling thread and on a thread pool,
    which should yield identical results"""
    if request.param == 'sequential':
        yield Sequential()
    else:
        pool = ThreadPool(n_workers=3)
        yield pool
        pool.close()
