import numpy as np
import pytest
from scipy.spatial.distance import cdist
from sklearn.datasets import make_blobs

from OpticsManager import TrackProgress


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def uniformPoints(rng):
    xcoord = rng.uniform(0, 10, 300)
    ycoord = rng.uniform(0, 10, 300)
    return xcoord, ycoord


@pytest.fixture
def blobPoints():
    points, _ = make_blobs(n_samples=400, centers=[(0, 0), (6, 6), (0, 8)], cluster_std=0.6, random_state=7)
    return points[:, 0], points[:, 1]


def squaredDistances(xcoord, ycoord):
    points = np.column_stack((xcoord, ycoord))
    return cdist(points, points, 'sqeuclidean')


class StopAfter(TrackProgress):
    """Tracker that ends the run once ``limit`` entries have been reported."""

    def __init__(self, limit):
        self.limit = limit
        self.done = 0
        self.total = 0

    def progress(self, done, total):
        self.done = done
        self.total = total

    def isEnded(self):
        return self.done >= self.limit
