"""
Tests for the OPTICS cluster ordering and the manager
"""

import math

import numpy as np
import pytest
from sklearn.metrics import adjusted_rand_score

from conftest import StopAfter, squaredDistances
from OpticsManager import OpticsManager, OpticsSettings
from OpticsResult import DbscanCluster
from PointSpace import Box


def test_ordering_is_a_permutation(uniformPoints):
    xcoord, ycoord = uniformPoints
    result = OpticsManager(xcoord, ycoord).optics(0.8, 5)

    assert result.size() == len(xcoord)
    assert sorted(entry.parent for entry in result) == list(range(len(xcoord)))
    assert sorted(result.getOrder().tolist()) == list(range(1, len(xcoord) + 1))


def test_core_distance_defined_iff_enough_neighbours(uniformPoints):
    xcoord, ycoord = uniformPoints
    e = 0.8
    minPts = 5
    result = OpticsManager(xcoord, ycoord).optics(e, minPts)
    d2 = squaredDistances(xcoord, ycoord)

    core = result.getCoreDistance()
    for i in range(len(xcoord)):
        within = np.sort(d2[i][d2[i] <= e * e])
        if len(within) >= minPts:
            assert core[i] == pytest.approx(math.sqrt(within[minPts - 1]))
        else:
            assert core[i] == math.inf


def test_reachability_comes_from_the_predecessor(uniformPoints):
    xcoord, ycoord = uniformPoints
    e = 0.8
    result = OpticsManager(xcoord, ycoord).optics(e, 4)
    d2 = squaredDistances(xcoord, ycoord)
    core = result.getCoreDistance()

    assert result.get(0).reachabilityDistance == math.inf
    for entry in result:
        if entry.predecessor == -1:
            # Start of a new expansion
            assert entry.reachabilityDistance == math.inf
        else:
            expected = max(core[entry.predecessor], math.sqrt(d2[entry.predecessor, entry.parent]))
            assert entry.reachabilityDistance == pytest.approx(expected)
            assert entry.reachabilityDistance <= e + 1e-12


def test_predecessor_precedes_point_in_ordering(uniformPoints):
    xcoord, ycoord = uniformPoints
    result = OpticsManager(xcoord, ycoord).optics(0.8, 4)
    order = result.getOrder()

    for entry in result:
        if entry.predecessor != -1:
            assert order[entry.predecessor] < order[entry.parent]


def test_three_point_scenario():
    xcoord = [0.0, 0.0, 10.0]
    ycoord = [0.0, 1.0, 10.0]
    manager = OpticsManager(xcoord, ycoord)

    result = manager.optics(2.0, 1)
    assert result.generatingDistance == 2.0
    assert [entry.parent for entry in result] == [0, 1, 2]
    assert result.get(1).reachabilityDistance <= 2.0
    assert result.get(2).reachabilityDistance == math.inf
    assert all(entry.isCorePoint() for entry in result)
    assert result.getClusters().tolist() == [1, 1, 0]

    dbscan = manager.dbscan(2.0, 1)
    assert dbscan.getClusters().tolist() == [1, 1, 0]
    assert dbscan.getNumberOfClusters() == 1


def test_result_carries_dbscan_clustering_at_generating_distance(blobPoints):
    xcoord, ycoord = blobPoints
    result = OpticsManager(xcoord, ycoord).optics(0.5, 5)

    hierarchy = result.getClusteringHierarchy()
    assert hierarchy
    assert all(isinstance(cluster, DbscanCluster) for cluster in hierarchy)
    assert result.getNumberOfClusters() == len(hierarchy)
    assert set(result.getClusters().tolist()) - {0} == set(range(1, result.getNumberOfClusters() + 1))


@pytest.mark.parametrize('e', [0.5, 0.3])
def test_threshold_extraction_matches_dbscan_on_core_points(blobPoints, e):
    xcoord, ycoord = blobPoints
    minPts = 6
    manager = OpticsManager(xcoord, ycoord)
    optics = manager.optics(0.5, minPts)
    dbscan = manager.dbscan(e, minPts)

    nClusters = optics.extractDbscanClustering(e, core=True)
    assert nClusters == dbscan.getNumberOfClusters()

    opticsClusters = optics.getClusters()
    dbscanClusters = dbscan.getClusters(core=True)
    assert np.array_equal(opticsClusters == 0, dbscanClusters == 0)
    assert adjusted_rand_score(opticsClusters, dbscanClusters) == pytest.approx(1.0)


def test_generating_distance_calibration(uniformPoints):
    xcoord, ycoord = uniformPoints
    manager = OpticsManager(xcoord, ycoord)

    assert OpticsManager.computeGeneratingDistanceFor(5, 100.0, 100) == pytest.approx(math.sqrt(5 / math.pi))
    expected = manager.computeGeneratingDistance(5)
    assert manager.optics(0, 5).generatingDistance == pytest.approx(expected)
    assert manager.optics(math.nan, 5).generatingDistance == pytest.approx(expected)
    assert manager.optics(-1.0, 5).generatingDistance == pytest.approx(expected)


def test_generating_distance_uses_supplied_bounds(uniformPoints):
    xcoord, ycoord = uniformPoints
    manager = OpticsManager(xcoord, ycoord, Box.fromRectangle(0, 0, 20, 20))
    assert manager.computeGeneratingDistance(5) == pytest.approx(
        OpticsManager.computeGeneratingDistanceFor(5, 400.0, len(xcoord)))


def test_generating_distance_clamped_to_diagonal(uniformPoints):
    xcoord, ycoord = uniformPoints
    manager = OpticsManager(xcoord, ycoord)
    result = manager.optics(1e6, 5)

    assert result.generatingDistance == pytest.approx(manager.dataBounds.diagonal)
    assert all(entry.isCorePoint() for entry in result)


def test_colocated_points():
    manager = OpticsManager(np.full(6, 2.0), np.full(6, 2.0))
    result = manager.optics(0, 3)

    assert result.generatingDistance == 1.0
    assert all(entry.coreDistance == 0.0 for entry in result)
    assert result.getClusters().tolist() == [1] * 6


def test_vanishing_generating_distance():
    result = OpticsManager([0.0, 0.0, 10.0], [0.0, 1.0, 10.0]).optics(1e-310, 2)
    assert result.generatingDistance == 1e-310
    assert sorted(entry.parent for entry in result) == [0, 1, 2]
    assert not any(entry.isCorePoint() for entry in result)
    assert result.getClusters().tolist() == [0, 0, 0]

    dbscan = OpticsManager([0.0, 5.0], [0.0, 5.0]).dbscan(1e-320, 1)
    assert dbscan.getClusters().tolist() == [0, 0]
    assert dbscan.getNumberOfClusters() == 0


def test_min_pts_is_clamped(uniformPoints):
    xcoord, ycoord = uniformPoints
    result = OpticsManager(xcoord, ycoord).optics(0.5, 0)

    assert result.minPts == 1
    assert all(entry.coreDistance == 0.0 for entry in result)


def test_invalid_coordinates():
    with pytest.raises(ValueError):
        OpticsManager([], [])
    with pytest.raises(ValueError):
        OpticsManager([1.0, 2.0], [1.0])
    with pytest.raises(ValueError):
        OpticsManager([[1.0, 2.0]], [[1.0, 2.0]])


def test_cancelled_run_returns_none(uniformPoints):
    xcoord, ycoord = uniformPoints
    manager = OpticsManager(xcoord, ycoord)
    tracker = StopAfter(10)
    manager.setTracker(tracker)

    assert manager.optics(0.8, 5, clearMemory=False) is None
    assert tracker.done == 10
    assert tracker.total == len(xcoord)
    assert manager.dbscan(0.8, 5, clearMemory=False) is None

    # The kept memory is reset by the next run
    manager.setTracker(None)
    result = manager.optics(0.8, 5)
    expected = OpticsManager(xcoord, ycoord).optics(0.8, 5)
    assert np.array_equal(result.getReachabilityDistanceProfile(), expected.getReachabilityDistanceProfile())
    assert [entry.parent for entry in result] == [entry.parent for entry in expected]


def test_memory_is_reused_for_the_same_distance(uniformPoints):
    xcoord, ycoord = uniformPoints
    manager = OpticsManager(xcoord, ycoord)
    assert not manager.hasMemory()

    manager.optics(0.8, 5, clearMemory=False)
    grid = manager.grid
    assert manager.hasMemory()

    result = manager.optics(0.8, 8, clearMemory=False)
    assert manager.grid is grid
    expected = OpticsManager(xcoord, ycoord).optics(0.8, 8)
    assert np.array_equal(result.getCoreDistance(), expected.getCoreDistance())
    assert np.array_equal(result.getReachabilityDistance(), expected.getReachabilityDistance())

    manager.dbscan(0.8, 5, clearMemory=False)
    assert manager.grid is grid

    manager.optics(0.6, 5, clearMemory=False)
    assert manager.grid is not grid

    manager.clearMemory()
    assert not manager.hasMemory()


def test_profiles_and_conversion(uniformPoints):
    xcoord, ycoord = uniformPoints
    result = OpticsManager(xcoord, ycoord).optics(0.4, 6)

    profile = result.getReachabilityDistanceProfile()
    converted = result.getReachabilityDistanceProfile(convert=True)
    assert np.isinf(profile[0])
    assert converted[0] == result.generatingDistance
    assert np.all(converted <= result.generatingDistance + 1e-12)

    byId = result.getReachabilityDistance()
    order = result.getOrder()
    assert np.array_equal(byId, profile[order - 1])
    assert np.array_equal(result.getCoreDistance(), result.getCoreDistanceProfile()[order - 1])

    predecessors = result.getPredecessor()
    for entry in result:
        assert predecessors[entry.parent] == entry.predecessor


def test_run_with_settings(blobPoints):
    xcoord, ycoord = blobPoints
    manager = OpticsManager(xcoord, ycoord)
    settings = OpticsSettings().withGeneratingDistance(0.8).withMinPts(8).withXi(0.05)

    result = manager.runOptics(settings)
    assert result.minPts == 8
    assert result.generatingDistance == 0.8
    assert not any(isinstance(c, DbscanCluster) for c in result.getAllClusters())

    flat = manager.runOptics(OpticsSettings().withGeneratingDistance(0.8).withXi(0))
    assert all(isinstance(c, DbscanCluster) for c in flat.getAllClusters())

    dbscan = manager.runDbscan(settings)
    assert dbscan.minPts == 8
    assert dbscan.getNumberOfClusters() >= 1
