from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Sequence
import logging
import math
from typing import Generic, Optional, TypeVar

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

import numpy as np

from OpticsResult import NOISE, DbscanOrder, DbscanResult, OpticsResult, OrderedEntry
from PointSpace import (
    UNDEFINED,
    Box,
    ClusterId,
    PointRecord,
    PointSpace,
    SpatialGrid,
    SquaredDistance,
    toSquaredDistance,
)


logger = logging.getLogger(__name__)

T = TypeVar('T')


class TrackProgress(ABC):
    @abstractmethod
    def progress(self, done: int, total: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def isEnded(self) -> bool:
        raise NotImplementedError


class NullTrackProgress(TrackProgress):
    def progress(self, done: int, total: int) -> None:
        pass

    def isEnded(self) -> bool:
        return False


class OpticsSettings:
    generatingDistance: float
    minPts: int
    xi: float
    options: int
    upperLimit: float
    lowerLimit: float

    # Static
    defaultGeneratingDistance: float = 0.0
    defaultMinPts: int = 5
    defaultXi: float = 0.03
    defaultOptions: int = 0
    defaultUpperLimit: float = math.inf
    defaultLowerLimit: float = 0.0

    def __init__(self) -> None:
        self.generatingDistance = self.defaultGeneratingDistance
        self.minPts = self.defaultMinPts
        self.xi = self.defaultXi
        self.options = self.defaultOptions
        self.upperLimit = self.defaultUpperLimit
        self.lowerLimit = self.defaultLowerLimit

    def withGeneratingDistance(self, e: float) -> Self:
        self.generatingDistance = e
        return self

    def withMinPts(self, minPts: int) -> Self:
        self.minPts = minPts
        return self

    def withXi(self, xi: float) -> Self:
        self.xi = xi
        return self

    def withOptions(self, options: int) -> Self:
        self.options = options
        return self

    def withUpperLimit(self, ul: float) -> Self:
        self.upperLimit = ul
        return self

    def withLowerLimit(self, ll: float) -> Self:
        self.lowerLimit = ll
        return self


class PriorityFrontier:
    """Seed list ordered by ascending reachability, then descending id.

    Only the head is kept in order: ``push`` and ``moveUp`` compare the point with
    the head, and ``next`` rescans the remaining entries for the new minimum.
    """

    seeds: list[PointRecord]
    head: int

    def __init__(self) -> None:
        self.seeds = []
        self.head = 0

    def __len__(self) -> int:
        return len(self.seeds) - self.head

    def clear(self) -> None:
        self.seeds.clear()
        self.head = 0

    def hasNext(self) -> bool:
        return self.head < len(self.seeds)

    def push(self, point: PointRecord) -> None:
        point.queueIndex = len(self.seeds)
        self.seeds.append(point)
        self.moveUp(point)

    def moveUp(self, point: PointRecord) -> None:
        if self.precedes(point, self.seeds[self.head]):
            self._swap(self.head, point.queueIndex)

    decreaseKey = moveUp

    def next(self) -> PointRecord:
        point = self.seeds[self.head]
        self.head += 1
        if self.hasNext():
            lowest = self.head
            for i in range(self.head + 1, len(self.seeds)):
                if self.precedes(self.seeds[i], self.seeds[lowest]):
                    lowest = i
            self._swap(self.head, lowest)
        return point

    def _swap(self, i: int, j: int) -> None:
        seeds = self.seeds
        seeds[i], seeds[j] = seeds[j], seeds[i]
        seeds[i].queueIndex = i
        seeds[j].queueIndex = j

    @staticmethod
    def precedes(p1: PointRecord, p2: PointRecord) -> bool:
        if p1.reachabilityDistance != p2.reachabilityDistance:
            return p1.reachabilityDistance < p2.reachabilityDistance
        return p1.id > p2.id


class ResultList(Generic[T]):
    entries: list[T]
    total: int
    tracker: TrackProgress

    def __init__(self, total: int, tracker: TrackProgress) -> None:
        self.entries = []
        self.total = total
        self.tracker = tracker

    def __len__(self) -> int:
        return len(self.entries)

    def add(self, entry: T) -> bool:
        """Append the entry; returns True when the tracker signals to stop."""
        self.entries.append(entry)
        self.tracker.progress(len(self.entries), self.total)
        return self.tracker.isEnded()


class ClusterOrderBuilder:
    """Walk every point once, producing the OPTICS cluster ordering.

    Distances are squared throughout; real distances are only taken when the
    ordered entries are created.
    """

    space: PointSpace
    frontier: PriorityFrontier
    minPts: int
    e: SquaredDistance
    orderedFile: ResultList[OrderedEntry]
    coreDistances: list[float]
    neighbors: list[PointRecord]

    def __init__(
        self,
        space: PointSpace,
        frontier: PriorityFrontier,
        minPts: int,
        orderedFile: ResultList[OrderedEntry]
    ) -> None:
        self.space = space
        self.frontier = frontier
        self.minPts = minPts
        self.e = toSquaredDistance(space.generatingDistanceE)
        self.orderedFile = orderedFile
        self.coreDistances = [0.0] * minPts
        self.neighbors = []

    def build(self) -> bool:
        for point in self.space.setOfObjects:
            if not point.processed and self.expandClusterOrder(point):
                return True
        return False

    def expandClusterOrder(self, point: PointRecord) -> bool:
        if self.process(point):
            return True
        if point.coreDistance == UNDEFINED:
            return False

        self.frontier.clear()
        self.update(self.neighbors, point)
        while self.frontier.hasNext():
            currentPoint = self.frontier.next()
            if self.process(currentPoint):
                return True
            if currentPoint.coreDistance != UNDEFINED:
                self.update(self.neighbors, currentPoint)
        return False

    def process(self, point: PointRecord) -> bool:
        self.neighbors = self.space.findNeighbors(self.minPts, point, self.e)
        point.processed = True
        self.setCoreDistance(self.neighbors, point)
        return self.orderedFile.add(OrderedEntry.fromPointRecord(point))

    def setCoreDistance(self, neighbors: Sequence[PointRecord], point: PointRecord) -> None:
        minPts = self.minPts
        if len(neighbors) < minPts:
            return

        # Keep the minPts smallest distances and the index of their maximum
        working = self.coreDistances
        maxIndex = 0
        for i in range(minPts):
            working[i] = neighbors[i].d
            if working[maxIndex] < working[i]:
                maxIndex = i

        for other in neighbors[minPts:]:
            if working[maxIndex] > other.d:
                working[maxIndex] = other.d
                for j in range(minPts):
                    if working[maxIndex] < working[j]:
                        maxIndex = j

        point.coreDistance = SquaredDistance(working[maxIndex])

    def update(self, neighbors: Sequence[PointRecord], centre: PointRecord) -> None:
        cDist = centre.coreDistance
        for other in reversed(neighbors):
            if other.processed:
                continue
            newReachability = max(cDist, other.d)
            if other.reachabilityDistance == UNDEFINED:
                other.reachabilityDistance = newReachability
                other.predecessor = centre.id
                self.frontier.push(other)
            elif newReachability < other.reachabilityDistance:
                other.reachabilityDistance = newReachability
                other.predecessor = centre.id
                self.frontier.decreaseKey(other)


class DbscanExtractor:
    """Flat DBSCAN clustering by region growing over the point space.

    A point is core when at least ``coreThreshold`` points, itself included, lie
    within E. A border point keeps the first cluster that claims it and is never
    expanded.
    """

    space: PointSpace
    coreThreshold: int
    e: SquaredDistance
    results: ResultList[DbscanOrder]
    clusterIds: list[ClusterId]
    numberOfClusters: int

    def __init__(self, space: PointSpace, minPts: int, results: ResultList[DbscanOrder]) -> None:
        self.space = space
        # A point with no other neighbour is never a cluster
        self.coreThreshold = max(minPts, 2)
        self.e = toSquaredDistance(space.generatingDistanceE)
        self.results = results
        self.clusterIds = [NOISE] * space.size
        self.numberOfClusters = 0

    def extract(self) -> bool:
        stopped = False
        for point in self.space.setOfObjects:
            if not point.processed and self.expandCluster(point):
                stopped = True
                break

        # Noise found before a core point may have been claimed as a border point since
        for entry in self.results.entries:
            entry.clusterId = self.clusterIds[entry.parent]
        return stopped

    def expandCluster(self, point: PointRecord) -> bool:
        neighbors = self.space.findNeighbors(self.coreThreshold, point, self.e)
        point.processed = True
        if len(neighbors) < self.coreThreshold:
            return self.results.add(DbscanOrder(point.id, NOISE, len(neighbors)))

        self.numberOfClusters += 1
        clusterId = self.numberOfClusters
        self.clusterIds[point.id] = clusterId

        queue: deque[PointRecord] = deque()
        self.claim(neighbors, clusterId, queue)
        if self.results.add(DbscanOrder(point.id, clusterId, len(neighbors))):
            return True

        while queue:
            currentPoint = queue.popleft()
            neighbors = self.space.findNeighbors(self.coreThreshold, currentPoint, self.e)
            currentPoint.processed = True
            if self.results.add(DbscanOrder(currentPoint.id, clusterId, len(neighbors))):
                return True
            if len(neighbors) >= self.coreThreshold:
                self.claim(neighbors, clusterId, queue)
        return False

    def claim(self, neighbors: Sequence[PointRecord], clusterId: ClusterId, queue: deque[PointRecord]) -> None:
        clusterIds = self.clusterIds
        for other in neighbors:
            if clusterIds[other.id] != NOISE:
                continue
            clusterIds[other.id] = clusterId
            # Points already visited as noise join as border points only
            if not other.processed:
                queue.append(other)


class OpticsManager:
    """Run OPTICS and DBSCAN over a 2D point set.

    The point space built for a generating distance can be kept between runs
    (``clearMemory=False``) and is reused while the working distance stays the
    same. An instance is not safe for concurrent use.
    """

    xcoord: np.ndarray
    ycoord: np.ndarray
    dataBounds: Box
    area: float
    tracker: TrackProgress
    grid: Optional[SpatialGrid]
    frontier: Optional[PriorityFrontier]

    def __init__(self, xcoord: Sequence[float], ycoord: Sequence[float], bounds: Optional[Box] = None) -> None:
        """
        Args:
            xcoord, ycoord: the point coordinates; a point's id is its index
            bounds: the data space, used for the area when calibrating the
                generating distance. Defaults to the bounds of the points.
        """
        xcoord = np.asarray(xcoord, dtype=np.float64)
        ycoord = np.asarray(ycoord, dtype=np.float64)
        if xcoord.ndim != 1 or ycoord.ndim != 1:
            raise ValueError("Coordinates must be one-dimensional")
        if len(xcoord) == 0:
            raise ValueError("No coordinates")
        if len(xcoord) != len(ycoord):
            raise ValueError(f"Coordinate lengths differ: {len(xcoord)} != {len(ycoord)}")

        self.xcoord = xcoord
        self.ycoord = ycoord
        self.dataBounds = Box.fromCoordinates(xcoord, ycoord)
        self.area = (bounds if bounds is not None else self.dataBounds).area
        self.tracker = NullTrackProgress()
        self.grid = None
        self.frontier = None

    def size(self) -> int:
        return len(self.xcoord)

    def setTracker(self, tracker: Optional[TrackProgress]) -> None:
        self.tracker = tracker if tracker is not None else NullTrackProgress()

    def computeGeneratingDistance(self, minPts: int) -> float:
        return self.computeGeneratingDistanceFor(minPts, self.area, self.size())

    @staticmethod
    def computeGeneratingDistanceFor(minPts: int, area: float, n: int) -> float:
        """Distance at which a uniform spread of ``n`` points over ``area`` gives ``minPts`` neighbours.

        Section 4.1 of Ankerst et al. (1999): the neighbourhood volume is
        (area / n) * minPts, and a 2D neighbourhood is a circle.
        """
        volumeS = (area / n) * minPts
        return math.sqrt(volumeS / math.pi)

    def getWorkingGeneratingDistance(self, generatingDistanceE: float, minPts: int) -> float:
        if self.dataBounds.isPoint:
            # A single point or colocated data
            return 1.0

        diagonal = self.dataBounds.diagonal
        if not math.isfinite(generatingDistanceE) or generatingDistanceE <= 0:
            e = self.computeGeneratingDistance(minPts)
            if not e > 0:
                # No area to calibrate from
                e = diagonal
            logger.debug("Generating distance %s calibrated to %s", generatingDistanceE, e)
            return e

        if generatingDistanceE > diagonal:
            logger.debug("Generating distance %s clamped to the data diagonal %s", generatingDistanceE, diagonal)
            return diagonal

        return generatingDistanceE

    def hasMemory(self) -> bool:
        return self.grid is not None

    def clearMemory(self) -> None:
        self.grid = None
        self.frontier = None

    def _initialise(self, generatingDistanceE: float, minPts: int) -> SpatialGrid:
        generatingDistanceE = self.getWorkingGeneratingDistance(generatingDistanceE, minPts)

        if self.grid is None or self.grid.generatingDistanceE != generatingDistanceE:
            logger.info("Initialising the point space for %d points, e=%s", self.size(), generatingDistanceE)
            self.grid = SpatialGrid(self.xcoord, self.ycoord, self.dataBounds, generatingDistanceE)
            self.frontier = PriorityFrontier()
        else:
            # Same distance so the grid is reused
            self.grid.reset()
            self.frontier.clear()
        return self.grid

    @staticmethod
    def _checkMinPts(minPts: int) -> int:
        if minPts < 1:
            logger.debug("minPts %d clamped to 1", minPts)
            return 1
        return minPts

    def optics(
        self,
        generatingDistanceE: float = 0.0,
        minPts: int = OpticsSettings.defaultMinPts,
        clearMemory: bool = True
    ) -> Optional[OpticsResult]:
        """Compute the OPTICS cluster ordering (Ankerst et al., 1999).

        The generating distance is replaced by a calibrated value when it is not
        strictly positive and finite, and clamped to the data diagonal; the value
        used is stored in the result. The result holds a DBSCAN clustering
        extracted at that distance.

        Args:
            generatingDistanceE: the generating distance E (0 to auto calibrate)
            minPts: the minimum number of points, itself included, for a core point
            clearMemory: drop the point space after the run

        Returns:
            the result, or None if the tracker stopped the run
        """
        minPts = self._checkMinPts(minPts)
        grid = self._initialise(generatingDistanceE, minPts)
        generatingDistanceE = grid.generatingDistanceE

        logger.info("Running OPTICS: e=%s, minPts=%d", generatingDistanceE, minPts)
        self.tracker.progress(0, self.size())

        orderedFile: ResultList[OrderedEntry] = ResultList(self.size(), self.tracker)
        builder = ClusterOrderBuilder(grid, self.frontier, minPts, orderedFile)
        stopped = builder.build()

        result = None
        if stopped:
            logger.warning("Aborted OPTICS after %d of %d points", len(orderedFile), self.size())
        else:
            result = OpticsResult(minPts, generatingDistanceE, orderedFile.entries, self.xcoord, self.ycoord)
            nClusters = result.extractDbscanClustering(generatingDistanceE)
            logger.info("Finished OPTICS: %d clusters", nClusters)

        if clearMemory:
            self.clearMemory()
        return result

    def dbscan(
        self,
        generatingDistanceE: float = 0.0,
        minPts: int = OpticsSettings.defaultMinPts,
        clearMemory: bool = True
    ) -> Optional[DbscanResult]:
        """Cluster with DBSCAN (Ester et al., 1996) using the same point space as OPTICS.

        The generating distance is corrected as for :meth:`optics`.

        Returns:
            the result, or None if the tracker stopped the run
        """
        minPts = self._checkMinPts(minPts)
        grid = self._initialise(generatingDistanceE, minPts)
        generatingDistanceE = grid.generatingDistanceE

        logger.info("Running DBSCAN: e=%s, minPts=%d", generatingDistanceE, minPts)
        self.tracker.progress(0, self.size())

        results: ResultList[DbscanOrder] = ResultList(self.size(), self.tracker)
        extractor = DbscanExtractor(grid, minPts, results)
        stopped = extractor.extract()

        result = None
        if stopped:
            logger.warning("Aborted DBSCAN after %d of %d points", len(results), self.size())
        else:
            result = DbscanResult(
                minPts, generatingDistanceE, results.entries, extractor.numberOfClusters, extractor.coreThreshold
            )
            logger.info("Finished DBSCAN: %d clusters", extractor.numberOfClusters)

        if clearMemory:
            self.clearMemory()
        return result

    def runOptics(self, settings: OpticsSettings) -> Optional[OpticsResult]:
        result = self.optics(settings.generatingDistance, settings.minPts)
        if result is not None and settings.xi > 0:
            result.setUpperLimit(settings.upperLimit)
            result.setLowerLimit(settings.lowerLimit)
            result.extractClusters(settings.xi, settings.options)
        return result

    def runDbscan(self, settings: OpticsSettings) -> Optional[DbscanResult]:
        return self.dbscan(settings.generatingDistance, settings.minPts)
