from collections.abc import Iterator, Sequence
import logging
import math
from typing import Optional

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

import numpy as np
from scipy.spatial import ConvexHull, QhullError

from PointSpace import Box, ClusterId, PointId, PointRecord, toDistance


logger = logging.getLogger(__name__)

NOISE: ClusterId = 0

# Return only top-level clusters that do not contain other clusters
XI_OPTION_TOP_LEVEL = 1
# Do not correct the ends of steep up areas (as in the OPTICS article)
XI_OPTION_NO_CORRECT = 2
# The first and last reachable points of a cluster must be at or below the upper limit
XI_OPTION_UPPER_LIMIT = 4
# The first and last reachable points of a cluster must be at or above the lower limit
XI_OPTION_LOWER_LIMIT = 8


class OrderedEntry:
    """One point of the OPTICS cluster ordering.

    Distances are real (not squared) distances; an undefined distance is stored
    as positive infinity. ``clusterId`` is written by the extraction passes.
    """

    parent: PointId
    predecessor: PointId
    coreDistance: float
    reachabilityDistance: float
    clusterId: ClusterId

    def __init__(
        self,
        parent: PointId,
        predecessor: PointId,
        coreDistance: float,
        reachabilityDistance: float,
        clusterId: ClusterId = NOISE
    ) -> None:
        self.parent = parent
        self.predecessor = predecessor
        self.coreDistance = coreDistance
        self.reachabilityDistance = reachabilityDistance
        self.clusterId = clusterId

    @classmethod
    def fromPointRecord(cls, point: PointRecord) -> Self:
        return cls(
            point.id, point.predecessor,
            toDistance(point.coreDistance), toDistance(point.reachabilityDistance)
        )

    def isCorePoint(self) -> bool:
        return self.coreDistance != math.inf

    def __str__(self) -> str:
        return (f"OrderedEntry {self.parent}; predecessor = {self.predecessor}; core = {self.coreDistance}; "
                f"reachability = {self.reachabilityDistance}; cluster = {self.clusterId}")


class Cluster:
    """A cluster as an inclusive range ``[start, end]`` of the cluster ordering.

    ``level`` is the height above the deepest nested child (a leaf has level 0).
    """

    start: int
    end: int
    clusterId: ClusterId
    children: Optional[list[Self]]
    level: int

    def __init__(self, start: int, end: int, clusterId: ClusterId) -> None:
        self.start = start
        self.end = end
        self.clusterId = clusterId
        self.children = None
        self.level = 0

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def addChildCluster(self, child: Self) -> None:
        if self.children is None:
            self.children = []
        self.children.append(child)
        self.level = max(self.level, child.level + 1)

    def contains(self, other: Self) -> bool:
        return self.start <= other.start and other.end <= self.end

    def overlaps(self, start: int, end: int) -> bool:
        if self.start <= start:
            return self.end >= start
        return self.start <= end

    def __str__(self) -> str:
        return f"{type(self).__name__} {self.clusterId} [{self.start} - {self.end}]; level = {self.level}"


class DbscanCluster(Cluster):
    """Flat cluster from a DBSCAN-style threshold extraction.

    The range may include non-member points when only core points were assigned.
    """


class SteepArea:
    s: int
    e: int
    maximum: float

    def __init__(self, s: int, e: int, maximum: float) -> None:
        self.s = s
        self.e = e
        self.maximum = maximum


class SteepDownArea(SteepArea):
    # Maximum-in-between: the largest reachability seen since the area closed
    mib: float

    def __init__(self, s: int, e: int, maximum: float) -> None:
        super().__init__(s, e, maximum)
        self.mib = 0.0

    def __str__(self) -> str:
        return f"SDA s={self.s}, e={self.e}, max={self.maximum}, mib={self.mib}"


class SteepUpArea(SteepArea):
    def __str__(self) -> str:
        return f"SUA s={self.s}, e={self.e}, max={self.maximum}"


class XiClusterExtractor:
    """Extract a cluster hierarchy from a reachability profile with the OPTICS xi method.

    Follows Ankerst et al. (1999) section 4.3 with two corrections also made by
    ELKI: points with infinite reachability are trimmed from the end of a
    cluster, and the end is pulled back until its predecessor lies inside the
    cluster. Both are disabled by ``XI_OPTION_NO_CORRECT``.

    The extraction writes the cluster id of every entry. Nested clusters keep the
    ids already assigned to their children; in top-level mode a cluster
    overwrites its whole range.
    """

    minPts: int
    xi: float
    options: int
    upperLimit: float
    lowerLimit: float

    def __init__(
        self,
        minPts: int,
        xi: float,
        options: int = 0,
        upperLimit: float = math.inf,
        lowerLimit: float = 0.0
    ) -> None:
        self.minPts = minPts
        self.xi = xi
        self.options = options
        self.upperLimit = upperLimit
        self.lowerLimit = lowerLimit

    def extract(self, entries: Sequence[OrderedEntry]) -> list[Cluster]:
        topLevel = (self.options & XI_OPTION_TOP_LEVEL) != 0
        noCorrect = (self.options & XI_OPTION_NO_CORRECT) != 0
        ul = self.upperLimit
        ll = self.lowerLimit
        useUpperLimit = (self.options & XI_OPTION_UPPER_LIMIT) != 0 and ul < math.inf
        useLowerLimit = (self.options & XI_OPTION_LOWER_LIMIT) != 0 and ll > 0
        minPts = self.minPts

        for entry in entries:
            entry.clusterId = NOISE

        setOfSteepDownAreas: list[SteepDownArea] = []
        setOfClusters: list[Cluster] = []

        size = len(entries)
        ixi = 1 - self.xi
        r = [entry.reachabilityDistance for entry in entries]
        index = 0
        mib = 0.0
        clusterId = NOISE

        while index < size:
            mib = max(mib, r[index])

            # The last point cannot start a steep area
            if index + 1 >= size:
                break

            if self.steepDown(index, r, ixi):
                if useUpperLimit and r[index + 1] > ul:
                    index += 1
                    continue
                if useLowerLimit and r[index + 1] < ll:
                    index += 1
                    continue

                self.updateFilterSdaSet(mib, setOfSteepDownAreas, ixi)
                startValue = r[index]
                mib = 0.0
                startSteep = index
                endSteep = index + 1

                index += 1
                while index < size:
                    if self.steepDown(index, r, ixi):
                        endSteep = index + 1
                        index += 1
                        continue
                    # Stop when no longer descending or after minPts non-steep points
                    if not self.steepDown(index, r, 1.0) or index - endSteep > minPts:
                        break
                    index += 1

                setOfSteepDownAreas.append(SteepDownArea(startSteep, endSteep, startValue))
                continue

            if not self.steepUp(index, r, ixi):
                index += 1
                continue

            if useUpperLimit and r[index] > ul:
                index += 1
                continue
            if useLowerLimit and r[index] < ll:
                index += 1
                continue

            self.updateFilterSdaSet(mib, setOfSteepDownAreas, ixi)

            startSteep = index
            endSteep = index + 1
            mib = r[index]
            eSuccessor = self.getNextReachability(index, r)
            if eSuccessor != math.inf:
                index += 1
                while index < size:
                    if self.steepUp(index, r, ixi):
                        if useUpperLimit and r[index] > ul:
                            break
                        endSteep = index + 1
                        mib = r[index]
                        eSuccessor = self.getNextReachability(index, r)
                        if eSuccessor == math.inf:
                            endSteep -= 1
                            break
                        index += 1
                        continue
                    if not self.steepUp(index, r, 1.0) or index - endSteep > minPts:
                        break
                    index += 1
            else:
                endSteep -= 1
                index += 1

            sua = SteepUpArea(startSteep, endSteep, eSuccessor)

            # mib holds the value at the end of the steep up area
            threshold = mib * ixi
            for sda in reversed(setOfSteepDownAreas):
                if sda.mib > threshold:
                    continue

                cstart, cend = self.correctClusterRange(entries, r, sda, sua, ixi, noCorrect)

                if cend - cstart + 1 < minPts:
                    continue

                clusterId += 1
                if topLevel:
                    cluster, setOfClusters = self._mergeTopLevel(entries, setOfClusters, cstart, cend, clusterId)
                else:
                    cluster, setOfClusters = self._mergeNested(entries, setOfClusters, cstart, cend, clusterId)
                setOfClusters.append(cluster)

        return setOfClusters

    @classmethod
    def correctClusterRange(
        cls,
        entries: Sequence[OrderedEntry],
        r: Sequence[float],
        sda: SteepDownArea,
        sua: SteepUpArea,
        ixi: float,
        noCorrect: bool
    ) -> tuple[int, int]:
        cstart = sda.s
        cend = sua.e

        # Never end a cluster on infinitely reachable points
        if not noCorrect:
            while cend > cstart and r[cend] == math.inf:
                cend -= 1

        # Match the start and end heights when they are xi-significantly different
        if sda.maximum * ixi >= sua.maximum:
            while cstart < cend and r[cstart + 1] > sua.maximum:
                cstart += 1
        elif sua.maximum * ixi >= sda.maximum:
            while cend > cstart and r[cend - 1] > sda.maximum:
                cend -= 1

        # The last point must have been reached from inside the cluster
        if not noCorrect and cend > cstart:
            parents = {entries[c].parent for c in range(cstart, cend)}
            while cend > cstart:
                if entries[cend].predecessor in parents:
                    break
                cend -= 1
                parents.discard(entries[cend].parent)

        return cstart, cend

    @staticmethod
    def _mergeTopLevel(
        entries: Sequence[OrderedEntry],
        setOfClusters: list[Cluster],
        cstart: int,
        cend: int,
        clusterId: ClusterId
    ) -> tuple[Cluster, list[Cluster]]:
        lowestId = clusterId
        remaining: list[Cluster] = []
        for child in setOfClusters:
            if cstart <= child.start and child.end <= cend:
                lowestId = min(lowestId, child.clusterId)
            else:
                remaining.append(child)

        cluster = Cluster(cstart, cend, lowestId)
        for i in range(cstart, cend + 1):
            entries[i].clusterId = lowestId
        return cluster, remaining

    @staticmethod
    def _mergeNested(
        entries: Sequence[OrderedEntry],
        setOfClusters: list[Cluster],
        cstart: int,
        cend: int,
        clusterId: ClusterId
    ) -> tuple[Cluster, list[Cluster]]:
        cluster = Cluster(cstart, cend, clusterId)
        # Points already in a child cluster keep their id
        for i in range(cstart, cend + 1):
            if entries[i].clusterId == NOISE:
                entries[i].clusterId = clusterId

        remaining: list[Cluster] = []
        for child in setOfClusters:
            if cluster.contains(child):
                cluster.addChildCluster(child)
            else:
                remaining.append(child)
        return cluster, remaining

    @staticmethod
    def updateFilterSdaSet(mib: float, setOfSteepDownAreas: list[SteepDownArea], ixi: float) -> None:
        # Drop areas whose start scaled by (1 - xi) is below the global mib
        threshold = mib / ixi
        setOfSteepDownAreas[:] = [sda for sda in setOfSteepDownAreas if not sda.maximum < threshold]
        for sda in setOfSteepDownAreas:
            if mib > sda.mib:
                sda.mib = mib

    @staticmethod
    def steepUp(i: int, r: Sequence[float], ixi: float) -> bool:
        if r[i] == math.inf:
            return False
        if i + 1 >= len(r):
            return True
        return r[i] <= r[i + 1] * ixi

    @staticmethod
    def steepDown(i: int, r: Sequence[float], ixi: float) -> bool:
        if i + 1 >= len(r):
            return False
        if r[i + 1] == math.inf:
            return False
        return r[i] * ixi >= r[i + 1]

    @staticmethod
    def getNextReachability(index: int, r: Sequence[float]) -> float:
        return r[index + 1] if index + 1 < len(r) else math.inf


class OpticsResult:
    """The cluster ordering produced by OPTICS and the clusterings extracted from it."""

    minPts: int
    generatingDistance: float
    opticsResults: list[OrderedEntry]
    xcoord: np.ndarray
    ycoord: np.ndarray
    upperLimit: float
    lowerLimit: float
    _clustering: Optional[list[Cluster]]
    _hulls: Optional[dict[ClusterId, np.ndarray]]

    def __init__(
        self,
        minPts: int,
        generatingDistance: float,
        opticsResults: list[OrderedEntry],
        xcoord: Sequence[float],
        ycoord: Sequence[float]
    ) -> None:
        self.minPts = minPts
        self.generatingDistance = generatingDistance
        self.opticsResults = opticsResults
        self.xcoord = np.asarray(xcoord, dtype=np.float64)
        self.ycoord = np.asarray(ycoord, dtype=np.float64)
        self.upperLimit = math.inf
        self.lowerLimit = 0.0
        self._clustering = None
        self._hulls = None

    def size(self) -> int:
        return len(self.opticsResults)

    def __len__(self) -> int:
        return len(self.opticsResults)

    def __iter__(self) -> Iterator[OrderedEntry]:
        return iter(self.opticsResults)

    def get(self, index: int) -> OrderedEntry:
        return self.opticsResults[index]

    def _convert(self, data: np.ndarray) -> np.ndarray:
        data[data == math.inf] = self.generatingDistance
        return data

    def getReachabilityDistanceProfile(self, convert: bool = False) -> np.ndarray:
        """Reachability distances in cluster order; +inf becomes the generating distance if ``convert``."""
        data = np.array([entry.reachabilityDistance for entry in self.opticsResults], dtype=np.float64)
        return self._convert(data) if convert else data

    def getReachabilityDistance(self, convert: bool = False) -> np.ndarray:
        data = np.empty(self.size(), dtype=np.float64)
        for entry in self.opticsResults:
            data[entry.parent] = entry.reachabilityDistance
        return self._convert(data) if convert else data

    def getCoreDistanceProfile(self, convert: bool = False) -> np.ndarray:
        data = np.array([entry.coreDistance for entry in self.opticsResults], dtype=np.float64)
        return self._convert(data) if convert else data

    def getCoreDistance(self, convert: bool = False) -> np.ndarray:
        data = np.empty(self.size(), dtype=np.float64)
        for entry in self.opticsResults:
            data[entry.parent] = entry.coreDistance
        return self._convert(data) if convert else data

    def getOrder(self) -> np.ndarray:
        """1-based position of each input point in the cluster ordering."""
        data = np.empty(self.size(), dtype=np.int64)
        for i, entry in enumerate(self.opticsResults):
            data[entry.parent] = i + 1
        return data

    def getPredecessor(self) -> np.ndarray:
        data = np.empty(self.size(), dtype=np.int64)
        for entry in self.opticsResults:
            data[entry.parent] = entry.predecessor
        return data

    def resetClusterIds(self) -> None:
        for entry in self.opticsResults:
            entry.clusterId = NOISE
        self._clustering = None
        self._hulls = None

    def setUpperLimit(self, upperLimit: float) -> None:
        if math.isnan(upperLimit) or upperLimit <= 0:
            upperLimit = math.inf
        self.upperLimit = upperLimit

    def setLowerLimit(self, lowerLimit: float) -> None:
        if math.isnan(lowerLimit):
            lowerLimit = 0.0
        self.lowerLimit = lowerLimit

    def extractDbscanClustering(self, generatingDistanceE: float, core: bool = False) -> int:
        """Extract a DBSCAN clustering at distance E (at most the OPTICS generating distance).

        A point whose reachability exceeds E starts a new cluster if it is a core
        point at E and is noise otherwise. With minPts of 1 every point is core, so a
        point with no neighbour within E is reported as noise rather than as a
        single-point cluster.

        Returns:
            the number of clusters
        """
        self.resetClusterIds()

        setOfClusters: list[Cluster] = []
        current: Optional[DbscanCluster] = None
        members = 0

        for i, entry in enumerate(self.opticsResults):
            if entry.reachabilityDistance > generatingDistanceE:
                # Not connected to the previous point; the first point of the
                # ordering always lands here
                self._closeDbscanCluster(current, members, setOfClusters)
                current = None
                if entry.coreDistance <= generatingDistanceE:
                    current = DbscanCluster(i, i, len(setOfClusters) + 1)
                    entry.clusterId = current.clusterId
                    members = 1
            elif current is not None and (not core or entry.coreDistance <= generatingDistanceE):
                current.end = i
                entry.clusterId = current.clusterId
                members += 1

        self._closeDbscanCluster(current, members, setOfClusters)
        self._clustering = setOfClusters
        return len(setOfClusters)

    def _closeDbscanCluster(self, cluster: Optional[DbscanCluster], members: int, setOfClusters: list[Cluster]) -> None:
        if cluster is None:
            return
        if members < 2 and self.minPts < 2:
            self.opticsResults[cluster.start].clusterId = NOISE
        else:
            setOfClusters.append(cluster)

    def extractClusters(self, xi: float, options: int = 0) -> None:
        """Extract the xi cluster hierarchy, replacing any previous clustering.

        Higher xi values find only the most significant clusters.
        """
        self.resetClusterIds()
        extractor = XiClusterExtractor(self.minPts, xi, options, self.upperLimit, self.lowerLimit)
        self._clustering = extractor.extract(self.opticsResults)
        logger.debug("Extracted %d clusters with xi=%s, options=%d", self.getNumberOfClusters(), xi, options)

    def getClusteringHierarchy(self) -> Optional[list[Cluster]]:
        return self._clustering

    def getAllClusters(self) -> list[Cluster]:
        """All clusters in the hierarchy, children before their parent."""
        result: list[Cluster] = []
        self._addClusters(self._clustering, result)
        return result

    @classmethod
    def _addClusters(cls, hierarchy: Optional[list[Cluster]], result: list[Cluster]) -> None:
        if hierarchy is None:
            return
        for cluster in hierarchy:
            cls._addClusters(cluster.children, result)
            result.append(cluster)

    def getNumberOfClusters(self) -> int:
        return len(self.getAllClusters())

    def getNumberOfLevels(self) -> int:
        if not self._clustering:
            return 0
        return 1 + max(cluster.level for cluster in self._clustering)

    def getClusters(self, core: bool = False) -> np.ndarray:
        """Cluster id of each input point; with ``core`` only core points are labelled."""
        clusters = np.zeros(self.size(), dtype=np.int64)
        for entry in self.opticsResults:
            if not core or entry.isCorePoint():
                clusters[entry.parent] = entry.clusterId
        return clusters

    def getTopLevelClusters(self, core: bool = False) -> np.ndarray:
        clusters = np.zeros(self.size(), dtype=np.int64)
        if not self._clustering:
            return clusters
        if isinstance(self._clustering[0], DbscanCluster):
            # Flat clustering; ranges may span unassigned border points
            return self.getClusters(core)

        ordered = np.zeros(self.size(), dtype=np.int64)
        for cluster in self._clustering:
            ordered[cluster.start:cluster.end + 1] = cluster.clusterId
        for i, entry in enumerate(self.opticsResults):
            if not core or entry.isCorePoint():
                clusters[entry.parent] = ordered[i]
        return clusters

    def getClustersFromOrder(self, start: int, end: int, includeChildren: bool) -> list[ClusterId]:
        """Ids of the clusters overlapping the 1-based ordering range ``[start, end]``."""
        if self._clustering is None:
            return []
        if end < start:
            end = start
        if start > self.size() or end < 1:
            return []

        start = max(0, start - 1)
        end = min(self.size() - 1, end - 1)
        single = start == end

        clusterIds: list[ClusterId] = []
        for cluster in self._clustering:
            if cluster.overlaps(start, end):
                if includeChildren:
                    clusterIds.extend(c.clusterId for c in self.getAllClustersOf(cluster.children))
                clusterIds.append(cluster.clusterId)
                if single:
                    break
        return clusterIds

    @classmethod
    def getAllClustersOf(cls, hierarchy: Optional[list[Cluster]]) -> list[Cluster]:
        result: list[Cluster] = []
        cls._addClusters(hierarchy, result)
        return result

    def getParents(self, clusterIds: Sequence[ClusterId]) -> np.ndarray:
        """Input point ids of the members of the given clusters, in the order the ids are given."""
        if not self._clustering or not clusterIds:
            return np.empty(0, dtype=np.int64)

        knownIds = {cluster.clusterId for cluster in self.getAllClusters()}
        ranks: dict[ClusterId, int] = {}
        for rank, clusterId in enumerate(clusterIds):
            if clusterId in knownIds and clusterId not in ranks:
                ranks[clusterId] = rank

        if isinstance(self._clustering[0], DbscanCluster):
            # No hierarchy; members are identified by their id
            members = [
                entry.parent
                for clusterId in ranks
                for entry in self.opticsResults
                if entry.clusterId == clusterId
            ]
            return np.array(members, dtype=np.int64)

        parents: list[PointId] = []
        parentRanks: list[int] = []
        self._collectParents(self._clustering, ranks, parents, parentRanks)

        order = np.argsort(np.array(parentRanks, dtype=np.int64), kind='stable')
        return np.array(parents, dtype=np.int64)[order]

    def _collectParents(
        self,
        hierarchy: Optional[list[Cluster]],
        ranks: dict[ClusterId, int],
        parents: list[PointId],
        parentRanks: list[int]
    ) -> None:
        if hierarchy is None:
            return
        for cluster in hierarchy:
            if not ranks:
                return
            if cluster.clusterId in ranks:
                rank = ranks[cluster.clusterId]
                for i in range(cluster.start, cluster.end + 1):
                    parents.append(self.opticsResults[i].parent)
                    parentRanks.append(rank)
                # The range already holds all nested members
                for c in self.getAllClustersOf([cluster]):
                    ranks.pop(c.clusterId, None)
            else:
                self._collectParents(cluster.children, ranks, parents, parentRanks)

    def scrambleClusters(self, rng: np.random.Generator) -> None:
        """Randomly relabel the clusters; ids still increase with the cluster level."""
        self._hulls = None
        clusters = self.getAllClusters()
        if not clusters:
            return

        idsByLevel: list[list[ClusterId]] = [[] for _ in range(self.getNumberOfLevels())]
        for cluster in clusters:
            idsByLevel[cluster.level].append(cluster.clusterId)

        mapping: dict[ClusterId, ClusterId] = {}
        newId = 1
        for ids in idsByLevel:
            for clusterId in rng.permutation(ids):
                mapping[int(clusterId)] = newId
                newId += 1

        for entry in self.opticsResults:
            if entry.clusterId != NOISE:
                entry.clusterId = mapping[entry.clusterId]
        for cluster in clusters:
            cluster.clusterId = mapping[cluster.clusterId]

    def _findCluster(self, clusterId: ClusterId) -> Optional[Cluster]:
        return next((c for c in self.getAllClusters() if c.clusterId == clusterId), None)

    def _memberParents(self, cluster: Cluster) -> list[PointId]:
        if isinstance(cluster, DbscanCluster):
            return [
                self.opticsResults[i].parent
                for i in range(cluster.start, cluster.end + 1)
                if self.opticsResults[i].clusterId == cluster.clusterId
            ]
        return [self.opticsResults[i].parent for i in range(cluster.start, cluster.end + 1)]

    def getBounds(self, clusterId: ClusterId) -> Optional[Box]:
        cluster = self._findCluster(clusterId)
        if cluster is None:
            return None
        parents = self._memberParents(cluster)
        return Box.fromCoordinates(self.xcoord[parents], self.ycoord[parents])

    def hasConvexHulls(self) -> bool:
        return self._hulls is not None

    def computeConvexHulls(self) -> None:
        if self.hasConvexHulls() or self._clustering is None:
            return
        self._hulls = {}
        self._computeConvexHulls(self._clustering)

    def _computeConvexHulls(self, hierarchy: list[Cluster]) -> None:
        for cluster in hierarchy:
            if cluster.children:
                self._computeConvexHulls(cluster.children)

            parents = [
                self.opticsResults[i].parent
                for i in range(cluster.start, cluster.end + 1)
                if self.opticsResults[i].clusterId == cluster.clusterId
            ]
            points = [np.column_stack((self.xcoord[parents], self.ycoord[parents]))]

            # A child's hull stands in for all of its points
            for child in cluster.children or []:
                hull = self._hulls.get(child.clusterId)
                if hull is None:
                    childParents = self._memberParents(child)
                    hull = np.column_stack((self.xcoord[childParents], self.ycoord[childParents]))
                points.append(hull)

            hull = self.createConvexHull(np.concatenate(points))
            if hull is not None:
                self._hulls[cluster.clusterId] = hull

    @staticmethod
    def createConvexHull(points: np.ndarray) -> Optional[np.ndarray]:
        """Hull vertices in counter-clockwise order, or None for degenerate point sets."""
        if len(points) == 0 or len(np.unique(points, axis=0)) < 3:
            return None
        try:
            hull = ConvexHull(points)
        except QhullError:
            # Collinear points
            return None
        return points[hull.vertices]

    def getConvexHull(self, clusterId: ClusterId) -> Optional[np.ndarray]:
        if self._hulls is None:
            return None
        return self._hulls.get(clusterId)


class DbscanOrder:
    parent: PointId
    clusterId: ClusterId
    # Neighbours found within E (0 when rejected as non-core without a distance scan)
    nPts: int

    def __init__(self, parent: PointId, clusterId: ClusterId, nPts: int) -> None:
        self.parent = parent
        self.clusterId = clusterId
        self.nPts = nPts

    def __str__(self) -> str:
        return f"DbscanOrder {self.parent}; cluster = {self.clusterId}; neighbors = {self.nPts}"


class DbscanResult:
    minPts: int
    generatingDistance: float
    dbscanResults: list[DbscanOrder]
    numberOfClusters: int
    coreThreshold: int

    def __init__(
        self,
        minPts: int,
        generatingDistance: float,
        dbscanResults: list[DbscanOrder],
        numberOfClusters: int,
        coreThreshold: int
    ) -> None:
        self.minPts = minPts
        self.generatingDistance = generatingDistance
        self.dbscanResults = dbscanResults
        self.numberOfClusters = numberOfClusters
        self.coreThreshold = coreThreshold

    def size(self) -> int:
        return len(self.dbscanResults)

    def __len__(self) -> int:
        return len(self.dbscanResults)

    def get(self, index: int) -> DbscanOrder:
        return self.dbscanResults[index]

    def isCorePoint(self, entry: DbscanOrder) -> bool:
        return entry.nPts >= self.coreThreshold

    def getNumberOfClusters(self) -> int:
        return self.numberOfClusters

    def getClusters(self, core: bool = False) -> np.ndarray:
        clusters = np.zeros(self.size(), dtype=np.int64)
        for entry in self.dbscanResults:
            if not core or self.isCorePoint(entry):
                clusters[entry.parent] = entry.clusterId
        return clusters

    def scrambleClusters(self, rng: np.random.Generator) -> None:
        if self.numberOfClusters == 0:
            return
        mapping = np.concatenate(([NOISE], rng.permutation(self.numberOfClusters) + 1))
        for entry in self.dbscanResults:
            entry.clusterId = int(mapping[entry.clusterId])
