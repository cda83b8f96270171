from abc import abstractmethod, ABC
from collections.abc import Sequence
import logging
import math
from typing import Any, NewType, Optional

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

import numpy as np


logger = logging.getLogger(__name__)

PointId = int
ClusterId = int

# All neighbour searches work on squared distances; real distances are only
# produced when a result is materialised.
SquaredDistance = NewType('SquaredDistance', float)

UNDEFINED = SquaredDistance(-1.0)

NO_PREDECESSOR: PointId = -1

MAX_CELLS = 1024 * 1024


def toDistance(d2: SquaredDistance) -> float:
    if d2 == UNDEFINED:
        return math.inf
    return math.sqrt(d2)


def toSquaredDistance(d: float) -> SquaredDistance:
    return SquaredDistance(d * d)


class BoundsInOneDimension:
    lower: float
    upper: float

    def __init__(self, lower: float, upper: float) -> None:
        self.lower = lower
        self.upper = upper

    @property
    def length(self) -> float:
        return self.upper - self.lower

    def isNumberWithin(self, n: float) -> bool:
        return self.lower <= n <= self.upper

    def __str__(self) -> str:
        return f"[{self.lower} - {self.upper}]"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BoundsInOneDimension):
            return self.lower == other.lower and self.upper == other.upper
        return False

    def __hash__(self) -> int:
        return hash((self.lower, self.upper))


class Box:
    """Axis-aligned rectangle described by one interval per axis."""

    bounds: list[BoundsInOneDimension]

    def __init__(self, bounds: list[BoundsInOneDimension]) -> None:
        assert len(bounds) == 2
        self.bounds = bounds

    @classmethod
    def fromRectangle(cls, x: float, y: float, width: float, height: float) -> Self:
        return cls([BoundsInOneDimension(x, x + width), BoundsInOneDimension(y, y + height)])

    @classmethod
    def fromCoordinates(cls, xcoord: Sequence[float], ycoord: Sequence[float]) -> Self:
        xs = np.asarray(xcoord, dtype=np.float64)
        ys = np.asarray(ycoord, dtype=np.float64)
        return cls([
            BoundsInOneDimension(float(xs.min()), float(xs.max())),
            BoundsInOneDimension(float(ys.min()), float(ys.max())),
        ])

    @property
    def minX(self) -> float:
        return self.bounds[0].lower

    @property
    def minY(self) -> float:
        return self.bounds[1].lower

    @property
    def width(self) -> float:
        return self.bounds[0].length

    @property
    def height(self) -> float:
        return self.bounds[1].length

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def diagonal(self) -> float:
        return math.hypot(self.width, self.height)

    @property
    def isPoint(self) -> bool:
        return self.width == 0 and self.height == 0

    def isPointWithin(self, x: float, y: float) -> bool:
        return self.bounds[0].isNumberWithin(x) and self.bounds[1].isNumberWithin(y)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Box):
            return self.bounds == other.bounds
        return False

    def __hash__(self) -> int:
        return hash(tuple(self.bounds))

    def __str__(self) -> str:
        return f"Box {', '.join(map(str, self.bounds))}"


class PointRecord:
    """Mutable traversal state of one input point.

    The grid cell is fixed when the grid is built. Everything else is working
    state of a single OPTICS or DBSCAN run and is cleared by ``reset()``.
    """

    id: PointId
    x: float
    y: float
    xBin: int
    yBin: int
    processed: bool
    coreDistance: SquaredDistance
    reachabilityDistance: SquaredDistance
    predecessor: PointId
    # Distance to the point whose neighbourhood was scanned last
    d: SquaredDistance
    queueIndex: int

    def __init__(self, id: PointId, x: float, y: float, xBin: int, yBin: int) -> None:
        self.id = id
        self.x = x
        self.y = y
        self.xBin = xBin
        self.yBin = yBin
        self.reset()

    def reset(self) -> None:
        self.processed = False
        self.coreDistance = UNDEFINED
        self.reachabilityDistance = UNDEFINED
        self.predecessor = NO_PREDECESSOR
        self.d = SquaredDistance(0.0)
        self.queueIndex = -1

    def distance2(self, other: Self) -> SquaredDistance:
        dx = self.x - other.x
        dy = self.y - other.y
        return SquaredDistance(dx * dx + dy * dy)

    def __str__(self) -> str:
        return (f"Point {self.id} at ({self.x}, {self.y}); cell = ({self.xBin}, {self.yBin}); "
                f"core = {self.coreDistance}; reachability = {self.reachabilityDistance}; "
                f"predecessor = {self.predecessor}")


class PointSpace(ABC):
    generatingDistanceE: float
    setOfObjects: list[PointRecord]
    size: int

    def __init__(self, size: int, generatingDistanceE: float) -> None:
        self.size = size
        self.generatingDistanceE = generatingDistanceE
        self.setOfObjects = []

    @abstractmethod
    def generate(self) -> list[PointRecord]:
        raise NotImplementedError

    def reset(self) -> None:
        for point in self.setOfObjects:
            point.reset()

    @abstractmethod
    def findNeighbors(self, minPts: int, point: PointRecord, e: SquaredDistance) -> list[PointRecord]:
        """Return the points within squared distance ``e`` of ``point``, itself included.

        Each returned point carries its squared distance to ``point`` in ``d``.
        An empty list is returned when the point cannot have ``minPts`` neighbours.
        """
        raise NotImplementedError

    def __str__(self) -> str:
        return f"{type(self).__name__}, e={self.generatingDistanceE}"


class SpatialGrid(PointSpace):
    """Uniform grid over the data, ``resolution`` cells per generating distance.

    A neighbour query scans the block of cells within ``resolution`` cells of the
    query point's cell. Empty cells are skipped through ``fastForward``:
    ``fastForward[i]`` is the first index ``>= i`` holding points (or the number
    of cells when there is none).
    """

    xcoord: Sequence[float]
    ycoord: Sequence[float]
    dataBounds: Box
    resolution: int
    binWidth: float
    xBins: int
    yBins: int
    grid: list[Optional[tuple[PointRecord, ...]]]
    fastForward: list[int]

    def __init__(
        self,
        xcoord: Sequence[float],
        ycoord: Sequence[float],
        dataBounds: Box,
        generatingDistanceE: float,
        resolution: int = 0
    ) -> None:
        super().__init__(len(xcoord), generatingDistanceE)
        self.xcoord = xcoord
        self.ycoord = ycoord
        self.dataBounds = dataBounds
        self.resolution = resolution
        self.setOfObjects = self.generate()
        self.fastForward = self._buildFastForward()

        logger.debug("Built %s with %d x %d bins", self, self.xBins, self.yBins)

    def __str__(self) -> str:
        return f"{type(self).__name__}, e={self.generatingDistanceE}, bw={self.binWidth}, r={self.resolution}"

    def generate(self) -> list[PointRecord]:
        xrange = self.dataBounds.width
        yrange = self.dataBounds.height
        minXCoord = self.dataBounds.minX
        minYCoord = self.dataBounds.minY

        if xrange == 0 and yrange == 0:
            self.resolution = 1
            self.binWidth = 1.0
        elif self.resolution > 0:
            self.binWidth = self.generatingDistanceE / self.resolution
        else:
            self.resolution = self.determineMaximumResolution(xrange, yrange)
            if self.resolution == 0:
                # The generating distance is tiny compared to the data range
                self.resolution = 1
                self.binWidth = self.determineBinWidth(xrange, yrange)
            else:
                self.resolution = self.adjustResolution(xrange, yrange, self.resolution)
                self.binWidth = self.generatingDistanceE / self.resolution

        self.xBins = 1 + int(xrange / self.binWidth)
        self.yBins = 1 + int(yrange / self.binWidth)

        cellLists: list[Optional[list[PointRecord]]] = [None] * (self.xBins * self.yBins)
        setOfObjects: list[PointRecord] = []
        for i, (x, y) in enumerate(zip(self.xcoord, self.ycoord)):
            xBin = int((x - minXCoord) / self.binWidth)
            yBin = int((y - minYCoord) / self.binWidth)
            point = PointRecord(i, x, y, xBin, yBin)
            setOfObjects.append(point)

            index = self.getIndex(xBin, yBin)
            if cellLists[index] is None:
                cellLists[index] = [point]
            else:
                cellLists[index].append(point)

        self.grid = [None if cell is None else tuple(cell) for cell in cellLists]
        return setOfObjects

    def _buildFastForward(self) -> list[int]:
        count = 0
        index = len(self.grid)
        fastForward = [index] * (index + 1)
        for i in range(len(self.grid) - 1, -1, -1):
            cell = self.grid[i]
            if cell is not None:
                index = i
                count += len(cell)
            fastForward[i] = index

        if count != len(self.setOfObjects):
            raise RuntimeError(f"Grid contains {count} points, expected {len(self.setOfObjects)}")

        return fastForward

    def determineMaximumResolution(self, xrange: float, yrange: float) -> int:
        resolution = 0
        nPointsInArea = self.getNPointsInGeneratingArea(xrange, yrange)

        # Resolution 2 or above keeps the scanned block close to the query circle;
        # beyond that only refine while each stripe of the block still holds a point.
        while (self.getBins(xrange, yrange, self.generatingDistanceE, resolution + 1) < MAX_CELLS and
               (resolution < 2 or nPointsInArea / self.getNBlocks(resolution) > 1)):
            resolution += 1

        return resolution

    def getNPointsInGeneratingArea(self, xrange: float, yrange: float) -> float:
        # Expected number of points in the 2E x 2E square around a point if uniform.
        # Collinear data is treated as one generating distance thick.
        e = self.generatingDistanceE
        area = max(xrange, e) * max(yrange, e)
        if area == 0:
            # Underflow for a vanishing generating distance
            return float(self.size)
        return self.size * 4 * e * e / area

    def adjustResolution(self, xrange: float, yrange: float, maximumResolution: int) -> int:
        # Sparse squares gain little from fine cells; very dense squares are bound
        # by the all-vs-all distance computation rather than the cell scan.
        nPointsInSquare = self.getNPointsInGeneratingArea(xrange, yrange)
        if nPointsInSquare < 20:
            newResolution = 2
        elif nPointsInSquare < 25:
            newResolution = 3
        elif nPointsInSquare < 35:
            newResolution = 4
        else:
            newResolution = 5
        return min(newResolution, maximumResolution)

    def determineBinWidth(self, xrange: float, yrange: float) -> float:
        binWidth = self.generatingDistanceE
        while self.getBins(xrange, yrange, binWidth, 1) > MAX_CELLS:
            binWidth *= 2
        return binWidth

    @staticmethod
    def getBins(xrange: float, yrange: float, distance: float, resolution: int) -> int:
        binWidth = distance / resolution
        xBins = xrange / binWidth
        yBins = yrange / binWidth
        if not math.isfinite(xBins) or not math.isfinite(yBins):
            # Too many bins to count
            return MAX_CELLS + 1
        return (1 + int(xBins)) * (1 + int(yBins))

    @staticmethod
    def getNBlocks(resolution: int) -> int:
        return 2 * resolution + 1

    def getIndex(self, x: int, y: int) -> int:
        return y * self.xBins + x

    @property
    def numberOfCells(self) -> int:
        return len(self.grid)

    def _searchBlock(self, point: PointRecord) -> tuple[int, int, int, int]:
        resolution = self.resolution
        minx = max(point.xBin - resolution, 0)
        maxx = min(point.xBin + resolution + 1, self.xBins)
        miny = max(point.yBin - resolution, 0)
        maxy = min(point.yBin + resolution + 1, self.yBins)
        return minx, maxx, miny, maxy

    def hasEnoughPoints(self, minPts: int, point: PointRecord) -> bool:
        """Count cell sizes over the search block, stopping once ``minPts`` is reached."""
        minx, maxx, miny, maxy = self._searchBlock(point)
        grid = self.grid
        fastForward = self.fastForward

        count = minPts
        for y in range(miny, maxy):
            index = fastForward[self.getIndex(minx, y)]
            endIndex = self.getIndex(maxx, y)
            while index < endIndex:
                count -= len(grid[index])
                if count <= 0:
                    return True
                index = fastForward[index + 1]

        return count <= 0

    def findNeighbors(self, minPts: int, point: PointRecord, e: SquaredDistance) -> list[PointRecord]:
        if not self.hasEnoughPoints(minPts, point):
            # Cannot be a core point so skip the distance computation
            return []

        minx, maxx, miny, maxy = self._searchBlock(point)
        grid = self.grid
        fastForward = self.fastForward
        neighbors: list[PointRecord] = []
        for y in range(miny, maxy):
            index = fastForward[self.getIndex(minx, y)]
            endIndex = self.getIndex(maxx, y)
            while index < endIndex:
                for other in grid[index]:
                    d = point.distance2(other)
                    if d <= e:
                        other.d = d
                        neighbors.append(other)
                index = fastForward[index + 1]

        return neighbors
