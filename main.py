from argparse import ArgumentParser
from collections.abc import Sequence
import logging
import math
from typing import Optional

import numpy as np
from sklearn.datasets import make_blobs

from OpticsManager import OpticsManager, OpticsSettings
from OpticsResult import XI_OPTION_LOWER_LIMIT, XI_OPTION_NO_CORRECT, XI_OPTION_TOP_LEVEL, XI_OPTION_UPPER_LIMIT


logger = logging.getLogger(__name__)


class Args:
    # Clustering
    algorithm: str
    eps: float
    minPts: int
    xi: float
    topLevel: bool
    noCorrect: bool
    upperLimit: Optional[float]
    lowerLimit: Optional[float]
    # Synthetic data
    samples: int
    centers: int
    clusterStd: float
    seed: Optional[int]
    verbose: bool

    def __init__(
        self,
        *,
        algorithm: str = 'optics',
        eps: float = OpticsSettings.defaultGeneratingDistance,
        minPts: int = OpticsSettings.defaultMinPts,
        xi: float = OpticsSettings.defaultXi,
        topLevel: bool = False,
        noCorrect: bool = False,
        upperLimit: Optional[float] = None,
        lowerLimit: Optional[float] = None,
        samples: int = 1000,
        centers: int = 4,
        clusterStd: float = 1.0,
        seed: Optional[int] = None,
        verbose: bool = False
    ) -> None:
        self.algorithm = algorithm
        self.eps = eps
        self.minPts = minPts
        self.xi = xi
        self.topLevel = topLevel
        self.noCorrect = noCorrect
        self.upperLimit = upperLimit
        self.lowerLimit = lowerLimit
        self.samples = samples
        self.centers = centers
        self.clusterStd = clusterStd
        self.seed = seed
        self.verbose = verbose

    def toSettings(self) -> OpticsSettings:
        options = 0
        if self.topLevel:
            options |= XI_OPTION_TOP_LEVEL
        if self.noCorrect:
            options |= XI_OPTION_NO_CORRECT

        settings = OpticsSettings() \
            .withGeneratingDistance(self.eps) \
            .withMinPts(self.minPts) \
            .withXi(self.xi)

        if self.upperLimit is not None:
            options |= XI_OPTION_UPPER_LIMIT
            settings.withUpperLimit(self.upperLimit)
        if self.lowerLimit is not None:
            options |= XI_OPTION_LOWER_LIMIT
            settings.withLowerLimit(self.lowerLimit)

        return settings.withOptions(options)


class ArgsParser:
    args: Args
    _parser: ArgumentParser

    def __init__(self) -> None:
        self.args = Args()
        self._parser = ArgumentParser(prog="OPTICS and DBSCAN clustering of 2D points")

        # Clustering arguments
        self._parser.add_argument('--algorithm', choices=['optics', 'dbscan'], default='optics',
                                  help='Clustering algorithm (default: optics)')
        self._parser.add_argument('-e', '--eps', metavar='<eps>', type=float, default=OpticsSettings.defaultGeneratingDistance,
                                  help='Generating distance; 0 calibrates it from the data (default: 0)')
        self._parser.add_argument('--numPts', metavar='<minPts>', type=int, default=OpticsSettings.defaultMinPts,
                                  help=f'Minimum number of points for a core point (default: {OpticsSettings.defaultMinPts})')
        self._parser.add_argument('--xi', metavar='<xi>', type=float, default=OpticsSettings.defaultXi,
                                  help=f'Steepness for OPTICS cluster extraction; 0 keeps the DBSCAN clustering (default: {OpticsSettings.defaultXi})')
        self._parser.add_argument('--topLevel', action='store_true',
                                  help='Only report top-level OPTICS clusters')
        self._parser.add_argument('--noCorrect', action='store_true',
                                  help='Do not correct the ends of OPTICS clusters')
        self._parser.add_argument('--upperLimit', metavar='<distance>', type=float,
                                  help='Highest reachability allowed at the edges of an OPTICS cluster')
        self._parser.add_argument('--lowerLimit', metavar='<distance>', type=float,
                                  help='Lowest reachability allowed at the edges of an OPTICS cluster')

        # Synthetic data arguments
        self._parser.add_argument('--samples', type=int, default=1000,
                                  help='Number of points to generate (default: 1000)')
        self._parser.add_argument('--centers', type=int, default=4,
                                  help='Number of blobs to generate (default: 4)')
        self._parser.add_argument('--clusterStd', type=float, default=1.0,
                                  help='Standard deviation of each blob (default: 1.0)')
        self._parser.add_argument('--seed', type=int,
                                  help='Random seed for the generated points')
        self._parser.add_argument('--verbose', action='store_true',
                                  help='Log debug messages')

    def parse(self, argv: Optional[Sequence[str]] = None):
        namespace = self._parser.parse_args(argv)

        # Clustering arguments
        self.args.algorithm = namespace.algorithm
        self.args.eps = namespace.eps
        self.args.minPts = namespace.numPts
        self.args.xi = namespace.xi
        self.args.topLevel = namespace.topLevel
        self.args.noCorrect = namespace.noCorrect
        self.args.upperLimit = namespace.upperLimit
        self.args.lowerLimit = namespace.lowerLimit

        # Synthetic data arguments
        self.args.samples = namespace.samples
        self.args.centers = namespace.centers
        self.args.clusterStd = namespace.clusterStd
        self.args.seed = namespace.seed
        self.args.verbose = namespace.verbose

        return namespace


def main(argv: Optional[Sequence[str]] = None) -> int:
    argsParser = ArgsParser()
    argsParser.parse(argv)
    args = argsParser.args

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    points, _ = make_blobs(
        n_samples=args.samples, centers=args.centers, cluster_std=args.clusterStd, random_state=args.seed
    )
    manager = OpticsManager(points[:, 0], points[:, 1])
    settings = args.toSettings()

    if args.algorithm == 'dbscan':
        result = manager.runDbscan(settings)
        clusters = result.getClusters()
        nClusters = result.getNumberOfClusters()
    else:
        result = manager.runOptics(settings)
        clusters = result.getClusters()
        nClusters = result.getNumberOfClusters()
        profile = result.getReachabilityDistanceProfile()
        finite = profile[profile != math.inf]
        if len(finite):
            logger.info("Reachability: min=%.4g, median=%.4g, max=%.4g",
                        finite.min(), np.median(finite), finite.max())
        logger.info("Cluster levels: %d", result.getNumberOfLevels())

    nNoise = int(np.count_nonzero(clusters == 0))
    logger.info("%s on %d points (e=%.4g, minPts=%d): %d clusters, %d noise points",
                args.algorithm.upper(), manager.size(), result.generatingDistance, result.minPts, nClusters, nNoise)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
