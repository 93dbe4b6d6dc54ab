"""
Ordering of unordered screenshot sets
Builds a directed match-quality graph and follows its longest chain
"""

import numpy as np
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging

from scrollstitch.core.overlap import OverlapMatcher

logger = logging.getLogger(__name__)

# (chain length, cumulative diff, chain)
_Chain = Tuple[int, float, Tuple[int, ...]]


def _better(candidate: _Chain, best: Optional[_Chain]) -> bool:
    """Longer chains win, then lower cumulative diff; ties keep the first found"""
    if best is None:
        return True
    if candidate[0] != best[0]:
        return candidate[0] > best[0]
    return candidate[1] < best[1] - 1e-9


class SequenceOrderer:
    """
    Orders screenshots so that each one continues the previous.

    score[i][j] holds the diff of an accepted match with image i above
    image j. The longest path through this graph becomes the stitching
    order; images outside the path follow it in their original order.
    """

    def __init__(
        self,
        matcher: Optional[OverlapMatcher] = None,
        mode: str = "generic",
        max_exhaustive: int = 16
    ):
        """
        Initialize sequence orderer

        Args:
            matcher: Overlap matcher used to score pairs
            mode: Matcher mode for pair scoring
            max_exhaustive: Largest set searched exhaustively; bigger sets use greedy chains
        """
        self.matcher = matcher or OverlapMatcher(mode)
        self.mode = mode
        self.max_exhaustive = max_exhaustive

    def score_matrix(
        self,
        images: Sequence[np.ndarray],
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> Dict[int, Dict[int, float]]:
        """
        Score every ordered pair of images.

        Returns:
            Adjacency map {i: {j: diff}} containing accepted matches only
        """
        n = len(images)
        tops = [self.matcher.prepare_top(img, self.mode) for img in images]
        graph: Dict[int, Dict[int, float]] = {i: {} for i in range(n)}

        total = n * (n - 1)
        done = 0
        for i in range(n):
            for j in range(n):
                if i == j:
                    continue
                score = self.matcher.evaluate_with_top(tops[i], images[j], self.mode)
                if score is not None:
                    graph[i][j] = score.diff
                done += 1
                if progress_callback:
                    progress_callback(done, total)

        edges = sum(len(v) for v in graph.values())
        logger.info(f"Match graph: {n} images, {edges} accepted edges")
        return graph

    def order(
        self,
        images: Sequence[np.ndarray],
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> List[int]:
        """
        Compute the stitching order.

        Args:
            images: Images in their original order
            progress_callback: Optional callback(done_pairs, total_pairs)

        Returns:
            Permutation of range(len(images))
        """
        n = len(images)
        if n < 2:
            return list(range(n))

        graph = self.score_matrix(images, progress_callback)
        if n <= self.max_exhaustive:
            chain = self._longest_chain(graph, n)
        else:
            logger.info(f"{n} images exceed exhaustive limit {self.max_exhaustive}, using greedy chains")
            chain = self._greedy_chain(graph, n)

        if chain is None or chain[0] < 2:
            logger.warning("No chain of matching images found, keeping original order")
            return list(range(n))

        path = list(chain[2])
        leftovers = [i for i in range(n) if i not in chain[2]]
        if leftovers:
            logger.info(f"Images outside the main chain: {leftovers}")
        return path + leftovers

    def order_images(self, images: Sequence[np.ndarray]) -> List[np.ndarray]:
        """Images rearranged into stitching order"""
        return [images[i] for i in self.order(images)]

    def _longest_chain(self, graph: Dict[int, Dict[int, float]], n: int) -> Optional[_Chain]:
        memo: Dict[Tuple[int, int], _Chain] = {}

        def walk(current: int, visited: int) -> _Chain:
            key = (current, visited)
            if key in memo:
                return memo[key]
            best: _Chain = (1, 0.0, (current,))
            for nxt in sorted(graph[current]):
                if visited & (1 << nxt):
                    continue
                length, diff, path = walk(nxt, visited | (1 << nxt))
                candidate = (length + 1, diff + graph[current][nxt], (current,) + path)
                if _better(candidate, best):
                    best = candidate
            memo[key] = best
            return best

        best = None
        for start in range(n):
            candidate = walk(start, 1 << start)
            if _better(candidate, best):
                best = candidate
        return best

    @staticmethod
    def _greedy_chain(graph: Dict[int, Dict[int, float]], n: int) -> Optional[_Chain]:
        best = None
        for start in range(n):
            path = [start]
            visited = {start}
            total = 0.0
            current = start
            while True:
                options = [(d, j) for j, d in graph[current].items() if j not in visited]
                if not options:
                    break
                diff, current = min(options)
                path.append(current)
                visited.add(current)
                total += diff
            candidate = (len(path), total, tuple(path))
            if _better(candidate, best):
                best = candidate
        return best
