"""
Search Engine

Single entry point over the selection algorithms: pick a search by kind, bind
it to an oracle and a configuration, and get back an object exposing
``run() -> SearchResult``.
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from .config import CONFIG_CLASSES, SearchConfig, SearchKind
from .core import RandomSource, SearchResult, SelectionAlgorithm
from .oracle import PerformanceOracle
from .selective_pruning import SelectiveFeatureSearch
from .simulated_annealing import SimulatedAnnealingOrderSearch

SEARCH_CLASSES: Dict[SearchKind, type] = {
    SearchKind.FEATURE_SEARCH: SelectiveFeatureSearch,
    SearchKind.ORDER_SEARCH: SimulatedAnnealingOrderSearch,
}


def create_search(kind: Union[SearchKind, str],
                  oracle: Optional[PerformanceOracle] = None,
                  config: Optional[SearchConfig] = None,
                  rng: RandomSource = None) -> SelectionAlgorithm:
    """
    Create a selection algorithm.

    Args:
        kind: SearchKind or its string value ("feature_search", "order_search")
        oracle: Performance oracle to bind
        config: Configuration; defaults to the algorithm's default configuration
        rng: numpy Generator or seed for the algorithm's random draws

    Returns:
        The configured search, ready to ``run()``
    """
    kind = SearchKind(kind)
    if config is None:
        config = CONFIG_CLASSES[kind]()
    return SEARCH_CLASSES[kind](oracle, config, rng=rng)


def run_search(kind: Union[SearchKind, str], oracle: PerformanceOracle,
               config: Optional[SearchConfig] = None,
               rng: RandomSource = None) -> SearchResult:
    """Create a search and run it to completion."""
    return create_search(kind, oracle, config, rng).run()
