"""Graph analysis: centrality rankings and path search."""

from .centrality import calculate_centrality, degree_score, rank, weighted_degree_score
from .paths import find_all_paths, find_shortest_path

__all__ = [
    "calculate_centrality",
    "degree_score",
    "find_all_paths",
    "find_shortest_path",
    "rank",
    "weighted_degree_score",
]
