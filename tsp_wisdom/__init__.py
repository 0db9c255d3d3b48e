"""
Genetic search for TSP tours and wisdom-of-crowds aggregation of finished tours.
"""

__all__ = [
    "coordinator",
    "crowd",
    "data",
    "evaluation",
    "evolutionary",
    "geometry",
    "snapshots",
]
