class TSPWisdomError(Exception):
    """Base class for errors raised by tsp_wisdom."""


class InvalidInput(TSPWisdomError, ValueError):
    """Raised before a run starts when its points, experts or config are unusable."""


class DegenerateSelection(TSPWisdomError):
    """Raised when roulette selection cannot draw a parent."""


class StallDetected(TSPWisdomError):
    """Raised when greedy reconnection has no admissible pair left."""
