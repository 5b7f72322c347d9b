"""nodoze - keep speakers awake with a periodic quiet tone."""

__version__ = "0.1.0"
