"""compsync: component import and synchronization engine."""

__version__ = "0.1.0"
