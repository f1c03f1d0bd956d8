"""Video progress synchronization engine for the members academy."""

__version__ = "0.1.0"
