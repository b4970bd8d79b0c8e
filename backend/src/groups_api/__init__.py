"""Groups API - membership, permission resolution and recruitment engine."""

__version__ = "0.1.0"
