"""Course content hierarchy and sequencing engine."""

__version__ = "0.1.0"
