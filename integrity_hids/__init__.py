"""integrity-hids — a host intrusion detection system based on file integrity checks."""

__version__ = "1.0.0"
