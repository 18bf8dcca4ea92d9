"""certmint: certificate verification and minting service."""

__version__ = "0.1.0"
