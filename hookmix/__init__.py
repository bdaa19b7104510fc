"""hookmix: combine every uploaded hook clip with every body clip."""

__version__ = "0.1.0"
