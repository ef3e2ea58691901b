"""ZipFill: resolve US zip codes to city, state and county."""

__version__ = "1.0.0"
