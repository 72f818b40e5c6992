"""Per-country website visit counting with IP attribution."""

__version__ = "1.0.0"
