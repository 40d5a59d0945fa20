"""Mirror private forge activity onto a public GitHub contribution graph."""

__version__ = "0.3.0"
