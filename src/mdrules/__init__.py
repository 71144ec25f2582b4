"""mdrules - linked markdown rules as context for AI coding agents."""

__version__ = "0.1.0"
