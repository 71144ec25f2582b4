"""Custom exceptions for mdrules."""


class MdRulesError(Exception):
    """Base exception for all mdrules errors."""


class ConfigError(MdRulesError):
    """Configuration-related errors."""


class DocumentLoadError(MdRulesError):
    """A document could not be read from disk."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class FrontMatterError(MdRulesError):
    """Front matter is malformed or does not match the metadata schema."""


class LinkResolutionError(MdRulesError):
    """A single link target could not be parsed."""


class AssemblyError(MdRulesError):
    """Internal invariant violated while ordering context items."""
