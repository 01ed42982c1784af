"""
Exception types raised by tonematch.

Only structural problems surface as exceptions. Numeric degeneracies
(silent bands, zero-energy spectra) resolve to sentinel values instead.
"""


class TonematchError(Exception):
    """Base class for all tonematch errors."""
    pass


class InputError(TonematchError, ValueError):
    """Raised for unusable data: short buffers, band mismatches, bad filter params."""
    pass


class ConfigError(TonematchError, ValueError):
    """Raised when an analysis/match configuration or config file is invalid."""
    pass
