"""Exception hierarchy for fatal failures.

Domain scanner problems are never raised; they travel as ``ScanWarning``
values on the result they degraded.
"""

from __future__ import annotations


class VigilError(Exception):
    """Base class for all fatal Vigil errors."""


class CanonicalizationError(VigilError):
    """A report contains a value with no canonical representation."""


class KeyGenerationError(VigilError):
    """The signing key pair could not be created or loaded."""
