"""
Error types raised by the acoustic monitor.

All of them derive from ValueError, so callers that only care about
"bad input" can catch that.
"""
from __future__ import annotations

from typing import Iterable


class ConfigurationError(ValueError):
    """Invalid or missing monitor settings."""


class PatchNotFoundError(ConfigurationError):
    """A configured patch name does not exist on the surface mesh."""

    def __init__(self, patch_name: str, valid_patches: Iterable[str]) -> None:
        self.patch_name = patch_name
        self.valid_patches = list(valid_patches)
        super().__init__(
            f"Can't find patch '{patch_name}'. Valid patches are: {self.valid_patches}"
        )


class FieldNotFoundError(ConfigurationError):
    """A required boundary field was not supplied for the current step."""

    def __init__(self, field_name: str, available: Iterable[str]) -> None:
        self.field_name = field_name
        self.available = list(available)
        super().__init__(
            f"Field '{field_name}' is not available. Available fields are: {self.available}"
        )


class ObserverPlacementError(ConfigurationError):
    """An observer sits on the acoustic source reference point."""
