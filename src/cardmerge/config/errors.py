"""Configuration failures surfaced to the operator."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """An environment setting is present but unusable."""


class MissingConfigurationError(ConfigurationError):
    """One or more required settings are unset or blank."""
