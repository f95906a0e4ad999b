"""Exception types shared by the core and adapters."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class ConfigError(RelayError):
    """Raised when settings cannot be turned into a valid relay setup."""


class DeliveryError(RelayError):
    """Raised by notifier adapters when the chat platform rejects a post."""


class RconAuthError(RelayError):
    """Raised inside the RCON transport when the server rejects the password."""
