"""
Error taxonomy for the storefront core.

- ValidationError: bad user input, surfaced inline, blocks only the offending action
- CollaboratorError: hosted database / auth failure, local state is left untouched
- StorageCorruption: unreadable device storage, always degraded to an empty collection
"""
from typing import Dict, Optional


class StorefrontError(Exception):
    pass


class ValidationError(StorefrontError):
    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class CollaboratorError(StorefrontError):
    pass


class StorageCorruption(StorefrontError):
    def __init__(self, key: str, reason: str):
        super().__init__(f"{key}: {reason}")
        self.key = key
        self.reason = reason


class AuthError(StorefrontError):
    pass
