"""Caller identity extraction."""

from .types import ANONYMOUS_USER, CallerIdentity
from .extractor import IdentityExtractor

__all__ = ["ANONYMOUS_USER", "CallerIdentity", "IdentityExtractor"]
