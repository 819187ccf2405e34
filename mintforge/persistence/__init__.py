"""Persistence for MintForge read-side indexes."""

from .owner_index import OwnerIndex

__all__ = ["OwnerIndex"]
