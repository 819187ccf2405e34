"""Shared helpers for MintForge."""
