"""
MintForge: issues and evolves NFT-backed game characters.

A character is generated (narrative and portrait), pinned to content-addressed
storage, minted on a ledger, and then progresses through experience, levels
and a one-time evolution across seasons.
"""

__version__ = "0.1.0"
