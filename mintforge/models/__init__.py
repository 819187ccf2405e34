"""
Data models for MintForge.
"""

from .character import (
    ATTRIBUTE_ORDER,
    MAX_ATTRIBUTE_VALUE,
    MAX_UINT256,
    AttributeSet,
    AttributeType,
    CharacterArchetype,
    CharacterRecord,
    CharacterView,
)
from .creation import (
    CREATION_STAGES,
    EVOLUTION_STAGES,
    CreationArtifact,
    CreationResult,
    CreationStage,
    EvolutionResult,
    NarrativeProfile,
    ToneOptions,
)
from .gameplay import CombatResult, CombatRewards, CombatState, GameMasterResponse
from .ledger import (
    AdvanceSeasonOperation,
    EvolveOperation,
    EvolveReceipt,
    ExperienceReceipt,
    GrantExperienceOperation,
    LedgerOperation,
    LedgerReceipt,
    MintOperation,
    MintReceipt,
    SeasonReceipt,
    TransferOperation,
    TransferReceipt,
)

__all__ = [
    "ATTRIBUTE_ORDER",
    "MAX_ATTRIBUTE_VALUE",
    "MAX_UINT256",
    "AttributeSet",
    "AttributeType",
    "CharacterArchetype",
    "CharacterRecord",
    "CharacterView",
    "CREATION_STAGES",
    "EVOLUTION_STAGES",
    "CreationArtifact",
    "CreationResult",
    "CreationStage",
    "EvolutionResult",
    "NarrativeProfile",
    "ToneOptions",
    "CombatResult",
    "CombatRewards",
    "CombatState",
    "GameMasterResponse",
    "AdvanceSeasonOperation",
    "EvolveOperation",
    "EvolveReceipt",
    "ExperienceReceipt",
    "GrantExperienceOperation",
    "LedgerOperation",
    "LedgerReceipt",
    "MintOperation",
    "MintReceipt",
    "SeasonReceipt",
    "TransferOperation",
    "TransferReceipt",
]
