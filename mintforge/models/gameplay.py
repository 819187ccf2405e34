"""
Gameplay data model: game-master resolutions and combat state.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class GameMasterResponse(BaseModel):
    """Resolution of a free-text player action."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    description: str
    outcome: Literal["success", "failure", "partial"]
    experience: int = Field(default=0, ge=0)
    rewards: dict[str, Any] | None = None
    next_options: list[str] = Field(default_factory=list, alias="nextOptions")


class CombatState(BaseModel):
    """Caller-held state of an ongoing fight."""

    model_config = ConfigDict(frozen=True)

    enemy_type: str = "normal"
    enemy_health: int
    round: int = Field(default=1, ge=1)


class CombatRewards(BaseModel):
    model_config = ConfigDict(frozen=True)

    gold: int
    items: list[str] = Field(default_factory=list)


class CombatResult(BaseModel):
    """Outcome of one combat action."""

    model_config = ConfigDict(frozen=True)

    outcome: Literal["hit", "miss", "victory"]
    damage: int | None = None
    enemy_health: int
    experience_gained: int | None = None
    leveled_up: bool = False
    rewards: CombatRewards | None = None
    next_actions: list[str]
