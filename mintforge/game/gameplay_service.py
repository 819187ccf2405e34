"""
Gameplay service: combat and quest actions that feed experience into
progression.
"""

import random

from ..collaborators.protocols import LedgerClient, NarrativeGenerator
from ..exceptions import ValidationFailure, create_error_context
from ..models import CombatResult, CombatState, GameMasterResponse
from ..structured_logging.enhanced_logging_config import get_logger
from .combat import (
    calculate_combat_experience,
    calculate_damage,
    calculate_hit_chance,
    generate_combat_rewards,
)
from .level_service import ProgressionService

logger = get_logger(__name__)

FIGHTING_ACTIONS = ["attack", "defend", "use_ability", "use_item"]
VICTORY_ACTIONS = ["collect_rewards", "continue_exploration", "rest"]


class GameplayService:
    """Resolves player actions and grants the experience they earn."""

    def __init__(
        self,
        ledger: LedgerClient,
        progression: ProgressionService,
        narrator: NarrativeGenerator,
        rng: random.Random | None = None,
    ) -> None:
        self.ledger = ledger
        self.progression = progression
        self.narrator = narrator
        self._rng = rng or random.Random()
        logger.info("GameplayService initialized")

    async def process_combat_action(self, token_id: int, combat_state: CombatState) -> CombatResult:
        """
        Resolve one attack against the enemy described by combat_state.

        A hit that brings the enemy to 0 health or below is a victory and grants
        experience through the progression service.
        """
        record = await self.ledger.read_record(token_id)
        hit_chance = calculate_hit_chance(record.attributes, combat_state.enemy_type)
        roll = self._rng.random() * 100

        if roll > hit_chance:
            logger.debug("Combat miss", token_id=token_id, hit_chance=hit_chance, roll=roll)
            return CombatResult(outcome="miss", enemy_health=combat_state.enemy_health, next_actions=FIGHTING_ACTIONS)

        damage = calculate_damage(record.attributes, combat_state.enemy_type, self._rng)
        enemy_health = combat_state.enemy_health - damage
        if enemy_health > 0:
            return CombatResult(outcome="hit", damage=damage, enemy_health=enemy_health, next_actions=FIGHTING_ACTIONS)

        experience = calculate_combat_experience(combat_state.enemy_type, combat_state.round)
        grant = await self.progression.grant_experience(token_id, experience)
        logger.info(
            "Combat victory",
            token_id=token_id,
            enemy_type=combat_state.enemy_type,
            rounds=combat_state.round,
            experience=experience,
        )
        return CombatResult(
            outcome="victory",
            damage=damage,
            enemy_health=enemy_health,
            experience_gained=experience,
            leveled_up=grant.leveled_up,
            rewards=generate_combat_rewards(self._rng),
            next_actions=VICTORY_ACTIONS,
        )

    async def process_quest_action(self, token_id: int, action: str, current_scene: str) -> GameMasterResponse:
        """
        Resolve a free-text quest action through the narrator.

        Experience is granted only on a success or partial outcome.
        """
        if not isinstance(action, str) or not action.strip():
            raise ValidationFailure(
                "Action must be a non-empty string",
                create_error_context(token_id=token_id, operation="process_quest_action"),
                field="action",
                value=action,
            )
        record = await self.ledger.read_record(token_id)
        response = await self.narrator.narrate_action(action.strip(), record, current_scene)
        if response.outcome in ("success", "partial") and response.experience > 0:
            await self.progression.grant_experience(token_id, response.experience)
        logger.info("Quest action resolved", token_id=token_id, outcome=response.outcome)
        return response
