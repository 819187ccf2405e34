"""
Prompt templates for narrative, portrait and game-master generation.
"""

import json

from ..models import CharacterArchetype, CharacterRecord, ToneOptions

STORYTELLER_ROLE = """You are a creative storyteller for D&D characters. Your responses should be:
- Rich in fantasy elements
- Character-appropriate
- Consistent with the world setting
- Engaging but concise
Focus on creating memorable characters with clear motivations and distinct traits."""

GAMEMASTER_ROLE = """You are an experienced D&D Game Master. Your responses should be:
- Engaging and descriptive
- Balanced for gameplay
- Consistent with D&D 5e rules
- Appropriate for the character's level
Always maintain narrative consistency and provide clear consequences for actions."""

STORY_TEMPLATE = """Create a D&D character concept for a {archetype} with a {tone} tone.
Length: {length}
Include personality: {include_personality}
Return a JSON object with:
- name: a fantasy appropriate name
- backstory: the character's history ({length} length)
- appearance: physical description
{personality_line}"""

ACTION_TEMPLATE = """You are a D&D game master. Process this player action:
Character: Level {level} {archetype}
Stats: {stats}
Current Scene: {scene}
Player Action: {action}

Response should be a JSON object with:
- description: detailed description of what happens
- outcome: "success", "failure", or "partial"
- experience: number between 50-150 based on action complexity
- rewards: optional object with possible items, gold, or effects
- nextOptions: array of possible next actions"""

PORTRAIT_STYLE = "Art Style: pixel art, 32-bit style gaming, clean pixel edges, high contrast"


def story_prompt(archetype: CharacterArchetype, options: ToneOptions) -> str:
    return STORY_TEMPLATE.format(
        archetype=archetype.value,
        tone=options.tone,
        length=options.length,
        include_personality="yes" if options.include_personality else "no",
        personality_line="- personality: key character traits" if options.include_personality else "",
    ).rstrip()


def portrait_prompt(archetype: CharacterArchetype, description: str) -> str:
    return f"Pixel art style D&D character. Class: {archetype.value}\nAppearance: {description}\n{PORTRAIT_STYLE}"


def action_prompt(action: str, record: CharacterRecord, current_scene: str) -> str:
    return ACTION_TEMPLATE.format(
        level=record.level,
        archetype=record.archetype.value,
        stats=json.dumps(record.attributes.model_dump()),
        scene=current_scene or "Starting scene",
        action=action,
    )
