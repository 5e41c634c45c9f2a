# ABOUTME: Pydantic models for caller-supplied context: characters, skills, choices, events and sessions.
# ABOUTME: These are inputs to the engine and the reasoning service; the engine never persists characters.

from typing import Any

from pydantic import BaseModel, Field, field_validator


class CharacterSkill(BaseModel):
    name: str
    level: int = Field(ge=0)


class Character(BaseModel):
    """The character attempting the event"""

    id: str = Field(min_length=1)
    name: str
    character_class: str | None = None
    level: int = Field(default=1, ge=1)
    skills: list[CharacterSkill] = Field(default_factory=list)
    attributes: dict[str, int] = Field(default_factory=dict)
    background: str | None = None

    @field_validator('skills', mode='before')
    @classmethod
    def coerce_skill_mapping(cls, v: Any) -> Any:
        """Accept {name: level} mappings as well as [{name, level}] lists"""
        if isinstance(v, dict):
            return [{"name": name, "level": level} for name, level in v.items()]
        return v

    def skill_level(self, aliases: list[str]) -> int:
        """Highest level among skills matching any alias (case-insensitive), 0 if none"""
        wanted = {alias.lower() for alias in aliases}
        levels = [s.level for s in self.skills if s.name.lower() in wanted]
        return max(levels, default=0)


class EventChoice(BaseModel):
    """One narrative option presented at the start of an event"""

    id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    description: str | None = None
    requirements: list[str] = Field(default_factory=list)


class EventContext(BaseModel):
    """What an event is about, handed to the reasoning service to propose choices"""

    event_id: str = Field(min_length=1)
    title: str
    description: str | None = None
    current_situation: str | None = None
    player_constraints: list[str] = Field(default_factory=list)


class SessionContext(BaseModel):
    """Campaign-session snapshot handed to the reasoning service"""

    session_id: str
    campaign_id: str | None = None
    current_location: str | None = None
    time_of_day: str | None = None
    recent_events: list[str] = Field(default_factory=list)
    active_quests: list[str] = Field(default_factory=list)
    party_members: list[str] = Field(default_factory=list)
    mood: str | None = None
    notes: dict[str, str] = Field(default_factory=dict)
