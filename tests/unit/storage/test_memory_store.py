# ABOUTME: Unit tests for InMemorySessionStore specifics.
# ABOUTME: Covers nested atomic blocks, journal rollback and corrupt-record handling; shared behaviour lives in tests/contract.

from datetime import UTC, datetime

import pytest

from trpg_events.models.event_session import EventMetadata, EventSession, EventState, EventStepType
from trpg_events.models.outcomes import PenaltyEffect, PenaltyType
from trpg_events.storage.exceptions import StorageError
from trpg_events.storage.memory_store import InMemorySessionStore

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def _penalty(penalty_id: str) -> PenaltyEffect:
    return PenaltyEffect(
        id=penalty_id,
        type=PenaltyType.TIME_LOSS,
        amount=1,
        description="Lost time",
        applied_at=NOW,
        source="dice_failure",
    )


def _session(event_session_id: str = "evs_1", event_id: str = "bridge") -> EventSession:
    return EventSession(
        id=event_session_id,
        session_id="session_001",
        event_id=event_id,
        player_id="player_001",
        character_id="char_001",
        metadata=EventMetadata(start_time=NOW),
        created_at=NOW,
        updated_at=NOW,
    )


class TestInMemorySessionStore:
    """Test suite for the dictionary-backed store"""

    def test_nested_block_rolls_back_with_outer(self, memory_store):
        """Test an error in the outer block undoes writes made in an inner block"""
        memory_store.create(_session())

        with pytest.raises(RuntimeError):
            with memory_store.atomic("evs_1"):
                with memory_store.atomic("evs_1"):
                    memory_store.update_state(
                        "evs_1", EventState.PROCESSING_CHOICE, EventStepType.AI_INTERPRETATION, NOW
                    )
                raise RuntimeError("abort")

        assert memory_store.get("evs_1").state == EventState.WAITING_FOR_CHOICE

    def test_rollback_only_touches_written_keys(self, memory_store):
        """Test a failed block restores what it wrote and leaves other sessions alone"""
        memory_store.create(_session())
        memory_store.create(_session("evs_2", event_id="ferry"))
        memory_store.append_penalties("evs_2", "char_001", [_penalty("p_other")])

        with pytest.raises(RuntimeError):
            with memory_store.atomic("evs_1"):
                memory_store.update_state(
                    "evs_1", EventState.PROCESSING_CHOICE, EventStepType.AI_INTERPRETATION, NOW
                )
                memory_store.append_penalties("evs_1", "char_001", [_penalty("p_1")])
                memory_store.append_penalties("evs_1", "char_001", [_penalty("p_2")])
                raise RuntimeError("abort")

        assert memory_store.get("evs_1").state == EventState.WAITING_FOR_CHOICE
        assert "evs_1" not in memory_store.session_penalties
        assert [p.id for p in memory_store.get_penalties(character_id="char_001")] == ["p_other"]
        assert memory_store.get("evs_2").event_id == "ferry"

    def test_records_stored_as_json(self, memory_store):
        memory_store.create(_session())

        assert isinstance(memory_store.sessions["evs_1"], str)

    def test_corrupt_record(self):
        store = InMemorySessionStore()
        store.sessions["evs_1"] = "{broken"

        with pytest.raises(StorageError, match="Corrupt"):
            store.get("evs_1")
