"""
Tests for the story record model.
"""

import re

import pytest
from pydantic import ValidationError as PydanticValidationError

from pictotale.models import (
    PROGRESS_BY_STATUS,
    STORY_ID_PATTERN,
    StoryRecord,
    StoryStatus,
)


def test_new_record_defaults():
    record = StoryRecord(story_type_id="adventure")
    assert re.match(STORY_ID_PATTERN, record.id)
    assert record.status == StoryStatus.DRAFT
    assert record.title == ""
    assert record.media.narration_url is None
    assert record.media.voice_settings["stability"] == 0.5
    assert record.completed_at is None
    assert record.created_at <= record.updated_at


def test_ids_are_unique():
    assert StoryRecord(story_type_id="animal").id != StoryRecord(story_type_id="animal").id


def test_dict_round_trip():
    record = StoryRecord(story_type_id="mystery", character_names=["Sherlock"], title="The Case")
    data = record.to_dict()
    assert data["status"] == "draft"
    assert data["user_input"]["length"] == "medium"
    assert StoryRecord.from_dict(data) == record


def test_character_names_cleaned_and_capped():
    record = StoryRecord(story_type_id="family", character_names=[" Mom ", "", "Dad"])
    assert record.character_names == ["Mom", "Dad"]
    with pytest.raises(PydanticValidationError):
        StoryRecord(story_type_id="family", character_names=["A", "B", "C", "D", "E", "F"])


def test_invalid_id_rejected():
    with pytest.raises(PydanticValidationError):
        StoryRecord(id="not-a-story-id", story_type_id="family")


@pytest.mark.parametrize("status,progress,remaining", [
    ("draft", 10, "3-4 minutes"),
    ("generating", 30, "2-3 minutes"),
    ("processing", 70, "1-2 minutes"),
    ("completed", 100, "Complete"),
    ("failed", 0, "Failed"),
    ("archived", 100, "Archived"),
])
def test_progress_view(status, progress, remaining):
    record = StoryRecord(story_type_id="adventure", status=status)
    assert record.progress_percent == progress
    assert record.estimated_time_remaining == remaining


def test_every_status_has_progress():
    assert set(PROGRESS_BY_STATUS) == set(StoryStatus)
