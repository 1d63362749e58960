"""Tests for owner-scoped event logging."""

import logging

import pytest

from src.core.logging import log_event


logger = logging.getLogger("tests.events")


@pytest.mark.unit
class TestLogEvent:
    def test_record_carries_user_and_resource_ids(self, caplog):
        with caplog.at_level(logging.INFO, logger="tests.events"):
            log_event(logger, "Completed task", user_id="3", task_id="17")

        record = caplog.records[-1]
        assert record.getMessage() == "Completed task"
        assert record.levelno == logging.INFO
        assert record.user_id == "3"
        assert record.task_id == "17"

    def test_anonymous_event_still_has_user_field(self, caplog):
        with caplog.at_level(logging.INFO, logger="tests.events"):
            log_event(logger, "Failed login attempt", user_id=None)

        assert caplog.records[-1].user_id is None

    def test_level_is_respected(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tests.events"):
            log_event(logger, "Routine", user_id="3")
            log_event(logger, "Task ownership mismatch", user_id="3", level=logging.WARNING, task_id="9")

        assert [r.getMessage() for r in caplog.records] == ["Task ownership mismatch"]
        assert caplog.records[0].levelname == "WARNING"
