"""Tests for the session step budget."""

from tabguard.core.session_manager import SessionManager


class TestSessionManager:

    def test_steps_are_counted_until_budget(self):
        session = SessionManager(max_steps=2)
        assert session.record_step() is True
        assert session.record_step() is True
        assert session.record_step() is False
        assert session.step_count == 2
        assert session.steps_remaining == 0

    def test_last_action_is_recorded(self):
        session = SessionManager(max_steps=2)
        assert session.last_action_at is None
        session.record_step()
        assert session.last_action_at is not None

    def test_reset_restores_budget(self):
        session = SessionManager(max_steps=1)
        session.record_step()
        session.set_active_tab_id("tab-1")

        session.reset()

        assert session.step_count == 0
        assert session.steps_remaining == 1
        assert session.get_active_tab_id() is None
        assert session.last_action_at is None
        assert session.record_step() is True

    def test_default_budget(self):
        assert SessionManager().max_steps == 30
