"""Trigger evaluation tests."""

import pytest

from surfacestream.domain.triggers import TriggerConfig, TriggerContext, evaluate_trigger, match_url


def _make_trigger(**fields) -> TriggerConfig:
    return TriggerConfig.model_validate(fields)


class TestUrlMatching:
    @pytest.mark.parametrize(
        "url,pattern,match_type,expected",
        [
            ("https://app.io/pricing", "https://app.io/pricing", "exact", True),
            ("https://app.io/pricing?x=1", "https://app.io/pricing", "exact", False),
            ("https://app.io/pricing?x=1", "/pricing", "contains", True),
            ("https://app.io/settings", "/pricing", "contains", False),
            ("https://app.io/docs/42", r"/docs/\d+$", "regex", True),
            ("https://app.io/docs/intro", r"/docs/\d+$", "regex", False),
        ],
    )
    def test_match_types(self, url, pattern, match_type, expected):
        assert match_url(url, pattern, match_type) is expected

    def test_invalid_regex_never_matches(self):
        assert match_url("https://app.io/(", "(unclosed", "regex") is False


class TestEvaluateTrigger:
    def test_missing_trigger_passes(self):
        assert evaluate_trigger(None, TriggerContext()) is True

    def test_immediate_passes(self):
        assert evaluate_trigger(_make_trigger(type="immediate"), TriggerContext()) is True

    def test_page_visit(self):
        trigger = _make_trigger(type="page_visit", pageUrl="/pricing")
        assert evaluate_trigger(trigger, TriggerContext(current_url="https://app.io/pricing")) is True
        assert evaluate_trigger(trigger, TriggerContext(current_url="https://app.io/")) is False
        assert evaluate_trigger(trigger, TriggerContext()) is False

    def test_time_on_page_threshold_inclusive(self):
        trigger = _make_trigger(type="time_on_page", delaySeconds=30)
        assert evaluate_trigger(trigger, TriggerContext(time_on_page_seconds=30)) is True
        assert evaluate_trigger(trigger, TriggerContext(time_on_page_seconds=29.9)) is False
        assert evaluate_trigger(trigger, TriggerContext()) is False

    def test_event_name_and_properties(self):
        trigger = _make_trigger(type="event", eventName="checkout", eventProperties={"plan": "pro"})
        assert evaluate_trigger(
            trigger, TriggerContext(fired_event_name="checkout", fired_event_properties={"plan": "pro"})
        ) is True
        assert evaluate_trigger(
            trigger, TriggerContext(fired_event_name="checkout", fired_event_properties={"plan": "free"})
        ) is False
        assert evaluate_trigger(trigger, TriggerContext(fired_event_name="signup")) is False

    def test_event_without_name_fires_on_any_event(self):
        trigger = _make_trigger(type="event")
        assert evaluate_trigger(trigger, TriggerContext(fired_event_name="anything")) is True
        assert evaluate_trigger(trigger, TriggerContext()) is False

    def test_scroll_depth(self):
        trigger = _make_trigger(type="scroll_depth", scrollPercent=50)
        assert evaluate_trigger(trigger, TriggerContext(scroll_percent=75)) is True
        assert evaluate_trigger(trigger, TriggerContext(scroll_percent=10)) is False

    def test_exit_intent(self):
        trigger = _make_trigger(type="exit_intent")
        assert evaluate_trigger(trigger, TriggerContext(is_exit_intent=True)) is True
        assert evaluate_trigger(trigger, TriggerContext()) is False
