"""Tests for reading delays and viewport-fit estimates."""

import pytest

from dialogue.delivery.pacer import (
    CAROUSEL_HEIGHT,
    MAX_DELAY,
    MEDIA_HEIGHT,
    compute_delay,
    estimate_height,
    estimate_item_height,
    should_pause,
)
from dialogue.delivery.types import DeliveredItem, Role
from dialogue.graph.payloads import Card, CarouselPayload
from dialogue.graph.types import NodeKind


def narrator(text):
    return DeliveredItem(role=Role.NARRATOR, text=text)


class TestComputeDelay:
    def test_empty_content_waits_base_delay(self):
        assert compute_delay(0) == pytest.approx(1.0)

    def test_reading_time_added_for_content(self):
        # 75 chars = 15 words at 3.75 words/sec = 4 seconds
        assert compute_delay(75) == pytest.approx(5.0)
        assert compute_delay(15) == pytest.approx(1.8)

    def test_capped_at_max_delay(self):
        assert compute_delay(10_000) == MAX_DELAY

    def test_speed_multiplier_scales_delay(self):
        assert compute_delay(15, speed_multiplier=2.0) == pytest.approx(0.9)
        assert compute_delay(15, speed_multiplier=0.5) == pytest.approx(3.6)

    def test_longer_content_never_waits_less(self):
        delays = [compute_delay(length, 1.3) for length in range(0, 400, 7)]
        assert delays == sorted(delays)

    def test_slower_speed_never_waits_less(self):
        speeds = [0.25, 0.5, 1.0, 1.5, 3.0]
        delays = [compute_delay(120, s) for s in speeds]
        assert delays == sorted(delays, reverse=True)

    @pytest.mark.parametrize("speed", [0, -1.0])
    def test_rejects_non_positive_speed(self, speed):
        with pytest.raises(ValueError):
            compute_delay(10, speed)


class TestEstimateHeight:
    def test_single_line_text(self):
        # one line (24) + padding (24) + spacing (12)
        assert estimate_height("Hello there") == 60

    def test_text_wraps_at_line_width(self):
        text = "word " * 20  # six words per line -> 4 lines
        assert estimate_height(text) == 4 * 24 + 36

    def test_block_kinds_have_fixed_heights(self):
        assert estimate_height("anything", NodeKind.CARD_CAROUSEL) == CAROUSEL_HEIGHT
        assert estimate_height("anything", NodeKind.MEDIA) == MEDIA_HEIGHT

    def test_options_scale_with_count(self):
        assert estimate_height("", NodeKind.BRANCH_PROMPT, option_count=2) == 108
        assert estimate_height("", NodeKind.BRANCH_OPTION, option_count=1) == 62

    def test_item_with_carousel_payload_counts_as_block(self):
        item = DeliveredItem(
            role=Role.NARRATOR,
            text="Traits",
            structured_payload=CarouselPayload(cards=(Card("A", "a"),)),
        )
        assert estimate_item_height(item) == CAROUSEL_HEIGHT


class TestShouldPause:
    def test_never_pauses_without_viewport(self):
        recent = [narrator("x " * 200)] * 5
        assert not should_pause("more", None, 0, True, recent, False)

    def test_never_pauses_when_scrolled_up(self):
        recent = [narrator("x " * 200)] * 5
        assert not should_pause("more", None, 300, False, recent, False)

    def test_does_not_pause_when_content_fits(self):
        assert not should_pause("Short", None, 800, True, [narrator("Hi")], False)

    def test_pauses_when_content_would_overflow(self):
        # available 160, cap 144; two bubbles (120) plus one more (60)
        recent = [narrator("Welcome"), narrator("Ready?")]
        assert should_pause("Yes", None, 300, True, recent, False)

    def test_typing_indicator_counts_toward_visible_height(self):
        # available 260, cap 234; 120 visible + 84 incoming fits, +40 typing does not
        recent = [narrator("Welcome"), narrator("Ready?")]
        assert not should_pause("x " * 30, None, 400, True, recent, False)
        assert should_pause("x " * 30, None, 400, True, recent, True)

    def test_threshold_is_configurable(self):
        recent = [narrator("Welcome")]
        assert not should_pause("Next", None, 300, True, recent, False, threshold=0.9)
        assert should_pause("Next", None, 300, True, recent, False, threshold=0.5)

    def test_only_recent_window_counts(self):
        old = [narrator("x " * 100)] * 20
        recent = old + [narrator("Hi")] * 5
        # Only the last five bubbles (300) count; the older history would overflow
        assert not should_pause("Next", None, 600, True, recent, False)
