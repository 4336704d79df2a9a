"""
Delivery pacing: reading-time delays and viewport-fit estimates.

Everything here is a pure function of its inputs. Heights are in points and
only need to be roughly right; what matters is that longer text estimates
taller and that carousels and media count as large blocks.
"""

from collections.abc import Iterable

from dialogue.delivery.types import DeliveredItem
from dialogue.graph.payloads import CarouselPayload, MediaPayload
from dialogue.graph.types import NodeKind

BASE_DELAY = 1.0
MAX_DELAY = 5.0
CHARS_PER_WORD = 5.0
WORDS_PER_MINUTE = 225.0

CAROUSEL_HEIGHT = 180.0
MEDIA_HEIGHT = 250.0
OPTION_HEIGHT = 46.0  # Button (38) plus spacing (8)
OPTIONS_PADDING = 16.0
CHARS_PER_LINE = 32
LINE_HEIGHT = 24.0
BUBBLE_PADDING = 24.0
BUBBLE_SPACING = 12.0

UI_CHROME_HEIGHT = 140.0  # Input bar, typing indicator, padding
TYPING_INDICATOR_HEIGHT = 40.0
RECENT_WINDOW = 5
VISIBLE_SOFT_CAP = 0.7

_OPTION_KINDS = (NodeKind.BRANCH_PROMPT, NodeKind.BRANCH_OPTION)


def compute_delay(prior_content_length: int, speed_multiplier: float = 1.0) -> float:
    """
    Seconds to wait before the next item, giving the learner time to read
    the previous one.

    Args:
        prior_content_length: Character count of the item being read
        speed_multiplier: Learner preference, 1.0 normal; smaller is slower

    Raises:
        ValueError: If speed_multiplier is not positive
    """
    if speed_multiplier <= 0:
        raise ValueError(f"speed_multiplier must be positive, got {speed_multiplier}")

    words = max(prior_content_length, 0) / CHARS_PER_WORD
    reading_seconds = words / (WORDS_PER_MINUTE / 60.0)
    return min(BASE_DELAY + reading_seconds, MAX_DELAY) / speed_multiplier


def estimate_height(
    content: str, kind: NodeKind | None = None, option_count: int = 3
) -> float:
    """Estimated on-screen height of one item."""
    if kind == NodeKind.CARD_CAROUSEL:
        return CAROUSEL_HEIGHT
    if kind == NodeKind.MEDIA:
        return MEDIA_HEIGHT
    if kind in _OPTION_KINDS:
        return option_count * OPTION_HEIGHT + OPTIONS_PADDING

    lines = 1
    line_length = 0
    for word in content.split():
        word_length = len(word) + 1
        if line_length + word_length > CHARS_PER_LINE:
            lines += 1
            line_length = word_length
        else:
            line_length += word_length

    return lines * LINE_HEIGHT + BUBBLE_PADDING + BUBBLE_SPACING


def estimate_item_height(item: DeliveredItem) -> float:
    if isinstance(item.structured_payload, CarouselPayload):
        return estimate_height(item.text, NodeKind.CARD_CAROUSEL)
    if isinstance(item.structured_payload, MediaPayload):
        return estimate_height(item.text, NodeKind.MEDIA)
    return estimate_height(item.text)


def should_pause(
    next_content: str,
    kind: NodeKind | None,
    viewport_height: float,
    is_at_bottom: bool,
    recent_items: Iterable[DeliveredItem],
    is_typing_now: bool,
    option_count: int = 3,
    threshold: float = 0.9,
) -> bool:
    """
    Whether delivering next_content now would push the conversation past
    the visible area.

    Never pauses when the viewport is unknown or when the learner has
    scrolled up into the history.
    """
    if viewport_height <= 0 or not is_at_bottom:
        return False

    available = viewport_height - UI_CHROME_HEIGHT

    visible = 0.0
    for item in list(recent_items)[-RECENT_WINDOW:]:
        visible += estimate_item_height(item)
        if visible > available * VISIBLE_SOFT_CAP:
            break

    if is_typing_now:
        visible += TYPING_INDICATOR_HEIGHT

    incoming = estimate_height(next_content, kind, option_count)
    return visible + incoming > available * threshold
