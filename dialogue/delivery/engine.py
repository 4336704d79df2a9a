# dialogue/delivery/engine.py
"""
Traversal engine - walks the authored graph and paces what the learner sees.

One engine per chat session. Every mutation happens on the event loop that
owns the session, so UI events, timer completions and AI completions are
serialized without locks. At most one timed delivery ("typing, then reveal")
runs at a time; anything that starts a new one cancels the old one first.
"""

import asyncio
import logging
from dataclasses import asdict
from typing import Awaitable, Callable

import sentry_sdk

from dialogue.config import DeliverySettings
from dialogue.delivery.ai_turn import (
    AITurnHandler,
    AITurnResult,
    TurnContext,
    split_paragraphs,
)
from dialogue.delivery.commands import (
    CommandError,
    is_admin_command,
    parse_admin_command,
)
from dialogue.delivery.ledger import ChoiceLedger
from dialogue.delivery.pacer import compute_delay, should_pause
from dialogue.delivery.types import (
    AwaitingAI,
    AwaitingChoice,
    DeliveredItem,
    Idle,
    Origin,
    PendingDelivery,
    Phase,
    Role,
    Transcript,
)
from dialogue.graph.payloads import StructuredPayload, parse_carousel, parse_media
from dialogue.graph.store import GraphStore
from dialogue.graph.types import LearningNode, NodeKind

logger = logging.getLogger(__name__)

DEFAULT_MODULE_TITLE = "Chat with Ellen"
EXHAUSTED_MESSAGE = (
    "You've explored all the available options here. Let's continue with the lesson."
)
AI_FALLBACK_MESSAGE = (
    "I'm having trouble responding right now. Could you try rephrasing your question?"
)
REPLY_DELAY_FACTOR = 0.5

# Kinds whose own text is not shown as a narrator bubble
_SPECIAL_RENDER_KINDS = (NodeKind.BRANCH_OPTION, NodeKind.CARD_CAROUSEL, NodeKind.MEDIA)
_NARRATION_KINDS = (
    NodeKind.NARRATION,
    NodeKind.MODULE_TITLE,
    NodeKind.MODULE_DESCRIPTION,
)

Sleep = Callable[[float], Awaitable[None]]


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class TraversalEngine:
    """State machine for one learner's walk through the curriculum graph."""

    def __init__(
        self,
        store: GraphStore,
        ai_handler: AITurnHandler,
        settings: DeliverySettings | None = None,
        ledger: ChoiceLedger | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.ai_handler = ai_handler
        self.settings = settings or DeliverySettings()
        self.ledger = ledger if ledger is not None else ChoiceLedger()
        self._sleep = sleep

        self.transcript = Transcript()
        self.module_title = DEFAULT_MODULE_TITLE
        self.current_node_id: str | None = None
        self.offered_choices: list[LearningNode] = []
        self.is_typing = False
        self.phase: Phase = Idle()
        self._seen_node_ids: set[str] = set()

        self.viewport_height = 0.0
        self.is_at_bottom = True
        self._waiting_for_viewport = False

        self._delivery_task: asyncio.Task | None = None
        self._ai_task: asyncio.Future | None = None
        self._ai_cancel_requested = False

    # --- Observable state ---

    @property
    def is_paused(self) -> bool:
        return isinstance(self.phase, PendingDelivery)

    @property
    def pending_node_id(self) -> str | None:
        return self.phase.node_id if isinstance(self.phase, PendingDelivery) else None

    @property
    def is_awaiting_ai(self) -> bool:
        return isinstance(self.phase, AwaitingAI)

    @property
    def nodes_completed(self) -> int:
        """Distinct nodes delivered so far; revisits in a loop count once."""
        return len(self._seen_node_ids)

    def snapshot(self) -> dict:
        """JSON-friendly view of the session for the chat client."""
        return {
            "moduleTitle": self.module_title,
            "phase": type(self.phase).__name__,
            "currentNodeId": self.current_node_id,
            "pendingNodeId": self.pending_node_id,
            "isPaused": self.is_paused,
            "isTyping": self.is_typing,
            "isAwaitingAI": self.is_awaiting_ai,
            # Options cannot be picked while the tutor is answering
            "offeredChoices": (
                []
                if self.is_awaiting_ai
                else [
                    {"id": node.id, "content": node.content}
                    for node in self.offered_choices
                ]
            ),
            "transcript": [
                {
                    "role": item.role.value,
                    "text": item.text,
                    "origin": item.origin.value,
                    "nodeId": item.node_id,
                    "payload": (
                        asdict(item.structured_payload)
                        if item.structured_payload is not None
                        else None
                    ),
                    "createdAt": item.created_at.isoformat(),
                }
                for item in self.transcript
            ],
        }

    # --- Session lifecycle ---

    async def start(self) -> None:
        """
        Begin a session once the graph is loaded.

        Delivery of the first node waits until the client has reported a
        viewport height, so the pause logic has something to measure.
        """
        await self.store.wait_until_loaded()
        self.ledger.reset()

        title_node = self.store.lookup(self.settings.title_node_id)
        if title_node is not None and title_node.kind == NodeKind.MODULE_TITLE:
            self.module_title = title_node.content
            logger.info(f"Module title: {self.module_title}")

        self._waiting_for_viewport = True
        self._begin_if_ready()

    def _begin_if_ready(self) -> None:
        if not self._waiting_for_viewport or self.viewport_height <= 0:
            return
        if self.is_awaiting_ai:
            # Started once the tutor's turn has resolved
            return
        self._waiting_for_viewport = False

        start_id = self.settings.start_node_id
        if self.store.lookup(start_id) is None:
            logger.warning(f"Start node {start_id} not found; chat only")
            return
        self.advance(start_id)

    def close(self) -> None:
        """Cancel everything in flight. The engine is unusable afterwards."""
        self._waiting_for_viewport = False
        self._cancel_delivery()
        self.cancel_ai_turn()

    async def wait_for_delivery(self) -> None:
        """Wait until the chain of timed deliveries has run out."""
        while self._delivery_task is not None:
            await asyncio.wait({self._delivery_task})
            await asyncio.sleep(0)

    # --- Transitions ---

    def _transition(self, phase: Phase) -> None:
        if phase != self.phase:
            logger.debug(f"Phase {self.phase} -> {phase}")
        self.phase = phase

    def _pause(self, node_id: str, content_delivered: bool = False) -> None:
        self.is_typing = False
        self._transition(PendingDelivery(node_id, content_delivered))
        logger.info(f"Paused before {node_id} until the learner scrolls")

    # --- Graph traversal ---

    def advance(self, target_id: str | None, bypass_pause_check: bool = False) -> None:
        """Deliver target_id and schedule whatever follows it."""
        self._cancel_delivery()

        node = self.store.lookup(target_id)
        if node is None:
            logger.warning(f"Cannot advance to {target_id!r}: node not found")
            return

        kind = self.store.effective_kind(node)
        if not bypass_pause_check and self._should_pause_for(node, kind):
            self._pause(node.id)
            return

        logger.debug(f"Advancing to {node.id} ({kind.value})")
        self._transition(Idle())
        self.offered_choices = []
        self.current_node_id = node.id
        self._seen_node_ids.add(node.id)

        if kind not in _SPECIAL_RENDER_KINDS:
            self._append(Role.NARRATOR, node.content, node_id=node.id)

        self._dispatch(node, kind, bypass_pause_check)

    def _dispatch(self, node: LearningNode, kind: NodeKind, bypassed: bool) -> None:
        if kind in _NARRATION_KINDS:
            self._schedule(self._paced_advance(node.first_successor))

        elif kind == NodeKind.CARD_CAROUSEL:
            payload = parse_carousel(node.content)
            if payload is not None:
                self._append_payload(node, payload.heading or "Card Carousel", payload)
            else:
                self._append(
                    Role.NARRATOR, f"Card Carousel: {node.content}", node_id=node.id
                )
            self._schedule(self._paced_advance(node.first_successor))

        elif kind == NodeKind.MEDIA:
            payload = parse_media(node.content)
            if payload is not None:
                self._append_payload(node, payload.caption or node.content, payload)
            else:
                self._append(Role.NARRATOR, node.content, node_id=node.id)
            self._schedule(self._paced_advance(node.first_successor))

        elif kind == NodeKind.BRANCH_PROMPT:
            if bypassed:
                self._reveal_options(node, kind)
            else:
                self._schedule(self._paced_reveal(node, kind))

        elif kind == NodeKind.BRANCH_OPTION:
            parent_id = node.structural_parent
            if self.ledger.was_chosen(node.id, parent_id, self.settings.dedupe_scope):
                logger.info(f"Option {node.id} already chosen, skipping ahead")
                self.advance(node.first_successor)
            elif bypassed:
                self._reveal_options(node, kind)
            else:
                self._schedule(self._paced_reveal(node, kind))

    def _reveal_options(self, node: LearningNode, kind: NodeKind) -> None:
        if kind == NodeKind.BRANCH_OPTION:
            self.offered_choices = [node]
            self._transition(AwaitingChoice(node.structural_parent or node.id))
            return

        options = []
        for option_id in node.successors:
            option = self.store.lookup(option_id)
            if option is None:
                logger.warning(f"Prompt {node.id} lists missing option {option_id}")
            else:
                options.append(option)

        if not options:
            logger.warning(f"Prompt {node.id} has no resolvable options")
            self._transition(Idle())
            return

        option_ids = [o.id for o in options]
        scope = self.settings.dedupe_scope
        if self.ledger.is_exhausted(node.id, option_ids, scope):
            self._handle_exhausted(node, options)
            return

        available_ids = self.ledger.available(node.id, option_ids, scope)
        logger.info(
            f"Prompt {node.id}: {len(available_ids)} of {len(options)} options available"
        )

        self.offered_choices = [o for o in options if o.id in available_ids]
        self._transition(AwaitingChoice(node.id))

    def _handle_exhausted(self, prompt: LearningNode, options: list[LearningNode]) -> None:
        """Every option was chosen already: leave the loop instead of offering nothing."""
        override = self.store.override_for(prompt.id)
        self._append(
            Role.NARRATOR, override.exhausted_message or EXHAUSTED_MESSAGE
        )

        target = override.exhausted_exit or _common_successor(prompt.id, options)
        if target is None:
            target = options[0].first_successor
        if target is None:
            logger.warning(f"No way out of exhausted prompt {prompt.id}")
            self._transition(Idle())
            return

        logger.info(f"All options under {prompt.id} explored, continuing at {target}")
        self.advance(target)

    def _should_pause_for(self, node: LearningNode, kind: NodeKind) -> bool:
        if kind == NodeKind.BRANCH_OPTION:
            return self._should_pause(node.content, kind, option_count=1)
        if kind in (NodeKind.CARD_CAROUSEL, NodeKind.MEDIA):
            return self._should_pause("", kind)
        return self._should_pause(node.content, None)

    def _should_pause(
        self, content: str, kind: NodeKind | None, option_count: int = 3
    ) -> bool:
        return should_pause(
            next_content=content,
            kind=kind,
            viewport_height=self.viewport_height,
            is_at_bottom=self.is_at_bottom,
            recent_items=self.transcript.last(5),
            is_typing_now=self.is_typing,
            option_count=option_count,
            threshold=self.settings.pause_threshold,
        )

    # --- Timed delivery ---

    def _reading_delay(self) -> float:
        prior = self.transcript.second_to_last()
        return compute_delay(
            len(prior.text) if prior else 0, self.settings.speed_multiplier
        )

    def _schedule(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._delivery_task = task
        task.add_done_callback(self._on_delivery_done)

    def _on_delivery_done(self, task: asyncio.Task) -> None:
        if self._delivery_task is task:
            self._delivery_task = None
            self.is_typing = False
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Delivery task failed: {task.exception()!r}")

    def _cancel_delivery(self) -> None:
        task = self._delivery_task
        self._delivery_task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        self.is_typing = False

    async def _typing_pause(self, delay: float) -> None:
        self.is_typing = True
        await self._sleep(delay)
        self.is_typing = False

    async def _paced_advance(self, next_id: str | None) -> None:
        await self._typing_pause(self._reading_delay())
        if next_id is not None:
            self.advance(next_id)

    async def _paced_reveal(self, node: LearningNode, kind: NodeKind) -> None:
        await self._typing_pause(self._reading_delay())
        option_count = 1 if kind == NodeKind.BRANCH_OPTION else len(node.successors)
        # Scroll state may have changed while typing was shown
        if self._should_pause("", NodeKind.BRANCH_PROMPT, option_count):
            self._pause(node.id, content_delivered=True)
            return
        self._reveal_options(node, kind)

    # --- Learner actions ---

    def choose_branch(self, option_id: str) -> None:
        """Follow the option the learner tapped."""
        if not isinstance(self.phase, AwaitingChoice):
            logger.warning(f"Choice {option_id} ignored: no options on offer")
            return
        option = next((o for o in self.offered_choices if o.id == option_id), None)
        if option is None:
            logger.warning(f"Choice {option_id} ignored: not currently offered")
            return

        self.ledger.record(self.phase.parent_id, option.id)
        logger.info(f"Learner chose {option.id} under {self.phase.parent_id}")

        self._append(Role.LEARNER, option.content, node_id=option.id)
        self.offered_choices = []
        self._transition(Idle())
        self.advance(option.first_successor)

    def resume_from_pause(self) -> None:
        """Deliver the held-back node without checking the viewport again."""
        phase = self.phase
        if not isinstance(phase, PendingDelivery):
            return
        self._transition(Idle())

        if phase.content_delivered:
            node = self.store.lookup(phase.node_id)
            if node is None:
                logger.warning(f"Pending node {phase.node_id} vanished")
                return
            self._reveal_options(node, self.store.effective_kind(node))
        else:
            self.advance(phase.node_id, bypass_pause_check=True)

    def report_scroll_state(self, is_at_bottom: bool, viewport_height: float) -> None:
        """Viewport update from the client; may start or resume delivery."""
        self.is_at_bottom = is_at_bottom
        self.viewport_height = viewport_height

        if self._waiting_for_viewport and viewport_height > 0:
            self._begin_if_ready()
            return

        if self.is_paused and is_at_bottom:
            self.resume_from_pause()

    def user_requested_continue(self) -> None:
        if self.is_paused:
            self.resume_from_pause()

    def set_speed_multiplier(self, speed: float) -> None:
        if speed <= 0:
            raise ValueError(f"speed_multiplier must be positive, got {speed}")
        self.settings.speed_multiplier = speed

    def undo_last_exchange(self) -> bool:
        """Remove the trailing learner message and the reply to it."""
        self._cancel_delivery()
        self.cancel_ai_turn()
        removed = self.transcript.remove_last_exchange()
        if not removed:
            logger.info("Undo ignored: transcript does not end with an exchange")
        return removed

    # --- Free text and AI turns ---

    async def handle_free_text(self, text: str) -> None:
        """Route typed input to admin commands or the AI tutor."""
        text = text.strip()
        if not text:
            return
        if self.is_awaiting_ai:
            logger.warning("AI turn already in flight, ignoring new message")
            return
        if self.settings.admin_commands and is_admin_command(text):
            self._run_admin_command(text)
            return

        self._cancel_delivery()
        self._append(Role.LEARNER, text)

        resume_to = self.phase
        self._transition(AwaitingAI(resume_to=resume_to))
        try:
            result = await self._call_ai(text)
        finally:
            if self.is_awaiting_ai:
                self._transition(resume_to)

        if result is None:
            self._begin_if_ready()
            return
        if not result.text.strip():
            self._append(Role.NARRATOR, AI_FALLBACK_MESSAGE, origin=Origin.AI_GENERATED)
            self._begin_if_ready()
            return

        self._cancel_delivery()
        self._schedule(
            self._deliver_reply(
                split_paragraphs(result.text), result.continuation_requested
            )
        )

    async def _call_ai(self, text: str) -> AITurnResult | None:
        """
        Run the AI call as a cancellable task.

        Returns None when the turn was cancelled through cancel_ai_turn(),
        and an empty result when the call failed.
        """
        self._ai_cancel_requested = False
        self._ai_task = asyncio.ensure_future(
            self.ai_handler.send(text, self._turn_context())
        )
        try:
            return await self._ai_task
        except asyncio.CancelledError:
            if not self._ai_cancel_requested:
                raise
            logger.info("AI turn cancelled")
            return None
        except Exception as e:
            logger.error(f"AI turn failed: {e}")
            sentry_sdk.capture_exception(e)
            return AITurnResult(text="")
        finally:
            self._ai_task = None

    def cancel_ai_turn(self) -> None:
        """Abandon the in-flight AI call, if any."""
        if self._ai_task is not None and not self._ai_task.done():
            self._ai_cancel_requested = True
            self._ai_task.cancel()

    def _turn_context(self) -> TurnContext:
        current = self.store.lookup(self.current_node_id)
        return TurnContext(
            recent_items=self.transcript.last(6),
            current_node_id=self.current_node_id,
            current_node_content=current.content if current else None,
            module_title=self.module_title,
            nodes_completed=self.nodes_completed,
            total_nodes=self.store.node_count,
        )

    async def _deliver_reply(self, paragraphs: list[str], continue_path: bool) -> None:
        for index, paragraph in enumerate(paragraphs):
            if index == 0:
                delay = self.settings.first_reply_delay
            else:
                delay = self._reading_delay() * REPLY_DELAY_FACTOR
            await self._typing_pause(delay)
            self._append(Role.ASSISTANT, paragraph, origin=Origin.AI_GENERATED)
            await self._sleep(self.settings.reply_gap)

        if self._waiting_for_viewport:
            # The learner spoke before the lesson had started
            self._begin_if_ready()
        elif continue_path:
            await self._sleep(self.settings.continuation_settle_delay)
            self._continue_path()

    def _continue_path(self) -> None:
        """Pick the authored path up again after an AI detour."""
        if isinstance(self.phase, (AwaitingChoice, PendingDelivery)):
            logger.info("Not resuming path: learner is already at a decision or pause")
            return

        current = self.store.lookup(self.current_node_id)
        if current is None or current.first_successor is None:
            logger.warning(f"No successor to resume from after {self.current_node_id}")
            return
        logger.info(f"Resuming path from {current.id} to {current.first_successor}")
        self.advance(current.first_successor)

    def _run_admin_command(self, text: str) -> None:
        command = parse_admin_command(text)
        if isinstance(command, CommandError):
            self._append(Role.NARRATOR, command.message)
            return
        if self.store.lookup(command.node_id) is None:
            self._append(Role.NARRATOR, f"⚠️ Sequence '{command.node_id}' not found")
            return

        self._append(Role.LEARNER, command.echo)
        self.offered_choices = []
        self._append(Role.NARRATOR, f"📍 Navigated to sequence: {command.node_id}")
        self.advance(command.node_id)

    # --- Transcript ---

    def _append(
        self,
        role: Role,
        text: str,
        origin: Origin = Origin.AUTHORED,
        node_id: str | None = None,
    ) -> None:
        self.transcript.append(
            DeliveredItem(role=role, text=text, origin=origin, node_id=node_id)
        )

    def _append_payload(
        self, node: LearningNode, text: str, payload: StructuredPayload
    ) -> None:
        self.transcript.append(
            DeliveredItem(
                role=Role.NARRATOR,
                text=text,
                structured_payload=payload,
                node_id=node.id,
            )
        )


def _common_successor(prompt_id: str, options: list[LearningNode]) -> str | None:
    """First successor shared by every option, ignoring the prompt itself."""
    common: set[str] | None = None
    for option in options:
        successors = set(option.successors) - {prompt_id}
        common = successors if common is None else common & successors
    if not common:
        return None
    return next(s for s in options[0].successors if s in common)
