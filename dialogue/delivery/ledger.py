"""Per-session record of branch options the learner has chosen."""

from dataclasses import dataclass, field
from typing import Literal

DedupeScope = Literal["global", "parent"]


@dataclass
class ChoiceLedger:
    """
    Chosen options, tracked two ways:

    - per_parent_chosen: prompt id -> option ids picked under that prompt
    - globally_chosen: every option id picked anywhere in the session

    The "global" scope hides a chosen option everywhere it appears; the
    "parent" scope only filters it under the prompt it was picked from.
    """

    per_parent_chosen: dict[str, set[str]] = field(default_factory=dict)
    globally_chosen: set[str] = field(default_factory=set)

    def record(self, parent_id: str | None, option_id: str) -> None:
        self.globally_chosen.add(option_id)
        if parent_id is not None:
            self.per_parent_chosen.setdefault(parent_id, set()).add(option_id)

    def was_chosen(
        self, option_id: str, parent_id: str | None, scope: DedupeScope = "global"
    ) -> bool:
        if scope == "global":
            return option_id in self.globally_chosen
        return option_id in self.per_parent_chosen.get(parent_id or "", set())

    def available(
        self, parent_id: str, option_ids: list[str], scope: DedupeScope = "global"
    ) -> list[str]:
        """Options under parent_id not yet chosen, in authored order."""
        return [o for o in option_ids if not self.was_chosen(o, parent_id, scope)]

    def is_exhausted(
        self, parent_id: str, option_ids: list[str], scope: DedupeScope = "global"
    ) -> bool:
        return bool(option_ids) and not self.available(parent_id, option_ids, scope)

    def reset(self) -> None:
        self.per_parent_chosen.clear()
        self.globally_chosen.clear()
