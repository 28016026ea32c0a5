from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..schemas import ConversationTurn


class HistoryPolicy(Protocol):
    def apply(self, history: list[ConversationTurn]) -> list[ConversationTurn]:
        ...


class KeepAllTurns:
    def apply(self, history: list[ConversationTurn]) -> list[ConversationTurn]:
        return history


def _starts_exchange(turn: ConversationTurn) -> bool:
    return turn.role == "user" and not turn.tool_results


@dataclass(frozen=True)
class KeepRecentTurns:
    """Keep roughly the last ``max_turns`` turns.

    The window always opens on a user message, so a tool result is never kept
    without the model turn that requested it.
    """

    max_turns: int

    def apply(self, history: list[ConversationTurn]) -> list[ConversationTurn]:
        if self.max_turns <= 0 or len(history) <= self.max_turns:
            return history
        start = len(history) - self.max_turns
        while start < len(history) and not _starts_exchange(history[start]):
            start += 1
        if start == len(history):
            # A single exchange is longer than the window: keep it whole.
            start = max(
                (index for index, turn in enumerate(history) if _starts_exchange(turn)),
                default=0,
            )
        return history[start:]


def build_history_policy(max_turns: int) -> HistoryPolicy:
    if max_turns > 0:
        return KeepRecentTurns(max_turns=max_turns)
    return KeepAllTurns()
