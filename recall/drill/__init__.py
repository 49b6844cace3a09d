"""
Drill: the interactive review session.

Components:
- session: DrillSession state machine (active list, redo list, cursor)
- enhancer: background rewriting of cards that lack a cloze or need rephrasing
- rewriter: HTTP client for the rewriting service
- display: card text, interval wording and the rich frame
- runner: render/poll/act loop with the enhancement task alongside
"""

from recall.drill.enhancer import (
    CardEnhancer,
    EnhancementUpdate,
    enhancement_required,
    flag_cards,
    unavailable_message,
)
from recall.drill.rewriter import OpenAIRewriter, TextRewriter
from recall.drill.runner import DrillView, KeySource, TerminalKeys, interpret_key, run_session
from recall.drill.session import DrillAction, DrillPhase, DrillSession, LastAction

__all__ = [
    "CardEnhancer",
    "DrillAction",
    "DrillPhase",
    "DrillSession",
    "DrillView",
    "EnhancementUpdate",
    "KeySource",
    "LastAction",
    "OpenAIRewriter",
    "TerminalKeys",
    "TextRewriter",
    "enhancement_required",
    "flag_cards",
    "interpret_key",
    "run_session",
    "unavailable_message",
]
