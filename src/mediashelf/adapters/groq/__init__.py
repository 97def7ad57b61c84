"""Groq chat-completion adapter (synopsis translation)."""

from __future__ import annotations

from .translator import GroqTranslator

__all__ = ["GroqTranslator"]
