from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger("support_bot.prompts")

FALLBACK_SYSTEM_PROMPT = (
    "You are a customer service chatbot. Help customers with product questions, orders, "
    "and policies. Be friendly, professional, and concise."
)


def load_system_prompt(prompt_path: Optional[Path]) -> str:
    """Purpose: Read the assistant persona that opens every outbound message list.
    Inputs/Outputs: Input is the persona file path (or None); output is the persona text.
    Side Effects / State: Reads the filesystem once at startup.
    Dependencies: Called by build_chat_service in app.py.
    Failure Modes: A missing, unreadable, or blank file yields FALLBACK_SYSTEM_PROMPT with
        a warning; bytes that are not UTF-8 are dropped rather than failing startup.
    If Removed: The model answers with no store persona or answering rules.
    Testing Notes: Cover BOM input, invalid bytes, and each fallback path.
    """
    if prompt_path is None:
        return FALLBACK_SYSTEM_PROMPT
    try:
        text = prompt_path.read_bytes().decode("utf-8-sig", errors="ignore")
    except OSError as exc:
        logger.warning("system prompt file=%s unavailable, using fallback: %s", prompt_path, exc)
        return FALLBACK_SYSTEM_PROMPT
    if not text.strip():
        logger.warning("system prompt file=%s is blank, using fallback", prompt_path)
        return FALLBACK_SYSTEM_PROMPT
    return text
