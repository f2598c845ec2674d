"""
Command text sanitizer.

Slack delivers slash-command text with its own inline markup (bold,
italic, code, links, user/channel mentions). Handlers want the plain
words, so every command passes through sanitize() before anything else
reads it.

sanitize() is total (None and non-strings give "") and idempotent: the
transformation is applied until the text stops changing, so markup that
only appears after a first pass (e.g. "__a__" -> "_a_") is removed too.

Example:
    sanitize("*create*  <@U123|bob>  `daily`")  # 'create U123 daily'
    sanitize("  Text   with  spaces  \\x00\\x01")  # 'Text with spaces'
"""

import re
from typing import Any

_CODE_BLOCK = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE = re.compile(r"`([^`]+)`")
_BOLD = re.compile(r"\*([^*]+)\*")
_ITALIC = re.compile(r"_([^_]+)_")
_STRIKE = re.compile(r"~([^~]+)~")
_MENTION = re.compile(r"<[@#!]([^>|]+)(?:\|[^>]*)?>")
_LABELLED_LINK = re.compile(r"<([^|>]+)\|([^>]+)>")
_BARE_LINK = re.compile(r"<([^>]+)>")
# Letters, digits, underscore, whitespace and - . : , /
_DISALLOWED = re.compile(r"[^\w\s\-.:,/]")
# C0 controls except tab/newline/CR, plus DEL
_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def remove_formatting(text: Any) -> str:
    """
    Remove Slack mrkdwn from text.

    Drops code blocks, unwraps inline code/bold/italic/strikethrough,
    resolves links to their label and mentions to their ID, then keeps only
    letters, digits, whitespace and - . : , / _.
    """
    if not text or not isinstance(text, str):
        return ""

    text = _CODE_BLOCK.sub("", text)
    text = _INLINE_CODE.sub(r"\1", text)
    text = _BOLD.sub(r"\1", text)
    text = _ITALIC.sub(r"\1", text)
    text = _STRIKE.sub(r"\1", text)
    text = _MENTION.sub(r"\1", text)
    text = _LABELLED_LINK.sub(r"\2", text)
    text = _BARE_LINK.sub(r"\1", text)
    text = _DISALLOWED.sub("", text)
    return text.strip()


def strip_control_characters(text: Any) -> str:
    """Remove non-printable control characters and collapse whitespace."""
    if not text or not isinstance(text, str):
        return ""

    text = _CONTROL.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def _sanitize_once(text: str) -> str:
    return strip_control_characters(remove_formatting(strip_control_characters(text)))


def sanitize(text: Any) -> str:
    """
    Normalize raw command text. Never raises.

    Args:
        text: Raw text from the Slack payload (may be None)

    Returns:
        Plain, single-spaced text with markup and control characters removed
    """
    if not text or not isinstance(text, str):
        return ""

    # A pass only deletes characters or turns whitespace into plain
    # spaces, so this reaches a fixed point.
    while True:
        cleaned = _sanitize_once(text)
        if cleaned == text:
            return cleaned
        text = cleaned
