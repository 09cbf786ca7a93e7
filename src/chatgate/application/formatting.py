"""Markdown to chat markup conversion."""

import re

_BOLD_STARS = re.compile(r"\*\*([^*]+?)\*\*")
_BOLD_UNDERSCORES = re.compile(r"__([^_]+?)__")
_STRIKETHROUGH = re.compile(r"~~(.+?)~~")
# Single backticks only; fenced blocks are already in chat syntax.
_INLINE_CODE = re.compile(r"(?<!`)`([^`\n]+?)`(?!`)")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_NUMBERED_ITEM = re.compile(r"^\d+\.\s")
_BULLETS = ("- ", "* ", "• ", "◦ ", "▪ ", "▫ ")


def format_for_chat(text: str) -> str:
    """Convert common markdown to the chat network's markup.

    - ``**bold**`` and ``__bold__`` become ``*bold*``
    - ``~~strike~~`` becomes ``~strike~``
    - ```` `code` ```` becomes ```` ```code``` ````
    - trailing spaces are dropped and blank runs collapse to one empty line
    - lists are separated from surrounding paragraphs by an empty line

    Args:
        text: Markdown text, typically produced by an LLM or webhook.

    Returns:
        The converted text.
    """
    if not text:
        return text

    text = _BOLD_STARS.sub(r"*\1*", text)
    text = _BOLD_UNDERSCORES.sub(r"*\1*", text)
    text = _STRIKETHROUGH.sub(r"~\1~", text)
    text = _INLINE_CODE.sub(r"```\1```", text)
    text = _cleanup_whitespace(text)
    return _space_lists(text)


def _cleanup_whitespace(text: str) -> str:
    text = "\n".join(line.rstrip(" \t") for line in text.split("\n"))
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def _is_list_item(line: str) -> bool:
    return line.startswith(_BULLETS) or _NUMBERED_ITEM.match(line) is not None


def _space_lists(text: str) -> str:
    formatted: list[str] = []
    previous_item = False

    for line in text.split("\n"):
        trimmed = line.strip()
        item = bool(trimmed) and _is_list_item(trimmed)
        if item:
            if not previous_item and formatted and formatted[-1].strip():
                formatted.append("")
            formatted.append(trimmed)
        else:
            if previous_item and trimmed:
                formatted.append("")
            formatted.append(line)
        previous_item = item

    return "\n".join(formatted)
