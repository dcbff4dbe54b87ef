"""Text transformations applied to model output and translation input."""

from __future__ import annotations

import re
from dataclasses import dataclass

THINK_TAG_PATTERN = re.compile(r"<think>.*?(?:</think>|$)\s*", re.DOTALL | re.IGNORECASE)

# Fenced blocks first so inline code and URLs inside them stay untouched
FENCED_CODE_PATTERN = re.compile(
    r"^[ \t]*(?P<fence>`{3,}|~{3,})[^\n]*\n.*?^[ \t]*(?P=fence)[ \t]*$", re.DOTALL | re.MULTILINE
)
INLINE_CODE_PATTERN = re.compile(r"(`+)(?!`).+?(?<!`)\1(?!`)")
URL_PATTERN = re.compile(r"\b(?:https?|ftp)://[^\s<>()\[\]\"'`]+[^\s<>()\[\]\"'`.,;:!?]")

PLACEHOLDER_TEMPLATE = "⟦{}⟧"
PLACEHOLDER_PATTERN = re.compile(r"⟦(\d+)⟧")

# "## Title:path/to/file" with the path suffix optional
MIND_MAP_LINE_PATTERN = re.compile(r"^(?P<marker>\s*#+\s*)(?P<title>.*?)(?P<suffix>:[^\s:]+)?\s*$")


def remove_think_tags(text: str) -> str:
    """Strip ``<think>...</think>`` reasoning blocks from model text.

    An unterminated block swallows the rest of the text.
    """
    return THINK_TAG_PATTERN.sub("", text).strip()


@dataclass
class MaskedText:
    """Text with protected segments swapped for numbered placeholders."""

    text: str
    segments: list[str]


def mask_protected(text: str) -> MaskedText:
    """Replace fenced code, inline code and URLs with opaque placeholders."""
    segments: list[str] = []

    def stash(match: re.Match[str]) -> str:
        segments.append(match.group(0))
        return PLACEHOLDER_TEMPLATE.format(len(segments) - 1)

    masked = FENCED_CODE_PATTERN.sub(stash, text)
    masked = INLINE_CODE_PATTERN.sub(stash, masked)
    masked = URL_PATTERN.sub(stash, masked)
    return MaskedText(masked, segments)


class PlaceholderError(ValueError):
    """Raised when translated text lost or invented placeholders."""

    pass


def restore_protected(text: str, segments: list[str]) -> str:
    """Put the protected segments back, byte for byte.

    Raises:
        PlaceholderError: If a placeholder is missing, duplicated or unknown.
    """
    found = [int(index) for index in PLACEHOLDER_PATTERN.findall(text)]
    missing = sorted(set(range(len(segments))) - set(found))
    if missing:
        raise PlaceholderError(f"Placeholders lost in translation: {missing}")
    unknown = sorted({index for index in found if index >= len(segments)})
    if unknown:
        raise PlaceholderError(f"Unknown placeholders in translation: {unknown}")
    if len(found) != len(set(found)):
        raise PlaceholderError("Placeholders duplicated in translation")

    return PLACEHOLDER_PATTERN.sub(lambda m: segments[int(m.group(1))], text)


@dataclass
class MindMapLine:
    marker: str
    title: str
    suffix: str


def parse_mind_map(content: str) -> list[MindMapLine | str]:
    """Split a mind map into node lines and verbatim non-node lines."""
    parsed: list[MindMapLine | str] = []
    for line in content.splitlines():
        match = MIND_MAP_LINE_PATTERN.match(line)
        if match and match.group("title").strip():
            parsed.append(
                MindMapLine(match.group("marker"), match.group("title").strip(), match.group("suffix") or "")
            )
        else:
            parsed.append(line)
    return parsed


def mind_map_titles(content: str) -> list[str]:
    """Node titles of a mind map, in order."""
    return [line.title for line in parse_mind_map(content) if isinstance(line, MindMapLine)]


def rebuild_mind_map(source: str, titles: list[str]) -> str:
    """Rebuild ``source`` with node titles replaced by ``titles``.

    Level markers, path suffixes and non-node lines come from ``source``.

    Raises:
        ValueError: If the number of titles differs from the number of nodes.
    """
    parsed = parse_mind_map(source)
    nodes = [line for line in parsed if isinstance(line, MindMapLine)]
    if len(nodes) != len(titles):
        raise ValueError(f"Expected {len(nodes)} mind map titles, got {len(titles)}")

    lines = []
    replacements = iter(titles)
    for line in parsed:
        if isinstance(line, MindMapLine):
            lines.append(f"{line.marker}{next(replacements).strip()}{line.suffix}")
        else:
            lines.append(line)
    return "\n".join(lines)
