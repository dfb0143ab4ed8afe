"""Expansion of Slurm compressed hostlist notation.

``sinfo`` reports groups of nodes as ``prefix[ranges]``, e.g. ``gpu[1-3,7]``.
Expanded names always carry a two-digit zero-padded index (``gpu01``), and
indices of 100 or more keep their natural width (``gpu100``). This does not
preserve the width written in the original notation.
"""

import logging
import re

logger = logging.getLogger(__name__)

_BRACKET_PATTERN = re.compile(r"^(?P<prefix>[^\[\]]*)\[(?P<ranges>[^\]]*)\](?P<suffix>.*)$")
_TRAILING_INDEX_PATTERN = re.compile(r"^(?P<prefix>.*?)(?P<index>\d+)$")


def _format_name(prefix: str, index: int, suffix: str = "") -> str:
    return f"{prefix}{index:02d}{suffix}"


def _parse_subrange(subrange: str) -> range:
    """Parse ``"A"`` or ``"A-B"`` into an inclusive range.

    Raises:
        ValueError: If a bound is not an integer.
    """
    if "-" in subrange:
        start_str, end_str = subrange.split("-", 1)
        start, end = int(start_str), int(end_str)
    else:
        start = end = int(subrange)

    if start < 0:
        raise ValueError(f"negative index in {subrange!r}")

    return range(start, end + 1)


def expand_hostlist(token: str) -> list[str]:
    """Expand a single node-name group into concrete node names.

    Examples:
        "node[1-3,5]" -> ["node01", "node02", "node03", "node05"]
        "node7" -> ["node07"]
        "a[100-101]" -> ["a100", "a101"]
        "login" -> ["login"]

    A malformed subrange is logged and skipped; the remaining subranges are
    still expanded. A group with unbalanced brackets expands to nothing.
    """
    token = token.strip()
    if not token:
        return []

    match = _BRACKET_PATTERN.match(token)
    if match is None and ("[" in token or "]" in token):
        logger.warning(f"Skipping malformed node group '{token}'")
        return []
    if match is None:
        plain = _TRAILING_INDEX_PATTERN.match(token)
        if plain is None:
            return [token]
        return [_format_name(plain.group("prefix"), int(plain.group("index")))]

    prefix = match.group("prefix")
    suffix = match.group("suffix")

    names = []
    for subrange in match.group("ranges").split(","):
        try:
            indices = _parse_subrange(subrange.strip())
        except ValueError as e:
            logger.warning(f"Skipping malformed range '{subrange}' in '{token}': {e}")
            continue
        names.extend(_format_name(prefix, i, suffix) for i in indices)

    return names


def split_node_groups(field: str) -> list[str]:
    """Split a node-name field on the commas that sit outside brackets.

    ``"a[1-2,4],b7"`` -> ``["a[1-2,4]", "b7"]``
    """
    groups = []
    depth = 0
    current = []

    for char in field:
        if char == "[":
            depth += 1
        elif char == "]" and depth > 0:
            depth -= 1

        if char == "," and depth == 0:
            groups.append("".join(current))
            current = []
        else:
            current.append(char)

    groups.append("".join(current))
    return [g for g in groups if g.strip()]


def expand_node_field(field: str) -> list[str]:
    """Expand every group of a node-name field, preserving order."""
    names = []
    for group in split_node_groups(field):
        names.extend(expand_hostlist(group))
    return names
