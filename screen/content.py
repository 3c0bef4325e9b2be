"""Content trees scanned for blocked keywords."""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Union


@dataclass
class ContentNode:
    """
    One node of the on-screen content tree (an accessibility node, a DOM
    element, ...). Only `text` and `description` are scanned.
    """
    text: Optional[str] = None
    description: Optional[str] = None
    children: List['ContentNode'] = field(default_factory=list)


Content = Union[ContentNode, str, Iterable[str], None]


def iter_text_fields(content: Content) -> Iterator[str]:
    """
    Yield every non-empty text field of a content tree, depth first.

    Accepts a ContentNode tree, a single string, or an iterable of strings.
    Uses an explicit stack so deep trees cannot hit the recursion limit.
    """
    if content is None:
        return
    if isinstance(content, str):
        if content:
            yield content
        return
    if not isinstance(content, ContentNode):
        for text in content:
            if text:
                yield text
        return

    stack = [content]
    while stack:
        node = stack.pop()
        if node.text:
            yield node.text
        if node.description:
            yield node.description
        # Reverse so children are visited in document order
        stack.extend(reversed(node.children))


def find_keyword(content: Content, keywords: Sequence[str]) -> Optional[str]:
    """
    First blocked keyword found in the content, or None.

    Matching is a case-insensitive substring test. The scan stops at the
    first hit.
    """
    pairs = [(k, k.casefold()) for k in keywords if k]
    if not pairs:
        return None

    for text in iter_text_fields(content):
        text = text.casefold()
        for original, keyword in pairs:
            if keyword in text:
                return original
    return None
