"""Outbound content elements.

A message is a sequence of elements. Leaf elements carry attributes
(``text`` has ``content``, ``image`` has ``src``); wrapper elements such
as ``p`` and ``a`` carry children. Unknown element types are treated as
transparent wrappers by the composer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Union


# Canonical names for element aliases
ALIASES = {
    "img": "image",
    "mention": "at",
    "link": "a",
    "paragraph": "p",
    "line-break": "br",
}


@dataclass
class Element:
    """A node in an outbound message."""

    type: str
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list[Element] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.type = ALIASES.get(self.type, self.type)

    @classmethod
    def text(cls, content: str) -> Element:
        return cls("text", {"content": content})

    @classmethod
    def markdown(cls, content: str) -> Element:
        return cls("markdown", {"content": content})

    @classmethod
    def at(cls, user_id: str, name: str | None = None) -> Element:
        attrs: dict[str, Any] = {"id": user_id}
        if name:
            attrs["name"] = name
        return cls("at", attrs)

    @classmethod
    def br(cls) -> Element:
        return cls("br")

    @classmethod
    def p(cls, *children: str | Element) -> Element:
        return cls("p", children=list(normalize_content(children)))

    @classmethod
    def a(cls, href: str, *children: str | Element) -> Element:
        return cls("a", {"href": href}, list(normalize_content(children)))

    @classmethod
    def image(cls, src: Any, **attrs: Any) -> Element:
        return cls("image", {"src": src, **attrs})

    @classmethod
    def file(cls, src: Any, **attrs: Any) -> Element:
        return cls("file", {"src": src, **attrs})

    @classmethod
    def video(cls, src: Any, **attrs: Any) -> Element:
        return cls("video", {"src": src, **attrs})

    @classmethod
    def quote(cls, message_id: str) -> Element:
        return cls("quote", {"id": message_id})

    @classmethod
    def button(
        cls,
        text: str,
        type: str = "action",
        href: str | None = None,
        value: str | None = None,
    ) -> Element:
        attrs: dict[str, Any] = {"text": text, "type": type}
        if href is not None:
            attrs["href"] = href
        if value is not None:
            attrs["value"] = value
        return cls("button", attrs)


Content = Union[str, Element, Iterable[Union[str, Element]]]


def escape(text: str) -> str:
    """Escape markup-significant characters in a text run."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def normalize_content(content: Content | None) -> Iterator[Element]:
    """Lazily turn message content into elements.

    Strings become text elements; iterables are consumed once.
    """
    if content is None:
        return
    if isinstance(content, str):
        yield Element.text(content)
        return
    if isinstance(content, Element):
        yield content
        return
    for item in content:
        if isinstance(item, str):
            yield Element.text(item)
        elif isinstance(item, Element):
            yield item
        else:
            raise TypeError(f"Unsupported content item: {type(item).__name__}")
