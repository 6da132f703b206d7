"""Core data structures for the sitelocale translator."""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class ContentNode:
    """One element of a structured content tree."""

    node_id: str
    text: Optional[str] = None
    html: Optional[str] = None
    child_ids: Tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, node_id: str, payload: Mapping[str, Any]) -> "ContentNode":
        """Read a node from the platform export shape.

        ``text`` is either a plain string or an object carrying ``text`` and
        ``html`` keys; inline markup may also sit directly under ``html``.
        """

        text: Optional[str] = None
        html: Optional[str] = None

        raw_text = payload.get("text")
        if isinstance(raw_text, Mapping):
            text = _as_text(raw_text.get("text"))
            html = _as_text(raw_text.get("html"))
        else:
            text = _as_text(raw_text)
        if html is None:
            html = _as_text(payload.get("html"))

        children: List[str] = []
        for key in ("children", "nodes"):
            raw_children = payload.get(key)
            if isinstance(raw_children, (list, tuple)):
                children.extend(
                    str(child) for child in raw_children if isinstance(child, (str, int))
                )

        return cls(node_id=node_id, text=text, html=html, child_ids=tuple(children))


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


class ContentTree(Mapping):
    """Node-id keyed view over one locale's content for a page."""

    def __init__(self, nodes: Mapping[str, ContentNode]) -> None:
        self._nodes: Dict[str, ContentNode] = dict(nodes)

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ContentTree"]:
        """Build a tree from decoded JSON, or return None if there are no nodes."""

        if isinstance(payload, ContentTree):
            return payload if payload else None
        if not isinstance(payload, Mapping) or not payload:
            return None

        raw_nodes: Any = payload.get("nodes", payload)
        nodes: Dict[str, ContentNode] = {}

        if isinstance(raw_nodes, (list, tuple)):
            for raw in raw_nodes:
                if not isinstance(raw, Mapping):
                    continue
                node_id = raw.get("id") or raw.get("_id")
                if not node_id:
                    continue
                node_id = str(node_id)
                nodes[node_id] = ContentNode.from_payload(node_id, raw)
        elif isinstance(raw_nodes, Mapping):
            for key, raw in raw_nodes.items():
                if not isinstance(raw, Mapping):
                    continue
                node_id = str(raw.get("id") or raw.get("_id") or key)
                nodes[node_id] = ContentNode.from_payload(node_id, raw)

        if not nodes:
            return None
        return cls(nodes)

    def __getitem__(self, node_id: str) -> ContentNode:
        return self._nodes[node_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def iter_reachable(self, root_id: str) -> Iterator[ContentNode]:
        """Breadth-first walk from ``root_id``; each node is yielded once."""

        queue = deque([root_id])
        visited = set()
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            node = self._nodes.get(current)
            if node is None:
                continue
            yield node
            queue.extend(child for child in node.child_ids if child not in visited)


@dataclass(frozen=True)
class NodeText:
    """Plain text and inline markup recorded for one node id."""

    text: Optional[str] = None
    html: Optional[str] = None


@dataclass(frozen=True)
class FragmentPair:
    """A source fragment and its translated counterpart."""

    source: str
    target: str


@dataclass(frozen=True)
class AnchorDescriptor:
    """An ``<a>`` element found in inline markup."""

    href: str
    text: str
    markup: str
    normalized: str


@dataclass(frozen=True)
class TagAttributeRestoreKey:
    """Identifies a tag independently of platform generated attributes."""

    tag: str
    href: Optional[str] = None
    classes: Tuple[str, ...] = field(default_factory=tuple)


class TranslationMap(Mapping):
    """Ordered source fragment to translated fragment mapping.

    The first registration of a source wins; identity pairs are refused.
    """

    def __init__(self, pairs: Optional[Mapping[str, str]] = None) -> None:
        self._entries: Dict[str, str] = {}
        if pairs:
            for source, target in pairs.items():
                self.register(source, target)

    def register(self, source: str, target: str) -> bool:
        """Add a pair unless it is empty, an identity, or already present."""

        if not source or source == target or source in self._entries:
            return False
        self._entries[source] = target
        return True

    def __getitem__(self, source: str) -> str:
        return self._entries[source]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"TranslationMap({self._entries!r})"

    def pairs(self) -> List[FragmentPair]:
        return [FragmentPair(source, target) for source, target in self._entries.items()]

    def by_priority(self) -> List[FragmentPair]:
        """Pairs ordered longest source first; ties keep insertion order."""

        return sorted(self.pairs(), key=lambda pair: len(pair.source), reverse=True)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._entries)
