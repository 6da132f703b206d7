"""Translation map construction from default and target locale content trees."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from .structures import AnchorDescriptor, ContentTree, NodeText, TranslationMap

logger = logging.getLogger(__name__)

ANCHOR_PATTERN = re.compile(
    r"<a\s+(?:[^>]*?\s+)?href=\"(?P<href>[^\"]*)\"[^>]*>(?P<inner>.*?)</a>",
    re.IGNORECASE | re.DOTALL,
)
TAG_PATTERN = re.compile(r"<[^>]+>")


def flatten_tree(tree: ContentTree) -> Dict[str, NodeText]:
    """Record plain text and inline markup for every node of the tree.

    All nodes are visited, not only the descendants of a single root, so flat
    and nested exports are handled alike.
    """

    flattened: Dict[str, NodeText] = {}
    for node_id, node in tree.items():
        if node.text or node.html:
            flattened[node_id] = NodeText(text=node.text, html=node.html)
    return flattened


def extract_anchors(markup: str) -> List[AnchorDescriptor]:
    """Return the anchors of an inline markup fragment in document order."""

    anchors: List[AnchorDescriptor] = []
    for match in ANCHOR_PATTERN.finditer(markup):
        href = match.group("href")
        inner = match.group("inner")
        anchors.append(
            AnchorDescriptor(
                href=href,
                text=TAG_PATTERN.sub("", inner),
                markup=match.group(0),
                normalized=f'<a href="{href}">{inner}</a>',
            )
        )
    return anchors


def _register(mapping: TranslationMap, source: str, target: str, origin: str) -> None:
    if mapping.register(source, target):
        return
    existing = mapping.get(source)
    if existing is not None and existing != target:
        logger.debug(
            "Keeping first translation for %r from %s; ignoring %r.",
            source,
            origin,
            target,
        )


def build_translation_map(default_tree: Any, target_tree: Any) -> TranslationMap:
    """Compare two locale trees of the same page and map source to target fragments.

    Either argument may be a :class:`ContentTree` or a decoded export payload.
    Missing or empty trees yield an empty map; this function never raises.
    """

    mapping = TranslationMap()

    default = _coerce_tree(default_tree)
    target = _coerce_tree(target_tree)
    if default is None or target is None:
        logger.debug("Content tree missing; no translations can be built.")
        return mapping

    default_texts = flatten_tree(default)
    target_texts = flatten_tree(target)

    # Markup pairs first so they take precedence over plain text.
    for node_id, default_node in default_texts.items():
        target_node = target_texts.get(node_id)
        if target_node is None:
            continue
        if not default_node.html or not target_node.html:
            continue
        if default_node.html == target_node.html:
            continue

        _register(mapping, default_node.html, target_node.html, f"html of node {node_id}")

        target_anchors = extract_anchors(target_node.html)
        for index, anchor in enumerate(extract_anchors(default_node.html)):
            if index >= len(target_anchors):
                break
            translated = target_anchors[index]
            if anchor.normalized != translated.normalized:
                _register(
                    mapping,
                    anchor.normalized,
                    translated.normalized,
                    f"anchor {index} of node {node_id}",
                )

    for node_id, default_node in default_texts.items():
        target_node = target_texts.get(node_id)
        if target_node is None:
            continue
        if not default_node.text or not target_node.text:
            continue
        if default_node.text == target_node.text:
            continue
        if default_node.text in mapping:
            continue
        _register(mapping, default_node.text, target_node.text, f"text of node {node_id}")

    logger.debug("Built translation map with %d pairs.", len(mapping))
    return mapping


def _coerce_tree(tree: Any) -> Optional[ContentTree]:
    try:
        return ContentTree.from_payload(tree)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("Ignoring malformed content tree: %s", exc)
        return None
