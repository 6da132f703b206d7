"""Regex based tag scanning, normalisation, and attribute restoration."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .structures import TagAttributeRestoreKey

DEFAULT_GENERATED_CLASS_PREFIX = "w-"
DEFAULT_IDENTIFIER_ATTRIBUTES: Tuple[str, ...] = ("data-w-id",)

# Any opening or self-closing tag; group 2 holds the raw attribute string.
TAG_PATTERN = re.compile(
    r"<(?P<name>[a-zA-Z][a-zA-Z0-9]*)(?P<attrs>\s[^>]*?)?\s*(?P<slash>/?)>"
)
ATTRIBUTE_PATTERN = re.compile(r"(?P<name>[a-zA-Z_:][-a-zA-Z0-9_:.]*)=\"(?P<value>[^\"]*)\"")
LINE_BREAK_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)
ENTITY_PATTERN = re.compile(r"&(?:#[0-9]+|#[xX][0-9a-fA-F]+|[a-zA-Z][a-zA-Z0-9]*);")
UNTERMINATED_TAG_PATTERN = re.compile(r"<[a-zA-Z/!][^>]*$")
ANCHOR_OPEN_PATTERN = re.compile(r"<a\s+(?P<attrs>[^>]*)>")
HREF_PATTERN = re.compile(r"href=\"(?P<href>[^\"]*)\"")
TOLERANCE_POINT_PATTERN = re.compile(
    r"class=\"(?P<classes>[^\"]*)\"|<a href=\"(?P<href>[^\"]*)\">|<a "
)

ANCHOR_PRESENTATION_ATTRIBUTES = frozenset({"target", "hreflang"})
MARKUP_SIGNIFICANT = frozenset({"<", ">", "&"})
# Attributes holding human readable text; plain fragments may be replaced inside them.
TEXT_ATTRIBUTES = frozenset(
    {"alt", "title", "placeholder", "label", "value", "content", "aria-label", "aria-description"}
)


@dataclass
class ValueSpan:
    """An attribute value located in a canonical tag and in the original tag."""

    name: str
    match_start: int
    match_end: int
    output_start: int
    output_end: int

    @property
    def holds_text(self) -> bool:
        return self.name.lower() in TEXT_ATTRIBUTES

    def contains(self, start: int, end: int) -> bool:
        return self.match_start <= start and end <= self.match_end


def parse_attributes(attr_string: Optional[str]) -> Dict[str, str]:
    """Return ``name="value"`` attributes in their original order."""

    if not attr_string:
        return {}
    attrs: Dict[str, str] = {}
    for match in ATTRIBUTE_PATTERN.finditer(attr_string):
        attrs.setdefault(match.group("name"), match.group("value"))
    return attrs


def render_tag(name: str, attrs: Dict[str, str], self_closing: bool = False) -> str:
    rendered = "".join(f' {key}="{value}"' for key, value in attrs.items())
    if self_closing:
        return f"<{name}{rendered} />"
    return f"<{name}{rendered}>"


def normalize_tag(match: "re.Match[str]", *, strip_anchor_presentation: bool = False) -> str:
    """Canonical form of one scanned tag used for matching only."""

    normalized, _ = normalize_tag_with_values(
        match, strip_anchor_presentation=strip_anchor_presentation
    )
    return normalized


def normalize_tag_with_values(
    match: "re.Match[str]", *, strip_anchor_presentation: bool = False
) -> Tuple[str, List[ValueSpan]]:
    """Canonical form of one tag plus the location of each kept attribute value.

    Every span pairs the value's offsets in the canonical text with its
    offsets in the original tag text, so edits inside a value can be applied
    to the original bytes.
    """

    name = match.group("name")
    if name.lower() == "br":
        return "<br/>", []
    raw_attrs = match.group("attrs")
    if not raw_attrs or not raw_attrs.strip():
        return match.group(0), []

    offset = match.start("attrs") - match.start()
    original_spans: Dict[str, Tuple[int, int]] = {}
    for attribute in ATTRIBUTE_PATTERN.finditer(raw_attrs):
        original_spans.setdefault(
            attribute.group("name"),
            (offset + attribute.start("value"), offset + attribute.end("value")),
        )

    attrs = parse_attributes(raw_attrs)
    if strip_anchor_presentation and name.lower() == "a":
        attrs = {
            key: value
            for key, value in attrs.items()
            if key.lower() not in ANCHOR_PRESENTATION_ATTRIBUTES
        }

    spans: List[ValueSpan] = []
    position = len(name) + 1
    for key in sorted(attrs):
        # Each attribute renders as ` key="value"`.
        position += len(key) + 3
        end = position + len(attrs[key])
        output_start, output_end = original_spans[key]
        spans.append(ValueSpan(key, position, end, output_start, output_end))
        position = end + 1

    ordered = {key: attrs[key] for key in sorted(attrs)}
    return render_tag(name, ordered), spans


def normalize_markup(markup: str, *, strip_anchor_presentation: bool = False) -> str:
    """Sort attributes of every tag and canonicalise line breaks."""

    return TAG_PATTERN.sub(
        lambda match: normalize_tag(
            match, strip_anchor_presentation=strip_anchor_presentation
        ),
        markup,
    )


def strip_identifier_attributes(markup: str, names: Iterable[str]) -> str:
    for name in names:
        markup = re.sub(r"\s+" + re.escape(name) + r"=\"[^\"]*\"", "", markup)
    return markup


def canonicalize_line_breaks(markup: str) -> str:
    return LINE_BREAK_PATTERN.sub("<br/>", markup)


def strip_anchor_presentation(markup: str) -> str:
    """Drop ``target`` and ``hreflang`` from every anchor, keeping other attributes."""

    def _strip(match: "re.Match[str]") -> str:
        attrs = parse_attributes(match.group("attrs"))
        kept = {
            key: value
            for key, value in attrs.items()
            if key.lower() not in ANCHOR_PRESENTATION_ATTRIBUTES
        }
        if len(kept) == len(attrs):
            return match.group(0)
        return render_tag("a", kept)

    return ANCHOR_OPEN_PATTERN.sub(_strip, markup)


def reduce_anchors_to_href(markup: str) -> str:
    """Reduce every anchor opening tag to its ``href`` attribute."""

    def _reduce(match: "re.Match[str]") -> str:
        href = HREF_PATTERN.search(match.group("attrs"))
        if href is None:
            return match.group(0)
        return f'<a href="{href.group("href")}">'

    return ANCHOR_OPEN_PATTERN.sub(_reduce, markup)


def decode_text_entities(markup: str) -> str:
    """Decode character references outside tags.

    References that decode to ``<``, ``>`` or ``&`` are kept encoded so the
    result never gains or loses markup.
    """

    def _decode(match: "re.Match[str]") -> str:
        decoded = html.unescape(match.group(0))
        if decoded in MARKUP_SIGNIFICANT or decoded == match.group(0):
            return match.group(0)
        return decoded

    pieces: List[str] = []
    cursor = 0
    for tag in TAG_PATTERN.finditer(markup):
        pieces.append(ENTITY_PATTERN.sub(_decode, markup[cursor:tag.start()]))
        pieces.append(tag.group(0))
        cursor = tag.end()
    pieces.append(ENTITY_PATTERN.sub(_decode, markup[cursor:]))
    return "".join(pieces)


def contains_tag(fragment: str) -> bool:
    return TAG_PATTERN.search(fragment) is not None


def has_unterminated_tag(markup: str) -> bool:
    """True when a tag opens and the document ends before it closes."""

    last_open = markup.rfind("<")
    if last_open == -1:
        return False
    return UNTERMINATED_TAG_PATTERN.match(markup, last_open) is not None


def tolerant_pattern(
    fragment: str,
    *,
    generated_class_prefix: str = DEFAULT_GENERATED_CLASS_PREFIX,
    loose_anchors: bool = False,
) -> "re.Pattern[str]":
    """Compile a pattern that absorbs platform variations around ``fragment``.

    Every ``class="..."`` value may carry one more generated class token, every
    ``<a `` may be followed by ``target="_blank"``, and with ``loose_anchors``
    an ``<a href="X">`` also matches anchors carrying further attributes.
    """

    prefix = re.escape(generated_class_prefix)
    parts: List[str] = []
    cursor = 0
    for match in TOLERANCE_POINT_PATTERN.finditer(fragment):
        parts.append(re.escape(fragment[cursor:match.start()]))
        if match.group("classes") is not None:
            parts.append(
                'class="' + re.escape(match.group("classes")) + r'(?:\s+' + prefix + r'[^"]*)?"'
            )
        elif match.group("href") is not None:
            href = re.escape(match.group("href"))
            if loose_anchors:
                parts.append(r'<a\s(?:[^>]*?\s)?href="' + href + r'"[^>]*>')
            else:
                parts.append(r'<a(?:\s+target="_blank")?\shref="' + href + r'">')
        else:
            parts.append(r'<a(?:\s+target="_blank")?\s')
        cursor = match.end()
    parts.append(re.escape(fragment[cursor:]))
    return re.compile("".join(parts))


def split_classes(value: str) -> List[str]:
    return [token for token in value.split() if token]


def restore_key(
    name: str,
    attrs: Dict[str, str],
    generated_class_prefix: str = DEFAULT_GENERATED_CLASS_PREFIX,
) -> TagAttributeRestoreKey:
    stable = tuple(
        token
        for token in split_classes(attrs.get("class", ""))
        if not token.startswith(generated_class_prefix)
    )
    return TagAttributeRestoreKey(tag=name.lower(), href=attrs.get("href"), classes=stable)


class AttributeRestorer:
    """Reunites translated tags with presentation attributes of the original document."""

    def __init__(
        self,
        original_html: str,
        *,
        generated_class_prefix: str = DEFAULT_GENERATED_CLASS_PREFIX,
    ) -> None:
        self.generated_class_prefix = generated_class_prefix
        self._by_key: Dict[TagAttributeRestoreKey, Dict[str, str]] = {}
        self._anchors_by_href: Dict[str, Dict[str, str]] = {}
        self._index(original_html)

    def _index(self, original_html: str) -> None:
        for match in TAG_PATTERN.finditer(original_html):
            attrs = parse_attributes(match.group("attrs"))
            if not attrs:
                continue
            name = match.group("name")
            key = restore_key(name, attrs, self.generated_class_prefix)
            self._by_key.setdefault(key, attrs)
            if key.tag == "a" and "href" in attrs:
                self._anchors_by_href.setdefault(attrs["href"], attrs)

    def lookup(self, name: str, attrs: Dict[str, str]) -> Optional[Dict[str, str]]:
        key = restore_key(name, attrs, self.generated_class_prefix)
        original = self._by_key.get(key)
        if original is None and key.tag == "a" and "href" in attrs:
            original = self._anchors_by_href.get(attrs["href"])
        return original

    def restore_tag(self, match: "re.Match[str]") -> str:
        attrs = parse_attributes(match.group("attrs"))
        if not attrs:
            return match.group(0)
        name = match.group("name")
        original = self.lookup(name, attrs)
        if original is None:
            return match.group(0)

        merged = dict(attrs)
        if "target" in original:
            merged["target"] = original["target"]
        if "class" in original:
            if "class" in merged:
                tokens = split_classes(merged["class"])
                for token in split_classes(original["class"]):
                    if token.startswith(self.generated_class_prefix) and token not in tokens:
                        tokens.append(token)
                merged["class"] = " ".join(tokens)
            else:
                merged["class"] = original["class"]

        if merged == attrs:
            return match.group(0)
        return render_tag(name, merged, self_closing=bool(match.group("slash")))

    def restore(self, markup: str) -> str:
        """Apply the restoration pass to every tag of ``markup``."""

        return TAG_PATTERN.sub(self.restore_tag, markup)


def restore_attributes(
    original_html: str,
    translated_html: str,
    *,
    generated_class_prefix: str = DEFAULT_GENERATED_CLASS_PREFIX,
) -> str:
    """Merge generated classes and ``target`` from the original into the translation.

    ``hreflang`` is never copied; it comes only from the translated markup.
    """

    restorer = AttributeRestorer(original_html, generated_class_prefix=generated_class_prefix)
    return restorer.restore(translated_html)


def identifier_names(names: Optional[Sequence[str]]) -> Tuple[str, ...]:
    if names is None:
        return DEFAULT_IDENTIFIER_ATTRIBUTES
    return tuple(name for name in names if name)
