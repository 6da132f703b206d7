"""Application of a translation map to a rendered HTML document.

Matching runs on a normalised working copy of the document (sorted tag
attributes, anchors without ``target``/``hreflang``), while output is always
assembled from the original text of every untouched piece. Each map entry,
longest source first, climbs a strict ladder:

1. exact substring match,
2. markup tolerant match (class preserving, then href only; each as an exact
   match followed by a tolerant regular expression),
3. line by line replacement for multi-line sources,
4. whitespace variants for single-line sources.

Substituted text is locked against later, shorter entries. A match may only
cut into a tag when it lies inside one text attribute value (``alt``,
``title`` and similar); the edit is then made on the tag's original text. A
final pass restores platform generated classes and ``target`` attributes on
the substituted markup.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from .markup import (
    DEFAULT_GENERATED_CLASS_PREFIX,
    TAG_PATTERN,
    AttributeRestorer,
    ValueSpan,
    canonicalize_line_breaks,
    contains_tag,
    decode_text_entities,
    has_unterminated_tag,
    identifier_names,
    normalize_markup,
    normalize_tag_with_values,
    reduce_anchors_to_href,
    strip_anchor_presentation,
    strip_identifier_attributes,
    tolerant_pattern,
)
from .structures import FragmentPair, TranslationMap

logger = logging.getLogger(__name__)

WHITESPACE_RUN = re.compile(r"\s+")

Span = Tuple[int, int]


@dataclass
class _Piece:
    output: str
    match: str
    translated: bool = False
    tag: bool = False
    values: List[ValueSpan] = field(default_factory=list)
    # Replacements made inside attribute values, in match offsets of this piece.
    locks: List[Span] = field(default_factory=list)

    def value_at(self, start: int, end: int) -> Optional[ValueSpan]:
        for span in self.values:
            if span.holds_text and span.contains(start, end):
                return span
        return None


class WorkingCopy:
    """A document split into pieces with separate output and match text."""

    def __init__(self, document: str) -> None:
        self.pieces: List[_Piece] = []
        cursor = 0
        for tag in TAG_PATTERN.finditer(document):
            if tag.start() > cursor:
                self.pieces.append(_text_piece(document[cursor:tag.start()]))
            normalized, values = normalize_tag_with_values(tag, strip_anchor_presentation=True)
            self.pieces.append(
                _Piece(output=tag.group(0), match=normalized, tag=True, values=values)
            )
            cursor = tag.end()
        if cursor < len(document):
            self.pieces.append(_text_piece(document[cursor:]))
        self._rebuild()

    def _rebuild(self) -> None:
        self.starts: List[int] = []
        self.locked: List[Span] = []
        position = 0
        parts: List[str] = []
        for piece in self.pieces:
            self.starts.append(position)
            if piece.translated:
                self.locked.append((position, position + len(piece.match)))
            self.locked.extend((position + start, position + end) for start, end in piece.locks)
            parts.append(piece.match)
            position += len(piece.match)
        self.text = "".join(parts)

    def is_locked(self, start: int, end: int) -> bool:
        return any(start < lock_end and lock_start < end for lock_start, lock_end in self.locked)

    def find_all(
        self,
        needle: str,
        protect: Optional[str] = None,
        guard: Optional["re.Pattern[str]"] = None,
        allow_values: bool = True,
    ) -> List[int]:
        """Start offsets of non-overlapping, unlocked occurrences of ``needle``.

        Occurrences lying inside an occurrence of ``protect`` or a match of
        ``guard`` are skipped, as are occurrences that would split a tag
        anywhere but inside a single text attribute value.
        """

        if not needle:
            return []
        guarded = list(self.locked)
        if protect and needle in protect:
            guarded.extend(_occurrences(self.text, protect))
        if guard is not None:
            guarded.extend(
                (match.start(), match.end())
                for match in guard.finditer(self.text)
                if match.end() > match.start()
            )

        positions: List[int] = []
        index = self.text.find(needle)
        while index != -1:
            end = index + len(needle)
            blocked = any(index < g_end and g_start < end for g_start, g_end in guarded)
            if blocked or not self._fits(index, end, allow_values):
                index = self.text.find(needle, index + 1)
                continue
            positions.append(index)
            index = self.text.find(needle, end)
        return positions

    def _fits(self, start: int, end: int, allow_values: bool) -> bool:
        first, head_cut, last, tail_cut = self._locate(start, end)
        head = self.pieces[first]
        tail = self.pieces[last]
        head_split = head.tag and head_cut > 0
        tail_split = tail.tag and tail_cut < len(tail.match)
        if not head_split and not tail_split:
            return True
        if first != last or not allow_values:
            return False
        return head.value_at(head_cut, tail_cut) is not None

    def _locate(self, start: int, end: int) -> Tuple[int, int, int, int]:
        first = bisect.bisect_right(self.starts, start) - 1
        last = bisect.bisect_left(self.starts, end) - 1
        return first, start - self.starts[first], last, end - self.starts[last]

    def search(self, pattern: "re.Pattern[str]") -> Optional[str]:
        """First unlocked match of ``pattern`` in the working text."""

        for match in pattern.finditer(self.text):
            if match.end() > match.start() and not self.is_locked(match.start(), match.end()):
                return match.group(0)
        return None

    def replace_all(
        self,
        old: str,
        new: str,
        protect: Optional[str] = None,
        guard: Optional["re.Pattern[str]"] = None,
    ) -> int:
        # A quote would end the attribute value early.
        positions = self.find_all(old, protect=protect, guard=guard, allow_values='"' not in new)
        for start in reversed(positions):
            self._splice(start, start + len(old), new)
        if positions:
            self._rebuild()
        return len(positions)

    def _splice(self, start: int, end: int, replacement: str) -> None:
        first, head_cut, last, tail_cut = self._locate(start, end)
        head_piece = self.pieces[first]
        tail_piece = self.pieces[last]

        if first == last and head_piece.tag and (head_cut > 0 or tail_cut < len(head_piece.match)):
            _edit_value(head_piece, head_cut, tail_cut, replacement)
            return

        new_pieces: List[_Piece] = []
        if head_cut > 0:
            new_pieces.append(_text_piece(head_piece.match[:head_cut]))
        new_pieces.append(_Piece(output=replacement, match=replacement, translated=True))
        if tail_cut < len(tail_piece.match):
            new_pieces.append(_text_piece(tail_piece.match[tail_cut:]))
        self.pieces[first:last + 1] = new_pieces

    def render(self, transform: Optional[Callable[[str], str]] = None) -> str:
        parts: List[str] = []
        for piece in self.pieces:
            if piece.translated and transform is not None:
                parts.append(transform(piece.output))
            else:
                parts.append(piece.output)
        return "".join(parts)


def _text_piece(text: str) -> _Piece:
    return _Piece(output=text, match=text)


def _edit_value(piece: _Piece, start: int, end: int, replacement: str) -> None:
    """Replace ``[start, end)`` of a tag's match text inside one attribute value."""

    span = piece.value_at(start, end)
    if span is None:
        raise ValueError("Edit does not lie inside an attribute value.")
    output_start = span.output_start + (start - span.match_start)
    output_end = output_start + (end - start)
    delta = len(replacement) - (end - start)

    piece.match = piece.match[:start] + replacement + piece.match[end:]
    piece.output = piece.output[:output_start] + replacement + piece.output[output_end:]

    for other in piece.values:
        if other is span:
            other.match_end += delta
            other.output_end += delta
            continue
        if other.match_start >= end:
            other.match_start += delta
            other.match_end += delta
        if other.output_start >= output_end:
            other.output_start += delta
            other.output_end += delta

    piece.locks = [
        (lock_start + delta, lock_end + delta) if lock_start >= end else (lock_start, lock_end)
        for lock_start, lock_end in piece.locks
    ]
    piece.locks.append((start, start + len(replacement)))


def _occurrences(text: str, needle: str) -> List[Span]:
    spans: List[Span] = []
    index = text.find(needle)
    while index != -1:
        spans.append((index, index + len(needle)))
        index = text.find(needle, index + 1)
    return spans


@dataclass
class TranslationResult:
    """Outcome of applying one translation map to one document."""

    html: str
    applied: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    malformed: bool = False

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    @property
    def unmatched_count(self) -> int:
        return len(self.unmatched)


class MarkupTranslator:
    """Applies translation maps to rendered documents."""

    def __init__(
        self,
        *,
        generated_class_prefix: str = DEFAULT_GENERATED_CLASS_PREFIX,
        identifier_attributes: Optional[Sequence[str]] = None,
    ) -> None:
        self.generated_class_prefix = generated_class_prefix
        self.identifier_attributes = identifier_names(identifier_attributes)

    def translate(self, document: str, translation_map: Mapping[str, str]) -> TranslationResult:
        if not translation_map:
            return TranslationResult(html=document)

        result = TranslationResult(html=document, malformed=has_unterminated_tag(document))
        if result.malformed:
            logger.warning("Document has an unterminated tag; output may be partial.")

        working = WorkingCopy(document)
        for pair in self._prioritise(translation_map):
            try:
                matched = self._apply_entry(working, pair.source, pair.target)
            except re.error as exc:
                logger.warning("Skipping fragment %r: %s", pair.source[:60], exc)
                matched = False
            if matched:
                result.applied.append(pair.source)
            else:
                result.unmatched.append(pair.source)
                logger.debug("No match for fragment %r.", pair.source[:60])

        restorer = AttributeRestorer(document, generated_class_prefix=self.generated_class_prefix)
        result.html = working.render(transform=restorer.restore)
        logger.debug(
            "Applied %d fragments, %d unmatched.",
            result.applied_count,
            result.unmatched_count,
        )
        return result

    def _prioritise(self, translation_map: Mapping[str, str]) -> List[FragmentPair]:
        # Sources that only differ in attribute order collapse onto the first one.
        normalized = TranslationMap()
        for source, target in translation_map.items():
            if source:
                normalized.register(normalize_markup(source), target)
        return normalized.by_priority()

    def _apply_entry(self, working: WorkingCopy, source: str, target: str) -> bool:
        if working.replace_all(source, target, protect=target):
            return True
        if contains_tag(source) and self._apply_tolerant(working, source, target):
            return True

        source_lines = source.split("\n")
        if len([line for line in source_lines if line.strip()]) > 1:
            return self._apply_lines(working, source_lines, target.split("\n"))
        return self._apply_variants(working, source, target)

    def _normalize_fragment(self, fragment: str) -> str:
        fragment = strip_identifier_attributes(fragment, self.identifier_attributes)
        fragment = canonicalize_line_breaks(fragment)
        return decode_text_entities(fragment)

    def _apply_tolerant(self, working: WorkingCopy, source: str, target: str) -> bool:
        normalized_target = self._normalize_fragment(target)
        with_class = strip_anchor_presentation(self._normalize_fragment(source))
        target_with_class = strip_anchor_presentation(normalized_target)

        attempts = (
            (with_class, target_with_class, False),
            (reduce_anchors_to_href(with_class), reduce_anchors_to_href(target_with_class), True),
        )
        for candidate, target_shape, loose in attempts:
            pattern = tolerant_pattern(
                candidate,
                generated_class_prefix=self.generated_class_prefix,
                loose_anchors=loose,
            )
            # Where the target embeds the source, an earlier run may already
            # have produced the target with its attributes restored.
            guard = None
            if candidate in target_shape:
                guard = tolerant_pattern(
                    target_shape,
                    generated_class_prefix=self.generated_class_prefix,
                    loose_anchors=loose,
                )

            if working.replace_all(
                candidate, normalized_target, protect=normalized_target, guard=guard
            ):
                return True
            found = working.search(pattern)
            if found is not None and working.replace_all(
                found, normalized_target, protect=normalized_target, guard=guard
            ):
                return True
        return False

    def _apply_lines(
        self,
        working: WorkingCopy,
        source_lines: Sequence[str],
        target_lines: Sequence[str],
    ) -> bool:
        replaced = False
        for index, line in enumerate(source_lines):
            original = line.strip()
            if not original or index >= len(target_lines):
                continue
            translated = target_lines[index].strip()
            if not translated or translated == original:
                continue
            if working.replace_all(original, translated, protect=translated):
                replaced = True
        return replaced

    def _apply_variants(self, working: WorkingCopy, source: str, target: str) -> bool:
        for transform in _VARIANTS:
            variant = transform(source)
            if not variant:
                continue
            translated = transform(target)
            if variant == translated:
                continue
            if working.replace_all(variant, translated, protect=translated):
                return True
        return False


_VARIANTS: Tuple[Callable[[str], str], ...] = (
    lambda text: text,
    lambda text: text.strip(),
    lambda text: text.replace("\n", " "),
    lambda text: text.replace("\n", ""),
    lambda text: WHITESPACE_RUN.sub(" ", text.strip()),
)


def apply_translations(
    rendered_html: str,
    translation_map: Mapping[str, str],
    *,
    generated_class_prefix: str = DEFAULT_GENERATED_CLASS_PREFIX,
    identifier_attributes: Optional[Iterable[str]] = None,
) -> str:
    """Return ``rendered_html`` with every matchable fragment translated."""

    translator = MarkupTranslator(
        generated_class_prefix=generated_class_prefix,
        identifier_attributes=(
            list(identifier_attributes) if identifier_attributes is not None else None
        ),
    )
    return translator.translate(rendered_html, translation_map).html