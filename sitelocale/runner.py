"""High-level orchestration of page localization."""

from __future__ import annotations

import os
import pathlib
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .builder import build_translation_map
from .configuration import SiteLocaleConfig
from .errors import ErrorCategory, OverwriteRefusedError
from .metadata import (
    add_alternate_hreflang_link,
    append_before_body,
    apply_meta_translations,
    fix_relative_paths,
    update_lang_attribute,
)
from .policy import ErrorPolicy
from .sources import ContentSource, DocumentWriter
from .structures import TranslationMap
from .translator import MarkupTranslator

TRANSLATED = "translated"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class PageOutcome:
    """Result of localizing one page into one locale."""

    page: str
    locale: str
    status: str
    message: Optional[str] = None
    category: Optional[ErrorCategory] = None
    document: Optional[str] = None
    translation_map: Optional[TranslationMap] = None
    applied: int = 0
    unmatched: int = 0
    malformed: bool = False
    output_path: Optional[pathlib.Path] = None


@dataclass
class RunSummary:
    """Report returned after processing an export."""

    output_dir: pathlib.Path
    locales: List[str]
    total_pairs: int
    translated_pairs: int
    skipped_pairs: int
    failed_pairs: int
    applied_fragments: int
    unmatched_fragments: int
    malformed_documents: int
    total_errors: int
    elapsed_seconds: float
    outcomes: List[PageOutcome] = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)


class LocaleRunner:
    """Coordinates map building, translation, finishing, and output per (page, locale)."""

    def __init__(
        self,
        *,
        source: ContentSource,
        writer: DocumentWriter,
        settings: SiteLocaleConfig,
        locales: Optional[Sequence[str]] = None,
        pages: Optional[Sequence[str]] = None,
        interactive: bool = False,
        verbose: bool = False,
        dump_maps: bool = False,
    ) -> None:
        self.source = source
        self.writer = writer
        self.settings = settings
        self.locales = list(locales) if locales else None
        self.pages = list(pages) if pages else None
        self.verbose = verbose
        self.dump_maps = dump_maps

        self.error_policy = ErrorPolicy(
            interactive=interactive,
            consecutive_limit=settings.SITELOCALE_CONSECUTIVE_ERROR_LIMIT,
            total_limit=settings.SITELOCALE_TOTAL_ERROR_LIMIT,
        )
        self.translator = MarkupTranslator(
            generated_class_prefix=settings.SITELOCALE_GENERATED_CLASS_PREFIX,
            identifier_attributes=settings.SITELOCALE_IDENTIFIER_ATTRIBUTES,
        )

    def run(self) -> RunSummary:
        start_time = time.time()

        locales = self.locales or self.source.locales()
        pages = self.pages or self.source.pages()
        pairs = [(page, locale) for page in pages for locale in locales]
        if self.verbose:
            print(f"Localizing {len(pages)} pages into {len(locales)} locales.")

        outcomes: List[PageOutcome] = []
        for outcome in self._localize_all(pairs):
            outcomes.append(self._finish(outcome))

        elapsed = time.time() - start_time
        return RunSummary(
            output_dir=self.writer.output_dir,
            locales=list(locales),
            total_pairs=len(pairs),
            translated_pairs=sum(1 for item in outcomes if item.status == TRANSLATED),
            skipped_pairs=sum(1 for item in outcomes if item.status == SKIPPED),
            failed_pairs=sum(1 for item in outcomes if item.status == FAILED),
            applied_fragments=sum(item.applied for item in outcomes),
            unmatched_fragments=sum(item.unmatched for item in outcomes),
            malformed_documents=sum(1 for item in outcomes if item.malformed),
            total_errors=len(self.error_policy.records),
            elapsed_seconds=elapsed,
            outcomes=outcomes,
            error_messages=[record.message for record in self.error_policy.records],
            notices=[record.message for record in self.error_policy.notices],
        )

    def _localize_all(self, pairs: Sequence[Tuple[str, str]]) -> Iterable[PageOutcome]:
        workers = self.settings.SITELOCALE_MAX_WORKERS
        if workers <= 1 or len(pairs) <= 1:
            for page, locale in pairs:
                yield self.localize(page, locale)
            return
        # Pairs share no mutable state; results come back in submission order.
        with ThreadPoolExecutor(max_workers=workers) as executor:
            yield from executor.map(lambda pair: self.localize(*pair), pairs)

    def localize(self, page: str, locale: str) -> PageOutcome:
        """Produce the localized document for one (page, locale) pair.

        Reads from the content source but never writes and never raises for
        missing or malformed input.
        """

        document = self.source.load_document(page)
        if document is None:
            return PageOutcome(
                page=page,
                locale=locale,
                status=SKIPPED,
                category=ErrorCategory.MISSING_INPUT,
                message=f"No rendered document for page '{page}'.",
            )

        default_tree = self.source.load_tree(page, self.settings.SITELOCALE_DEFAULT_LOCALE)
        target_tree = self.source.load_tree(page, locale)
        if default_tree is None or target_tree is None:
            return PageOutcome(
                page=page,
                locale=locale,
                status=SKIPPED,
                category=ErrorCategory.MISSING_INPUT,
                message=f"Content tree missing for page '{page}' ({locale}); skipping.",
            )

        translation_map = build_translation_map(default_tree, target_tree)
        if not translation_map:
            return PageOutcome(
                page=page,
                locale=locale,
                status=SKIPPED,
                category=ErrorCategory.NO_TRANSLATIONS,
                message=f"No translations found for page '{page}' ({locale}).",
                translation_map=translation_map,
            )

        metadata = self.source.load_metadata(page, locale)
        if metadata:
            document = apply_meta_translations(
                document, metadata, site_name=self.settings.SITELOCALE_SITE_NAME
            )

        result = self.translator.translate(document, translation_map)
        localized = self._finish_document(result.html, page, locale)

        return PageOutcome(
            page=page,
            locale=locale,
            status=TRANSLATED,
            document=localized,
            translation_map=translation_map,
            applied=result.applied_count,
            unmatched=result.unmatched_count,
            malformed=result.malformed,
        )

    def _finish_document(self, document: str, page: str, locale: str) -> str:
        settings = self.settings
        prefix = ""
        if settings.SITELOCALE_FIX_RELATIVE_PATHS:
            prefix = self._relative_prefix(page, locale)
        document = fix_relative_paths(
            document, prefix, static_links=settings.SITELOCALE_STATIC_LINKS
        )
        host_url = settings.SITELOCALE_HOST_URL
        if host_url:
            document = add_alternate_hreflang_link(
                document,
                host_url.rstrip("/") + "/",
                settings.SITELOCALE_DEFAULT_LOCALE,
            )
        document = update_lang_attribute(document, locale)
        return append_before_body(document, settings.SITELOCALE_APPEND_BEFORE_BODY)

    def _relative_prefix(self, page: str, locale: str) -> str:
        """Path from the written document back to the rendered document's folder."""

        target_dir = self.writer.document_path(page, locale).parent
        root = self.source.document_root()
        if root is None:
            depth = len(target_dir.relative_to(self.writer.output_dir).parts)
            return "../" * depth
        relative = os.path.relpath(root, target_dir)
        if relative == os.curdir:
            return ""
        return pathlib.Path(relative).as_posix() + "/"

    def _finish(self, outcome: PageOutcome) -> PageOutcome:
        """Report an outcome to the error policy and write its document."""

        label = f"{outcome.page} ({outcome.locale})"
        if outcome.status == SKIPPED:
            self.error_policy.note(
                outcome.category or ErrorCategory.OTHER,
                outcome.message or f"Skipped {label}.",
                page=outcome.page,
                locale=outcome.locale,
            )
            return outcome

        if outcome.malformed:
            self.error_policy.note(
                ErrorCategory.MALFORMED_MARKUP,
                f"Unterminated markup in {label}; output may be partial.",
                page=outcome.page,
                locale=outcome.locale,
            )
        if outcome.unmatched:
            self.error_policy.note(
                ErrorCategory.UNMATCHED_FRAGMENT,
                f"{outcome.unmatched} fragments left untranslated in {label}.",
                page=outcome.page,
                locale=outcome.locale,
            )

        while True:
            try:
                if self.dump_maps and outcome.translation_map is not None:
                    self.writer.write_map(outcome.page, outcome.locale, outcome.translation_map)
                outcome.output_path = self.writer.write(
                    outcome.page, outcome.locale, outcome.document or ""
                )
                self.error_policy.record_success()
                if self.verbose:
                    print(
                        f"Wrote {label}: {outcome.applied} fragments translated, "
                        f"{outcome.unmatched} unmatched."
                    )
                return outcome
            except (OSError, OverwriteRefusedError) as exc:
                action = self.error_policy.handle_error(
                    ErrorCategory.FILE_IO,
                    f"Could not write {label}. Skipping this page. ({exc})",
                    page=outcome.page,
                    locale=outcome.locale,
                )
                if action == "retry":
                    continue
                outcome.status = FAILED
                outcome.message = str(exc)
                return outcome
