"""Content suppliers and the output sink for localized documents."""

from __future__ import annotations

import json
import logging
import pathlib
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ContentSourceError, OverwriteRefusedError
from .structures import ContentTree

logger = logging.getLogger(__name__)

TREE_PREFIX = "page-content-"
META_PREFIX = "page-meta-"


class ContentSource(ABC):
    """Supplies content trees, rendered documents, and metadata per page."""

    default_locale: str = "en"

    @abstractmethod
    def pages(self) -> List[str]:
        """Return the page identifiers with a rendered default document."""

    @abstractmethod
    def locales(self) -> List[str]:
        """Return every non-default locale with at least one content tree."""

    @abstractmethod
    def load_tree(self, page: str, locale: str) -> Optional[ContentTree]:
        """Return the content tree of ``page`` in ``locale``, or None."""

    @abstractmethod
    def load_document(self, page: str) -> Optional[str]:
        """Return the rendered default-locale document of ``page``, or None."""

    def load_metadata(self, page: str, locale: str) -> Optional[Dict[str, Any]]:
        """Return SEO metadata of ``page`` in ``locale``; optional."""

        return None

    def document_root(self) -> Optional[pathlib.Path]:
        """Directory the rendered documents were exported to, if there is one."""

        return None


class MemoryContentSource(ContentSource):
    """A source backed by in-memory payloads (useful for embedding and tests)."""

    def __init__(
        self,
        *,
        documents: Mapping[str, str],
        trees: Mapping[Tuple[str, str], Any],
        metadata: Optional[Mapping[Tuple[str, str], Dict[str, Any]]] = None,
        default_locale: str = "en",
    ) -> None:
        self.documents = dict(documents)
        self.trees = dict(trees)
        self.metadata = dict(metadata or {})
        self.default_locale = default_locale

    def pages(self) -> List[str]:
        return sorted(self.documents)

    def locales(self) -> List[str]:
        return sorted({locale for _, locale in self.trees if locale != self.default_locale})

    def load_tree(self, page: str, locale: str) -> Optional[ContentTree]:
        return ContentTree.from_payload(self.trees.get((page, locale)))

    def load_document(self, page: str) -> Optional[str]:
        return self.documents.get(page)

    def load_metadata(self, page: str, locale: str) -> Optional[Dict[str, Any]]:
        return self.metadata.get((page, locale))


class DirectoryContentSource(ContentSource):
    """Reads a local export directory.

    Layout::

        <page>.html                        rendered default-locale document
        page-content-<page>-<locale>.json  content tree per locale
        page-meta-<page>-<locale>.json     optional SEO metadata per locale
    """

    def __init__(self, root: pathlib.Path, *, default_locale: str = "en") -> None:
        if not root.is_dir():
            raise ContentSourceError(f"Export directory not found: {root}")
        self.root = root
        self.default_locale = default_locale

    def pages(self) -> List[str]:
        return sorted(path.stem for path in self.root.glob("*.html") if path.is_file())

    def locales(self) -> List[str]:
        found = set()
        pages = sorted(self.pages(), key=len, reverse=True)
        for path in self.root.glob(f"{TREE_PREFIX}*.json"):
            remainder = path.stem[len(TREE_PREFIX):]
            for page in pages:
                if remainder.startswith(f"{page}-"):
                    found.add(remainder[len(page) + 1:])
                    break
        found.discard(self.default_locale)
        found.discard("")
        return sorted(found)

    def tree_path(self, page: str, locale: str) -> pathlib.Path:
        return self.root / f"{TREE_PREFIX}{page}-{locale}.json"

    def metadata_path(self, page: str, locale: str) -> pathlib.Path:
        return self.root / f"{META_PREFIX}{page}-{locale}.json"

    def document_path(self, page: str) -> pathlib.Path:
        return self.root / f"{page}.html"

    def document_root(self) -> pathlib.Path:
        return self.root

    def load_tree(self, page: str, locale: str) -> Optional[ContentTree]:
        payload = self._read_json(self.tree_path(page, locale))
        if payload is None:
            return None
        tree = ContentTree.from_payload(payload)
        if tree is None:
            logger.warning("Content tree for %s (%s) has no nodes.", page, locale)
        return tree

    def load_document(self, page: str) -> Optional[str]:
        path = self.document_path(page)
        if not path.is_file():
            logger.warning("Rendered document missing: %s", path)
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None

    def load_metadata(self, page: str, locale: str) -> Optional[Dict[str, Any]]:
        path = self.metadata_path(page, locale)
        if not path.is_file():
            return None
        payload = self._read_json(path)
        return payload if isinstance(payload, dict) else None

    def _read_json(self, path: pathlib.Path) -> Optional[Any]:
        if not path.is_file():
            logger.debug("No export file at %s", path)
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Could not parse %s: %s", path, exc)
            return None


class DocumentWriter:
    """Writes localized documents below ``<output_dir>/<locale>/``."""

    def __init__(self, output_dir: pathlib.Path, *, force_overwrite: bool = False) -> None:
        self.output_dir = output_dir
        self.force_overwrite = force_overwrite

    def document_path(self, page: str, locale: str) -> pathlib.Path:
        return self.output_dir / locale / f"{page}.html"

    def write(self, page: str, locale: str, document: str) -> pathlib.Path:
        path = self.document_path(page, locale)
        self._check_overwrite(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(document, encoding="utf-8")
        return path

    def write_map(self, page: str, locale: str, mapping: Mapping[str, str]) -> pathlib.Path:
        path = self.output_dir / locale / f"{page}.map.json"
        self._check_overwrite(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(dict(mapping), handle, indent=2, ensure_ascii=False)
        return path

    def _check_overwrite(self, path: pathlib.Path) -> None:
        if path.exists() and not self.force_overwrite:
            raise OverwriteRefusedError(
                f"The output file {path} already exists. Rename it or use the overwrite flag."
            )
