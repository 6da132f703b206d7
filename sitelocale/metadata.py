"""SEO metadata substitution and page finishing for localized documents.

These edits work on the same document instance as the fragment translator
but outside its matching pipeline. They only ever rewrite ``<title>``,
``<meta>``, ``<link>``, the ``lang`` attribute of ``<html>`` and relative
references, and append markup before ``</body>``.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

TITLE_PATTERN = re.compile(r"<title>.*?</title>", re.DOTALL)
TITLE_CAPTURE_PATTERN = re.compile(r"(<title>.*?</title>)", re.DOTALL)
LAST_META_PATTERN = re.compile(r"(<meta[^>]*>)(?![\s\S]*<meta)", re.IGNORECASE)
HTML_LANG_PATTERN = re.compile(r"(<html[^>]*\s)lang=\"[^\"]*\"", re.IGNORECASE)

# Relative reference rewriting.
EXTERNAL_URL_PATTERN = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|/|#|\?|\{)")
URL_ATTRIBUTE_PATTERN = re.compile(
    r"(?P<lead>\s(?:href|src|poster|action)=\")(?P<url>[^\"]*)\"", re.IGNORECASE
)
DATA_ATTRIBUTE_PATTERN = re.compile(
    r"(?P<lead>\sdata-(?![\w-]*srcset)[\w-]+=\")(?P<url>\./[^\"]*)\"", re.IGNORECASE
)
SRCSET_PATTERN = re.compile(r"(?P<lead>\s(?:data-)?srcset=\")(?P<value>[^\"]*)\"", re.IGNORECASE)
SRCSET_CANDIDATE_PATTERN = re.compile(r"(?P<sep>^|,)(?P<space>\s*)(?P<url>[^\s,]+)")
CSS_URL_PATTERN = re.compile(
    r"url\((?P<quote>&quot;|[\"']?)(?P<url>[^)\"'&\s]+)(?P=quote)\)", re.IGNORECASE
)
ROOT_LINK_PATTERN = re.compile(r"(?P<lead>\shref=\")(?P<url>/(?!/)[^\"#?:]*)\"", re.IGNORECASE)
FILE_EXTENSION_PATTERN = re.compile(r"\.[a-zA-Z0-9]+$")
LOCALE_LINK_PATTERN = re.compile(r"^(?P<locale>[a-z]{2})\.html$")


def _escape(value: str) -> str:
    return html.escape(value, quote=True)


def _meta_pattern(attribute: str, name: str) -> "re.Pattern[str]":
    """Match a meta tag carrying ``attribute="name"`` and content, in either order."""

    name = re.escape(name)
    return re.compile(
        rf"<meta\s+(?:{attribute}=\"{name}\"\s+content=\"[^\"]*\""
        rf"|content=\"[^\"]*\"\s+{attribute}=\"{name}\")\s*/?>",
        re.IGNORECASE,
    )


def _meta_anchor_pattern(attribute: str, name: str) -> "re.Pattern[str]":
    """Capture the first meta tag carrying ``attribute="name"`` in either position."""

    name = re.escape(name)
    return re.compile(
        rf"(<meta\s+(?:{attribute}=\"{name}\"|content=\"[^\"]*\"\s+{attribute}=\"{name}\")[^>]*>)",
        re.IGNORECASE,
    )


def _insert_after(pattern: "re.Pattern[str]", markup: str, addition: str) -> tuple[str, int]:
    return pattern.subn(lambda match: match.group(1) + "\n    " + addition, markup, count=1)


def _resolve_open_graph(metadata: Mapping[str, Any]) -> tuple[Dict[str, Any], Dict[str, Any]]:
    seo = dict(metadata.get("seo") or {})
    open_graph = dict(metadata.get("openGraph") or {})
    if open_graph.get("titleCopied") is True and not open_graph.get("title"):
        open_graph["title"] = seo.get("title")
    if open_graph.get("descriptionCopied") is True and not open_graph.get("description"):
        open_graph["description"] = seo.get("description")
    return seo, open_graph


def apply_meta_translations(
    markup: str,
    metadata: Optional[Mapping[str, Any]],
    *,
    site_name: Optional[str] = None,
) -> str:
    """Substitute locale SEO and Open Graph fields into the document head."""

    if not metadata:
        return markup

    seo, open_graph = _resolve_open_graph(metadata)

    title = seo.get("title")
    if title:
        markup = TITLE_PATTERN.sub(
            lambda _: f"<title>{_escape(title)}</title>", markup, count=1
        )

    description = seo.get("description")
    if description:
        markup = _meta_pattern("name", "description").sub("", markup)
        markup, _ = _insert_after(
            TITLE_CAPTURE_PATTERN,
            markup,
            f'<meta name="description" content="{_escape(description)}">',
        )

    og_title = open_graph.get("title")
    if og_title:
        markup = _meta_pattern("property", "og:title").sub("", markup)
        markup, _ = _insert_after(
            _meta_anchor_pattern("name", "description"),
            markup,
            f'<meta property="og:title" content="{_escape(og_title)}">',
        )

    og_description = open_graph.get("description")
    if og_description:
        markup = _meta_pattern("property", "og:description").sub("", markup)
        markup, _ = _insert_after(
            _meta_anchor_pattern("property", "og:title"),
            markup,
            f'<meta property="og:description" content="{_escape(og_description)}">',
        )

    if site_name:
        markup = add_site_name_meta(markup, site_name)

    if og_title:
        markup = _meta_pattern("property", "twitter:title").sub(
            lambda _: f'<meta property="twitter:title" content="{_escape(og_title)}">',
            markup,
        )
    if og_description:
        markup = _meta_pattern("property", "twitter:description").sub(
            lambda _: f'<meta property="twitter:description" content="{_escape(og_description)}">',
            markup,
        )

    return markup


def add_site_name_meta(markup: str, site_name: Optional[str]) -> str:
    """Insert ``og:site_name`` after og:description, og:title, or the last meta tag."""

    if not site_name:
        return markup
    if re.search(r"<meta\s+[^>]*property=\"og:site_name\"", markup, re.IGNORECASE):
        return markup

    tag = f'<meta property="og:site_name" content="{_escape(site_name)}">'
    for property_name in ("og:description", "og:title"):
        inserted, count = _insert_after(
            _meta_anchor_pattern("property", property_name), markup, tag
        )
        if count:
            return inserted
    inserted, _ = _insert_after(LAST_META_PATTERN, markup, tag)
    return inserted


def update_lang_attribute(markup: str, lang: Optional[str]) -> str:
    if not lang:
        return markup
    return HTML_LANG_PATTERN.sub(
        lambda match: f'{match.group(1)}lang="{_escape(lang)}"', markup, count=1
    )


def add_alternate_hreflang_link(
    markup: str,
    default_url: Optional[str],
    default_locale: str = "en",
) -> str:
    """Point search engines at the default-locale version of the page."""

    if not default_url:
        return markup
    link = (
        f'<link rel="alternate" hreflang="{_escape(default_locale)}" '
        f'href="{_escape(default_url)}">'
    )
    inserted, count = _insert_after(LAST_META_PATTERN, markup, link)
    if not count:
        logger.debug("No meta tag found; alternate hreflang link not added.")
    return inserted


def append_before_body(markup: str, snippet: Optional[str]) -> str:
    """Insert ``snippet`` right before the last ``</body>``."""

    if not snippet:
        return markup
    position = markup.lower().rfind("</body>")
    if position == -1:
        return markup
    return markup[:position] + snippet + "\n" + markup[position:]


def _relocate(url: str, prefix: str) -> str:
    if not url or EXTERNAL_URL_PATTERN.match(url):
        return url
    if url.startswith("./"):
        url = url[2:]
    return prefix + url


def _relocate_srcset(value: str, prefix: str) -> str:
    return SRCSET_CANDIDATE_PATTERN.sub(
        lambda candidate: candidate.group("sep")
        + candidate.group("space")
        + _relocate(candidate.group("url"), prefix),
        value,
    )


def fix_relative_paths(markup: str, prefix: str, *, static_links: bool = False) -> str:
    """Re-root relative references for a document written below its source.

    ``prefix`` leads from the new location back to the directory the rendered
    document was exported to, e.g. ``"../"`` for one locale folder. ``href``,
    ``src``, ``poster`` and ``srcset`` values, ``./`` data attributes and CSS
    ``url()`` references are rewritten. With ``static_links`` root-relative
    page links such as ``/about`` become relative ``.html`` files so the
    output can be browsed without a web server. Links to files that carry an
    extension keep it, and ``/da`` style locale links point at the locale
    folder.
    """

    if prefix:
        markup = URL_ATTRIBUTE_PATTERN.sub(
            lambda match: match.group("lead") + _relocate(match.group("url"), prefix) + '"',
            markup,
        )
        markup = DATA_ATTRIBUTE_PATTERN.sub(
            lambda match: match.group("lead") + _relocate(match.group("url"), prefix) + '"',
            markup,
        )
        markup = SRCSET_PATTERN.sub(
            lambda match: match.group("lead")
            + _relocate_srcset(match.group("value"), prefix)
            + '"',
            markup,
        )
        markup = CSS_URL_PATTERN.sub(
            lambda match: "url("
            + match.group("quote")
            + _relocate(match.group("url"), prefix)
            + match.group("quote")
            + ")",
            markup,
        )

    if static_links:
        markup = ROOT_LINK_PATTERN.sub(
            lambda match: match.group("lead") + _static_link(match.group("url"), prefix) + '"',
            markup,
        )
    return markup


def _static_link(url: str, prefix: str) -> str:
    clean = url.strip("/")
    if not clean:
        return prefix or "./"
    if not FILE_EXTENSION_PATTERN.search(clean.rsplit("/", 1)[-1]):
        clean += ".html"
    locale = LOCALE_LINK_PATTERN.match(clean)
    if locale:
        return f"{prefix}{locale.group('locale')}/"
    return prefix + clean
