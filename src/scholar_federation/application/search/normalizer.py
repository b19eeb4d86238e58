"""
SourceNormalizer - Reconcile Provider Records into NormalizedSource

This module turns the loosely-typed dicts produced by each provider's
``transform_response`` into the canonical ``NormalizedSource`` and removes
duplicates describing the same work.

Responsibilities:
1. Field extraction with snake_case / camelCase / PascalCase fallbacks
2. Author, type, title, year, URL and keyword normalization
3. Completeness scoring (weighted presence of metadata)
4. Deduplication by DOI, falling back to a comparison-normalized title

Architecture Decision:
    SourceNormalizer is stateless and makes no API calls. ``normalize`` never
    raises: unexpected shapes degrade to absent fields, so one malformed
    record can never take down a search.

Example:
    >>> source = SourceNormalizer.normalize(
    ...     {"DOI": "10.1000/xyz", "title": ["Deep  Learning"], "type": "journal-article"},
    ...     "CrossRef",
    ... )
    >>> source.title, source.type.value
    ('Deep Learning', 'journal')
"""

from __future__ import annotations

import hashlib
import itertools
import logging
import math
import re
import time
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from scholar_federation.domain.entities.source import Author, NormalizedSource, SourceType

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DOI_PATTERN = re.compile(r"10\.\d{4,}/\S+")
_YEAR_PATTERN = re.compile(r"\d{4}")
_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_INITIALS = re.compile(r"[A-Z]{1,4}")
_KEYWORD_SEPARATORS = re.compile(r"[,;]")

# Ordered: first matching keyword wins
TYPE_KEYWORDS: tuple[tuple[tuple[str, ...], SourceType], ...] = (
    (("journal", "article"), SourceType.JOURNAL),
    (("book",), SourceType.BOOK),
    (("conference", "proceeding"), SourceType.CONFERENCE),
    (("preprint", "arxiv"), SourceType.PREPRINT),
    (("thesis", "dissertation"), SourceType.THESIS),
    (("dataset", "data"), SourceType.DATASET),
    (("website", "web"), SourceType.WEBSITE),
)

COMPLETENESS_WEIGHTS: dict[str, float] = {
    "title": 0.20,
    "authors": 0.15,
    "publication_year": 0.10,
    "doi": 0.15,
    "abstract": 0.10,
    "journal": 0.10,
    "url": 0.05,
    "type": 0.05,
    "volume": 0.025,
    "issue": 0.025,
    "pages": 0.025,
    "publisher": 0.025,
}

_id_counter = itertools.count(1)


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-empty value among ``keys``."""
    for key in keys:
        value = raw.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _as_text(value: Any) -> str | None:
    """Coerce a scalar (or the first element of a list) to a stripped string."""
    if isinstance(value, list | tuple):
        value = value[0] if value else None
    if value is None or isinstance(value, dict):
        return None
    text = str(value).strip()
    return text or None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


class SourceNormalizer:
    """
    Normalize provider records and deduplicate the merged list.

    All methods are static; the class is a namespace mirroring the
    operations callers need (``normalize``, ``deduplicate`` and helpers).
    """

    # =========================================================================
    # Field helpers
    # =========================================================================

    @staticmethod
    def normalize_authors(authors: Any) -> list[Author]:
        """
        Normalize author entries to ``Author`` objects.

        Accepts bare strings ("Last, First", "First Last", "Name") and dicts
        with given/family, firstName/lastName, first_name/last_name or
        fullName/name/display_name. A single string is split on ``;``.
        Entries with no derivable name are dropped.
        """
        if isinstance(authors, str):
            authors = [a for a in authors.split(";") if a.strip()]
        if not isinstance(authors, list | tuple):
            return []

        result: list[Author] = []
        for entry in authors:
            author: Author | None = None
            if isinstance(entry, str):
                author = SourceNormalizer._parse_author_string(entry)
            elif isinstance(entry, Mapping):
                author = SourceNormalizer._parse_author_mapping(entry)
            if author is not None and (author.full_name or author.last_name):
                result.append(author)
        return result

    @staticmethod
    def _parse_author_string(value: str) -> Author | None:
        value = _WHITESPACE.sub(" ", value).strip()
        if not value:
            return None

        parts = [p.strip() for p in value.split(",")]
        if len(parts) == 2 and all(parts):
            last, first = parts
            return Author(first_name=first, last_name=last, full_name=f"{first} {last}")

        tokens = value.split(" ")
        if len(tokens) >= 2:
            return Author(first_name=" ".join(tokens[:-1]), last_name=tokens[-1], full_name=value)

        return Author(full_name=value)

    @staticmethod
    def _parse_author_mapping(entry: Mapping[str, Any]) -> Author:
        first = _as_text(_first(entry, "given", "firstName", "first_name", "fore_name"))
        last = _as_text(_first(entry, "family", "lastName", "last_name"))
        full = _as_text(_first(entry, "fullName", "full_name", "name", "display_name"))
        if not full:
            full = " ".join(p for p in (first, last) if p) or None

        affiliation = entry.get("affiliation")
        if isinstance(affiliation, list):
            head = affiliation[0] if affiliation else None
            affiliation = head.get("name") if isinstance(head, Mapping) else head

        return Author(
            first_name=first,
            last_name=last,
            full_name=full,
            orcid=_as_text(_first(entry, "ORCID", "orcid")),
            affiliation=_as_text(affiliation),
        )

    @staticmethod
    def split_surname_initials(value: str) -> dict[str, str]:
        """
        Split a MEDLINE-style name ("Smith JA", "van der Berg A") into an
        author dict. Names without trailing initials (collective authors,
        single tokens) come back as ``full_name`` only.
        """
        name = _WHITESPACE.sub(" ", value).strip().rstrip(".").strip()
        last, _, initials = name.rpartition(" ")
        if last and _INITIALS.fullmatch(initials):
            return {"last_name": last, "first_name": initials, "full_name": name}
        return {"full_name": name}

    @staticmethod
    def normalize_type(value: Any) -> SourceType:
        """Map a free-form type string onto ``SourceType`` by keyword match."""
        text = str(value or "").lower()
        for keywords, source_type in TYPE_KEYWORDS:
            if any(k in text for k in keywords):
                return source_type
        return SourceType.OTHER

    @staticmethod
    def extract_doi(value: Any) -> str | None:
        """
        Extract a bare DOI from a DOI, doi: prefix or resolver URL.

        Returns None when no ``10.<registrant>/<suffix>`` pattern is found.
        """
        text = _as_text(value)
        if not text:
            return None
        match = DOI_PATTERN.search(text)
        return match.group(0) if match else None

    @staticmethod
    def extract_year(value: Any) -> int | None:
        """Extract a year from an int or the first 4-digit run of a string."""
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if math.isfinite(value) else None
        match = _YEAR_PATTERN.search(str(value))
        return int(match.group(0)) if match else None

    @staticmethod
    def normalize_title(value: Any) -> str | None:
        text = _as_text(value)
        if not text:
            return None
        return _WHITESPACE.sub(" ", text).strip() or None

    @staticmethod
    def normalize_title_for_comparison(title: str) -> str:
        """Lowercase, strip non-word characters and collapse whitespace."""
        text = _NON_WORD.sub("", title.lower())
        return _WHITESPACE.sub(" ", text).strip()

    @staticmethod
    def normalize_url(value: Any) -> str | None:
        text = _as_text(value)
        if not text:
            return None
        try:
            url = httpx.URL(text)
        except (httpx.InvalidURL, TypeError, ValueError):
            return text
        if not url.scheme or not url.host:
            return text
        return str(url)

    @staticmethod
    def extract_keywords(value: Any) -> list[str]:
        if not value:
            return []
        if isinstance(value, list | tuple):
            return [str(k).strip() for k in value if k is not None and str(k).strip()]
        return [k.strip() for k in _KEYWORD_SEPARATORS.split(str(value)) if k.strip()]

    @staticmethod
    def calculate_completeness(fields: Mapping[str, Any]) -> float:
        """Weighted presence score of metadata fields, clamped to 1.0."""
        score = sum(weight for name, weight in COMPLETENESS_WEIGHTS.items() if fields.get(name))
        return min(score, 1.0)

    @staticmethod
    def _generate_id(title: str, year: Any) -> str:
        digest = hashlib.sha1(f"{title}{year or ''}".encode()).hexdigest()[:10]
        return f"source_{digest}_{int(time.time() * 1000)}_{next(_id_counter)}"

    # =========================================================================
    # Record normalization
    # =========================================================================

    @staticmethod
    def normalize(raw: Any, api_name: str) -> NormalizedSource:
        """
        Build a NormalizedSource from one provider record.

        Never raises: non-mapping input is treated as an empty record.
        """
        if not isinstance(raw, Mapping):
            raw = {}
        n = SourceNormalizer

        raw_year = _first(raw, "year", "publication_year", "publicationYear", "published", "date")
        doi = n.extract_doi(_first(raw, "doi", "DOI"))
        title = n.normalize_title(_first(raw, "title", "Title")) or ""

        fields: dict[str, Any] = {
            "doi": doi,
            "pmid": _as_text(_first(raw, "pmid", "PMID")),
            "pmcid": _as_text(_first(raw, "pmcid", "PMCID", "pmc_id")),
            "arxiv_id": _as_text(_first(raw, "arxiv_id", "arxivId")),
            "isbn": _as_text(_first(raw, "isbn", "ISBN")),
            "issn": _as_text(_first(raw, "issn", "ISSN")),
            "title": title,
            "authors": tuple(n.normalize_authors(_first(raw, "authors", "author", "creator") or [])),
            "publication_year": n.extract_year(raw_year),
            "publication_date": _as_text(
                _first(raw, "published", "publication_date", "publicationDate", "date")
            ),
            "type": n.normalize_type(_first(raw, "type", "publication_type", "publicationType") or "other"),
            "journal": _as_text(_first(raw, "journal", "container-title", "journalTitle", "journal_title")),
            "volume": _as_text(raw.get("volume")),
            "issue": _as_text(raw.get("issue")),
            "pages": _as_text(_first(raw, "pages", "page")),
            "publisher": _as_text(_first(raw, "publisher", "Publisher")),
            "url": n.normalize_url(_first(raw, "url", "URL", "link")),
            "pdf_url": n.normalize_url(_first(raw, "pdf_url", "pdfUrl")),
            "is_open_access": bool(_first(raw, "is_open_access", "is_oa", "isOpenAccess", "open_access")),
            "abstract": _as_text(_first(raw, "abstract", "Abstract")),
            "keywords": tuple(n.extract_keywords(_first(raw, "keywords", "tags"))),
            "citation_count": _as_int(_first(raw, "citation_count", "citationCount", "cited_by_count")),
            "impact_factor": _as_float(_first(raw, "impact_factor", "impactFactor")),
        }

        source_id = _as_text(raw.get("id")) or doi or n._generate_id(title, raw_year)

        return NormalizedSource(
            id=source_id,
            completeness=n.calculate_completeness(fields),
            source_api=api_name,
            **fields,
        )

    # =========================================================================
    # Deduplication
    # =========================================================================

    @staticmethod
    def dedup_key(source: NormalizedSource) -> tuple[str, str]:
        """DOI (lowercased) when present, else the comparison-normalized title."""
        if source.doi:
            return ("doi", source.doi.lower())
        return ("title", SourceNormalizer.normalize_title_for_comparison(source.title))

    @staticmethod
    def deduplicate(sources: Iterable[NormalizedSource]) -> list[NormalizedSource]:
        """
        Collapse records describing the same work.

        Single pass. On a key collision the record with strictly higher
        completeness replaces the stored one in place; ties keep the first
        seen. Output order is first-seen order of each key.
        """
        seen: dict[tuple[str, str], NormalizedSource] = {}
        for source in sources:
            key = SourceNormalizer.dedup_key(source)
            existing = seen.get(key)
            if existing is None or source.completeness > existing.completeness:
                seen[key] = source

        logger.debug(f"Deduplicated to {len(seen)} unique sources")
        return list(seen.values())
