"""Address resolution service - Free text and coordinates to places.

Resolution of a free-text address runs through these steps:
1. Sanitize: collapse whitespace, split off the parenthetical group
2. Build the fallback query sequence
3. Try each query (cache first, then the executor) until one returns
   a non-empty result set
4. Rank the winning results by importance and select the best match
5. Cache the raw results under the winning query's key

Every terminal failure is returned as a structured ResolutionFailure
on the result rather than raised.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from ..config import SERVICE_NOMINATIM
from ..domain.errors import (
    InputValidationError,
    NoResultsError,
    OSMGatewayError,
    RequestTimeoutError,
    ResponseParseError,
)
from ..domain.models import (
    AddressResolution,
    CoordinateResolution,
    GeoLocation,
    QuerySequence,
    ResolutionCandidate,
    SanitizedAddress,
)
from ..ports.cache import CachePort
from ..ports.geocoding import GeocoderPort
from .request_executor import ResilientRequestExecutor

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_PARENS = re.compile(r"\(([^)]*)\)")

DEFAULT_MIN_IMPORTANCE = 0.4

RawResult = Mapping[str, Any]


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def sanitize_address(address: str) -> SanitizedAddress:
    """Split an address into its parenthetical and non-parenthetical parts.

    Example:
        >>> s = sanitize_address("Blue Temple (Wat Rong Suea Ten) in Chiang Rai")
        >>> s.without_parens, s.parens_content
        ('Blue Temple in Chiang Rai', 'Wat Rong Suea Ten')
    """
    original = _collapse(address)
    match = _PARENS.search(original)
    if match is None:
        return SanitizedAddress(original=original, without_parens=original)

    return SanitizedAddress(
        original=original,
        without_parens=_collapse(_PARENS.sub(" ", original)),
        parens_content=match.group(1).strip(),
    )


def ensure_region(query: str, region: str) -> str:
    """Append ``region`` to short queries lacking geographic context.

    A query is short when it has fewer than three words and no comma.
    """
    if not region or region.lower() in query.lower():
        return query
    if "," not in query and len(query.split()) < 3:
        return f"{query} {region}"
    return query


def build_query_sequence(address: str, region: str = "") -> QuerySequence:
    """Ordered, deduplicated fallback queries for one address.

    Priority: text without parentheses, parenthetical content alone,
    then the untouched original.
    """
    sanitized = sanitize_address(address)
    candidates = [sanitized.without_parens, sanitized.parens_content, sanitized.original]

    queries: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        if not candidate:
            continue
        query = ensure_region(candidate, region)
        # Same cache key means the same lookup
        key = cache_key(query)
        if key not in seen:
            seen.add(key)
            queries.append(query)

    return QuerySequence(queries=tuple(queries), source=sanitized)


def cache_key(query: str) -> str:
    return query.strip().lower()


def reverse_cache_key(latitude: float, longitude: float) -> str:
    """Coordinates rounded to 5 decimals (about one meter)."""
    return f"{round(latitude, 5):.5f},{round(longitude, 5):.5f}"


def rank_candidates(
    candidates: Sequence[ResolutionCandidate],
) -> tuple[ResolutionCandidate, ...]:
    """Sort by descending importance; ties keep upstream order."""
    return tuple(sorted(candidates, key=lambda c: c.importance, reverse=True))


def select_best(
    ranked: Sequence[ResolutionCandidate],
    min_importance: float = DEFAULT_MIN_IMPORTANCE,
) -> Optional[ResolutionCandidate]:
    """First ranked candidate meeting ``min_importance``, else the top one."""
    if not ranked:
        return None
    for candidate in ranked:
        if candidate.importance >= min_importance:
            return candidate
    return ranked[0]


def no_results_suggestions(address: str) -> tuple[str, ...]:
    """Remediation hints derived from the structure of the input."""
    suggestions = [
        "Try a simpler query without special characters",
        "Include the city or country name",
    ]
    if "(" in address and ")" in address:
        suggestions.append("Remove content in parentheses")
    if "," in address:
        suggestions.append("Try without commas")
    if len(address.split()) >= 2:
        suggestions.append("For international locations, try official or local name")
        suggestions.append("For tourist sites, add the region or country name")
    return tuple(suggestions)


def parse_candidates(results: Sequence[RawResult]) -> list[ResolutionCandidate]:
    """Parse raw reply objects, skipping malformed ones."""
    candidates = []
    for raw in results:
        try:
            candidates.append(ResolutionCandidate.from_raw(raw))
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("Skipping malformed result", extra={"error": str(e)})
    return candidates


@dataclass
class AddressResolutionService:
    """Resolve free-text addresses and coordinates into ranked matches.

    Attributes:
        geocoder: Forward/reverse geocoding service
        executor: Rate-limited, retried, coalesced request execution
        cache: Raw search results keyed by normalized query
        reverse_cache: Raw reverse results keyed by rounded coordinate
        max_results: Matches requested per query
        min_importance: Threshold for preferring a candidate
        default_region: Region appended to short queries
        search_ttl_seconds: TTL of cached search results
        reverse_ttl_seconds: TTL of cached reverse results
    """

    geocoder: GeocoderPort
    executor: ResilientRequestExecutor
    cache: CachePort[list]
    reverse_cache: CachePort[dict]
    max_results: int = 3
    min_importance: float = DEFAULT_MIN_IMPORTANCE
    default_region: str = ""
    search_ttl_seconds: float = 24 * 3600.0
    reverse_ttl_seconds: float = 24 * 3600.0

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def resolve_address(
        self,
        address: str,
        region: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> AddressResolution:
        """Resolve a free-text address.

        Args:
            address: Place description, e.g. "Blue Temple (Wat Rong Suea Ten)".
            region: Context appended to short queries (None = default region).
            timeout: Overall time budget in seconds (None = executor default).

        Returns:
            AddressResolution with the best match and all candidates of the
            winning query, or a structured error.
        """
        address = address or ""
        if region is None:
            region = self.default_region

        self._logger.info(
            "Resolving address",
            extra={"original_query": address, "region": region},
        )

        if not address.strip():
            error = InputValidationError(
                "Address must not be empty",
                field_name="address",
                reason_code="EMPTY_ADDRESS",
            )
            return AddressResolution(query=address, error=error.to_failure(address))

        sequence = build_query_sequence(address, region)
        self._logger.info(
            "Sanitized query",
            extra={
                "original": sequence.source.original,
                "without_parens": sequence.source.without_parens,
                "parens_content": sequence.source.parens_content,
                "queries": list(sequence),
            },
        )

        deadline = self.executor.deadline_after(timeout)
        attempted: list[str] = []
        last_error: Optional[OSMGatewayError] = None
        saw_empty = False

        for query in sequence:
            attempted.append(query)
            key = cache_key(query)

            results, found = self.cache.get(key)
            if found:
                self._logger.debug("Cache hit", extra={"query": query})
            else:
                try:
                    results = self._search(query, key, deadline)
                except RequestTimeoutError as e:
                    self._logger.warning(
                        "Resolution timed out", extra={"query": query, "stage": e.stage}
                    )
                    return AddressResolution(
                        query=address,
                        attempted_queries=tuple(attempted),
                        error=e.to_failure(address),
                    )
                except OSMGatewayError as e:
                    self._logger.error(
                        "Query failed", extra={"query": query, "error": str(e)}
                    )
                    last_error = e
                    continue

            if not results:
                self._logger.info("Query returned no results", extra={"query": query})
                saw_empty = True
                continue

            candidates = parse_candidates(results)
            if not candidates:
                self._logger.error(
                    "No valid places after conversion",
                    extra={"query": query, "results": len(results)},
                )
                last_error = ResponseParseError(
                    "Failed to convert results to valid places",
                    service=SERVICE_NOMINATIM,
                )
                continue

            if not found:
                self.cache.set(key, list(results), self.search_ttl_seconds)

            ranked = rank_candidates(candidates)
            best = select_best(ranked, self.min_importance)
            self._logger.info(
                "Selected best result",
                extra={
                    "importance": best.importance if best else None,
                    "name": best.display_name if best else None,
                    "successful_query": query,
                },
            )
            return AddressResolution(
                query=address,
                best_match=best,
                candidates=ranked,
                winning_query=query,
                attempted_queries=tuple(attempted),
            )

        self._logger.info("All queries failed", extra={"address": address})
        # Upstream errors are only reported when no query got an answer at all
        if saw_empty or last_error is None:
            last_error = NoResultsError(
                "No results found for the address",
                query=address,
                attempted_queries=tuple(attempted),
                hints=no_results_suggestions(address),
            )

        return AddressResolution(
            query=address,
            attempted_queries=tuple(attempted),
            error=last_error.to_failure(address),
        )

    def _search(self, query: str, key: str, deadline: Optional[float]) -> Sequence[RawResult]:
        return self.executor.execute(
            f"search:{key}",
            SERVICE_NOMINATIM,
            lambda: self.geocoder.search(query, self.max_results),
            deadline=deadline,
        )

    def resolve_coordinate(
        self,
        latitude: float,
        longitude: float,
        timeout: Optional[float] = None,
    ) -> CoordinateResolution:
        """Reverse geocode a coordinate pair.

        Returns:
            CoordinateResolution with the nearest match, or a structured error.
        """
        query = f"{latitude},{longitude}"
        try:
            location = _validated_location(latitude, longitude)
        except InputValidationError as e:
            return CoordinateResolution(error=e.to_failure(query))

        self._logger.info(
            "Reverse geocoding", extra={"latitude": latitude, "longitude": longitude}
        )

        key = reverse_cache_key(latitude, longitude)
        raw, found = self.reverse_cache.get(key)
        if not found:
            try:
                raw = self.executor.execute(
                    f"reverse:{key}",
                    SERVICE_NOMINATIM,
                    lambda: self.geocoder.reverse(latitude, longitude),
                    deadline=self.executor.deadline_after(timeout),
                )
            except OSMGatewayError as e:
                self._logger.error(
                    "Reverse geocoding failed", extra={"query": query, "error": str(e)}
                )
                return CoordinateResolution(location=location, error=e.to_failure(query))

        if not raw or "error" in raw:
            error = NoResultsError(
                "No place found at the given coordinates",
                query=query,
                hints=("Try coordinates closer to a road or populated place",),
            )
            return CoordinateResolution(location=location, error=error.to_failure(query))

        try:
            match = ResolutionCandidate.from_raw(raw)
        except (KeyError, TypeError, ValueError) as e:
            error = ResponseParseError(
                "Failed to parse reverse geocoding result",
                service=SERVICE_NOMINATIM,
                cause=e,
            )
            return CoordinateResolution(location=location, error=error.to_failure(query))

        if not found:
            self.reverse_cache.set(key, dict(raw), self.reverse_ttl_seconds)

        return CoordinateResolution(location=location, match=match)


def _validated_location(latitude: float, longitude: float) -> GeoLocation:
    if latitude is None or math.isnan(latitude) or not -90 <= latitude <= 90:
        raise InputValidationError(
            "Latitude must be between -90 and 90",
            field_name="latitude",
            reason_code="INVALID_LATITUDE",
        )
    if longitude is None or math.isnan(longitude) or not -180 <= longitude <= 180:
        raise InputValidationError(
            "Longitude must be between -180 and 180",
            field_name="longitude",
            reason_code="INVALID_LONGITUDE",
        )
    return GeoLocation(latitude=latitude, longitude=longitude)
