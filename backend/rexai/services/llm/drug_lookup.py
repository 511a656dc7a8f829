"""Drug name lookup against the NIH RxNorm REST API."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import requests

from rexai.config import settings

logger = logging.getLogger("rexai.drug_lookup")


class DrugLookupError(RuntimeError):
    """Raised when the drug database cannot be queried."""


@dataclass(frozen=True)
class DrugInfo:
    rxcui: str
    name: str


class DrugLookup(Protocol):
    def search(self, name: str) -> Optional[DrugInfo]:
        ...


class RxNormClient:
    """Resolves drug names to RxNorm concepts.

    An approximate-term match is tried first, then an exact ``drugs`` lookup.
    Answers (including "not found") are kept in an LRU cache keyed by the
    lowercased name, holding at most ``cache_size`` entries. Errors are not
    cached.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        cache_size: int | None = None,
    ):
        self.base_url = (base_url or settings.rxnorm_base_url).rstrip("/")
        self.timeout = timeout or settings.rxnorm_timeout_seconds
        self.cache_size = cache_size or settings.rxnorm_cache_size
        self._cache: OrderedDict[str, Optional[DrugInfo]] = OrderedDict()
        self._cache_lock = threading.Lock()

    def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DrugLookupError(f"RxNorm request failed for {url}: {exc}") from exc

        if response.status_code >= 400:
            raise DrugLookupError(
                f"RxNorm request returned HTTP {response.status_code} for {url}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DrugLookupError(f"RxNorm response for {url} is not valid JSON") from exc
        return payload if isinstance(payload, dict) else {}

    def _approximate_match(self, name: str) -> Optional[str]:
        payload = self._get_json("approximateTerm.json", {"term": name, "maxEntries": 1})
        candidates = (payload.get("approximateGroup") or {}).get("candidate") or []
        if candidates and candidates[0].get("rxcui"):
            return str(candidates[0]["rxcui"])
        return None

    def _exact_match(self, name: str) -> Optional[str]:
        payload = self._get_json("drugs.json", {"name": name})
        groups = (payload.get("drugGroup") or {}).get("conceptGroup") or []
        for group in groups:
            properties = group.get("conceptProperties") or []
            if properties and properties[0].get("rxcui"):
                return str(properties[0]["rxcui"])
        return None

    def search(self, name: str) -> Optional[DrugInfo]:
        """Look up a drug by name.

        Returns:
            The matched concept, or None when RxNorm has no match

        Raises:
            DrugLookupError: If RxNorm cannot be reached or answers badly
        """
        key = name.strip().lower()
        with self._cache_lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]

        rxcui = self._approximate_match(name) or self._exact_match(name)
        info = DrugInfo(rxcui=rxcui, name=name) if rxcui else None
        if info is None:
            logger.info("No RxNorm concept found for %r", name)

        with self._cache_lock:
            self._cache[key] = info
            self._cache.move_to_end(key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return info
