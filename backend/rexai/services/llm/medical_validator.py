"""Safety checks for structured AI medical responses.

The validator only annotates: it returns advisory flags and never changes
the response it was given.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Mapping, Optional

from rexai.services.llm.drug_lookup import DrugLookup, RxNormClient

logger = logging.getLogger("rexai.validation")

MEDICATION_TYPES = frozenset({"medication_list", "medication_scheduled"})

_UNITS = r"(?:mg|g|ml|mcg|iu|unit|tablet|cap|pill|drop|puff)s?"
DOSAGE_PATTERN = re.compile(rf"^\d+(?:\.\d+)?\s*{_UNITS}$", re.IGNORECASE)
DOSAGE_RANGE_PATTERN = re.compile(
    rf"^\d+(?:\.\d+)?-\d+(?:\.\d+)?\s*{_UNITS}$", re.IGNORECASE
)

# Overclaiming phrases, checked in this order.
RISKY_PHRASES = ("cure", "guarantee", "miracle", "100% effective")


@dataclass
class ValidationResult:
    flags: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.flags

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "flags": list(self.flags)}


def is_valid_dosage(dosage: str) -> bool:
    """True for "<number> <unit>" or "<number>-<number> <unit>" dosages."""
    value = dosage.strip()
    return bool(DOSAGE_PATTERN.match(value) or DOSAGE_RANGE_PATTERN.match(value))


def _medication_entries(data: Any) -> list[Mapping[str, Any]]:
    if data is None:
        return []
    entries = data if isinstance(data, list) else [data]
    return [entry for entry in entries if isinstance(entry, Mapping)]


class MedicalValidator:
    """Flags unknown drugs, odd dosages and risky wording in AI responses."""

    def __init__(self, drug_lookup: Optional[DrugLookup] = None):
        self.drug_lookup = drug_lookup or RxNormClient()

    def _is_known_drug(self, name: str) -> bool:
        try:
            return self.drug_lookup.search(name) is not None
        except Exception:
            logger.warning("Drug lookup failed for %r; treating as unknown", name, exc_info=True)
            return False

    def validate(self, response: Mapping[str, Any]) -> ValidationResult:
        """Validate a response of shape ``{voice_summary, structured_data}``."""
        result = ValidationResult()

        structured = response.get("structured_data") or {}
        if isinstance(structured, Mapping) and structured.get("type") in MEDICATION_TYPES:
            for entry in _medication_entries(structured.get("data")):
                name = entry.get("drug_name")
                if not name:
                    continue
                name = str(name)
                if not self._is_known_drug(name):
                    result.flags.append(
                        f'Unknown drug name detected: "{name}". Please verify spelling.'
                    )
                dosage = entry.get("dosage")
                if dosage and not is_valid_dosage(str(dosage)):
                    result.flags.append(
                        f'Unusual dosage format detected for {name}: "{dosage}". '
                        "Expected standard units (mg, ml, etc.)."
                    )

        summary = str(response.get("voice_summary") or "").lower()
        for phrase in RISKY_PHRASES:
            if phrase in summary:
                result.flags.append(
                    f'Risky language detected in voice summary: "{phrase}".'
                )

        if result.flags:
            logger.info("Medical response flagged: %d issue(s)", len(result.flags))
        return result


@lru_cache(maxsize=1)
def get_medical_validator() -> MedicalValidator:
    return MedicalValidator()
