"""Metadata migration: normalize any saved metadata shape to `BundleMetadata`.

Older saves used flat `applicantName` / `respondentName` fields and a
`caseName` instead of `bundleTitle`; some also carried `applicants` /
`respondents` lists keyed by court designation. Migration is pure and
idempotent, applied in this order:

1. missing/empty `bundleTitle` -> legacy `caseName`, else ""
2. empty/absent `parties` -> synthesized from the legacy party fields
3. legacy flat fields default to "" (never left undefined)
4. `caseNumber` / `court` default to "", `date` to today's ISO date

`migrate_metadata(metadata_to_dict(m)) == m` for any migrated `m`.

Date precision inference is a heuristic for saves that stored a document
date without its precision tag: three segments are always taken as day
precision, even when the segment order cannot be validated.
"""

from __future__ import annotations

import re
from datetime import date as _date
from typing import Any, Mapping, Optional, Union

from casebundle.core.model import BundleMetadata, Party, PartyRole

KNOWN_METADATA_KEYS = frozenset(
    {
        "bundleTitle",
        "caseName",
        "caseNumber",
        "court",
        "date",
        "parties",
        "applicantName",
        "respondentName",
        "preparerName",
        "preparerRole",
        "bundleType",
    }
)

_LEGACY_FLAT_FIELDS = ("applicantName", "respondentName", "preparerName", "preparerRole")

# Longest keywords first so "interested party" wins over "party".
_DESIGNATION_KEYWORDS = (
    ("interested party", PartyRole.INTERESTED_PARTY),
    ("intervener", PartyRole.INTERVENER),
    ("claimant", PartyRole.CLAIMANT),
    ("defendant", PartyRole.DEFENDANT),
    ("applicant", PartyRole.APPLICANT),
    ("respondent", PartyRole.RESPONDENT),
    ("appellant", PartyRole.APPELLANT),
)

_DATE_SEPARATORS = re.compile(r"[-/.]")


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _role_from_text(text: str) -> tuple[PartyRole, Optional[str]]:
    """Map a role or court designation ("First Defendant") onto the role vocabulary."""
    t = text.strip().lower().replace("-", " ").replace("_", " ")
    try:
        return PartyRole(t.replace(" ", "_")), None
    except ValueError:
        pass
    for keyword, role in _DESIGNATION_KEYWORDS:
        if keyword in t:
            return role, None
    return PartyRole.OTHER, text.strip() or None


def _party_from_raw(item: Any, *, where: str, default_order: int) -> Party:
    if isinstance(item, Party):
        return item
    if not isinstance(item, Mapping):
        raise ValueError(f"{where}: expected object, got {type(item).__name__}")
    role_raw = item.get("role")
    if role_raw is None:
        role_raw = item.get("designation", "other")
    role, custom = _role_from_text(_as_str(role_raw))
    custom_role = item.get("customRole")
    if custom_role is None:
        custom_role = custom
    order = item.get("order", default_order)
    if isinstance(order, bool) or not isinstance(order, int) or order < 0:
        order = default_order
    return Party(
        name=_as_str(item.get("name")),
        role=role,
        order=order,
        custom_role=custom_role if role is PartyRole.OTHER else None,
    )


def _parties_from_designation_lists(raw: Mapping[str, Any]) -> list[Party]:
    out: list[Party] = []
    for key in ("applicants", "respondents"):
        items = raw.get(key)
        if not isinstance(items, list):
            continue
        for item in items:
            if isinstance(item, Mapping) and _as_str(item.get("name")).strip():
                out.append(_party_from_raw(item, where=f"metadata.{key}[*]", default_order=len(out)))
    return out


def _migrate_parties(raw: Mapping[str, Any], applicant: str, respondent: str) -> list[Party]:
    parties_raw = raw.get("parties")
    if isinstance(parties_raw, (list, tuple)) and parties_raw:
        return [
            _party_from_raw(item, where=f"metadata.parties[{i}]", default_order=i)
            for i, item in enumerate(parties_raw)
        ]
    if parties_raw is not None and not isinstance(parties_raw, (list, tuple)):
        raise ValueError(f"metadata.parties: expected array, got {type(parties_raw).__name__}")

    parties: list[Party] = []
    if applicant:
        parties.append(Party(name=applicant, role=PartyRole.APPLICANT, order=0))
    if respondent:
        parties.append(Party(name=respondent, role=PartyRole.RESPONDENT, order=1))
    if not parties:
        parties = _parties_from_designation_lists(raw)
    return parties


def migrate_metadata(
    raw: Union[Mapping[str, Any], BundleMetadata, None],
    *,
    today: Optional[str] = None,
) -> BundleMetadata:
    """Normalize raw (possibly legacy) metadata into the current `BundleMetadata`."""
    if isinstance(raw, BundleMetadata):
        raw = metadata_to_dict(raw)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"metadata: expected JSON object, got {type(raw).__name__}")

    bundle_title = _as_str(raw.get("bundleTitle"))
    case_name = _as_str(raw.get("caseName"))
    if not bundle_title and case_name:
        bundle_title = case_name

    flat = {key: _as_str(raw.get(key)) for key in _LEGACY_FLAT_FIELDS}
    parties = _migrate_parties(raw, flat["applicantName"], flat["respondentName"])

    date_value = _as_str(raw.get("date")) or (today or _date.today().isoformat())

    bundle_type = raw.get("bundleType")
    extra = {k: v for k, v in raw.items() if k not in KNOWN_METADATA_KEYS}

    return BundleMetadata(
        bundle_title=bundle_title,
        case_name=case_name,
        case_number=_as_str(raw.get("caseNumber")),
        court=_as_str(raw.get("court")),
        date=date_value,
        parties=tuple(parties),
        applicant_name=flat["applicantName"],
        respondent_name=flat["respondentName"],
        preparer_name=flat["preparerName"],
        preparer_role=flat["preparerRole"],
        bundle_type=_as_str(bundle_type) if bundle_type is not None else None,
        extra=extra,
    )


def party_to_dict(party: Party) -> dict[str, Any]:
    out: dict[str, Any] = {"name": party.name, "role": party.role.value, "order": party.order}
    if party.custom_role is not None:
        out["customRole"] = party.custom_role
    return out


def metadata_to_dict(metadata: BundleMetadata) -> dict[str, Any]:
    """Inverse of `migrate_metadata` for already-current metadata (camelCase keys)."""
    out: dict[str, Any] = dict(metadata.extra)
    out.update(
        {
            "bundleTitle": metadata.bundle_title,
            "caseName": metadata.case_name,
            "caseNumber": metadata.case_number,
            "court": metadata.court,
            "date": metadata.date,
            "parties": [party_to_dict(p) for p in metadata.parties],
            "applicantName": metadata.applicant_name,
            "respondentName": metadata.respondent_name,
            "preparerName": metadata.preparer_name,
            "preparerRole": metadata.preparer_role,
        }
    )
    if metadata.bundle_type is not None:
        out["bundleType"] = metadata.bundle_type
    return out


def infer_date_precision(date_str: Optional[str]) -> str:
    """Guess the precision of a stored document date.

    "2024-03-15" -> day, "2024-03" -> month, "2024" -> year, anything else -> none.
    """
    if not date_str:
        return "none"
    parts = _DATE_SEPARATORS.split(date_str.strip())
    if len(parts) == 3:
        return "day"
    if len(parts) == 2:
        return "month"
    if len(parts) == 1 and re.fullmatch(r"\d{4}", parts[0]):
        return "year"
    return "none"


def resolve_date_precision(document_date: Optional[str], stored: Optional[str]) -> str:
    """Use the stored precision tag when present, else infer it from the date."""
    if stored:
        return stored
    if document_date:
        return infer_date_precision(document_date)
    return "none"


__all__ = [
    "KNOWN_METADATA_KEYS",
    "infer_date_precision",
    "metadata_to_dict",
    "migrate_metadata",
    "party_to_dict",
    "resolve_date_precision",
]
