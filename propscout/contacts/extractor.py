"""Recover agent contact details from listing free text.

Extraction collaborators often leave ``listed_by_phone`` /
``listed_by_email`` / ``listed_by_name`` empty even though the description
or the terms block spells them out ("Call Sara on +971 50 123 4567").  This
module pulls phone numbers, e-mail addresses and agent names out of that
text with regular expressions, and writes the first match of each kind into
the record's empty contact fields.

Typical usage::

    matches = await scan_contacts(storage)
    report = await apply_all_contacts(storage)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from propscout.core import events
from propscout.core.models import Property
from propscout.storage.base import StorageAdapter

__all__ = [
    "ContactMatch",
    "ContactReport",
    "ExtractedContacts",
    "apply_all_contacts",
    "apply_contacts",
    "extract_agent_names",
    "extract_contact_info",
    "extract_emails",
    "extract_phone_numbers",
    "fill_contacts",
    "scan_contacts",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# Most specific first: a number found by an earlier pattern hides the
# fragments a later one would match inside it.
_PHONE_PATTERNS = (
    # +971 50 123 4567, +44-20-7946-0958
    re.compile(r"\+\d{1,4}(?:[\s-]?\d{1,4}){1,4}"),
    # (555) 123-4567
    re.compile(r"\(\d{3}\)\s?\d{3}[-\s]?\d{4}"),
    # UAE mobile: 050 123 4567
    re.compile(r"\b05\d[\s-]?\d{3}[\s-]?\d{4}\b"),
    # 555-123-4567, 555.123.4567
    re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b"),
)
_MIN_PHONE_DIGITS = 7

_EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

_NAME = r"[A-Z][a-z]+(?: [A-Z][a-z]+){0,3}"
_NAME_PATTERNS = (
    # "Listed by: Jane Doe", "Agent Omar Haddad", "Contact: Sara Ali"
    re.compile(
        rf"\b(?i:listed by|agent|contact)(?:\s*:\s*|\s+)(?!(?i:agent|contact|us)\b)({_NAME})"
    ),
    # "Omar Farooq Khan": two given names before a common Gulf surname
    re.compile(r"\b([A-Z][a-z]+ [A-Z][a-z]+ (?:Khan|Ahmed|Ali|Mohammad))\b"),
)
_NAME_LENGTH = range(3, 50)


# ---------------------------------------------------------------------------
# Pure extraction
# ---------------------------------------------------------------------------


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


def extract_phone_numbers(text: str) -> list[str]:
    """Return the phone numbers in *text*, as written, in first-seen order.

    A candidate needs at least seven digits.  Candidates whose digits repeat
    (or sit inside) a number already found are dropped.

    Examples:
        >>> extract_phone_numbers("Call +971 50 123 4567 or 050-765-4321")
        ['+971 50 123 4567', '050-765-4321']
    """
    if not text:
        return []
    phones: list[str] = []
    seen: list[str] = []
    for pattern in _PHONE_PATTERNS:
        for match in pattern.finditer(text):
            candidate = match.group(0).strip()
            digits = _digits(candidate)
            if len(digits) < _MIN_PHONE_DIGITS:
                continue
            if any(digits in known for known in seen):
                continue
            phones.append(candidate)
            seen.append(digits)
    return phones


def extract_emails(text: str) -> list[str]:
    """Return the distinct e-mail addresses in *text*, in first-seen order."""
    if not text:
        return []
    return list(dict.fromkeys(_EMAIL_PATTERN.findall(text)))


def extract_agent_names(text: str) -> list[str]:
    """Return the agent names in *text*, in first-seen order.

    Names are taken after "Listed by", "Agent" or "Contact" (any casing),
    or recognised by a trailing common surname.
    """
    if not text:
        return []
    names: dict[str, None] = {}
    for pattern in _NAME_PATTERNS:
        for match in pattern.finditer(text):
            name = match.group(1).strip()
            if len(name) in _NAME_LENGTH:
                names.setdefault(name, None)
    return list(names)


@dataclass(frozen=True, slots=True)
class ExtractedContacts:
    """Contact details found in one record, each list in first-seen order."""

    phones: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    names: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.phones or self.emails or self.names)

    def to_dict(self) -> dict[str, list[str]]:
        return {"phones": list(self.phones), "emails": list(self.emails), "names": list(self.names)}


def extract_contact_info(record: Property) -> ExtractedContacts:
    """Scan the record's descriptions, terms and existing contact fields."""
    parts = (
        record.description,
        record.original_description,
        record.terms_and_condition,
        record.listed_by_name,
        record.listed_by_phone,
        record.listed_by_email,
    )
    # One field per line so a match never runs on into the next field.
    text = "\n".join(part for part in parts if part)
    return ExtractedContacts(
        phones=extract_phone_numbers(text),
        emails=extract_emails(text),
        names=extract_agent_names(text),
    )


def fill_contacts(record: Property, contacts: ExtractedContacts) -> Property:
    """Return *record* with its empty contact fields set from *contacts*.

    Fields that already hold a value are never overwritten.  The same
    instance is returned when nothing changes.
    """
    update: dict[str, str] = {}
    if not record.listed_by_phone and contacts.phones:
        update["listed_by_phone"] = contacts.phones[0]
    if not record.listed_by_email and contacts.emails:
        update["listed_by_email"] = contacts.emails[0]
    if not record.listed_by_name and contacts.names:
        update["listed_by_name"] = contacts.names[0]
    if not update:
        return record
    return record.model_copy(update=update)


# ---------------------------------------------------------------------------
# Storage passes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ContactMatch:
    record: Property
    contacts: ExtractedContacts


@dataclass
class ContactReport:
    """Counters for one bulk contact pass.

    Attributes:
        records_scanned: Records inspected.
        records_with_contacts: Records whose text held any contact detail.
        records_updated: Records written back with newly filled fields.
    """

    records_scanned: int = 0
    records_with_contacts: int = 0
    records_updated: int = 0
    updated_ids: list[str] = field(default_factory=list)


async def scan_contacts(storage: StorageAdapter) -> list[ContactMatch]:
    """Return every stored record that mentions at least one contact detail."""
    matches: list[ContactMatch] = []
    for record in await storage.list_records():
        contacts = extract_contact_info(record)
        if not contacts.is_empty:
            matches.append(ContactMatch(record, contacts))
    return matches


async def apply_contacts(storage: StorageAdapter, property_id: str) -> Property | None:
    """Fill the empty contact fields of one record and persist it.

    Returns:
        The record as stored afterwards, or ``None`` if *property_id* is
        not stored.
    """
    record = next((r for r in await storage.list_records() if r.id == property_id), None)
    if record is None:
        return None
    updated = fill_contacts(record, extract_contact_info(record))
    if updated is record:
        return record
    return await storage.upsert_one(updated)


async def apply_all_contacts(storage: StorageAdapter) -> ContactReport:
    """Fill empty contact fields across the corpus, one ``upsert_one`` per change."""
    records = await storage.list_records()
    report = ContactReport(records_scanned=len(records))

    for record in records:
        contacts = extract_contact_info(record)
        if contacts.is_empty:
            continue
        report.records_with_contacts += 1
        updated = fill_contacts(record, contacts)
        if updated is record:
            continue
        await storage.upsert_one(updated)
        report.records_updated += 1
        report.updated_ids.append(record.id)

    logger.info(
        "Contact pass: %d records scanned, %d with contacts, %d updated",
        report.records_scanned,
        report.records_with_contacts,
        report.records_updated,
        extra={"event": events.CONTACTS_APPLIED},
    )
    return report
