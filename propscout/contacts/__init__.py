"""Agent contact details recovered from listing text."""

from propscout.contacts.extractor import (
    ContactMatch,
    ContactReport,
    ExtractedContacts,
    apply_all_contacts,
    apply_contacts,
    extract_contact_info,
    scan_contacts,
)

__all__ = [
    "ContactMatch",
    "ContactReport",
    "ExtractedContacts",
    "apply_all_contacts",
    "apply_contacts",
    "extract_contact_info",
    "scan_contacts",
]
