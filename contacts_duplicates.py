import logging
from collections import Counter
from typing import Iterable

from pydantic import BaseModel, Field

from contacts_index import (
    ContactIndex,
    build_cross_folder_index,
    group_by_identity_key,
    load_folder_contacts,
)
from contacts_model import ContactFolder, ContactRecord, identity_key
from contacts_store import ContactStore


class DuplicateReport(BaseModel):
    unique_contacts: list[ContactRecord] = Field(default_factory=list)
    duplicate_contacts: list[ContactRecord] = Field(default_factory=list)
    matching_existing_contacts: list[ContactRecord] = Field(default_factory=list)
    matches_by_key: dict[str, list[ContactRecord]] = Field(default_factory=dict)
    duplicate_count: int = 0
    existing_count: int = 0


def classify_duplicates(
    existing: Iterable[ContactRecord], candidates: Iterable[ContactRecord]
) -> DuplicateReport:
    """
    Split candidates into unique and duplicate by exact identity key.

    Every existing record that shares a duplicate's key is reported once in
    matching_existing_contacts, whichever folder it came from.
    """
    existing = list(existing)
    existing_by_key = group_by_identity_key(existing)
    report = DuplicateReport(existing_count=len(existing))
    for candidate in candidates:
        key = identity_key(candidate)
        matches = existing_by_key.get(key) if key is not None else None
        if not matches:
            report.unique_contacts.append(candidate)
            continue
        report.duplicate_contacts.append(candidate)
        if key not in report.matches_by_key:
            report.matches_by_key[key] = list(matches)
            report.matching_existing_contacts.extend(matches)

    report.duplicate_count = len(report.duplicate_contacts)
    logging.info(
        f"Duplicate check: {len(report.unique_contacts)} unique, "
        f"{report.duplicate_count} duplicates, "
        f"{len(report.matching_existing_contacts)} matching existing contacts."
    )
    return report


def find_cross_folder_duplicates(
    store: ContactStore,
    user: str,
    candidates: list[ContactRecord],
    index: ContactIndex | None = None,
) -> DuplicateReport:
    if index is None:
        index = build_cross_folder_index(store, user)
    return classify_duplicates(index.contacts, candidates)


def find_folder_duplicates(
    store: ContactStore,
    user: str,
    folder: ContactFolder,
    candidates: list[ContactRecord],
) -> DuplicateReport:
    try:
        existing = load_folder_contacts(store, user, folder)
    except Exception as e:
        logging.warning(f"Could not read folder '{folder.display_name}': {e}")
        existing = []
    return classify_duplicates(existing, candidates)


def find_batch_duplicate_emails(candidates: Iterable[ContactRecord]) -> list[str]:
    """Identity keys that occur more than once inside one incoming batch."""
    counts = Counter(k for k in (identity_key(c) for c in candidates) if k is not None)
    return sorted(k for k, n in counts.items() if n > 1)
