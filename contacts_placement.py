import logging
from collections import defaultdict
from typing import Callable, Iterable, Mapping

from contacts_model import ContactRecord


def resolve_folder_name(
    contact: ContactRecord, company_folders: Mapping[str, str], default_folder: str
) -> str:
    """
    Pick the destination folder for a contact from its company name.

    Exact (case-sensitive) key match first, then the first key that contains
    or is contained in the company name ignoring case, then the default.
    """
    company = (contact.company_name or "").strip()
    if not company:
        return default_folder

    if company in company_folders:
        return company_folders[company]

    lowered = company.lower()
    for key, folder in company_folders.items():
        k = key.strip().lower()
        if not k:
            continue
        if k in lowered or lowered in k:
            return folder

    return default_folder


def place_contacts(
    items: Iterable,
    company_folders: Mapping[str, str],
    default_folder: str,
    key: Callable[[object], ContactRecord] | None = None,
) -> dict[str, list]:
    """Group items by destination folder, keeping input order. key() extracts the record, as in sorted()."""
    placed = defaultdict(list)
    for item in items:
        contact = key(item) if key else item
        placed[resolve_folder_name(contact, company_folders, default_folder)].append(item)
    for folder, members in placed.items():
        logging.info(f"Placing {len(members)} contacts in '{folder}'.")
    return dict(placed)
