"""
Cross-folder index of the contacts already stored in the destination address book.
"""

import logging
from collections import defaultdict
from typing import Iterable

from pydantic import BaseModel, Field

from contacts_model import ContactFolder, ContactRecord, FolderRef, identity_key
from contacts_store import DEFAULT_FOLDER_NAME, ContactStore


class ContactIndex(BaseModel):
    contacts: list[ContactRecord] = Field(default_factory=list)
    folder_counts: dict[str, int] = Field(default_factory=dict)
    failed_folders: list[str] = Field(default_factory=list)

    def by_identity_key(self) -> dict[str, list[ContactRecord]]:
        return group_by_identity_key(self.contacts)


def group_by_identity_key(records: Iterable[ContactRecord]) -> dict[str, list[ContactRecord]]:
    """Bucket records by identity key, keeping input order. Keyless records are left out."""
    groups = defaultdict(list)
    for record in records:
        key = identity_key(record)
        if key is not None:
            groups[key].append(record)
    return dict(groups)


def default_folder(name: str = DEFAULT_FOLDER_NAME) -> ContactFolder:
    return ContactFolder(id=None, display_name=name, is_default=True)


def load_folder_contacts(
    store: ContactStore, user: str, folder: ContactFolder
) -> list[ContactRecord]:
    """Drain every page of one folder and tag each record with that folder."""
    ref = FolderRef(folder_name=folder.display_name, folder_id=folder.id)
    contacts = []
    for page in store.list_contacts(user, folder.id):
        for raw in page:
            record = raw if isinstance(raw, ContactRecord) else ContactRecord.model_validate(raw)
            contacts.append(record.tagged(ref))
    return contacts


def build_cross_folder_index(
    store: ContactStore, user: str, default_folder_name: str = DEFAULT_FOLDER_NAME
) -> ContactIndex:
    """
    Enumerate the default folder plus every named folder.

    A folder that cannot be read is logged and contributes nothing; the
    remaining folders are still enumerated. Listing the named folders is the
    one lookup that cannot be isolated this way: without it only the default
    folder is indexed.
    """
    folders = [default_folder(default_folder_name)]
    index = ContactIndex()
    try:
        folders.extend(f for f in store.list_folders(user) if not f.is_default)
    except Exception as e:
        logging.warning(f"Could not list contact folders, indexing default folder only: {e}")
        index.failed_folders.append("(folder list)")

    for folder in folders:
        try:
            contacts = load_folder_contacts(store, user, folder)
        except Exception as e:
            logging.warning(f"Could not read folder '{folder.display_name}': {e}")
            index.failed_folders.append(folder.display_name)
            index.folder_counts[folder.display_name] = 0
            continue
        index.contacts.extend(contacts)
        index.folder_counts[folder.display_name] = (
            index.folder_counts.get(folder.display_name, 0) + len(contacts)
        )
        logging.info(f"Indexed {len(contacts)} contacts from folder '{folder.display_name}'.")

    logging.info(
        f"Cross-folder index holds {len(index.contacts)} contacts from {len(folders)} folders."
    )
    return index
