"""
Import and restore runs: parse, validate, find duplicates across folders,
resolve them, place contacts in folders and persist them one by one.

A single record failing never stops the run. It is counted and listed in
ImportResult.errors. Only setup problems (missing file, unreadable input,
interactive mode without a prompt handler) raise.

Records travel through the run as (position, record) pairs; position is
1-based in the caller's batch.
"""

import logging
import os
import re
from collections import defaultdict
from operator import itemgetter
from typing import Any, Callable

from pydantic import BaseModel, Field

from contacts_duplicates import (
    DuplicateReport,
    classify_duplicates,
    find_batch_duplicate_emails,
    find_cross_folder_duplicates,
    find_folder_duplicates,
)
from contacts_index import ContactIndex, build_cross_folder_index, default_folder
from contacts_merge import DuplicateStrategy, MergeOutcome, OutcomeAction, Prompt, plan_merges
from contacts_model import ContactFolder, ContactRecord, identity_key
from contacts_parsers import parse_backup, parse_file, write_backup
from contacts_placement import place_contacts
from contacts_store import DEFAULT_FOLDER_NAME, ContactStore

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class ImportOptions(BaseModel):
    strategy: DuplicateStrategy = DuplicateStrategy.MERGE
    interactive: bool = False
    default_folder: str = DEFAULT_FOLDER_NAME
    company_folders: dict[str, str] = Field(default_factory=dict)
    target_folder: str | None = None
    cross_folder_search: bool = True
    validate_only: bool = False
    preserve_source_folders: bool = False


class InvalidRecord(BaseModel):
    position: int
    label: str
    errors: list[str]


class ItemError(BaseModel):
    position: int
    label: str
    action: str
    message: str


class ItemOutcome(BaseModel):
    position: int
    label: str
    action: str
    folder: str = ""
    contact_id: str | None = None
    detail: str = ""


class RecordStatistics(BaseModel):
    emails_found: int = 0
    phones_found: int = 0
    addresses_found: int = 0
    companies_found: int = 0
    duplicate_emails: list[str] = Field(default_factory=list)


class ImportResult(BaseModel):
    total_count: int = 0
    valid_count: int = 0
    invalid_count: int = 0
    duplicate_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    updated_count: int = 0
    validate_only: bool = False
    errors: list[ItemError] = Field(default_factory=list)
    invalid: list[InvalidRecord] = Field(default_factory=list)
    outcomes: list[ItemOutcome] = Field(default_factory=list)
    statistics: RecordStatistics = Field(default_factory=RecordStatistics)
    folder_counts: dict[str, int] = Field(default_factory=dict)
    failed_folders: list[str] = Field(default_factory=list)

    def summary(self) -> dict:
        return self.model_dump(include={
            "total_count", "valid_count", "invalid_count", "duplicate_count",
            "success_count", "failure_count", "skipped_count", "updated_count",
            "validate_only",
        })


# ===============================
# ✅ VALIDATION
# ===============================


def validate_contact(record: ContactRecord) -> list[str]:
    errors = []
    if not record.display_name.strip():
        errors.append("DisplayName is required")
    for email in record.email_addresses:
        if not EMAIL_PATTERN.match(email.address.strip()):
            errors.append(f"Invalid e-mail address '{email.address}'")
    return errors


def split_valid(numbered: list[tuple[int, ContactRecord]]):
    """Valid (position, record) pairs and invalid (position, record, errors) triples."""
    valid, invalid = [], []
    for pos, record in numbered:
        errors = validate_contact(record)
        if errors:
            invalid.append((pos, record, errors))
        else:
            valid.append((pos, record))
    return valid, invalid


def summarize_records(records: list[ContactRecord]) -> RecordStatistics:
    stats = RecordStatistics()
    for r in records:
        stats.emails_found += len(r.email_addresses)
        stats.phones_found += len(r.business_phones) + len(r.home_phones) + (1 if r.mobile_phone else 0)
        stats.addresses_found += sum(1 for a in (r.business_address, r.home_address) if a is not None)
        stats.companies_found += 1 if r.company_name else 0
    stats.duplicate_emails = find_batch_duplicate_emails(records)
    return stats


# ===============================
# 🔎 EXISTING CONTACTS
# ===============================


def _target_folder(store, user, options: ImportOptions, result: ImportResult) -> ContactFolder | None:
    if options.target_folder == options.default_folder:
        return default_folder(options.default_folder)
    try:
        folders = store.list_folders(user)
    except Exception as e:
        logging.warning(f"Could not list contact folders, nothing to match against: {e}")
        result.failed_folders.append("(folder list)")
        return None
    folder = next((f for f in folders if f.display_name == options.target_folder), None)
    if folder is None:
        logging.info(f"Folder '{options.target_folder}' does not exist yet; nothing to match against.")
    return folder


def _classify(store, user, candidates, options: ImportOptions, result: ImportResult) -> DuplicateReport:
    if options.cross_folder_search or not options.target_folder:
        index = build_cross_folder_index(store, user, options.default_folder)
        result.folder_counts = dict(index.folder_counts)
        result.failed_folders = list(index.failed_folders)
        return find_cross_folder_duplicates(store, user, candidates, index)

    folder = _target_folder(store, user, options, result)
    if folder is None:
        result.folder_counts = {options.target_folder: 0}
        return classify_duplicates([], candidates)
    report = find_folder_duplicates(store, user, folder, candidates)
    result.folder_counts = {folder.display_name: report.existing_count}
    return report


def plan_folders(numbered: list[tuple[int, ContactRecord]], options: ImportOptions) -> dict[str, list]:
    """Destination folder for each (position, record) pair, grouped by folder name."""
    if options.target_folder:
        return {options.target_folder: list(numbered)} if numbered else {}

    placed = defaultdict(list)
    unplaced = []
    for pair in numbered:
        source = pair[1].source
        if options.preserve_source_folders and source is not None:
            placed[source.folder_name].append(pair)
        else:
            unplaced.append(pair)
    grouped = place_contacts(
        unplaced, options.company_folders, options.default_folder, key=itemgetter(1)
    )
    for folder, members in grouped.items():
        placed[folder].extend(members)
    return dict(placed)


# ===============================
# 📤 IMPORT
# ===============================


def import_contacts(
    store: ContactStore,
    user: str,
    records: list[ContactRecord],
    options: ImportOptions | None = None,
    answer: Callable[[Prompt], Any] | None = None,
) -> ImportResult:
    options = options or ImportOptions()
    if options.interactive and answer is None and not options.validate_only:
        raise ValueError("Interactive merge needs a prompt handler.")

    result = ImportResult(total_count=len(records), validate_only=options.validate_only)
    logging.info(f"Starting import of {len(records)} contacts (strategy: {options.strategy.value}).")

    valid, invalid = split_valid(list(enumerate(records, 1)))
    result.valid_count = len(valid)
    result.invalid_count = len(invalid)
    result.statistics = summarize_records(records)
    for pos, record, errors in invalid:
        result.invalid.append(InvalidRecord(position=pos, label=record.label(), errors=errors))
        result.outcomes.append(
            ItemOutcome(position=pos, label=record.label(), action="invalid", detail="; ".join(errors))
        )
        logging.warning(f"Record #{pos} '{record.label()}' is invalid: {'; '.join(errors)}")

    report = _classify(store, user, [r for _, r in valid], options, result)
    result.duplicate_count = report.duplicate_count

    to_create = [p for p in valid if identity_key(p[1]) not in report.matches_by_key]
    duplicates = [p for p in valid if identity_key(p[1]) in report.matches_by_key]
    updates: list[tuple[int, MergeOutcome]] = []
    skipped: list[tuple[int, ContactRecord, str]] = []

    if options.strategy == DuplicateStrategy.SKIP:
        skipped.extend((pos, r, "duplicate") for pos, r in duplicates)
    elif options.strategy == DuplicateStrategy.OVERWRITE:
        to_create.extend(duplicates)
    else:
        groups = defaultdict(list)
        for pos, record in duplicates:
            groups[identity_key(record)].append(pos)
        prompt_handler = answer if options.interactive and not options.validate_only else None
        for outcome in plan_merges(
            report.matching_existing_contacts,
            [r for _, r in duplicates],
            DuplicateStrategy.MERGE,
            prompt_handler,
        ):
            positions = [groups[outcome.key][i] for i in outcome.source_indexes]
            if outcome.action == OutcomeAction.CREATE:
                to_create.append((positions[0], outcome.record))
            elif outcome.action == OutcomeAction.UPDATE:
                updates.append((positions[0], outcome))
            else:
                skipped.extend(
                    (pos, r, outcome.reason) for pos, r in zip(positions, outcome.sources)
                )

    to_create.sort(key=itemgetter(0))
    _persist_creates(store, user, to_create, options, result)
    _persist_updates(store, user, updates, options, result)

    for pos, record, reason in skipped:
        result.skipped_count += 1
        result.outcomes.append(
            ItemOutcome(position=pos, label=record.label(), action="skipped", detail=reason)
        )

    result.outcomes.sort(key=lambda o: o.position)
    logging.info(
        f"Import finished: {result.success_count} created, {result.updated_count} updated, "
        f"{result.skipped_count} skipped, {result.failure_count} failed, "
        f"{result.invalid_count} invalid."
    )
    return result


def _persist_creates(store, user, numbered, options, result: ImportResult) -> None:
    folder_ids = {}
    for folder, members in plan_folders(numbered, options).items():
        for pos, record in members:
            if options.validate_only:
                result.outcomes.append(
                    ItemOutcome(position=pos, label=record.label(), action="would create", folder=folder)
                )
                continue
            try:
                if folder not in folder_ids:
                    folder_ids[folder] = store.ensure_folder(user, folder)
                created = store.create_contact(user, folder_ids[folder], record)
            except Exception as e:
                result.failure_count += 1
                result.errors.append(
                    ItemError(position=pos, label=record.label(), action="create", message=str(e))
                )
                result.outcomes.append(
                    ItemOutcome(position=pos, label=record.label(), action="failed", folder=folder, detail=str(e))
                )
                logging.error(f"Failed to create record #{pos} '{record.label()}': {e}")
                continue
            result.success_count += 1
            result.outcomes.append(
                ItemOutcome(
                    position=pos,
                    label=record.label(),
                    action="created",
                    folder=folder,
                    contact_id=created.id,
                )
            )


def _persist_updates(store, user, updates, options, result: ImportResult) -> None:
    for pos, outcome in updates:
        target = outcome.target
        folder = target.source.folder_name if target.source else ""
        label = outcome.record.label()
        if options.validate_only:
            result.outcomes.append(
                ItemOutcome(position=pos, label=label, action="would update", folder=folder, contact_id=target.id)
            )
            continue
        try:
            if not target.id:
                raise ValueError("existing contact has no id")
            store.update_contact(user, target.id, outcome.record)
        except Exception as e:
            result.failure_count += 1
            result.errors.append(ItemError(position=pos, label=label, action="update", message=str(e)))
            result.outcomes.append(
                ItemOutcome(position=pos, label=label, action="failed", folder=folder, detail=str(e))
            )
            logging.error(f"Failed to update record #{pos} '{label}': {e}")
            continue
        result.updated_count += 1
        result.outcomes.append(
            ItemOutcome(
                position=pos,
                label=label,
                action="updated",
                folder=folder,
                contact_id=target.id,
                detail=outcome.reason,
            )
        )


def import_file(
    store: ContactStore,
    user: str,
    path,
    options: ImportOptions | None = None,
    mapping: dict | str | None = None,
    answer: Callable[[Prompt], Any] | None = None,
) -> ImportResult:
    records = parse_file(path, mapping)
    return import_contacts(store, user, records, options, answer)


# ===============================
# 💾 BACKUP & RESTORE
# ===============================


def export_backup(
    store: ContactStore, user: str, path, default_folder_name: str = DEFAULT_FOLDER_NAME
) -> ContactIndex:
    index = build_cross_folder_index(store, user, default_folder_name)
    write_backup(index.contacts, path)
    return index


def restore_backup(
    store: ContactStore,
    user: str,
    path,
    options: ImportOptions | None = None,
    answer: Callable[[Prompt], Any] | None = None,
) -> ImportResult:
    """Re-import a backup, putting each contact back in the folder it was exported from."""
    if not path or not os.path.exists(path):
        raise FileNotFoundError(f"'{path}' not found.")
    records = [r.model_copy(update={"id": None, "etag": None}, deep=True) for r in parse_backup(path)]
    options = (options or ImportOptions()).model_copy(update={"preserve_source_folders": True})
    return import_contacts(store, user, records, options, answer)
