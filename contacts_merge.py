"""
Resolution of duplicate groups: skip, overwrite, automatic merge, and the
interactive field-by-field merge.

The interactive protocol is written as generators. Each one yields a prompt
(GroupPrompt, FieldPrompt or ConfirmPrompt) and expects the answer back
through send(). drive_prompts() runs such a generator against any callable
that answers prompts, which is how the GUI dialogs and the tests plug in.
"""

import logging
from enum import Enum
from typing import Any, Callable, Generator, Iterable

from pydantic import BaseModel, Field

from contacts_index import group_by_identity_key
from contacts_model import (
    COMBINABLE_FIELDS,
    CONTENT_FIELDS,
    FIELD_LABELS,
    LIST_FIELDS,
    MERGEABLE_FIELDS,
    ContactRecord,
    is_empty_value,
)


class DuplicateStrategy(str, Enum):
    SKIP = "skip"
    OVERWRITE = "overwrite"
    MERGE = "merge"


class GroupAction(str, Enum):
    SKIP = "skip"
    IMPORT_SEPARATELY = "import_separately"
    MERGE = "merge"
    REPLACE = "replace"


class FieldChoice(str, Enum):
    KEEP_EXISTING = "keep"
    USE_NEW = "new"
    SKIP_FIELD = "clear"
    COMBINE = "combine"


class OutcomeAction(str, Enum):
    SKIP = "skip"
    CREATE = "create"
    UPDATE = "update"


# ===============================
# 💬 PROMPTS
# ===============================


class GroupPrompt(BaseModel):
    key: str
    existing: list[ContactRecord]
    incoming: list[ContactRecord]
    options: list[GroupAction] = Field(default_factory=lambda: list(GroupAction))


class FieldPrompt(BaseModel):
    field: str
    label: str
    existing_value: Any = None
    incoming_value: Any = None
    options: list[FieldChoice]
    position: int = 1
    total: int = 1


class ConfirmPrompt(BaseModel):
    message: str
    record: ContactRecord | None = None
    existing: ContactRecord | None = None


Prompt = GroupPrompt | FieldPrompt | ConfirmPrompt
PromptSteps = Generator[Prompt, Any, Any]


class MergeOutcome(BaseModel):
    key: str
    action: OutcomeAction
    record: ContactRecord | None = None
    target: ContactRecord | None = None
    sources: list[ContactRecord] = Field(default_factory=list)
    # Indexes of sources within the incoming group, in group order.
    source_indexes: list[int] = Field(default_factory=list)
    reason: str = ""


def _coerce_choice(answer, enum_cls, options):
    if isinstance(answer, enum_cls):
        choice = answer
    else:
        text = str(answer or "").strip()
        choice = enum_cls.__members__.get(text.upper())
        if choice is None:
            try:
                choice = enum_cls(text.lower())
            except ValueError:
                return None
    return choice if choice in options else None


def _coerce_confirm(answer) -> bool | None:
    if isinstance(answer, bool):
        return answer
    text = str(answer or "").strip().lower()
    if text in ("y", "yes", "true", "1"):
        return True
    if text in ("n", "no", "false", "0"):
        return False
    return None


def drive_prompts(steps: PromptSteps, answer: Callable[[Prompt], Any]):
    """Run a prompt generator to completion, feeding it answer(prompt) each time."""
    try:
        prompt = next(steps)
        while True:
            prompt = steps.send(answer(prompt))
    except StopIteration as done:
        return done.value


def _ask_confirm(prompt: ConfirmPrompt) -> Generator[Prompt, Any, bool]:
    confirmed = _coerce_confirm((yield prompt))
    while confirmed is None:
        confirmed = _coerce_confirm((yield prompt))
    return confirmed


# ===============================
# 🧩 FIELD VALUES
# ===============================


def same_value(a, b) -> bool:
    if is_empty_value(a) and is_empty_value(b):
        return True
    return a == b


def combine_values(field: str, existing_value, incoming_value):
    """Ordered, duplicate-free union for lists; '; '-joined text for notes."""
    if field in LIST_FIELDS or isinstance(existing_value, list):
        combined = []
        for value in list(existing_value or []) + list(incoming_value or []):
            if value not in combined:
                combined.append(value)
        return combined
    parts = [p.strip() for p in (existing_value or "", incoming_value or "") if p and p.strip()]
    return "; ".join(parts)


def apply_field_choice(field: str, choice: FieldChoice, existing_value, incoming_value):
    if choice == FieldChoice.KEEP_EXISTING:
        value = existing_value
    elif choice == FieldChoice.USE_NEW:
        value = incoming_value
    elif choice == FieldChoice.SKIP_FIELD:
        return [] if field in LIST_FIELDS else ""
    else:
        return combine_values(field, existing_value, incoming_value)
    return list(value) if isinstance(value, list) else value


def field_options(field: str, existing_value, incoming_value) -> list[FieldChoice]:
    options = [FieldChoice.KEEP_EXISTING, FieldChoice.USE_NEW, FieldChoice.SKIP_FIELD]
    if (
        field in COMBINABLE_FIELDS
        and not is_empty_value(existing_value)
        and not is_empty_value(incoming_value)
    ):
        options.append(FieldChoice.COMBINE)
    return options


# ===============================
# 🔄 MERGING
# ===============================


def auto_merge(existing: ContactRecord, incoming: ContactRecord) -> ContactRecord:
    """Fill the existing record's empty fields from incoming; never overwrite."""
    updates = {}
    for field in CONTENT_FIELDS:
        current = getattr(existing, field)
        candidate = getattr(incoming, field)
        if is_empty_value(current) and not is_empty_value(candidate):
            updates[field] = list(candidate) if isinstance(candidate, list) else candidate
    if updates:
        logging.debug(
            f"Auto-merge filled {sorted(updates)} on '{existing.label()}' from '{incoming.label()}'."
        )
    return existing.model_copy(update=updates, deep=True)


def field_merge_steps(
    existing: ContactRecord, incoming: ContactRecord
) -> Generator[Prompt, Any, ContactRecord | None]:
    """
    Interactive field merge of one incoming record into an existing one.

    Returns the merged record (carrying the existing id), the unchanged
    existing record when nothing differs, or None when the final
    confirmation is declined.
    """
    differing = [
        f for f in MERGEABLE_FIELDS if not same_value(getattr(existing, f), getattr(incoming, f))
    ]
    if not differing:
        return existing

    updates = {}
    for position, field in enumerate(differing, 1):
        old, new = getattr(existing, field), getattr(incoming, field)
        options = field_options(field, old, new)
        prompt = FieldPrompt(
            field=field,
            label=FIELD_LABELS[field],
            existing_value=old,
            incoming_value=new,
            options=options,
            position=position,
            total=len(differing),
        )
        choice = _coerce_choice((yield prompt), FieldChoice, options)
        while choice is None:
            choice = _coerce_choice((yield prompt), FieldChoice, options)
        updates[field] = apply_field_choice(field, choice, old, new)

    merged = existing.model_copy(update=updates, deep=True)
    confirmed = yield from _ask_confirm(
        ConfirmPrompt(
            message=f"Save merged contact '{merged.label()}'?",
            record=merged,
            existing=existing,
        )
    )
    return merged if confirmed else None


def _skip(
    key: str, index: int, record: ContactRecord, target: ContactRecord | None, reason: str
) -> MergeOutcome:
    return MergeOutcome(
        key=key,
        action=OutcomeAction.SKIP,
        target=target,
        sources=[record],
        source_indexes=[index],
        reason=reason,
    )


def _create(key: str, index: int, record: ContactRecord, reason: str) -> MergeOutcome:
    return MergeOutcome(
        key=key,
        action=OutcomeAction.CREATE,
        record=record,
        sources=[record],
        source_indexes=[index],
        reason=reason,
    )


def _folded_outcomes(
    key: str,
    target: ContactRecord,
    merged: ContactRecord,
    merged_sources: list[tuple[int, ContactRecord]],
    reason: str,
) -> list[MergeOutcome]:
    if not merged_sources:
        return []
    fields = {
        "key": key,
        "target": target,
        "sources": [r for _, r in merged_sources],
        "source_indexes": [i for i, _ in merged_sources],
    }
    if merged == target:
        return [MergeOutcome(action=OutcomeAction.SKIP, reason="no changes", **fields)]
    return [MergeOutcome(action=OutcomeAction.UPDATE, record=merged, reason=reason, **fields)]


def resolve_group(
    key: str,
    existing: list[ContactRecord],
    incoming: list[ContactRecord],
    strategy: DuplicateStrategy,
) -> list[MergeOutcome]:
    """Non-interactive resolution of one duplicate group."""
    target = existing[0]
    if strategy == DuplicateStrategy.SKIP:
        return [_skip(key, i, r, target, "duplicate") for i, r in enumerate(incoming)]
    if strategy == DuplicateStrategy.OVERWRITE:
        return [_create(key, i, r, "overwrite") for i, r in enumerate(incoming)]

    merged = target
    for record in incoming:
        merged = auto_merge(merged, record)
    return _folded_outcomes(key, target, merged, list(enumerate(incoming)), "auto-merge")


def resolve_group_steps(
    key: str,
    existing: list[ContactRecord],
    incoming: list[ContactRecord],
) -> Generator[Prompt, Any, list[MergeOutcome]]:
    """Interactive resolution of one duplicate group, starting with a choice of action."""
    target = existing[0]
    group_prompt = GroupPrompt(key=key, existing=existing, incoming=incoming)
    action = _coerce_choice((yield group_prompt), GroupAction, group_prompt.options)
    while action is None:
        action = _coerce_choice((yield group_prompt), GroupAction, group_prompt.options)
    logging.info(f"Duplicate group '{key}': {action.value}.")

    if action == GroupAction.SKIP:
        return [_skip(key, i, r, target, "skipped by user") for i, r in enumerate(incoming)]

    if action == GroupAction.IMPORT_SEPARATELY:
        return [_create(key, i, r, "imported separately") for i, r in enumerate(incoming)]

    if action == GroupAction.REPLACE:
        replacement = incoming[0].model_copy(
            update={"id": target.id, "etag": target.etag, "source": target.source}, deep=True
        )
        confirmed = yield from _ask_confirm(
            ConfirmPrompt(
                message=f"Replace '{target.label()}' with '{incoming[0].label()}'?",
                record=replacement,
                existing=target,
            )
        )
        if not confirmed:
            return [_skip(key, i, r, target, "replace declined") for i, r in enumerate(incoming)]
        outcomes = [
            MergeOutcome(
                key=key,
                action=OutcomeAction.UPDATE,
                record=replacement,
                target=target,
                sources=[incoming[0]],
                source_indexes=[0],
                reason="replaced",
            )
        ]
        outcomes.extend(
            _skip(key, i, r, target, "superseded by replacement")
            for i, r in enumerate(incoming)
            if i > 0
        )
        return outcomes

    merged = target
    merged_sources = []
    declined = []
    for i, record in enumerate(incoming):
        result = yield from field_merge_steps(merged, record)
        if result is None:
            declined.append(_skip(key, i, record, target, "merge declined"))
            continue
        merged = result
        merged_sources.append((i, record))
    return _folded_outcomes(key, target, merged, merged_sources, "merged") + declined


def plan_merges(
    existing: Iterable[ContactRecord],
    incoming: Iterable[ContactRecord],
    strategy: DuplicateStrategy = DuplicateStrategy.MERGE,
    answer: Callable[[Prompt], Any] | None = None,
) -> list[MergeOutcome]:
    """
    Resolve every duplicate group shared by existing and incoming records.

    With an answer callable each group is resolved interactively; without
    one, strategy decides and no prompt is ever issued. Incoming records
    whose key has no existing match are not part of the plan. source_indexes
    point into group_by_identity_key(incoming)[key].
    """
    existing_by_key = group_by_identity_key(existing)
    outcomes = []
    for key, incoming_group in group_by_identity_key(incoming).items():
        existing_group = existing_by_key.get(key)
        if not existing_group:
            continue
        if len(existing_group) > 1:
            logging.info(
                f"'{key}' exists {len(existing_group)} times; resolving against the copy in "
                f"'{existing_group[0].source.folder_name if existing_group[0].source else 'unknown'}'."
            )
        if answer is None:
            outcomes.extend(resolve_group(key, existing_group, incoming_group, strategy))
        else:
            outcomes.extend(
                drive_prompts(resolve_group_steps(key, existing_group, incoming_group), answer)
            )
    return outcomes
