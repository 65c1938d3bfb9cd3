"""
Turning merge prompts into something a person can answer.

render_prompt() gives a title, body lines and labelled options; the GUI
shows them in a dialog, console_answer() asks for them line by line.
"""

from contacts_merge import ConfirmPrompt, FieldChoice, FieldPrompt, GroupAction, GroupPrompt
from contacts_model import ContactRecord, PostalAddress

GROUP_ACTION_LABELS = {
    GroupAction.SKIP: "Skip",
    GroupAction.IMPORT_SEPARATELY: "Import separately",
    GroupAction.MERGE: "Merge fields",
    GroupAction.REPLACE: "Replace existing",
}

FIELD_CHOICE_LABELS = {
    FieldChoice.KEEP_EXISTING: "Keep existing",
    FieldChoice.USE_NEW: "Use new",
    FieldChoice.SKIP_FIELD: "Clear field",
    FieldChoice.COMBINE: "Combine",
}

SUMMARY_FIELDS = (
    ("Name", "display_name"),
    ("E-mail", "email_addresses"),
    ("Company", "company_name"),
    ("Job Title", "job_title"),
    ("Department", "department"),
    ("Business Phones", "business_phones"),
    ("Mobile", "mobile_phone"),
    ("Home Phones", "home_phones"),
    ("Notes", "personal_notes"),
)


def format_value(value) -> str:
    if value is None or value == "" or value == []:
        return "(empty)"
    if isinstance(value, PostalAddress):
        return value.formatted() or "(empty)"
    if isinstance(value, list):
        return ", ".join(getattr(v, "address", v) for v in value)
    return str(value)


def describe_record(record: ContactRecord) -> list[str]:
    lines = []
    for label, field in SUMMARY_FIELDS:
        value = getattr(record, field)
        if value not in ("", [], None):
            lines.append(f"{label}: {format_value(value)}")
    if record.source is not None:
        lines.append(f"Folder: {record.source.folder_name}")
    return lines


def render_prompt(prompt) -> tuple[str, list[str], list[tuple[str, str]]]:
    """Title, body lines and (answer, label) options for a merge prompt."""
    if isinstance(prompt, GroupPrompt):
        body = [f"{len(prompt.existing)} existing and {len(prompt.incoming)} incoming contact(s) share this e-mail."]
        for record in prompt.existing:
            body.append("Existing:")
            body.extend(f"  {line}" for line in describe_record(record))
        for record in prompt.incoming:
            body.append("Incoming:")
            body.extend(f"  {line}" for line in describe_record(record))
        options = [(a.value, GROUP_ACTION_LABELS[a]) for a in prompt.options]
        return f"Duplicate: {prompt.key}", body, options

    if isinstance(prompt, FieldPrompt):
        body = [
            f"Existing: {format_value(prompt.existing_value)}",
            f"Incoming: {format_value(prompt.incoming_value)}",
        ]
        options = [(c.value, FIELD_CHOICE_LABELS[c]) for c in prompt.options]
        return f"{prompt.label} ({prompt.position}/{prompt.total})", body, options

    if isinstance(prompt, ConfirmPrompt):
        body = describe_record(prompt.record) if prompt.record is not None else []
        return prompt.message, body, [("yes", "Yes"), ("no", "No")]

    raise TypeError(f"Unknown prompt type {type(prompt).__name__}")


def console_answer(prompt, input_fn=input, print_fn=print) -> str:
    """Line-based prompt sink: print the prompt, read one answer."""
    title, body, options = render_prompt(prompt)
    print_fn(title)
    for line in body:
        print_fn(f"  {line}")
    for i, (_, label) in enumerate(options, 1):
        print_fn(f"  [{i}] {label}")
    reply = input_fn("> ").strip()
    if reply.isdigit() and 1 <= int(reply) <= len(options):
        return options[int(reply) - 1][0]
    return reply
