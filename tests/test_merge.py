from conftest import contact

from contacts_merge import (
    ConfirmPrompt,
    DuplicateStrategy,
    FieldChoice,
    FieldPrompt,
    GroupPrompt,
    OutcomeAction,
    auto_merge,
    combine_values,
    drive_prompts,
    field_merge_steps,
    field_options,
    plan_merges,
    resolve_group,
)
from contacts_model import FolderRef


def existing_ann(**fields):
    fields.setdefault("company_name", "Acme")
    return contact(
        "Ann Lee",
        "ann@acme.com",
        id="people/c1",
        etag="etag-1",
        source=FolderRef(folder_name="Vendors", folder_id="contactGroups/vendors"),
        **fields,
    )


def test_combine_phone_lists_keeps_order_without_duplicates():
    assert combine_values("business_phones", ["555-0001"], ["555-0001", "555-0002"]) == [
        "555-0001",
        "555-0002",
    ]


def test_combine_notes_joins_with_semicolon():
    assert combine_values("personal_notes", "met at expo", "prefers email") == (
        "met at expo; prefers email"
    )


def test_combine_is_only_offered_for_combinable_fields_with_both_sides_set():
    assert FieldChoice.COMBINE in field_options("home_phones", ["1"], ["2"])
    assert FieldChoice.COMBINE not in field_options("home_phones", [], ["2"])
    assert FieldChoice.COMBINE not in field_options("company_name", "A", "B")


def test_auto_merge_fills_only_empty_fields():
    existing = contact("Ann", "ann@acme.com", company_name="", job_title="Mgr")
    incoming = contact("Ann", "ann@acme.com", company_name="Acme", job_title="Director")

    merged = auto_merge(existing, incoming)

    assert merged.company_name == "Acme"
    assert merged.job_title == "Mgr"
    assert existing.company_name == ""


def test_merging_a_record_with_itself_asks_nothing(scripted):
    record = existing_ann(business_phones=["555-0001"])
    answers = scripted([])

    merged = drive_prompts(field_merge_steps(record, record), answers)

    assert merged == record
    assert answers.prompts == []


def test_field_merge_walks_differing_fields_in_order(scripted):
    existing = existing_ann(business_phones=["555-0001"])
    incoming = contact("Ann Lee", "ann@acme.com", company_name="Acme Corp",
                       business_phones=["555-0001", "555-0002"])
    answers = scripted(["new", "combine", "yes"])

    merged = drive_prompts(field_merge_steps(existing, incoming), answers)

    assert [p.field for p in answers.prompts if isinstance(p, FieldPrompt)] == [
        "company_name",
        "business_phones",
    ]
    assert isinstance(answers.prompts[-1], ConfirmPrompt)
    assert merged.company_name == "Acme Corp"
    assert merged.business_phones == ["555-0001", "555-0002"]
    assert merged.id == "people/c1"
    assert merged.etag == "etag-1"


def test_unknown_answer_repeats_the_same_prompt(scripted):
    existing = existing_ann()
    incoming = contact("Ann Lee", "ann@acme.com", company_name="Beta")
    answers = scripted(["combine", "whatever", FieldChoice.KEEP_EXISTING, "maybe", "y"])

    merged = drive_prompts(field_merge_steps(existing, incoming), answers)

    assert answers.prompts[0] == answers.prompts[1] == answers.prompts[2]
    assert merged.company_name == "Acme"


def test_declining_confirmation_skips_and_leaves_existing_alone(scripted):
    existing = existing_ann()
    incoming = contact("Ann Lee", "ann@acme.com", company_name="Beta")

    outcomes = plan_merges([existing], [incoming], answer=scripted(["merge", "new", "no"]))

    assert [o.action for o in outcomes] == [OutcomeAction.SKIP]
    assert outcomes[0].reason == "merge declined"
    assert existing.company_name == "Acme"


def test_group_prompt_lists_both_sides(scripted):
    existing = existing_ann()
    incoming = contact("Ann Lee", "ann@acme.com", company_name="Beta")
    answers = scripted(["skip"])

    outcomes = plan_merges([existing], [incoming], answer=answers)

    prompt = answers.prompts[0]
    assert isinstance(prompt, GroupPrompt)
    assert prompt.key == "ann@acme.com"
    assert prompt.existing == [existing]
    assert prompt.incoming == [incoming]
    assert outcomes[0].action == OutcomeAction.SKIP


def test_import_separately_creates_the_incoming_record(scripted):
    incoming = contact("Ann Lee", "ann@acme.com", company_name="Beta")
    outcomes = plan_merges([existing_ann()], [incoming], answer=scripted(["import_separately"]))
    assert outcomes[0].action == OutcomeAction.CREATE
    assert outcomes[0].record is incoming


def test_replace_takes_existing_id_after_confirmation(scripted):
    existing = existing_ann(job_title="CEO")
    incoming = contact("Ann B. Lee", "ann@acme.com", company_name="Beta")

    outcomes = plan_merges([existing], [incoming], answer=scripted(["replace", "yes"]))

    assert len(outcomes) == 1
    update = outcomes[0]
    assert update.action == OutcomeAction.UPDATE
    assert update.record.id == "people/c1"
    assert update.record.display_name == "Ann B. Lee"
    assert update.record.job_title == ""


def test_replace_declined_skips(scripted):
    outcomes = plan_merges(
        [existing_ann()],
        [contact("X", "ann@acme.com")],
        answer=scripted(["replace", "no"]),
    )
    assert outcomes[0].action == OutcomeAction.SKIP
    assert outcomes[0].reason == "replace declined"


def test_auto_merge_plan_updates_first_existing_record():
    first = existing_ann(company_name="")
    second = contact("Ann Again", "ann@acme.com", id="people/c9")
    incoming = [
        contact("Ann Lee", "ann@acme.com", company_name="Acme"),
        contact("Ann Lee", "ANN@acme.com", job_title="Mgr"),
    ]

    outcomes = plan_merges([first, second], incoming)

    assert len(outcomes) == 1
    assert outcomes[0].action == OutcomeAction.UPDATE
    assert outcomes[0].target is first
    assert outcomes[0].record.company_name == "Acme"
    assert outcomes[0].record.job_title == "Mgr"
    assert outcomes[0].sources == incoming


def test_auto_merge_without_new_information_is_a_skip():
    existing = existing_ann()
    outcomes = plan_merges([existing], [contact("Ann Lee", "ann@acme.com")])
    assert outcomes[0].action == OutcomeAction.SKIP
    assert outcomes[0].reason == "no changes"


def test_keys_without_existing_match_are_not_planned():
    assert plan_merges([existing_ann()], [contact("Bob", "bob@example.com")]) == []


def test_skip_and_overwrite_groups():
    existing = [existing_ann()]
    incoming = [contact("Ann", "ann@acme.com")]

    skipped = resolve_group("ann@acme.com", existing, incoming, DuplicateStrategy.SKIP)
    created = resolve_group("ann@acme.com", existing, incoming, DuplicateStrategy.OVERWRITE)

    assert [o.action for o in skipped] == [OutcomeAction.SKIP]
    assert [o.action for o in created] == [OutcomeAction.CREATE]


def test_merged_record_shares_no_lists_with_existing():
    existing = existing_ann(home_phones=["555-0100"])
    merged = auto_merge(existing, contact("Ann Lee", "ann@acme.com", job_title="CTO"))

    merged.home_phones.append("555-0199")
    merged.email_addresses.clear()

    assert existing.home_phones == ["555-0100"]
    assert existing.primary_email == "ann@acme.com"


def test_field_merge_result_shares_no_lists_with_existing():
    existing = existing_ann(home_phones=["555-0100"])
    incoming = contact("Ann Lee", "ann@acme.com", company_name="Beta")
    steps = field_merge_steps(existing, incoming)

    def answers(prompt):
        if isinstance(prompt, FieldPrompt):
            return "new" if prompt.field == "company_name" else "keep"
        return "yes"

    merged = drive_prompts(steps, answers)
    merged.home_phones.append("555-0199")

    assert merged.company_name == "Beta"
    assert existing.home_phones == ["555-0100"]
