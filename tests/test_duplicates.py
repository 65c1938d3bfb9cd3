from conftest import contact

from contacts_duplicates import (
    classify_duplicates,
    find_batch_duplicate_emails,
    find_cross_folder_duplicates,
    find_folder_duplicates,
)
from contacts_index import default_folder


def test_one_duplicate_in_vendors_folder(store):
    store.add("Vendors", display_name="Acme Rep", email_addresses=["rep@acme.com"])
    store.add(display_name="Friend", email_addresses=["friend@example.com"])
    batch = [
        contact("New One", "one@example.com"),
        contact("Acme Rep", "rep@acme.com"),
        contact("New Two", "two@example.com"),
    ]

    report = find_cross_folder_duplicates(store, "people/me", batch)

    assert len(report.unique_contacts) == 2
    assert len(report.duplicate_contacts) == 1
    assert report.duplicate_count == 1
    assert [m.source.folder_name for m in report.matching_existing_contacts] == ["Vendors"]


def test_every_candidate_is_either_unique_or_duplicate():
    existing = [contact("E1", "a@x.com"), contact("E2", "b@x.com")]
    batch = [
        contact("1", "a@x.com"),
        contact("2", "c@x.com"),
        contact("3"),
        contact("4", "B@X.COM"),
        contact("5", "a@x.com"),
    ]
    report = classify_duplicates(existing, batch)
    assert len(report.unique_contacts) + len(report.duplicate_contacts) == len(batch)


def test_record_without_email_is_always_unique():
    existing = [contact("Same Name")]
    report = classify_duplicates(existing, [contact("Same Name")])
    assert len(report.unique_contacts) == 1
    assert report.duplicate_contacts == []


def test_matching_ignores_case_and_whitespace():
    report = classify_duplicates([contact("E", "a@b.com")], [contact("C", " A@B.com ")])
    assert report.duplicate_count == 1


def test_each_existing_match_is_reported_once():
    existing = [contact("E1", "a@x.com"), contact("E2", "a@x.com")]
    batch = [contact("C1", "a@x.com"), contact("C2", "A@x.com")]
    report = classify_duplicates(existing, batch)
    assert report.duplicate_count == 2
    assert [m.display_name for m in report.matching_existing_contacts] == ["E1", "E2"]
    assert list(report.matches_by_key) == ["a@x.com"]


def test_folder_mode_only_sees_that_folder(store):
    store.add("Vendors", display_name="V", email_addresses=["v@example.com"])
    batch = [contact("V", "v@example.com")]

    report = find_folder_duplicates(store, "people/me", default_folder(), batch)

    assert report.duplicate_count == 0
    assert store.list_calls == [None]


def test_batch_duplicate_emails():
    batch = [
        contact("1", "a@x.com"),
        contact("2", "A@x.com"),
        contact("3", "b@x.com"),
        contact("4"),
    ]
    assert find_batch_duplicate_emails(batch) == ["a@x.com"]
