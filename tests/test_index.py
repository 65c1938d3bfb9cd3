from conftest import contact

from contacts_index import build_cross_folder_index, group_by_identity_key


def test_group_by_identity_key_ignores_case_and_keyless_records():
    records = [
        contact("A", "Ann@Example.com"),
        contact("B", "bob@example.com"),
        contact("A2", "ann@example.com"),
        contact("Nobody"),
    ]
    groups = group_by_identity_key(records)
    assert list(groups) == ["ann@example.com", "bob@example.com"]
    assert [r.display_name for r in groups["ann@example.com"]] == ["A", "A2"]


def test_index_drains_every_page_of_every_folder(store):
    for i in range(5):
        store.add(display_name=f"Default {i}", email_addresses=[f"d{i}@example.com"])
    for i in range(3):
        store.add("Vendors", display_name=f"Vendor {i}", email_addresses=[f"v{i}@example.com"])

    index = build_cross_folder_index(store, "people/me")

    assert len(index.contacts) == 8
    assert index.folder_counts == {"Contacts": 5, "Vendors": 3}
    assert index.failed_folders == []
    vendors = [r for r in index.contacts if r.source.folder_name == "Vendors"]
    assert len(vendors) == 3
    assert vendors[0].source.folder_id == "contactGroups/vendors"


def test_failing_folder_contributes_nothing_and_others_continue(store):
    store.add(display_name="Home", email_addresses=["home@example.com"])
    store.add("Vendors", display_name="V", email_addresses=["v@example.com"])
    store.add("Clients", display_name="C", email_addresses=["c@example.com"])
    store.failing_folders.add("contactGroups/vendors")

    index = build_cross_folder_index(store, "people/me")

    assert index.failed_folders == ["Vendors"]
    assert index.folder_counts["Vendors"] == 0
    assert sorted(r.display_name for r in index.contacts) == ["C", "Home"]


def test_folder_list_failure_falls_back_to_default_folder(store):
    store.add(display_name="Home", email_addresses=["home@example.com"])
    store.add("Vendors", display_name="V", email_addresses=["v@example.com"])
    store.fail_list_folders = True

    index = build_cross_folder_index(store, "people/me")

    assert [r.display_name for r in index.contacts] == ["Home"]
    assert "(folder list)" in index.failed_folders
