from conftest import contact

from contacts_placement import place_contacts, resolve_folder_name

FOLDERS = {"Acme": "X", "Acme Corp": "Y"}


def test_exact_match_beats_earlier_substring_match():
    assert resolve_folder_name(contact("A", company_name="Acme Corp"), FOLDERS, "Contacts") == "Y"


def test_case_insensitive_substring_first_key_wins():
    assert resolve_folder_name(contact("A", company_name="ACME Corporation"), FOLDERS, "Contacts") == "X"


def test_company_contained_in_key_matches():
    folders = {"Globex Holdings": "Globex"}
    assert resolve_folder_name(contact("A", company_name="globex"), folders, "Contacts") == "Globex"


def test_blank_company_and_blank_keys_go_to_default():
    folders = {"": "Nowhere", "  ": "Nowhere"}
    assert resolve_folder_name(contact("A", company_name="Initech"), folders, "Contacts") == "Contacts"
    assert resolve_folder_name(contact("A"), FOLDERS, "Contacts") == "Contacts"


def test_place_contacts_groups_by_folder():
    contacts = [
        contact("A", company_name="Acme"),
        contact("B", company_name="Initech"),
        contact("C", company_name="acme corp"),
    ]
    placed = place_contacts(contacts, FOLDERS, "Contacts")
    assert [c.display_name for c in placed["X"]] == ["A", "C"]
    assert [c.display_name for c in placed["Contacts"]] == ["B"]


def test_place_contacts_key_extracts_the_record():
    pairs = [(1, contact("A", company_name="Initech")), (2, contact("B", company_name="Acme"))]
    placed = place_contacts(pairs, FOLDERS, "Contacts", key=lambda pair: pair[1])
    assert placed == {"Contacts": [pairs[0]], "X": [pairs[1]]}
