import json

import pytest

from contacts_parsers import (
    detect_csv_preset,
    parse_backup,
    parse_csv,
    parse_file,
    parse_vcard,
    split_multi_values,
    split_vcard_blocks,
)

VCARDS = """BEGIN:VCARD
VERSION:3.0
N:Lee;Ann;;;
FN:Ann Lee
ORG:Acme;Sales
TITLE:Manager
EMAIL;TYPE=INTERNET:ann@example.com
TEL;TYPE=CELL:555-2000
TEL;TYPE=WORK:555-2001
ADR;TYPE=WORK:;;1 Main St;Springfield;IL;62701;USA
NOTE:Met at expo
END:VCARD
BEGIN:VCARD
VERSION:3.0
FN:Broken
this line is not a property
END:VCARD
BEGIN:VCARD
VERSION:3.0
N:Ray;Bob;;;
FN:Bob Ray
EMAIL:bob@example.com
END:VCARD
"""


def test_canonical_csv(tmp_path):
    path = tmp_path / "contacts.csv"
    path.write_text(
        "DisplayName,EmailAddress,CompanyName,BusinessPhone,BusinessCity\n"
        "Ann Lee,ann@example.com,Acme,555-0001:::555-0002,Springfield\n"
        ",,,,\n",
        encoding="utf-8",
    )

    records = parse_csv(path)

    assert len(records) == 1
    ann = records[0]
    assert ann.display_name == "Ann Lee"
    assert ann.primary_email == "ann@example.com"
    assert ann.business_phones == ["555-0001", "555-0002"]
    assert ann.business_address.city == "Springfield"


def test_outlook_csv_is_detected_and_names_are_combined(tmp_path):
    path = tmp_path / "outlook.csv"
    path.write_text(
        "First Name,Last Name,E-mail Address,Company,Mobile Phone\n"
        "Jane,Doe,jane@example.com,Initech,555-3000\n",
        encoding="utf-8",
    )

    records = parse_csv(path)

    assert records[0].display_name == "Jane Doe"
    assert records[0].company_name == "Initech"
    assert records[0].mobile_phone == "555-3000"


def test_google_csv_typed_phones(tmp_path):
    path = tmp_path / "google.csv"
    path.write_text(
        "Name,Given Name,Family Name,E-mail 1 - Value,Phone 1 - Type,Phone 1 - Value,Phone 2 - Type,Phone 2 - Value\n"
        "Bob Ray,Bob,Ray,bob@example.com,Mobile,555-1000,Home,555-1001\n",
        encoding="utf-8",
    )

    records = parse_csv(path, "google-csv")

    bob = records[0]
    assert bob.display_name == "Bob Ray"
    assert bob.mobile_phone == "555-1000"
    assert bob.home_phones == ["555-1001"]


def test_unknown_preset_is_rejected(tmp_path):
    path = tmp_path / "c.csv"
    path.write_text("DisplayName\nAnn\n", encoding="utf-8")
    with pytest.raises(ValueError):
        parse_csv(path, "thunderbird")


def test_detect_csv_preset():
    assert detect_csv_preset(["DisplayName", "EmailAddress"]) == "canonical"
    assert detect_csv_preset(["E-mail Address"]) == "outlook-csv"
    assert detect_csv_preset(["E-mail 1 - Value"]) == "google-csv"


def test_split_multi_values():
    assert split_multi_values("a ::: b:::") == ["a", "b"]
    assert split_multi_values("single") == ["single"]


def test_vcard_skips_broken_blocks(tmp_path):
    path = tmp_path / "cards.vcf"
    path.write_text(VCARDS, encoding="utf-8")

    assert len(split_vcard_blocks(VCARDS)) == 3
    records = parse_vcard(path)

    assert [r.display_name for r in records] == ["Ann Lee", "Bob Ray"]
    ann = records[0]
    assert ann.given_name == "Ann"
    assert ann.surname == "Lee"
    assert ann.company_name == "Acme"
    assert ann.department == "Sales"
    assert ann.job_title == "Manager"
    assert ann.mobile_phone == "555-2000"
    assert ann.business_phones == ["555-2001"]
    assert ann.business_address.city == "Springfield"
    assert ann.personal_notes == "Met at expo"


def test_backup_errors(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    empty = tmp_path / "empty.json"
    empty.write_text(json.dumps({"version": 1}), encoding="utf-8")

    with pytest.raises(ValueError):
        parse_backup(bad)
    with pytest.raises(ValueError):
        parse_backup(empty)


def test_parse_file_dispatch_errors(tmp_path):
    other = tmp_path / "contacts.txt"
    other.write_text("hello", encoding="utf-8")

    with pytest.raises(ValueError):
        parse_file(other)
    with pytest.raises(FileNotFoundError):
        parse_file(tmp_path / "nope.vcf")
