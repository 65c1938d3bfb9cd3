import json
import logging
import os
from datetime import datetime

import pandas as pd
import vobject

from contacts_model import ContactRecord

BACKUP_FORMAT_VERSION = 1
MULTI_VALUE_SEPARATOR = ":::"

# ===============================
# 🗺 CSV COLUMN PRESETS
# ===============================
# A mapping value is a column name or a list of candidate columns. Scalar
# fields take the first non-empty column, list fields collect all of them.

CANONICAL_CSV_MAPPING = {
    "display_name": "DisplayName",
    "given_name": "GivenName",
    "middle_name": "MiddleName",
    "surname": "Surname",
    "company_name": "CompanyName",
    "job_title": "JobTitle",
    "department": "Department",
    "email_addresses": ["EmailAddress", "EmailAddress2", "EmailAddress3"],
    "business_phones": ["BusinessPhone", "BusinessPhone2"],
    "home_phones": ["HomePhone", "HomePhone2"],
    "mobile_phone": "MobilePhone",
    "business_street": "BusinessStreet",
    "business_city": "BusinessCity",
    "business_state": "BusinessState",
    "business_postal_code": "BusinessPostalCode",
    "business_country": "BusinessCountry",
    "home_street": "HomeStreet",
    "home_city": "HomeCity",
    "home_state": "HomeState",
    "home_postal_code": "HomePostalCode",
    "home_country": "HomeCountry",
    "personal_notes": "PersonalNotes",
    "birthday": "Birthday",
}

OUTLOOK_CSV_MAPPING = {
    "given_name": "First Name",
    "middle_name": "Middle Name",
    "surname": "Last Name",
    "company_name": "Company",
    "job_title": "Job Title",
    "department": "Department",
    "email_addresses": ["E-mail Address", "E-mail 2 Address", "E-mail 3 Address"],
    "business_phones": ["Business Phone", "Business Phone 2"],
    "home_phones": ["Home Phone", "Home Phone 2"],
    "mobile_phone": "Mobile Phone",
    "business_street": "Business Street",
    "business_city": "Business City",
    "business_state": "Business State",
    "business_postal_code": "Business Postal Code",
    "business_country": "Business Country/Region",
    "home_street": "Home Street",
    "home_city": "Home City",
    "home_state": "Home State",
    "home_postal_code": "Home Postal Code",
    "home_country": "Home Country/Region",
    "personal_notes": "Notes",
    "birthday": "Birthday",
}

GOOGLE_CSV_MAPPING = {
    "display_name": ["Name"],
    "given_name": ["First Name", "Given Name"],
    "middle_name": ["Middle Name", "Additional Name"],
    "surname": ["Last Name", "Family Name"],
    "company_name": ["Organization Name", "Organization 1 - Name"],
    "job_title": ["Organization Title", "Organization 1 - Title"],
    "department": ["Organization Department", "Organization 1 - Department"],
    "email_addresses": [f"E-mail {i} - Value" for i in range(1, 5)],
    "typed_phones": [
        (f"Phone {i} - Value", [f"Phone {i} - Label", f"Phone {i} - Type"]) for i in range(1, 6)
    ],
    "typed_addresses": [f"Address {i}" for i in range(1, 4)],
    "personal_notes": ["Notes"],
    "birthday": ["Birthday"],
}

CSV_PRESETS = {
    "canonical": CANONICAL_CSV_MAPPING,
    "google-csv": GOOGLE_CSV_MAPPING,
    "outlook-csv": OUTLOOK_CSV_MAPPING,
}

_SCALAR_FIELDS = (
    "display_name",
    "given_name",
    "middle_name",
    "surname",
    "company_name",
    "job_title",
    "department",
    "mobile_phone",
    "personal_notes",
    "birthday",
)
_LIST_FIELDS = ("email_addresses", "business_phones", "home_phones")
_ADDRESS_PARTS = ("street", "city", "state", "postal_code", "country")


# ===============================
# 🧠 UTILITIES
# ===============================


def safe_read_csv(path):
    """Read CSV with automatic encoding detection."""
    encodings_to_try = ["utf-8", "utf-8-sig", "utf-16", "cp1252", "latin1"]
    for enc in encodings_to_try:
        try:
            df = pd.read_csv(
                path, dtype=str, encoding=enc, on_bad_lines="skip", engine="python"
            ).fillna("")
            df.columns = [
                c.strip().replace("\ufeff", "").replace("ÿþ", "") for c in df.columns
            ]
            logging.info(f"Successfully read CSV '{path}' with encoding '{enc}'.")
            return df
        except Exception as e:
            logging.warning(
                f"Could not read CSV '{path}' with encoding '{enc}': {e}"
            )
            continue
    raise ValueError(f"Cannot read file {path} with tried encodings.")


def _columns(spec) -> list[str]:
    if not spec:
        return []
    return [spec] if isinstance(spec, str) else list(spec)


def _cell(row, column) -> str:
    value = row.get(column, "")
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def split_multi_values(value: str) -> list[str]:
    parts = value.split(MULTI_VALUE_SEPARATOR) if MULTI_VALUE_SEPARATOR in value else [value]
    return [p.strip() for p in parts if p.strip()]


def _phone_kind(label: str) -> str:
    label = (label or "").lower()
    if "mobile" in label or "cell" in label:
        return "mobile"
    if "home" in label:
        return "home"
    return "business"


def _address_kind(label: str) -> str:
    label = (label or "").lower()
    if "work" in label or "business" in label:
        return "business"
    return "home"


def detect_csv_preset(columns) -> str:
    columns = set(columns)
    if "E-mail Address" in columns or "Business Phone" in columns:
        return "outlook-csv"
    if {"E-mail 1 - Value", "Phone 1 - Value", "Labels"} & columns:
        return "google-csv"
    return "canonical"


def _row_to_record_dict(row, mapping: dict) -> dict:
    data = {}
    for field in _SCALAR_FIELDS:
        for column in _columns(mapping.get(field)):
            if value := _cell(row, column):
                data[field] = value
                break

    for field in _LIST_FIELDS:
        values = []
        for column in _columns(mapping.get(field)):
            for v in split_multi_values(_cell(row, column)):
                if v not in values:
                    values.append(v)
        data[field] = values

    for value_col, label_cols in mapping.get("typed_phones", []):
        label = next((_cell(row, c) for c in _columns(label_cols) if _cell(row, c)), "")
        for number in split_multi_values(_cell(row, value_col)):
            kind = _phone_kind(label)
            if kind == "mobile" and not data.get("mobile_phone"):
                data["mobile_phone"] = number
            elif kind == "home":
                data["home_phones"].append(number)
            else:
                data["business_phones"].append(number)

    for kind in ("business", "home"):
        parts = {p: _cell(row, mapping.get(f"{kind}_{p}", "")) for p in _ADDRESS_PARTS}
        if any(parts.values()):
            data[f"{kind}_address"] = parts

    for prefix in mapping.get("typed_addresses", []):
        label = _cell(row, f"{prefix} - Label") or _cell(row, f"{prefix} - Type")
        parts = {
            "street": _cell(row, f"{prefix} - Street") or _cell(row, f"{prefix} - Formatted"),
            "city": _cell(row, f"{prefix} - City"),
            "state": _cell(row, f"{prefix} - Region"),
            "postal_code": _cell(row, f"{prefix} - Postal Code"),
            "country": _cell(row, f"{prefix} - Country"),
        }
        target = f"{_address_kind(label)}_address"
        if any(parts.values()) and target not in data:
            data[target] = parts

    return data


def _has_content(data: dict) -> bool:
    return any(v for v in data.values())


# ===============================
# 📥 PARSERS
# ===============================


def parse_csv(path, mapping: dict | str | None = None) -> list[ContactRecord]:
    """Turn CSV rows into canonical records using a preset name or a column mapping."""
    logging.info(f"Loading contacts from CSV: '{path}'")
    df = safe_read_csv(path)
    if mapping is None:
        mapping = detect_csv_preset(df.columns)
        logging.info(f"Detected CSV layout '{mapping}'.")
    if isinstance(mapping, str):
        if mapping not in CSV_PRESETS:
            raise ValueError(f"Unknown CSV mapping preset '{mapping}'.")
        mapping = CSV_PRESETS[mapping]

    records = []
    for _, row in df.iterrows():
        data = _row_to_record_dict(row, mapping)
        if not _has_content(data):
            continue
        records.append(ContactRecord.model_validate(data))
    logging.info(f"Loaded {len(records)} contacts from CSV.")
    return records


def _read_text(path) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError:
        with open(path, "r", encoding="utf-8", errors="ignore") as f:
            return f.read()


def split_vcard_blocks(content: str) -> list[str]:
    blocks, current, in_block = [], [], False
    for line in content.replace("\r\n", "\n").split("\n"):
        upper = line.strip().upper()
        if upper == "BEGIN:VCARD":
            current, in_block = [line], True
        elif in_block:
            current.append(line)
            if upper == "END:VCARD":
                blocks.append("\n".join(current))
                current, in_block = [], False
    return blocks


def _text(value) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(v).strip() for v in value if str(v).strip())
    return str(value or "").strip()


def _type_params(line) -> list[str]:
    types = []
    for t in line.params.get("TYPE", []):
        types.extend(p.strip().upper() for p in str(t).split(","))
    return types


def vcard_to_record_dict(card) -> dict:
    contents = card.contents
    data = {
        "email_addresses": [],
        "business_phones": [],
        "home_phones": [],
    }

    if n_lines := contents.get("n"):
        name = n_lines[0].value
        data["given_name"] = _text(name.given)
        data["middle_name"] = _text(name.additional)
        data["surname"] = _text(name.family)
    if fn_lines := contents.get("fn"):
        data["display_name"] = _text(fn_lines[0].value)

    if org_lines := contents.get("org"):
        org = org_lines[0].value
        org = org if isinstance(org, list) else [org]
        data["company_name"] = _text(org[0]) if org else ""
        if len(org) > 1:
            data["department"] = _text(org[1:])
    if title_lines := contents.get("title"):
        data["job_title"] = _text(title_lines[0].value)

    for line in contents.get("email", []):
        if address := _text(line.value):
            data["email_addresses"].append(address)

    for line in contents.get("tel", []):
        number = _text(line.value)
        if not number:
            continue
        types = _type_params(line)
        if "CELL" in types and not data.get("mobile_phone"):
            data["mobile_phone"] = number
        elif "HOME" in types and "WORK" not in types:
            data["home_phones"].append(number)
        else:
            data["business_phones"].append(number)

    for line in contents.get("adr", []):
        adr = line.value
        kind = "business" if "WORK" in _type_params(line) else "home"
        if f"{kind}_address" in data:
            continue
        data[f"{kind}_address"] = {
            "street": _text(adr.street),
            "city": _text(adr.city),
            "state": _text(adr.region),
            "postal_code": _text(adr.code),
            "country": _text(adr.country),
        }

    if note_lines := contents.get("note"):
        data["personal_notes"] = _text(note_lines[0].value)
    if bday_lines := contents.get("bday"):
        data["birthday"] = _text(bday_lines[0].value)

    return data


def parse_vcard(path) -> list[ContactRecord]:
    """Parse a .vcf file block by block so one broken card does not lose the rest."""
    logging.info(f"Loading contacts from vCard: '{path}'")
    content = _read_text(path)
    blocks = split_vcard_blocks(content)
    records = []
    for block_num, block in enumerate(blocks, 1):
        try:
            card = vobject.readOne(block)
            records.append(ContactRecord.model_validate(vcard_to_record_dict(card)))
        except Exception as e:
            logging.warning(f"Could not parse vCard block {block_num} in '{path}': {e}")
    logging.info(f"Loaded {len(records)} of {len(blocks)} vCards.")
    return records


def parse_backup(path) -> list[ContactRecord]:
    logging.info(f"Loading contacts from backup: '{path}'")
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Backup '{path}' is not valid JSON: {e}") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("contacts"), list):
        raise ValueError(f"Backup '{path}' has no contacts list.")
    records = [ContactRecord.model_validate(item) for item in payload["contacts"]]
    logging.info(f"Loaded {len(records)} contacts from backup.")
    return records


def write_backup(records: list[ContactRecord], path) -> None:
    payload = {
        "version": BACKUP_FORMAT_VERSION,
        "exported_at": datetime.now().isoformat(timespec="seconds"),
        "contacts": [r.model_dump(mode="json") for r in records],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    logging.info(f"Wrote {len(records)} contacts to backup '{path}'.")


def parse_file(path, mapping: dict | str | None = None) -> list[ContactRecord]:
    if not path or not os.path.exists(path):
        raise FileNotFoundError(f"'{path}' not found.")
    ext = os.path.splitext(str(path))[1].lower()
    if ext == ".csv":
        return parse_csv(path, mapping)
    if ext in (".vcf", ".vcard"):
        return parse_vcard(path)
    if ext == ".json":
        return parse_backup(path)
    raise ValueError(f"Unsupported file type '{ext}' for '{path}'.")
