import logging
import re
from typing import Iterable, Iterator, Protocol

from contacts_model import ContactFolder, ContactRecord

DEFAULT_USER = "people/me"
DEFAULT_FOLDER_NAME = "Contacts"

PERSON_FIELDS = "names,emailAddresses,phoneNumbers,organizations,addresses,biographies,birthdays,memberships,metadata"
UPDATE_PERSON_FIELDS = "names,emailAddresses,phoneNumbers,organizations,addresses,biographies,birthdays"
CONNECTIONS_PAGE_SIZE = 1000
GROUPS_PAGE_SIZE = 200
BATCH_GET_LIMIT = 200
MAX_GROUP_MEMBERS = 25000

USER_GROUP_TYPE = "USER_CONTACT_GROUP"


class ContactStore(Protocol):
    """What the reconciler needs from a remote address book."""

    def list_folders(self, user: str) -> list[ContactFolder]: ...

    def list_contacts(self, user: str, folder_id: str | None) -> Iterable[list[dict]]: ...

    def create_contact(
        self, user: str, folder_id: str | None, record: ContactRecord
    ) -> ContactRecord: ...

    def update_contact(
        self, user: str, existing_id: str, record: ContactRecord
    ) -> ContactRecord: ...

    def ensure_folder(self, user: str, name: str) -> str | None: ...


# ===============================
# 🔁 PEOPLE API CONVERSION
# ===============================

_PHONE_TYPE_FIELD = {
    "mobile": "mobile_phone",
    "home": "home_phones",
    "work": "business_phones",
    "workmobile": "business_phones",
    "main": "business_phones",
}


def _format_birthday(date: dict | None) -> str:
    if not date or not date.get("month") or not date.get("day"):
        return ""
    if year := date.get("year"):
        return f'{year:04d}-{date["month"]:02d}-{date["day"]:02d}'
    return f'--{date["month"]:02d}-{date["day"]:02d}'


def _parse_birthday(value: str) -> dict | None:
    m = re.match(r"^(\d{4}|-)-?(\d{2})-(\d{2})$", (value or "").strip())
    if not m:
        return None
    date = {"month": int(m.group(2)), "day": int(m.group(3))}
    if m.group(1) != "-":
        date["year"] = int(m.group(1))
    return date


def _address_dict(addr: dict) -> dict:
    return {
        "street": addr.get("streetAddress", ""),
        "city": addr.get("city", ""),
        "state": addr.get("region", ""),
        "postal_code": addr.get("postalCode", ""),
        "country": addr.get("country", ""),
    }


def person_to_record_dict(person: dict) -> dict:
    """Flatten a People API person into the canonical record shape."""
    row = {"id": person.get("resourceName"), "etag": person.get("etag")}

    if names := person.get("names"):
        primary = names[0]
        row["display_name"] = primary.get("displayName", "")
        row["given_name"] = primary.get("givenName", "")
        row["middle_name"] = primary.get("middleName", "")
        row["surname"] = primary.get("familyName", "")

    row["email_addresses"] = [
        {"address": e.get("value", ""), "name": e.get("displayName", "")}
        for e in person.get("emailAddresses", [])
        if e.get("value")
    ]

    business, home, mobile = [], [], ""
    for phone in person.get("phoneNumbers", []):
        value = (phone.get("value") or "").strip()
        if not value:
            continue
        field = _PHONE_TYPE_FIELD.get((phone.get("type") or "").lower(), "business_phones")
        if field == "mobile_phone" and not mobile:
            mobile = value
        elif field == "home_phones":
            home.append(value)
        else:
            business.append(value)
    row["business_phones"] = business
    row["home_phones"] = home
    row["mobile_phone"] = mobile

    if orgs := person.get("organizations"):
        row["company_name"] = orgs[0].get("name", "")
        row["job_title"] = orgs[0].get("title", "")
        row["department"] = orgs[0].get("department", "")

    for addr in person.get("addresses", []):
        kind = (addr.get("type") or "").lower()
        if kind == "work" and "business_address" not in row:
            row["business_address"] = _address_dict(addr)
        elif kind == "home" and "home_address" not in row:
            row["home_address"] = _address_dict(addr)

    if bios := person.get("biographies"):
        row["personal_notes"] = bios[0].get("value", "")

    if birthdays := person.get("birthdays"):
        row["birthday"] = _format_birthday(birthdays[0].get("date"))

    return row


def record_to_person(record: ContactRecord) -> dict:
    body = {
        "names": [
            {
                "givenName": record.given_name,
                "middleName": record.middle_name,
                "familyName": record.surname,
                "unstructuredName": record.display_name,
            }
        ],
        "emailAddresses": [
            {"value": e.address, "type": "work" if i == 0 else "other"}
            for i, e in enumerate(record.email_addresses)
        ],
        "phoneNumbers": [{"value": p, "type": "work"} for p in record.business_phones]
        + [{"value": p, "type": "home"} for p in record.home_phones],
    }
    if record.mobile_phone:
        body["phoneNumbers"].append({"value": record.mobile_phone, "type": "mobile"})

    if record.company_name or record.job_title or record.department:
        body["organizations"] = [
            {
                "name": record.company_name,
                "title": record.job_title,
                "department": record.department,
            }
        ]

    addresses = []
    for kind, addr in (("work", record.business_address), ("home", record.home_address)):
        if addr is None:
            continue
        addresses.append(
            {
                "type": kind,
                "streetAddress": addr.street,
                "city": addr.city,
                "region": addr.state,
                "postalCode": addr.postal_code,
                "country": addr.country,
            }
        )
    if addresses:
        body["addresses"] = addresses

    if record.personal_notes:
        body["biographies"] = [{"value": record.personal_notes, "contentType": "TEXT_PLAIN"}]

    if date := _parse_birthday(record.birthday):
        body["birthdays"] = [{"date": date}]

    return body


def _group_memberships(person: dict) -> set[str]:
    return {
        m["contactGroupMembership"]["contactGroupResourceName"]
        for m in person.get("memberships", [])
        if m.get("contactGroupMembership", {}).get("contactGroupResourceName")
    }


# ===============================
# ☁️ GOOGLE PEOPLE API STORE
# ===============================


class GoogleContactStore:
    """
    Google Contacts as a folder-based address book.

    User contact groups are the named folders; connections that belong to no
    user group make up the default folder.
    """

    def __init__(self, service, default_folder_name: str = DEFAULT_FOLDER_NAME):
        self.service = service
        self.default_folder_name = default_folder_name

    def list_folders(self, user: str = DEFAULT_USER) -> list[ContactFolder]:
        folders = []
        page_token = None
        while True:
            results = (
                self.service.contactGroups()
                .list(
                    pageSize=GROUPS_PAGE_SIZE,
                    pageToken=page_token,
                    groupFields="name,groupType,memberCount",
                )
                .execute()
            )
            for group in results.get("contactGroups", []):
                if group.get("groupType") != USER_GROUP_TYPE or not group.get("name"):
                    continue
                folders.append(
                    ContactFolder(
                        id=group.get("resourceName"),
                        display_name=group.get("name"),
                        total_items=group.get("memberCount", 0),
                    )
                )
            page_token = results.get("nextPageToken")
            if not page_token:
                break
        logging.info(f"Fetched {len(folders)} contact groups.")
        return folders

    def list_contacts(self, user: str, folder_id: str | None) -> Iterator[list[dict]]:
        if folder_id is None:
            yield from self._list_default_folder(user)
        else:
            yield from self._list_group_members(folder_id)

    def _list_default_folder(self, user: str) -> Iterator[list[dict]]:
        user_groups = {f.id for f in self.list_folders(user)}
        next_page_token = None
        fetched = 0
        while True:
            results = (
                self.service.people()
                .connections()
                .list(
                    resourceName=user,
                    pageSize=CONNECTIONS_PAGE_SIZE,
                    personFields=PERSON_FIELDS,
                    pageToken=next_page_token,
                )
                .execute()
            )
            connections = results.get("connections", [])
            fetched += len(connections)
            logging.info(f"Fetched {fetched} connections so far...")
            yield [
                person_to_record_dict(p)
                for p in connections
                if not (_group_memberships(p) & user_groups)
            ]
            next_page_token = results.get("nextPageToken")
            if not next_page_token:
                break

    def _list_group_members(self, folder_id: str) -> Iterator[list[dict]]:
        group = (
            self.service.contactGroups()
            .get(resourceName=folder_id, maxMembers=MAX_GROUP_MEMBERS)
            .execute()
        )
        members = group.get("memberResourceNames", [])
        for start in range(0, len(members), BATCH_GET_LIMIT):
            chunk = members[start : start + BATCH_GET_LIMIT]
            results = (
                self.service.people()
                .getBatchGet(resourceNames=chunk, personFields=PERSON_FIELDS)
                .execute()
            )
            yield [
                person_to_record_dict(r["person"])
                for r in results.get("responses", [])
                if r.get("person")
            ]

    def create_contact(
        self, user: str, folder_id: str | None, record: ContactRecord
    ) -> ContactRecord:
        body = record_to_person(record)
        if folder_id:
            body["memberships"] = [
                {"contactGroupMembership": {"contactGroupResourceName": folder_id}}
            ]
        created = (
            self.service.people()
            .createContact(body=body, personFields=PERSON_FIELDS)
            .execute()
        )
        return record.model_copy(
            update={"id": created.get("resourceName"), "etag": created.get("etag")}
        )

    def update_contact(
        self, user: str, existing_id: str, record: ContactRecord
    ) -> ContactRecord:
        etag = record.etag
        if not etag:
            current = (
                self.service.people()
                .get(resourceName=existing_id, personFields="metadata")
                .execute()
            )
            etag = current.get("etag")
        body = record_to_person(record)
        body["etag"] = etag
        updated = (
            self.service.people()
            .updateContact(
                resourceName=existing_id,
                updatePersonFields=UPDATE_PERSON_FIELDS,
                personFields=PERSON_FIELDS,
                body=body,
            )
            .execute()
        )
        return record.model_copy(
            update={"id": updated.get("resourceName", existing_id), "etag": updated.get("etag")}
        )

    def ensure_folder(self, user: str, name: str) -> str | None:
        if not name or name == self.default_folder_name:
            return None
        for folder in self.list_folders(user):
            if folder.display_name == name:
                return folder.id
        created = (
            self.service.contactGroups()
            .create(body={"contactGroup": {"name": name}})
            .execute()
        )
        logging.info(f"Created contact group '{name}'.")
        return created.get("resourceName")
