from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ===============================
# 🗂 FIELD TABLES
# ===============================

# Order matters: this is the order of the interactive field merge.
MERGEABLE_FIELDS = (
    "display_name",
    "company_name",
    "job_title",
    "department",
    "business_phones",
    "mobile_phone",
    "home_phones",
    "personal_notes",
)

COMBINABLE_FIELDS = {"business_phones", "home_phones", "personal_notes"}

LIST_FIELDS = {"email_addresses", "business_phones", "home_phones"}

# Everything a parser can populate; id, etag and source belong to the store.
CONTENT_FIELDS = (
    "display_name",
    "given_name",
    "surname",
    "middle_name",
    "company_name",
    "job_title",
    "department",
    "email_addresses",
    "business_phones",
    "home_phones",
    "mobile_phone",
    "business_address",
    "home_address",
    "personal_notes",
    "birthday",
)

FIELD_LABELS = {
    "display_name": "Display Name",
    "given_name": "Given Name",
    "surname": "Surname",
    "middle_name": "Middle Name",
    "company_name": "Company",
    "job_title": "Job Title",
    "department": "Department",
    "email_addresses": "E-mail Addresses",
    "business_phones": "Business Phones",
    "home_phones": "Home Phones",
    "mobile_phone": "Mobile Phone",
    "business_address": "Business Address",
    "home_address": "Home Address",
    "personal_notes": "Notes",
    "birthday": "Birthday",
}


# ===============================
# 📇 RECORDS
# ===============================


class EmailAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    name: str = ""


class PostalAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""

    def is_empty(self) -> bool:
        return not any(
            (self.street, self.city, self.state, self.postal_code, self.country)
        )

    def formatted(self) -> str:
        locality = " ".join(p for p in [self.postal_code, self.city] if p)
        parts = [self.street, locality, self.state, self.country]
        return ", ".join(p for p in parts if p)


class FolderRef(BaseModel):
    """Where an existing record lives in the remote store."""

    model_config = ConfigDict(frozen=True)

    folder_name: str
    folder_id: str | None = None


class ContactFolder(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None
    display_name: str
    total_items: int = 0
    is_default: bool = False


def synthesize_display_name(given: str, middle: str, surname: str) -> str:
    return " ".join(p.strip() for p in [given, middle, surname] if p and p.strip())


class ContactRecord(BaseModel):
    """
    Canonical contact record shared by parsers, the store and the merge engine.

    Records are frozen. Merges and folder tagging always produce a new record
    through model_copy(update=..., deep=True) so no list is shared.
    """

    model_config = ConfigDict(frozen=True)

    display_name: str = ""
    given_name: str = ""
    surname: str = ""
    middle_name: str = ""
    company_name: str = ""
    job_title: str = ""
    department: str = ""
    email_addresses: list[EmailAddress] = Field(default_factory=list)
    business_phones: list[str] = Field(default_factory=list)
    home_phones: list[str] = Field(default_factory=list)
    mobile_phone: str = ""
    business_address: PostalAddress | None = None
    home_address: PostalAddress | None = None
    personal_notes: str = ""
    birthday: str = ""

    id: str | None = None
    etag: str | None = None
    source: FolderRef | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_display_name(cls, data):
        if not isinstance(data, dict):
            return data
        if str(data.get("display_name") or "").strip():
            return data
        data = dict(data)
        data["display_name"] = synthesize_display_name(
            str(data.get("given_name") or ""),
            str(data.get("middle_name") or ""),
            str(data.get("surname") or ""),
        )
        return data

    @field_validator("email_addresses", mode="before")
    @classmethod
    def _coerce_emails(cls, value):
        if value is None:
            return []
        if isinstance(value, (str, dict, EmailAddress)):
            value = [value]
        out = []
        for item in value:
            if isinstance(item, str):
                item = item.strip()
                if item:
                    out.append({"address": item})
            elif item:
                out.append(item)
        return out

    @field_validator("business_phones", "home_phones", mode="before")
    @classmethod
    def _coerce_phones(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(v).strip() for v in value if v is not None and str(v).strip()]

    @field_validator(
        "display_name",
        "given_name",
        "surname",
        "middle_name",
        "company_name",
        "job_title",
        "department",
        "mobile_phone",
        "personal_notes",
        "birthday",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("business_address", "home_address", mode="after")
    @classmethod
    def _drop_empty_address(cls, value):
        if value is not None and value.is_empty():
            return None
        return value

    @property
    def primary_email(self) -> str | None:
        if not self.email_addresses:
            return None
        return self.email_addresses[0].address

    @property
    def identity_key(self) -> str | None:
        return identity_key(self)

    def tagged(self, folder: FolderRef) -> "ContactRecord":
        return self.model_copy(update={"source": folder}, deep=True)

    def label(self) -> str:
        email = self.primary_email
        if self.display_name and email:
            return f"{self.display_name} <{email}>"
        return self.display_name or email or "<unnamed contact>"


def identity_key(record: ContactRecord) -> str | None:
    """Lowercased, trimmed primary e-mail; None when the record has no e-mail."""
    email = record.primary_email
    if email is None:
        return None
    key = email.strip().lower()
    return key or None


def is_empty_value(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, PostalAddress):
        return value.is_empty()
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False
