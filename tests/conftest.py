import itertools

import pytest

from contacts_model import ContactFolder, ContactRecord
from contacts_store import DEFAULT_FOLDER_NAME


class InMemoryStore:
    """ContactStore fake: named folders, paging and failure injection."""

    def __init__(self, page_size=2, default_folder_name=DEFAULT_FOLDER_NAME):
        self.page_size = page_size
        self.default_folder_name = default_folder_name
        self.default_contacts = []
        self.groups = {}
        self.failing_folders = set()
        self.fail_list_folders = False
        self.fail_on_create = set()
        self.fail_on_update = set()
        self.created = []
        self.updated = []
        self.list_calls = []
        self._ids = itertools.count(1)
        self._create_calls = 0

    def add(self, folder_name=None, **fields):
        fields.setdefault("id", f"people/c{next(self._ids)}")
        if folder_name is None or folder_name == self.default_folder_name:
            self.default_contacts.append(fields)
        else:
            self.ensure_folder("people/me", folder_name)
            self.groups[self._group_id(folder_name)]["contacts"].append(fields)
        return fields

    @staticmethod
    def _group_id(name):
        return f"contactGroups/{name.lower().replace(' ', '_')}"

    def list_folders(self, user):
        if self.fail_list_folders:
            raise RuntimeError("folder listing unavailable")
        return [
            ContactFolder(id=gid, display_name=g["name"], total_items=len(g["contacts"]))
            for gid, g in self.groups.items()
        ]

    def list_contacts(self, user, folder_id):
        self.list_calls.append(folder_id)
        if folder_id in self.failing_folders:
            raise RuntimeError(f"cannot read {folder_id}")
        contacts = self.default_contacts if folder_id is None else self.groups[folder_id]["contacts"]
        for start in range(0, len(contacts), self.page_size):
            yield [dict(c) for c in contacts[start : start + self.page_size]]

    def create_contact(self, user, folder_id, record):
        self._create_calls += 1
        if self._create_calls in self.fail_on_create:
            raise RuntimeError("quota exceeded")
        created = record.model_copy(update={"id": f"people/new{self._create_calls}"})
        self.created.append((folder_id, created))
        return created

    def update_contact(self, user, existing_id, record):
        if existing_id in self.fail_on_update:
            raise RuntimeError("etag mismatch")
        self.updated.append((existing_id, record))
        return record.model_copy(update={"id": existing_id})

    def ensure_folder(self, user, name):
        if not name or name == self.default_folder_name:
            return None
        gid = self._group_id(name)
        self.groups.setdefault(gid, {"name": name, "contacts": []})
        return gid


class ScriptedAnswers:
    """Answers prompts from a fixed list and remembers what was asked."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {prompt!r}")
        return self.answers.pop(0)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def scripted():
    return ScriptedAnswers


def contact(name="", email=None, **fields):
    if email is not None:
        fields["email_addresses"] = [email]
    return ContactRecord(display_name=name, **fields)
