"""
Agenda data model.

Entities are persisted as JSON records with camelCase field names, so records
written by earlier versions of the app stay readable. Every dataclass here
round-trips through to_dict()/from_dict(); from_dict() is tolerant of missing
optional fields and fills in defaults.

Cross-entity references (category names, project ids, group ids, parentId)
are soft references: plain strings resolved by lookup at read time.
"""
from enum import Enum
from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any, Union
import time
import uuid


def new_id() -> str:
    """Generate a fresh entity id."""
    return str(uuid.uuid4())


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _epoch_ms(value: Any) -> Optional[int]:
    """Numeric epoch ms, else None (bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return int(value)
    except (ValueError, OverflowError):
        return None


class AttachmentType(Enum):
    LINK = "link"
    FILE = "file"

    @classmethod
    def from_str(cls, value: str) -> "AttachmentType":
        try:
            return cls(value)
        except ValueError:
            return cls.LINK


class GroupRole(Enum):
    ADMIN = "admin"
    MEMBER = "member"

    @classmethod
    def from_str(cls, value: str) -> "GroupRole":
        try:
            return cls(value)
        except ValueError:
            return cls.MEMBER


class TabType(Enum):
    """Kinds of saved view filters."""
    CATEGORY = "category"
    MULTI_CATEGORY = "multi-category"
    PROJECT_CATEGORY = "project-category"
    PROJECT_MULTI_CATEGORY = "project-multi-category"

    @property
    def is_multi(self) -> bool:
        return self in (TabType.MULTI_CATEGORY, TabType.PROJECT_MULTI_CATEGORY)

    @classmethod
    def from_str(cls, value: str) -> "TabType":
        try:
            return cls(value)
        except ValueError:
            return cls.CATEGORY


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Users
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class PublicUser:
    """User profile without credentials. This is what callers and the session see."""
    id: str
    username: str
    company: Optional[str] = None
    photo_b64: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "username": self.username,
            "company": self.company,
            "photoB64": self.photo_b64,
            "email": self.email,
            "phone": self.phone,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PublicUser":
        return cls(
            id=data["id"],
            username=data["username"],
            company=data.get("company"),
            photo_b64=data.get("photoB64"),
            email=data.get("email"),
            phone=data.get("phone"),
        )


@dataclass
class User:
    """Stored account record."""
    id: str
    username: str
    password: str  # plaintext, compared as an opaque string
    company: Optional[str] = None
    photo_b64: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    # Fields a profile update may change
    PROFILE_FIELDS = ("username", "company", "photo_b64", "email", "phone")

    def public(self) -> PublicUser:
        return PublicUser(
            id=self.id,
            username=self.username,
            company=self.company,
            photo_b64=self.photo_b64,
            email=self.email,
            phone=self.phone,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.public().to_dict()
        data["password"] = self.password
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        pub = PublicUser.from_dict(data)
        return cls(
            id=pub.id,
            username=pub.username,
            password=data["password"],
            company=pub.company,
            photo_b64=pub.photo_b64,
            email=pub.email,
            phone=pub.phone,
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Notes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class SharedWith:
    users: List[str] = field(default_factory=list)   # user ids
    groups: List[str] = field(default_factory=list)  # group ids

    def to_dict(self) -> Dict[str, Any]:
        return {"users": list(self.users), "groups": list(self.groups)}

    @classmethod
    def from_dict(cls, data: Any) -> "SharedWith":
        if not isinstance(data, dict):
            return cls()
        return cls(users=_str_list(data.get("users")), groups=_str_list(data.get("groups")))


@dataclass
class Attachment:
    """Link or embedded file owned by a note. content is a URL or a data URL."""
    id: str
    type: AttachmentType
    name: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type.value, "name": self.name, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attachment":
        return cls(
            id=data.get("id") or "",
            type=AttachmentType.from_str(data.get("type", "link")),
            name=data.get("name", ""),
            content=data.get("content", ""),
        )


def _attachments_from(value: Any) -> Optional[List[Attachment]]:
    if not isinstance(value, list):
        return None
    return [Attachment.from_dict(a) for a in value if isinstance(a, dict)]


@dataclass
class NoteDraft:
    """
    A note that has not been stored yet: no id, no createdAt.

    This is also the shape the AI normalizer's output is poured into; the
    store applies no validation beyond the defaults below.
    """
    text: str
    owner_id: str
    owner_name: str
    description: Optional[str] = None
    attachments: Optional[List[Attachment]] = None
    is_completed: bool = False
    date: Optional[str] = None      # YYYY-MM-DD
    time: Optional[str] = None      # HH:MM, 24h
    location: Optional[str] = None
    reminder: Optional[int] = None  # epoch ms
    categories: List[str] = field(default_factory=list)
    shared_with: Optional[SharedWith] = None
    project_ids: Optional[List[str]] = None
    parent_id: Optional[str] = None

    def to_note(self, note_id: str, created_at: int) -> "Note":
        return Note(
            id=note_id,
            text=self.text,
            owner_id=self.owner_id,
            owner_name=self.owner_name,
            created_at=created_at,
            description=self.description,
            attachments=list(self.attachments) if self.attachments is not None else None,
            is_completed=self.is_completed,
            date=self.date,
            time=self.time,
            location=self.location,
            reminder=self.reminder,
            categories=list(self.categories),
            shared_with=self.shared_with or SharedWith(),
            project_ids=list(self.project_ids) if self.project_ids is not None else None,
            parent_id=self.parent_id,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NoteDraft":
        shared = data.get("sharedWith")
        return cls(
            text=data.get("text", ""),
            owner_id=data.get("ownerId", ""),
            owner_name=data.get("ownerName", ""),
            description=data.get("description"),
            attachments=_attachments_from(data.get("attachments")),
            is_completed=bool(data.get("isCompleted", False)),
            date=data.get("date"),
            time=data.get("time"),
            location=data.get("location"),
            reminder=_epoch_ms(data.get("reminder")),
            categories=_str_list(data.get("categories")),
            shared_with=SharedWith.from_dict(shared) if shared is not None else None,
            project_ids=_str_list(data["projectIds"]) if isinstance(data.get("projectIds"), list) else None,
            parent_id=data.get("parentId"),
        )


@dataclass
class Note:
    """A stored note or task. Notes with a parent_id form a forest."""
    id: str
    text: str
    owner_id: str
    owner_name: str
    created_at: int  # epoch ms
    description: Optional[str] = None
    attachments: Optional[List[Attachment]] = None
    is_completed: bool = False
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    reminder: Optional[int] = None
    categories: List[str] = field(default_factory=list)
    shared_with: SharedWith = field(default_factory=SharedWith)
    project_ids: Optional[List[str]] = None
    parent_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "text": self.text,
            "description": self.description,
            "attachments": [a.to_dict() for a in self.attachments] if self.attachments is not None else None,
            "isCompleted": self.is_completed,
            "createdAt": self.created_at,
            "date": self.date,
            "time": self.time,
            "location": self.location,
            "reminder": self.reminder,
            "categories": list(self.categories),
            "ownerId": self.owner_id,
            "ownerName": self.owner_name,
            "sharedWith": self.shared_with.to_dict(),
            "projectIds": list(self.project_ids) if self.project_ids is not None else None,
            "parentId": self.parent_id,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        draft = NoteDraft.from_dict(data)
        created_at = data.get("createdAt")
        return draft.to_note(data["id"], created_at if isinstance(created_at, int) else 0)


@dataclass
class UserNotes:
    """Result of Store.get_notes_for_user()."""
    my_notes: List[Note] = field(default_factory=list)
    shared_notes: List[Note] = field(default_factory=list)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Categories, tabs, projects
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class Category:
    name: str
    color: str  # palette token, e.g. "cat-sky"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "color": self.color}


@dataclass
class CategorySettings:
    """
    A category scope: the full master list plus the active subset.

    Name uniqueness is only checked when a category is added; nothing here
    stops active from naming categories missing from master_list.
    """
    master_list: List[Category] = field(default_factory=list)
    active: List[str] = field(default_factory=list)

    def names(self) -> List[str]:
        return [c.name for c in self.master_list]

    def copy(self) -> "CategorySettings":
        return CategorySettings(
            master_list=[replace(c) for c in self.master_list],
            active=list(self.active),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "masterList": [c.to_dict() for c in self.master_list],
            "active": list(self.active),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategorySettings":
        """Build from the current (already migrated) shape."""
        master = []
        for item in data.get("masterList") or []:
            if isinstance(item, dict) and isinstance(item.get("name"), str):
                master.append(Category(name=item["name"], color=item.get("color", "")))
        return cls(master_list=master, active=_str_list(data.get("active")))


@dataclass
class CustomTab:
    """Saved view filter over one or more category names."""
    id: str
    name: str
    type: TabType
    value: Union[str, List[str]]

    def values(self) -> List[str]:
        return list(self.value) if isinstance(self.value, list) else [self.value]

    def to_dict(self) -> Dict[str, Any]:
        value = list(self.value) if isinstance(self.value, list) else self.value
        return {"id": self.id, "name": self.name, "type": self.type.value, "value": value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomTab":
        value = data.get("value", "")
        if isinstance(value, list):
            value = _str_list(value)
        elif not isinstance(value, str):
            value = str(value)
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            type=TabType.from_str(data.get("type", "category")),
            value=value,
        )


@dataclass
class Project:
    """A project owning its own category scope and view tabs."""
    id: str
    name: str
    owner_id: str
    color: str
    description: Optional[str] = None
    tabs: List[CustomTab] = field(default_factory=list)
    categories: CategorySettings = field(default_factory=CategorySettings)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "ownerId": self.owner_id,
            "color": self.color,
            "tabs": [t.to_dict() for t in self.tabs],
            "categories": self.categories.to_dict(),
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any], categories: Optional[CategorySettings] = None) -> "Project":
        """
        Deserialize from dict. The raw categories value may be a legacy shape;
        callers that care pass the migrated settings in explicitly.
        """
        if categories is None:
            raw = data.get("categories")
            categories = CategorySettings.from_dict(raw) if isinstance(raw, dict) else CategorySettings()
        tabs = data.get("tabs")
        return cls(
            id=data["id"],
            name=data["name"],
            owner_id=data.get("ownerId", ""),
            color=data.get("color", ""),
            description=data.get("description"),
            tabs=[CustomTab.from_dict(t) for t in tabs if isinstance(t, dict)] if isinstance(tabs, list) else [],
            categories=categories,
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Groups
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class GroupMember:
    user_id: str
    role: GroupRole = GroupRole.MEMBER

    def to_dict(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "role": self.role.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupMember":
        return cls(user_id=data.get("userId", ""), role=GroupRole.from_str(data.get("role", "member")))


@dataclass
class Group:
    """
    A sharing group. The owner is an admin member from creation, and
    pending_member_ids never overlaps members.
    """
    id: str
    name: str
    owner_id: str
    members: List[GroupMember] = field(default_factory=list)
    pending_member_ids: List[str] = field(default_factory=list)

    def member_ids(self) -> List[str]:
        return [m.user_id for m in self.members]

    def is_member(self, user_id: str) -> bool:
        return any(m.user_id == user_id for m in self.members)

    def is_admin(self, user_id: str) -> bool:
        return any(m.user_id == user_id and m.role == GroupRole.ADMIN for m in self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ownerId": self.owner_id,
            "members": [m.to_dict() for m in self.members],
            "pendingMemberIds": list(self.pending_member_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Group":
        members = data.get("members")
        return cls(
            id=data["id"],
            name=data["name"],
            owner_id=data.get("ownerId", ""),
            members=[GroupMember.from_dict(m) for m in members if isinstance(m, dict)] if isinstance(members, list) else [],
            pending_member_ids=_str_list(data.get("pendingMemberIds")),
        )
