"""
Agenda store: the single entry point for reading and writing agenda data.

Five ledgers live side by side in one key/value substrate:

  users           accounts (plus the session slot)
  notes           notes and tasks, parent/child forest
  projects        projects with their own category scope and tabs
  groups          sharing groups, roles, join requests
  user_categories general category scope per user

Every operation loads what it needs, applies the change in memory and writes
the whole collection back before returning. Nothing enforces references
between ledgers, so the cascades here (note subtree delete, category scrub,
group scrub, project delete) are what keeps them consistent.

Expected failures (unknown id, duplicate username, stale session) return
None/False and never raise.
"""
import logging
import random
from collections import deque
from typing import Any, Dict, List, Optional, Set

from . import categories as cats
from . import ledger
from . import tabs as tabmod
from .config import AgendaConfig
from .ledger import Ledger, ListSlot, MapSlot, Slot
from .schema import (
    CategorySettings,
    CustomTab,
    Group,
    GroupMember,
    GroupRole,
    Note,
    NoteDraft,
    Project,
    PublicUser,
    SharedWith,
    User,
    UserNotes,
    new_id,
    now_ms,
)
from .storage import Storage, open_storage

logger = logging.getLogger(__name__)


class Store:
    """Domain-consistent access to all agenda ledgers."""

    def __init__(self, storage: Storage, key_prefix: str = "agenda_"):
        """Bind the ledgers to a storage backend."""
        self.storage = storage
        self.key_prefix = key_prefix
        self._users = Ledger(storage, key_prefix + ledger.USERS, ledger.is_user)
        self._notes = Ledger(storage, key_prefix + ledger.NOTES, ledger.is_note, ledger.migrate_note)
        self._groups = Ledger(storage, key_prefix + ledger.GROUPS, ledger.is_group)
        self._projects = Ledger(storage, key_prefix + ledger.PROJECTS, ledger.is_project)
        self._session = Slot(storage, key_prefix + ledger.SESSION)
        self._user_categories = MapSlot(storage, key_prefix + ledger.USER_CATEGORIES)
        self._custom_tabs = ListSlot(storage, key_prefix + ledger.CUSTOM_TABS)

    @classmethod
    def from_config(cls, cfg: AgendaConfig) -> "Store":
        return cls(open_storage(cfg.db_path), key_prefix=cfg.key_prefix)

    # ──────────────────────────────────────────
    # Ledger helpers
    # ──────────────────────────────────────────

    def _load_users(self) -> List[User]:
        return [User.from_dict(r) for r in self._users.load()]

    def _save_users(self, users: List[User]) -> None:
        self._users.save([u.to_dict() for u in users])

    def _load_notes(self) -> List[Note]:
        return [Note.from_dict(r) for r in self._notes.load()]

    def _save_notes(self, notes: List[Note]) -> None:
        self._notes.save([n.to_dict() for n in notes])

    def _load_groups(self) -> List[Group]:
        return [Group.from_dict(r) for r in self._groups.load()]

    def _save_groups(self, groups: List[Group]) -> None:
        self._groups.save([g.to_dict() for g in groups])

    def _load_projects(self) -> List[Project]:
        return [
            Project.from_dict(r, categories=cats.migrate_categories(r.get("categories")))
            for r in self._projects.load()
        ]

    def _save_projects(self, projects: List[Project]) -> None:
        self._projects.save([p.to_dict() for p in projects])

    # ──────────────────────────────────────────
    # Auth & users
    # ──────────────────────────────────────────

    def register(self, username: str, password: str) -> Optional[PublicUser]:
        """Create an account. Returns None if the username is taken (exact match)."""
        users = self._load_users()
        if any(u.username == username for u in users):
            logger.info("Registration rejected: username %r already exists", username)
            return None

        user = User(id=new_id(), username=username, password=password)
        self.save_general_categories(user.id, cats.default_category_settings())
        users.append(user)
        self._save_users(users)
        logger.info("Registered user %s (%s)", username, user.id)
        return user.public()

    def login(self, username: str, password: str) -> Optional[PublicUser]:
        """Check credentials and open a session."""
        for user in self._load_users():
            if user.username == username and user.password == password:
                public = user.public()
                self._session.write(public.to_dict())
                return public
        return None

    def logout(self) -> None:
        self._session.clear()

    def get_current_user(self) -> Optional[PublicUser]:
        """
        The logged-in user, or None.

        A session that does not parse, or that points at a user who no longer
        exists, is cleared.
        """
        data = self._session.read_raw()
        if data is ledger.MISSING:
            return None
        user_id = data.get("id") if isinstance(data, dict) else None
        user = self.get_user(user_id) if isinstance(user_id, str) else None
        if user is None:
            logger.info("Clearing stale session")
            self._session.clear()
            return None
        return user

    def update_user(self, public: PublicUser) -> Optional[PublicUser]:
        """Apply profile fields to the stored account and refresh the session."""
        users = self._load_users()
        for user in users:
            if user.id == public.id:
                break
        else:
            return None

        for name in User.PROFILE_FIELDS:
            setattr(user, name, getattr(public, name))
        self._save_users(users)

        updated = user.public()
        self._session.write(updated.to_dict())
        return updated

    def set_company(self, user_id: str, company: str) -> Optional[Group]:
        """
        Change a user's company and link them to the group of that name.

        Group names match case-insensitively: an existing group gets a join
        request, otherwise a new group owned by the user is created. A blank
        or unchanged company only updates the profile. Returns the group that
        was requested or created.
        """
        user = self.get_user(user_id)
        if user is None:
            return None
        company = company.strip()

        group = None
        if company and company != user.company:
            group = next(
                (g for g in self._load_groups() if g.name.lower() == company.lower()),
                None,
            )
            if group is not None:
                self.request_to_join_group(group.id, user_id)
                logger.info("User %s requested to join company group %s", user_id, group.name)
            else:
                group = self.create_group(company, user_id)
                logger.info("User %s created company group %s", user_id, company)

        user.company = company or None
        self.update_user(user)
        return group

    def get_user(self, user_id: str) -> Optional[PublicUser]:
        for user in self._load_users():
            if user.id == user_id:
                return user.public()
        return None

    def get_all_users(self) -> List[PublicUser]:
        return [u.public() for u in self._load_users()]

    # ──────────────────────────────────────────
    # Notes
    # ──────────────────────────────────────────

    def get_notes_for_user(self, user_id: str) -> UserNotes:
        """
        Split notes into the user's own and those shared with them, directly
        or through a group they belong to. Owned notes are never "shared".
        """
        group_ids = {g.id for g in self.get_groups_for_user(user_id)}
        result = UserNotes()
        for note in self._load_notes():
            if note.owner_id == user_id:
                result.my_notes.append(note)
            elif user_id in note.shared_with.users or group_ids.intersection(note.shared_with.groups):
                result.shared_notes.append(note)
        return result

    def get_notes_shared_by_user(self, user_id: str) -> List[Note]:
        """The user's own notes that are shared with at least one user or group."""
        return [
            n for n in self._load_notes()
            if n.owner_id == user_id and (n.shared_with.users or n.shared_with.groups)
        ]

    def get_note(self, note_id: str) -> Optional[Note]:
        for note in self._load_notes():
            if note.id == note_id:
                return note
        return None

    def get_children(self, note_id: str) -> List[Note]:
        """Direct children of a note."""
        return [n for n in self._load_notes() if n.parent_id == note_id]

    def get_notes_for_project(self, project_id: str) -> List[Note]:
        return [n for n in self._load_notes() if project_id in (n.project_ids or [])]

    def add_note(self, draft: NoteDraft) -> Note:
        """Store a new note with a fresh id and creation time."""
        note = draft.to_note(new_id(), now_ms())
        notes = self._load_notes()
        notes.append(note)
        self._save_notes(notes)
        return note

    def update_note(self, note: Note) -> bool:
        """Replace the stored note with the same id. No-op if it does not exist."""
        notes = self._load_notes()
        for i, existing in enumerate(notes):
            if existing.id == note.id:
                notes[i] = note
                self._save_notes(notes)
                return True
        return False

    def set_note_completed(self, note_id: str, completed: bool = True) -> Optional[Note]:
        note = self.get_note(note_id)
        if note is None:
            return None
        note.is_completed = completed
        self.update_note(note)
        return note

    def delete_note(self, note_id: str) -> Set[str]:
        """
        Delete a note together with all of its descendants.

        Returns the ids that were removed. Cyclic parent references are
        tolerated: each id is visited once.
        """
        notes = self._load_notes()

        children: Dict[str, List[str]] = {}
        for note in notes:
            if note.parent_id:
                children.setdefault(note.parent_id, []).append(note.id)

        doomed = {note_id}
        queue = deque([note_id])
        while queue:
            current = queue.popleft()
            for child_id in children.get(current, []):
                if child_id not in doomed:
                    doomed.add(child_id)
                    queue.append(child_id)

        remaining = [n for n in notes if n.id not in doomed]
        removed = {n.id for n in notes if n.id in doomed}
        self._save_notes(remaining)
        if removed:
            logger.info("Deleted %d note(s) under %s", len(removed), note_id)
        return removed

    def update_note_sharing(self, note_id: str, shared_with: SharedWith) -> Optional[Note]:
        """Replace who a note is shared with."""
        notes = self._load_notes()
        for note in notes:
            if note.id == note_id:
                note.shared_with = SharedWith(users=list(shared_with.users), groups=list(shared_with.groups))
                self._save_notes(notes)
                return note
        return None

    def _scrub_notes(self, mutate) -> int:
        """Apply mutate(note) -> bool to every note, save once. Returns the number changed."""
        notes = self._load_notes()
        changed = sum(1 for n in notes if mutate(n))
        self._save_notes(notes)
        return changed

    # ──────────────────────────────────────────
    # Categories
    # ──────────────────────────────────────────

    def get_general_categories(self, user_id: str) -> CategorySettings:
        """
        The user's general category scope. Seeds the defaults on first access
        and persists a migrated copy when a legacy shape is found.
        """
        all_settings = self._user_categories.load()
        raw = all_settings.get(user_id)
        if raw is None:
            settings = cats.default_category_settings()
            all_settings[user_id] = settings.to_dict()
            self._user_categories.write(all_settings)
            return settings

        settings = cats.migrate_categories(raw)
        if cats.needs_migration(raw):
            logger.info("Migrated legacy general categories for user %s", user_id)
            all_settings[user_id] = settings.to_dict()
            self._user_categories.write(all_settings)
        return settings

    def save_general_categories(self, user_id: str, settings: CategorySettings) -> None:
        all_settings = self._user_categories.load()
        all_settings[user_id] = settings.to_dict()
        self._user_categories.write(all_settings)

    def get_project_categories(self, project_id: str) -> CategorySettings:
        """A project's category scope; empty settings for an unknown project."""
        for raw in self._projects.load():
            if raw["id"] != project_id:
                continue
            settings = cats.migrate_categories(raw.get("categories"))
            if cats.needs_migration(raw.get("categories")):
                logger.info("Migrated legacy categories for project %s", project_id)
                project = Project.from_dict(raw, categories=settings)
                self.update_project(project)
            return settings
        return CategorySettings()

    def _save_scope(self, user_id: str, project_id: Optional[str], settings: CategorySettings) -> bool:
        if project_id is None:
            self.save_general_categories(user_id, settings)
            return True
        project = self._owned_project(user_id, project_id)
        if project is None:
            return False
        project.categories = settings
        return self.update_project(project)

    def _scope(self, user_id: str, project_id: Optional[str]) -> Optional[CategorySettings]:
        if project_id is None:
            return self.get_general_categories(user_id)
        if self._owned_project(user_id, project_id) is None:
            return None
        return self.get_project_categories(project_id)

    def _owned_project(self, user_id: str, project_id: str) -> Optional[Project]:
        for project in self.get_projects_for_user(user_id):
            if project.id == project_id:
                return project
        return None

    def add_category(self, user_id: str, name: str, color: Optional[str] = None,
                     project_id: Optional[str] = None) -> bool:
        """Add a category to the general scope or to one of the user's projects."""
        settings = self._scope(user_id, project_id)
        if settings is None or not cats.add_category(settings, name, color):
            return False
        return self._save_scope(user_id, project_id, settings)

    def toggle_category(self, user_id: str, name: str, project_id: Optional[str] = None) -> Optional[bool]:
        """Flip a category's active flag. Returns the new state, or None for an unknown project."""
        settings = self._scope(user_id, project_id)
        if settings is None:
            return None
        active = cats.toggle_category(settings, name)
        self._save_scope(user_id, project_id, settings)
        return active

    def delete_category(self, user_id: str, name: str, project_id: Optional[str] = None) -> int:
        """
        Remove a category from its scope, then strip it from every note.

        The scrub covers all notes in the ledger, not only the caller's or
        the project's. Returns the number of notes that were changed.
        """
        settings = self._scope(user_id, project_id)
        if settings is not None:
            self._save_scope(user_id, project_id, cats.remove_category(settings, name))

        def strip(note: Note) -> bool:
            if name not in note.categories:
                return False
            note.categories = [c for c in note.categories if c != name]
            return True

        changed = self._scrub_notes(strip)
        logger.info("Deleted category %r (project=%s), scrubbed %d note(s)", name, project_id, changed)
        return changed

    # ──────────────────────────────────────────
    # Groups
    # ──────────────────────────────────────────

    def create_group(self, name: str, owner_id: str) -> Group:
        group = Group(
            id=new_id(),
            name=name,
            owner_id=owner_id,
            members=[GroupMember(user_id=owner_id, role=GroupRole.ADMIN)],
            pending_member_ids=[],
        )
        groups = self._load_groups()
        groups.append(group)
        self._save_groups(groups)
        return group

    def get_group(self, group_id: str) -> Optional[Group]:
        for group in self._load_groups():
            if group.id == group_id:
                return group
        return None

    def get_groups_for_user(self, user_id: str) -> List[Group]:
        """Groups the user is a member of (pending requests do not count)."""
        return [g for g in self._load_groups() if g.is_member(user_id)]

    def get_all_groups(self) -> List[Group]:
        return self._load_groups()

    def update_group(self, group: Group) -> bool:
        """Replace a stored group. Pending ids that are already members are dropped."""
        member_ids = set(group.member_ids())
        group.pending_member_ids = [u for u in group.pending_member_ids if u not in member_ids]
        groups = self._load_groups()
        for i, existing in enumerate(groups):
            if existing.id == group.id:
                groups[i] = group
                self._save_groups(groups)
                return True
        return False

    def request_to_join_group(self, group_id: str, user_id: str) -> bool:
        """Queue a join request. No-op for members and users already pending."""
        group = self.get_group(group_id)
        if group is None or group.is_member(user_id) or user_id in group.pending_member_ids:
            return False
        group.pending_member_ids.append(user_id)
        return self.update_group(group)

    def _resolve_request(self, group_id: str, admin_id: str, user_id: str, approve: bool) -> bool:
        group = self.get_group(group_id)
        if group is None or not group.is_admin(admin_id) or user_id not in group.pending_member_ids:
            return False
        group.pending_member_ids = [u for u in group.pending_member_ids if u != user_id]
        if approve:
            group.members.append(GroupMember(user_id=user_id, role=GroupRole.MEMBER))
        return self.update_group(group)

    def approve_join_request(self, group_id: str, admin_id: str, user_id: str) -> bool:
        return self._resolve_request(group_id, admin_id, user_id, approve=True)

    def reject_join_request(self, group_id: str, admin_id: str, user_id: str) -> bool:
        return self._resolve_request(group_id, admin_id, user_id, approve=False)

    def toggle_member_role(self, group_id: str, user_id: str) -> Optional[GroupRole]:
        """Switch a member between admin and member. Returns the new role."""
        group = self.get_group(group_id)
        if group is None:
            return None
        for member in group.members:
            if member.user_id == user_id:
                member.role = GroupRole.MEMBER if member.role == GroupRole.ADMIN else GroupRole.ADMIN
                self.update_group(group)
                return member.role
        return None

    def delete_group(self, group_id: str) -> int:
        """Remove a group and unshare every note from it. Returns notes changed."""
        self._save_groups([g for g in self._load_groups() if g.id != group_id])

        def unshare(note: Note) -> bool:
            if group_id not in note.shared_with.groups:
                return False
            note.shared_with.groups = [g for g in note.shared_with.groups if g != group_id]
            return True

        changed = self._scrub_notes(unshare)
        logger.info("Deleted group %s, unshared %d note(s)", group_id, changed)
        return changed

    # ──────────────────────────────────────────
    # Projects
    # ──────────────────────────────────────────

    def create_project(self, name: str, description: Optional[str], owner_id: str,
                       categories: Optional[CategorySettings] = None) -> Project:
        project = Project(
            id=new_id(),
            name=name,
            owner_id=owner_id,
            color=random.choice(cats.PROJECT_COLORS),
            description=description,
            tabs=[],
            categories=categories.copy() if categories is not None else CategorySettings(),
        )
        projects = self._load_projects()
        projects.append(project)
        self._save_projects(projects)
        return project

    def get_project(self, project_id: str) -> Optional[Project]:
        for project in self._load_projects():
            if project.id == project_id:
                return project
        return None

    def get_projects_for_user(self, user_id: str) -> List[Project]:
        return [p for p in self._load_projects() if p.owner_id == user_id]

    def update_project(self, project: Project) -> bool:
        projects = self._load_projects()
        for i, existing in enumerate(projects):
            if existing.id == project.id:
                projects[i] = project
                self._save_projects(projects)
                return True
        return False

    def delete_project(self, project_id: str) -> List[str]:
        """
        Remove a project and delete every note associated with it.

        Unlike category deletion, notes are deleted rather than detached,
        including notes that also belong to other projects. Returns the ids
        of the deleted notes.
        """
        self._save_projects([p for p in self._load_projects() if p.id != project_id])
        notes = self._load_notes()
        removed = [n.id for n in notes if project_id in (n.project_ids or [])]
        self._save_notes([n for n in notes if project_id not in (n.project_ids or [])])
        logger.info("Deleted project %s and %d note(s)", project_id, len(removed))
        return removed

    def add_project_tab(self, project_id: str, value: tabmod.TabValue,
                        name: Optional[str] = None) -> Optional[CustomTab]:
        """Add a tab to a project, or return the existing tab with the same id."""
        project = self.get_project(project_id)
        if project is None:
            return None
        project.tabs, selected = tabmod.add_tab(project.tabs, tabmod.make_tab(value, name, project_id))
        self.update_project(project)
        return selected

    def remove_project_tab(self, project_id: str, tab_id: str) -> bool:
        project = self.get_project(project_id)
        if project is None:
            return False
        before = len(project.tabs)
        project.tabs = tabmod.remove_tab(project.tabs, tab_id)
        if len(project.tabs) == before:
            return False
        return self.update_project(project)

    # ──────────────────────────────────────────
    # Dashboard tabs
    # ──────────────────────────────────────────

    def get_custom_tabs(self) -> List[CustomTab]:
        return [CustomTab.from_dict(t) for t in self._custom_tabs.load()]

    def add_custom_tab(self, value: tabmod.TabValue, name: Optional[str] = None) -> CustomTab:
        """Add a dashboard tab, or return the existing tab with the same id."""
        tab_list, selected = tabmod.add_tab(self.get_custom_tabs(), tabmod.make_tab(value, name))
        self._custom_tabs.write([t.to_dict() for t in tab_list])
        return selected

    def remove_custom_tab(self, tab_id: str) -> None:
        remaining = tabmod.remove_tab(self.get_custom_tabs(), tab_id)
        self._custom_tabs.write([t.to_dict() for t in remaining])

    # ──────────────────────────────────────────
    # Diagnostics
    # ──────────────────────────────────────────

    def get_stats(self) -> Dict[str, Any]:
        """Record counts per ledger."""
        notes = self._load_notes()
        return {
            "users": len(self._users.load()),
            "notes": len(notes),
            "notes_completed": sum(1 for n in notes if n.is_completed),
            "groups": len(self._groups.load()),
            "projects": len(self._projects.load()),
            "custom_tabs": len(self._custom_tabs.load()),
            "durable": self.storage.durable,
        }
