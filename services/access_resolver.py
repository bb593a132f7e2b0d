# services/access_resolver.py
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from models import AccessLevel, File, PermissionLevel
from services.hierarchy_store import hierarchy_store
from services.permission_store import permission_store
from utils.performance_logger import (
    performance_monitor, PerformanceTracker, log_permission_query_stats
)


@dataclass
class Resolution:
    """
    Effective access of one user on one resource.

    ``source`` tells which rule decided: "owner", "direct" (explicit grant on
    the resource), "inherited" (a grant or ownership on an ancestor),
    "private" (an explicit private grant on the resource or the ancestor it
    inherits from) or "none". ``decided_by`` is the (resource_type, id) of
    the resource carrying that rule.
    """
    level: AccessLevel = AccessLevel.NONE
    source: str = "none"
    decided_by: Optional[Tuple[str, int]] = None

    @property
    def can_read(self) -> bool:
        return self.level.can_read

    @property
    def can_write(self) -> bool:
        return self.level.can_write

    @property
    def has_full_access(self) -> bool:
        return self.level.has_full_access

    @property
    def is_owner(self) -> bool:
        return self.source == "owner"

    def inherited(self) -> 'Resolution':
        """The resolution as seen by a child with no rule of its own."""
        if self.source in ("none", "private"):
            return self
        return Resolution(self.level, "inherited", self.decided_by)

    def to_dict(self):
        return {
            "permission": self.level.value,
            "source": self.source,
            "can_read": self.can_read,
            "can_write": self.can_write,
            "has_full_access": self.has_full_access,
            "is_owner": self.is_owner,
        }


NO_ACCESS = Resolution()


def _user_id(user) -> int:
    return getattr(user, "id", user)


class AccessResolver:
    """
    Decides what a user may do with a folder or a file.

    Rules, applied from the resource upwards along its inheritance chain
    (file -> folder -> parent folder -> ... -> root):

    1. the owner of a node gets full access, whatever grants exist;
    2. an explicit grant on the node decides: ``private`` denies and stops the
       walk, any other level is returned as is;
    3. otherwise the node inherits from the next one up; past the root there
       is no access.

    Lack of access is a normal result (``AccessLevel.NONE``), never an error.
    """

    def __init__(self, permissions=None, hierarchy=None):
        self.permissions = permissions or permission_store
        self.hierarchy = hierarchy or hierarchy_store

    def apply_rules(self, user_id: int, node, grant: Optional[PermissionLevel],
                    from_parent: Resolution) -> Resolution:
        """Resolve one node given its own grant and its parent's resolution."""
        decided_by = (node.resource_type, node.id)

        if node.is_owned_by(user_id):
            return Resolution(AccessLevel.FULL_ACCESS, "owner", decided_by)

        if grant is PermissionLevel.PRIVATE:
            return Resolution(AccessLevel.NONE, "private", decided_by)

        if grant is not None:
            return Resolution(AccessLevel.from_grant(grant), "direct", decided_by)

        return from_parent.inherited()

    @performance_monitor("AccessResolver.resolve", operation_type="permission")
    def resolve(self, user, resource) -> Resolution:
        user_id = _user_id(user)
        chain = resource.inheritance_chain()
        grants = self._grants_for(chain, user_id)

        resolution = NO_ACCESS
        for node in reversed(chain):
            grant = grants.get((node.resource_type, node.id))
            resolution = self.apply_rules(user_id, node, grant, resolution)
        return resolution

    def effective_permission(self, user, resource) -> AccessLevel:
        return self.resolve(user, resource).level

    def can_read(self, user, resource) -> bool:
        return self.resolve(user, resource).can_read

    def can_write(self, user, resource) -> bool:
        return self.resolve(user, resource).can_write

    def has_full_access(self, user, resource) -> bool:
        return self.resolve(user, resource).has_full_access

    def resolve_children(self, user, folder, parent_resolution: Resolution = None):
        """
        Resolve the direct subfolders and files of ``folder``.

        Returns:
            (folder_resolution, [(subfolder, Resolution)], [(file, Resolution)])
        """
        user_id = _user_id(user)
        with PerformanceTracker("AccessResolver.resolve_children") as tracker:
            if parent_resolution is None:
                parent_resolution = self.resolve(user_id, folder)

            subfolders = list(folder.children)
            files = list(folder.files)
            folder_grants = self.permissions.get_many("folder", [f.id for f in subfolders], user_id)
            file_grants = self.permissions.get_many("file", [f.id for f in files], user_id)

            resolved_folders = [
                (sub, self.apply_rules(user_id, sub, folder_grants.get(sub.id), parent_resolution))
                for sub in subfolders
            ]
            resolved_files = [
                (f, self.apply_rules(user_id, f, file_grants.get(f.id), parent_resolution))
                for f in files
            ]

        log_permission_query_stats(
            user_id=user_id,
            resource_type="folder",
            resource_count=len(subfolders) + len(files),
            duration_ms=tracker.duration_ms,
            query_type="children"
        )
        return parent_resolution, resolved_folders, resolved_files

    def resolve_subtree(self, user, folder):
        """
        Resolve a folder, every descendant folder and every file below it.

        Returns:
            (folders, folder_resolutions, files_by_folder, file_resolutions)
            where ``folders`` is the subtree in pre-order and the resolution
            dicts are keyed by id.
        """
        user_id = _user_id(user)
        with PerformanceTracker("AccessResolver.resolve_subtree") as tracker:
            folders = self.hierarchy.root_and_descendants(folder)
            folder_ids = [f.id for f in folders]
            files = File.query.filter(File.folder_id.in_(folder_ids)).order_by(File.name).all() if folder_ids else []

            folder_grants = self.permissions.get_many("folder", folder_ids, user_id)
            file_grants = self.permissions.get_many("file", [f.id for f in files], user_id)

            folder_resolutions: Dict[int, Resolution] = {}
            for node in folders:
                if node.id == folder.id:
                    folder_resolutions[node.id] = self.resolve(user_id, node)
                    continue
                parent_resolution = folder_resolutions.get(node.parent_id, NO_ACCESS)
                folder_resolutions[node.id] = self.apply_rules(
                    user_id, node, folder_grants.get(node.id), parent_resolution
                )

            files_by_folder: Dict[int, List[File]] = defaultdict(list)
            file_resolutions: Dict[int, Resolution] = {}
            for f in files:
                files_by_folder[f.folder_id].append(f)
                file_resolutions[f.id] = self.apply_rules(
                    user_id, f, file_grants.get(f.id), folder_resolutions[f.folder_id]
                )

        log_permission_query_stats(
            user_id=user_id,
            resource_type="folder_tree",
            resource_count=len(folders) + len(files),
            duration_ms=tracker.duration_ms,
            query_type="subtree"
        )
        return folders, folder_resolutions, files_by_folder, file_resolutions

    def _grants_for(self, chain: Iterable, user_id: int) -> Dict[Tuple[str, int], PermissionLevel]:
        ids_by_type = defaultdict(list)
        for node in chain:
            ids_by_type[node.resource_type].append(node.id)

        grants = {}
        for resource_type, ids in ids_by_type.items():
            for resource_id, level in self.permissions.get_many(resource_type, ids, user_id).items():
                grants[(resource_type, resource_id)] = level
        return grants


access_resolver = AccessResolver()
