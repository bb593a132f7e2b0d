# services/hierarchy_store.py
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set

from sqlalchemy import func

from extensions import db
from models import Folder
from services.errors import InvalidMove

logger = logging.getLogger(__name__)


class HierarchyStore:
    """
    Nested-set index over the ``folders`` table.

    Every folder stores an interval ``[lft, rgt]``; a folder's descendants are
    exactly the folders whose interval lies strictly inside its own, so
    subtree and ancestor lookups are single range queries. Roots share one
    numbering space with disjoint intervals.

    The store issues range updates inside the current session transaction and
    never commits: the transaction script calling it decides when the whole
    change becomes visible.
    """

    TREE_STATE = ["lft", "rgt", "parent", "children"]

    # ------------------------------------------------------------------ reads

    def descendants(self, folder: Folder) -> List[Folder]:
        return (Folder.query
                .filter(Folder.lft > folder.lft, Folder.rgt < folder.rgt)
                .order_by(Folder.lft)
                .all())

    def descendant_ids(self, folder: Folder) -> Set[int]:
        rows = (db.session.query(Folder.id)
                .filter(Folder.lft > folder.lft, Folder.rgt < folder.rgt)
                .all())
        return {row.id for row in rows}

    def root_and_descendants(self, folder: Folder) -> List[Folder]:
        """The folder followed by its whole subtree, in pre-order."""
        return (Folder.query
                .filter(Folder.lft >= folder.lft, Folder.rgt <= folder.rgt)
                .order_by(Folder.lft)
                .all())

    def ancestors(self, folder: Folder, include_self: bool = False) -> List[Folder]:
        """Ancestors nearest first, optionally starting with the folder itself."""
        if include_self:
            query = Folder.query.filter(Folder.lft <= folder.lft, Folder.rgt >= folder.rgt)
        else:
            query = Folder.query.filter(Folder.lft < folder.lft, Folder.rgt > folder.rgt)
        return query.order_by(Folder.lft.desc()).all()

    def is_descendant(self, folder: Folder, candidate: Folder) -> bool:
        return folder.lft < candidate.lft and candidate.rgt < folder.rgt

    # -------------------------------------------------------------- mutations

    def append_root(self, folder: Folder) -> Folder:
        db.session.flush()
        right = self._max_right()
        folder.parent_id = None
        folder.lft = right + 1
        folder.rgt = right + 2
        db.session.add(folder)
        db.session.flush()
        return folder

    def append_child(self, parent: Folder, folder: Folder) -> Folder:
        """Insert ``folder`` as the last child of ``parent``."""
        db.session.flush()
        position = parent.rgt
        self._open_gap(position, 2)
        parent_id = parent.id

        folder.parent_id = parent_id
        folder.lft = position
        folder.rgt = position + 1
        db.session.add(folder)
        db.session.flush()
        self._expire_tree_state()
        return folder

    def move(self, folder: Folder, new_parent: Optional[Folder] = None) -> Folder:
        """
        Re-parent ``folder`` (with its subtree) as the last child of
        ``new_parent``, or as a new root when ``new_parent`` is None.

        Raises:
            InvalidMove: if ``new_parent`` is the folder or one of its descendants
        """
        db.session.flush()

        if new_parent is not None:
            if new_parent.id == folder.id or self.is_descendant(folder, new_parent):
                raise InvalidMove(
                    f"Cannot move folder '{folder.name}' into itself or one of its descendants"
                )
            if folder.parent_id == new_parent.id:
                return folder
        elif folder.parent_id is None:
            return folder

        left, right = folder.lft, folder.rgt
        width = right - left + 1

        # Park the subtree on negative bounds while the rest is renumbered
        Folder.query.filter(Folder.lft >= left, Folder.rgt <= right).update(
            {Folder.lft: -Folder.lft, Folder.rgt: -Folder.rgt},
            synchronize_session=False
        )
        self._shift_after(right, -width)
        self._expire_tree_state()

        if new_parent is not None:
            position = new_parent.rgt
            self._open_gap(position, width)
        else:
            position = self._max_right() + 1

        offset = position - left
        Folder.query.filter(Folder.lft < 0).update(
            {Folder.lft: offset - Folder.lft, Folder.rgt: offset - Folder.rgt},
            synchronize_session=False
        )

        folder.parent_id = new_parent.id if new_parent is not None else None
        db.session.flush()
        self._expire_tree_state()

        logger.debug(f"Moved folder {folder.id} from [{left}, {right}] to [{position}, {position + width - 1}]")
        return folder

    def close_gap(self, left: int, right: int) -> None:
        """Renumber after the interval ``[left, right]`` has been deleted."""
        self._shift_after(right, -(right - left + 1))
        self._expire_tree_state()

    # ----------------------------------------------------------- maintenance

    def rebuild(self) -> int:
        """
        Recompute every interval from ``parent_id`` links.

        Folders whose parent does not exist, or that sit on a parent cycle,
        are re-attached as roots.

        Returns:
            Number of folders renumbered
        """
        db.session.flush()
        rows = db.session.query(Folder.id, Folder.parent_id).order_by(Folder.lft, Folder.id).all()
        known = {row.id for row in rows}

        children: Dict[Optional[int], List[int]] = defaultdict(list)
        orphans = set()
        for row in rows:
            parent_id = row.parent_id
            if parent_id is not None and parent_id not in known:
                logger.warning(f"Folder {row.id} points to missing parent {parent_id}, re-attaching it as a root")
                orphans.add(row.id)
                parent_id = None
            children[parent_id].append(row.id)

        mappings = []
        visited: Set[int] = set()
        counter = 0

        def walk(root_id, detach):
            nonlocal counter
            lefts = {}
            stack = [(root_id, False)]
            while stack:
                folder_id, leaving = stack.pop()
                if leaving:
                    counter += 1
                    mappings.append({"id": folder_id, "lft": lefts[folder_id], "rgt": counter})
                    continue
                if folder_id in visited:
                    continue
                visited.add(folder_id)
                counter += 1
                lefts[folder_id] = counter
                stack.append((folder_id, True))
                stack.extend((child_id, False) for child_id in reversed(children[folder_id]))
            if detach:
                mappings[-1]["parent_id"] = None

        for root_id in children[None]:
            walk(root_id, detach=root_id in orphans)

        for row in rows:
            if row.id not in visited:
                logger.warning(f"Folder {row.id} is not reachable from a root, re-attaching it as a root")
                walk(row.id, detach=True)

        if mappings:
            db.session.bulk_update_mappings(Folder, mappings)
            db.session.flush()
        self._expire_tree_state()
        return len(mappings)

    def verify(self) -> List[str]:
        """
        Check the nested-set invariants against the parent links.

        Returns:
            A list of human readable problems, empty when the tree is sound
        """
        db.session.flush()
        rows = (db.session.query(Folder.id, Folder.parent_id, Folder.lft, Folder.rgt)
                .order_by(Folder.lft)
                .all())
        problems = []

        bounds_seen = set()
        for row in rows:
            if row.lft >= row.rgt:
                problems.append(f"Folder {row.id} has an empty interval [{row.lft}, {row.rgt}]")
            for bound in (row.lft, row.rgt):
                if bound in bounds_seen:
                    problems.append(f"Bound {bound} is used more than once")
                bounds_seen.add(bound)

        open_intervals = []
        for row in rows:
            while open_intervals and open_intervals[-1].rgt < row.lft:
                open_intervals.pop()
            enclosing = open_intervals[-1] if open_intervals else None

            if enclosing is not None and enclosing.rgt < row.rgt:
                problems.append(f"Folder {row.id} overlaps folder {enclosing.id}")
            expected_parent = enclosing.id if enclosing is not None else None
            if row.parent_id != expected_parent:
                problems.append(
                    f"Folder {row.id} has parent {row.parent_id} but its interval "
                    f"is directly inside {expected_parent}"
                )
            open_intervals.append(row)

        return problems

    # -------------------------------------------------------------- internals

    def _max_right(self) -> int:
        return db.session.query(func.max(Folder.rgt)).filter(Folder.rgt > 0).scalar() or 0

    def _open_gap(self, position: int, width: int) -> None:
        Folder.query.filter(Folder.lft >= position).update(
            {Folder.lft: Folder.lft + width}, synchronize_session=False
        )
        Folder.query.filter(Folder.rgt >= position).update(
            {Folder.rgt: Folder.rgt + width}, synchronize_session=False
        )
        self._expire_tree_state()

    def _shift_after(self, right: int, delta: int) -> None:
        Folder.query.filter(Folder.lft > right).update(
            {Folder.lft: Folder.lft + delta}, synchronize_session=False
        )
        Folder.query.filter(Folder.rgt > right).update(
            {Folder.rgt: Folder.rgt + delta}, synchronize_session=False
        )

    def _expire_tree_state(self) -> None:
        # Range updates bypass the identity map; loaded folders must reload their bounds.
        for obj in list(db.session.identity_map.values()):
            if isinstance(obj, Folder):
                db.session.expire(obj, self.TREE_STATE)


hierarchy_store = HierarchyStore()
