"""
Unit tests for caller-facing folder and file operations
"""
import pytest

from extensions import db
from models import AccessLevel, AccessLog, File, Folder, PermissionLevel
from services.blob_store import blob_store
from services.errors import (
    Forbidden, InvalidMove, NotFound, PermissionValueInvalid, ValidationFailed
)
from services.permission_store import permission_store
from services.storage_service import storage_service, clean_name


def grant(resource, user, level):
    permission_store.upsert(resource.resource_type, resource.id, user.id, level)
    db.session.commit()


class TestNames:

    @pytest.mark.parametrize("name", ["", "   ", None, "a/b", "a\\b", "..", "x" * 256])
    def test_rejected_names(self, name):
        with pytest.raises(ValidationFailed):
            clean_name(name)

    def test_name_is_stripped(self):
        assert clean_name("  Reports 2024 ") == "Reports 2024"


class TestFolders:

    def test_create_root_folder(self, owner):
        folder = storage_service.create_folder(owner, "Projects")

        assert folder.parent_id is None
        assert folder.owner_id == owner.id
        assert AccessLog.query.filter_by(action="CREATE_FOLDER").count() == 1

    def test_create_subfolder_requires_write_on_parent(self, tree, other):
        with pytest.raises(Forbidden):
            storage_service.create_folder(other, "Intruder", tree['a'].id)

        grant(tree['a'], other, "write")
        folder = storage_service.create_folder(other, "Allowed", tree['a'].id)

        assert folder.parent_id == tree['a'].id
        assert folder.owner_id == other.id

    def test_create_under_missing_parent(self, owner):
        with pytest.raises(NotFound):
            storage_service.create_folder(owner, "Lost", 4242)

    def test_rename(self, tree, owner):
        folder = storage_service.rename_folder(owner, tree['b'].id, "Budget")

        assert folder.name == "Budget"
        entry = AccessLog.query.filter_by(action="RENAME_FOLDER").one()
        assert "was 'B'" in entry.target

    def test_rename_requires_write(self, tree, other):
        grant(tree['b'], other, "read")

        with pytest.raises(Forbidden):
            storage_service.rename_folder(other, tree['b'].id, "Mine")

    def test_move_requires_write_on_both_ends(self, tree, other):
        grant(tree['a2'], other, "write")

        with pytest.raises(Forbidden):
            storage_service.move_folder(other, tree['a2'].id, tree['b'].id)

        grant(tree['b'], other, "write")
        storage_service.move_folder(other, tree['a2'].id, tree['b'].id)
        assert db.session.get(Folder, tree['a2'].id).parent_id == tree['b'].id

    def test_move_into_descendant(self, tree, owner):
        with pytest.raises(InvalidMove):
            storage_service.move_folder(owner, tree['a'].id, tree['a2'].id)

        assert db.session.get(Folder, tree['a'].id).parent_id == tree['root'].id

    def test_delete_requires_full_access(self, tree, owner, other):
        grant(tree['a'], other, "write")
        path = tree['a1_file'].path

        with pytest.raises(Forbidden):
            storage_service.delete_folder(other, tree['a'].id)

        result = storage_service.delete_folder(owner, tree['a'].id)
        assert result.to_dict() == {"folders_deleted": 3, "files_deleted": 1}
        assert not blob_store.exists(path)


class TestListing:

    def test_roots_owned_and_granted(self, tree, owner, other, make_folder):
        theirs = make_folder(other, "Theirs")
        hidden = make_folder(owner, "Hidden")
        grant(hidden, other, "private")

        assert [f.name for f, _ in storage_service.list_roots(owner)] == ["Root", "Hidden"]
        assert [f.name for f, _ in storage_service.list_roots(other)] == ["Theirs"]

        grant(tree['root'], other, "read")
        assert [f.name for f, _ in storage_service.list_roots(other)] == ["Root", "Theirs"]

    def test_shared_entry_points(self, tree, other):
        grant(tree['a1'], other, "read")

        shared = storage_service.list_shared(other)
        assert [f.name for f, _ in shared] == ["A1"]

        grant(tree['root'], other, "read")
        assert storage_service.list_shared(other) == []

    def test_children_hide_unreadable_entries(self, tree, other):
        grant(tree['root'], other, "read")
        grant(tree['b'], other, "private")
        grant(tree['root_file'], other, "private")

        folder, resolution, subfolders, files = storage_service.list_children(other, tree['root'].id)

        assert folder.id == tree['root'].id
        assert resolution.level is AccessLevel.READ
        assert [f.name for f, _ in subfolders] == ["A"]
        assert files == []

    def test_children_of_unreadable_folder(self, tree, other):
        with pytest.raises(Forbidden):
            storage_service.list_children(other, tree['root'].id)

    def test_search_respects_access(self, tree, owner, other, make_file):
        make_file(owner, tree['a2'], 'report-a2.txt')
        make_file(owner, tree['b'], 'report-b.txt')
        grant(tree['root'], other, "read")
        grant(tree['a'], other, "private")

        folders, files = storage_service.search(other, tree['root'].id, "REPORT")
        assert folders == []
        assert [f.name for f, _ in files] == ['report-b.txt']

        folders, files = storage_service.search(owner, tree['root'].id, "report")
        assert sorted(f.name for f, _ in files) == ['report-a2.txt', 'report-b.txt']

    def test_search_matches_folder_names(self, tree, owner):
        folders, _ = storage_service.search(owner, tree['root'].id, "a")

        assert [f.name for f, _ in folders] == ['A', 'A1', 'A2']

    def test_search_needs_a_query(self, tree, owner):
        with pytest.raises(ValidationFailed):
            storage_service.search(owner, tree['root'].id, "  ")


class TestFiles:

    def test_create_and_read(self, tree, owner):
        file = storage_service.create_file(owner, tree['b'].id, "notes.txt", b"# notes")

        assert file.size == 7
        assert file.mime_type == "text/plain"
        loaded, data = storage_service.read_file(owner, file.id)
        assert loaded.id == file.id
        assert data == b"# notes"

    def test_unknown_extension_defaults_to_octet_stream(self, tree, owner):
        file = storage_service.create_file(owner, tree['b'].id, "blob.zzz-unknown", b"\x00")

        assert file.mime_type == "application/octet-stream"

    def test_create_requires_write_on_folder(self, tree, other):
        grant(tree['b'], other, "read")

        with pytest.raises(Forbidden):
            storage_service.create_file(other, tree['b'].id, "x.txt", b"x")
        assert File.query.filter_by(name="x.txt").count() == 0

    def test_read_denied_by_private_file(self, tree, other):
        grant(tree['root'], other, "read")
        grant(tree['b_file'], other, "private")

        with pytest.raises(Forbidden):
            storage_service.read_file(other, tree['b_file'].id)

    def test_delete_requires_write(self, tree, other):
        grant(tree['b'], other, "read")
        with pytest.raises(Forbidden):
            storage_service.delete_file(other, tree['b_file'].id)

        grant(tree['b'], other, "write")
        path = tree['b_file'].path
        file_id = tree['b_file'].id
        storage_service.delete_file(other, file_id)

        assert db.session.get(File, file_id) is None
        assert not blob_store.exists(path)

    def test_missing_file(self, owner):
        with pytest.raises(NotFound):
            storage_service.read_file(owner, 999)


class TestPermissions:

    def test_folder_grant_cascades(self, tree, owner, other):
        affected = storage_service.grant_permission(owner, "folder", tree['a'].id, other.id, "read")

        assert affected == {"folders": 3, "files": 1}
        assert permission_store.get("file", tree['a1_file'].id, other.id) is PermissionLevel.READ

    def test_file_grant_is_single(self, tree, owner, other):
        affected = storage_service.grant_permission(owner, "file", tree['b_file'].id, other.id, "write")

        assert affected == {"folders": 0, "files": 1}
        assert storage_service.resolve_access(other, "file", tree['b_file'].id).level is AccessLevel.WRITE

    def test_grant_requires_full_access(self, tree, other, third):
        grant(tree['a'], other, "write")

        with pytest.raises(Forbidden):
            storage_service.grant_permission(other, "folder", tree['a'].id, third.id, "read")

    def test_delegated_full_access_can_grant(self, tree, owner, other, third):
        storage_service.grant_permission(owner, "folder", tree['a'].id, other.id, "full_access")
        storage_service.grant_permission(other, "folder", tree['a1'].id, third.id, "read")

        assert storage_service.resolve_access(third, "folder", tree['a1'].id).can_read

    def test_invalid_level_checked_first(self, tree, other, third):
        with pytest.raises(PermissionValueInvalid):
            storage_service.grant_permission(other, "folder", tree['a'].id, third.id, "superuser")

    def test_unknown_grantee(self, tree, owner):
        with pytest.raises(NotFound):
            storage_service.grant_permission(owner, "folder", tree['a'].id, 999, "read")

    def test_set_private_does_not_cascade(self, tree, owner, other):
        storage_service.grant_permission(owner, "folder", tree['root'].id, other.id, "read")
        storage_service.set_private(owner, "folder", tree['a'].id, other.id)

        assert permission_store.get("folder", tree['a'].id, other.id) is PermissionLevel.PRIVATE
        assert permission_store.get("folder", tree['a1'].id, other.id) is PermissionLevel.READ
        assert AccessLog.query.filter_by(action="SET_PRIVATE").count() == 1

    def test_list_grants(self, tree, owner, other):
        storage_service.grant_permission(owner, "file", tree['b_file'].id, other.id, "read")

        grants = storage_service.list_grants(owner, "file", tree['b_file'].id)
        assert [(g.user_id, g.permission) for g in grants] == [(other.id, "read")]

        with pytest.raises(Forbidden):
            storage_service.list_grants(other, "file", tree['b_file'].id)

    def test_unknown_resource_type(self, owner):
        with pytest.raises(ValidationFailed):
            storage_service.resolve_access(owner, "drive", 1)
