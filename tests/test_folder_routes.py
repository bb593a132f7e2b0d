"""
Tests for the /auth and /folders API routes
"""
from extensions import db
from models import Folder, FolderUserPermission
from services.permission_store import permission_store


def grant(resource, user, level):
    permission_store.upsert(resource.resource_type, resource.id, user.id, level)
    db.session.commit()


class TestAuthRoutes:

    def test_register_then_login(self, client):
        response = client.post('/auth/register', json={'username': 'alice', 'password': 's3cret'})
        assert response.status_code == 201
        assert response.get_json()['user']['username'] == 'alice'

        response = client.post('/auth/login', json={'username': 'alice', 'password': 's3cret'})
        assert response.status_code == 200
        token = response.get_json()['access_token']

        response = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert response.get_json()['username'] == 'alice'

    def test_duplicate_username(self, client, owner):
        response = client.post('/auth/register', json={'username': 'owner', 'password': 'x'})
        assert response.status_code == 409

    def test_bad_credentials(self, client, owner):
        response = client.post('/auth/login', json={'username': 'owner', 'password': 'wrong'})
        assert response.status_code == 401
        assert response.get_json()['msg'] == 'Identifiants invalides'

    def test_missing_token_uses_msg_key(self, client):
        response = client.get('/folders/')
        assert response.status_code == 401
        assert 'msg' in response.get_json()


class TestFolderCrud:

    def test_create_and_list_roots(self, client, owner, headers_for):
        response = client.post('/folders/', json={'name': 'Projects'}, headers=headers_for(owner))
        assert response.status_code == 201
        created = response.get_json()
        assert created['name'] == 'Projects'
        assert created['permissions']['is_owner'] is True

        response = client.get('/folders/', headers=headers_for(owner))
        data = response.get_json()
        assert [f['name'] for f in data['folders']] == ['Projects']
        assert data['shared'] == []

    def test_create_subfolder(self, client, tree, owner, headers_for):
        response = client.post('/folders/', json={'name': 'Sub', 'parent_id': tree['b'].id},
                               headers=headers_for(owner))

        assert response.status_code == 201
        assert response.get_json()['parent_id'] == tree['b'].id

    def test_create_with_fractional_parent_id(self, client, tree, owner, headers_for):
        response = client.post('/folders/', json={'name': 'Sub', 'parent_id': tree['b'].id + 0.9},
                               headers=headers_for(owner))

        assert response.status_code == 400
        assert response.get_json()['msg'] == 'parent_id must be an integer'
        assert Folder.query.filter_by(name='Sub').count() == 0

    def test_create_with_whole_float_parent_id(self, client, tree, owner, headers_for):
        response = client.post('/folders/', json={'name': 'Sub', 'parent_id': float(tree['b'].id)},
                               headers=headers_for(owner))

        assert response.status_code == 201
        assert response.get_json()['parent_id'] == tree['b'].id

    def test_create_with_invalid_name(self, client, owner, headers_for):
        response = client.post('/folders/', json={'name': 'a/b'}, headers=headers_for(owner))

        assert response.status_code == 400
        assert response.get_json()['code'] == 'VALIDATION_FAILED'

    def test_get_folder_with_children(self, client, tree, other, headers_for):
        grant(tree['root'], other, 'read')
        grant(tree['b'], other, 'private')

        response = client.get(f"/folders/{tree['root'].id}", headers=headers_for(other))

        assert response.status_code == 200
        data = response.get_json()
        assert data['folder']['permissions']['permission'] == 'read'
        assert [f['name'] for f in data['subfolders']] == ['A']
        assert [f['name'] for f in data['files']] == ['root.txt']
        assert data['subfolders'][0]['permissions']['source'] == 'inherited'

    def test_get_forbidden_folder(self, client, tree, other, headers_for):
        response = client.get(f"/folders/{tree['root'].id}", headers=headers_for(other))

        assert response.status_code == 403
        assert response.get_json()['code'] == 'FORBIDDEN'

    def test_get_missing_folder(self, client, owner, headers_for):
        response = client.get('/folders/9999', headers=headers_for(owner))

        assert response.status_code == 404
        assert response.get_json()['code'] == 'NOT_FOUND'

    def test_rename(self, client, tree, owner, headers_for):
        response = client.put(f"/folders/{tree['a'].id}", json={'name': 'Archive'},
                              headers=headers_for(owner))

        assert response.status_code == 200
        assert response.get_json()['name'] == 'Archive'

    def test_move_to_root_with_null_parent(self, client, tree, owner, headers_for):
        response = client.put(f"/folders/{tree['a'].id}", json={'parent_id': None},
                              headers=headers_for(owner))

        assert response.status_code == 200
        assert response.get_json()['parent_id'] is None

    def test_move_into_descendant(self, client, tree, owner, headers_for):
        response = client.put(f"/folders/{tree['root'].id}", json={'parent_id': tree['a1'].id},
                              headers=headers_for(owner))

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_MOVE'

    def test_update_without_fields(self, client, tree, owner, headers_for):
        response = client.put(f"/folders/{tree['a'].id}", json={}, headers=headers_for(owner))
        assert response.status_code == 400

    def test_delete(self, client, tree, owner, headers_for):
        a_id = tree['a'].id

        response = client.delete(f"/folders/{a_id}", headers=headers_for(owner))

        assert response.status_code == 200
        assert response.get_json()['folders_deleted'] == 3
        assert db.session.get(Folder, a_id) is None

    def test_delete_needs_full_access(self, client, tree, other, headers_for):
        grant(tree['a'], other, 'write')

        response = client.delete(f"/folders/{tree['a'].id}", headers=headers_for(other))
        assert response.status_code == 403


class TestFolderSearch:

    def test_search(self, client, tree, owner, headers_for):
        response = client.get(f"/folders/{tree['root'].id}/search?query=txt", headers=headers_for(owner))

        data = response.get_json()
        assert response.status_code == 200
        assert sorted(f['name'] for f in data['files']) == ['a1.txt', 'b.txt', 'root.txt']
        assert data['total'] == 3

    def test_search_without_query(self, client, tree, owner, headers_for):
        response = client.get(f"/folders/{tree['root'].id}/search", headers=headers_for(owner))
        assert response.status_code == 400


class TestFolderPermissions:

    def test_grant_cascades(self, client, tree, owner, other, headers_for):
        response = client.post(f"/folders/{tree['a'].id}/permissions",
                               json={'user_id': other.id, 'permissions': 'write'},
                               headers=headers_for(owner))

        assert response.status_code == 200
        assert response.get_json()['affected'] == {'folders': 3, 'files': 1}

        response = client.get(f"/folders/{tree['a2'].id}/access", headers=headers_for(other))
        assert response.get_json()['permission'] == 'write'

    def test_grant_with_invalid_value(self, client, tree, owner, other, headers_for):
        response = client.post(f"/folders/{tree['a'].id}/permissions",
                               json={'user_id': other.id, 'permissions': 'admin'},
                               headers=headers_for(owner))

        assert response.status_code == 400
        assert response.get_json()['code'] == 'PERMISSION_VALUE_INVALID'
        assert FolderUserPermission.query.count() == 0

    def test_grant_without_user(self, client, tree, owner, headers_for):
        response = client.post(f"/folders/{tree['a'].id}/permissions",
                               json={'permissions': 'read'}, headers=headers_for(owner))
        assert response.status_code == 400

    def test_set_private_and_list(self, client, tree, owner, other, headers_for):
        grant(tree['root'], other, 'read')

        response = client.put(f"/folders/{tree['b'].id}/set-private", json={'user_id': other.id},
                              headers=headers_for(owner))
        assert response.status_code == 200

        response = client.get(f"/folders/{tree['b'].id}/permissions", headers=headers_for(owner))
        assert response.get_json()['permissions'] == [
            {'folder_id': tree['b'].id, 'user_id': other.id, 'permission': 'private'}
        ]

        response = client.get(f"/folders/{tree['b'].id}/access", headers=headers_for(other))
        assert response.get_json()['can_read'] is False

    def test_access_of_stranger(self, client, tree, other, headers_for):
        response = client.get(f"/folders/{tree['root'].id}/access", headers=headers_for(other))

        assert response.status_code == 200
        assert response.get_json() == {
            'permission': 'none',
            'source': 'none',
            'can_read': False,
            'can_write': False,
            'has_full_access': False,
            'is_owner': False,
        }

    def test_shared_folder_listed(self, client, tree, owner, other, headers_for):
        client.post(f"/folders/{tree['a1'].id}/permissions",
                    json={'user_id': other.id, 'permissions': 'read'}, headers=headers_for(owner))

        data = client.get('/folders/', headers=headers_for(other)).get_json()
        assert data['folders'] == []
        assert [f['name'] for f in data['shared']] == ['A1']
