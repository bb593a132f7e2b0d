"""
Pytest configuration and fixtures for backend tests
"""
import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from extensions import db
from models import File, Folder, User
from services.blob_store import blob_store
from services.hierarchy_store import hierarchy_store


@pytest.fixture
def app(tmp_path):
    """Create application for testing on a throwaway SQLite file and storage root"""
    app = create_app(overrides={
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
        'JWT_SECRET_KEY': 'test-secret-key',
        'STORAGE_ROOT': str(tmp_path / 'storage'),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


def _make_user(username):
    user = User(username=username, email=f'{username}@example.com')
    user.set_password(f'{username}_password')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def owner(app):
    return _make_user('owner')


@pytest.fixture
def other(app):
    return _make_user('other')


@pytest.fixture
def third(app):
    return _make_user('third')


@pytest.fixture
def headers_for(app):
    """Authorization headers for a given user"""
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def make_folder(app):
    """Insert a folder straight through the hierarchy store (no access checks)"""
    def _make(owner, name, parent=None):
        folder = Folder(name=name, owner_id=owner.id)
        if parent is None:
            hierarchy_store.append_root(folder)
        else:
            hierarchy_store.append_child(parent, folder)
        db.session.commit()
        return folder
    return _make


@pytest.fixture
def make_file(app):
    """Insert a file with stored content (no access checks)"""
    def _make(owner, folder, name, data=b'content'):
        path = blob_store.write(data)
        file = File(name=name, path=path, size=len(data), mime_type='text/plain',
                    owner_id=owner.id, folder_id=folder.id)
        db.session.add(file)
        db.session.commit()
        return file
    return _make


@pytest.fixture
def tree(owner, make_folder, make_file):
    """
    owner's tree::

        Root
        ├── A
        │   ├── A1   (a1.txt)
        │   └── A2
        └── B        (b.txt)
        root.txt in Root
    """
    root = make_folder(owner, 'Root')
    a = make_folder(owner, 'A', root)
    a1 = make_folder(owner, 'A1', a)
    a2 = make_folder(owner, 'A2', a)
    b = make_folder(owner, 'B', root)
    return {
        'root': root,
        'a': a,
        'a1': a1,
        'a2': a2,
        'b': b,
        'root_file': make_file(owner, root, 'root.txt', b'root data'),
        'a1_file': make_file(owner, a1, 'a1.txt', b'a1 data'),
        'b_file': make_file(owner, b, 'b.txt', b'b data'),
    }
