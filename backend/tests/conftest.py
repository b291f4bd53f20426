import os, sys, pytest
# Ensure backend directory is on path so 'assetcare' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from assetcare import create_app, get_db
from assetcare.models.base import Base
# Import all model modules to ensure tables are registered before create_all
import assetcare.models.asset  # noqa: F401
import assetcare.models.ticket  # noqa: F401
import assetcare.models.rate_limit  # noqa: F401

TEST_SECRET = 'test-secret-key-long-enough-for-hs256-signing'


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'JWT_SECRET_KEY': TEST_SECRET, 'TESTING': True})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def clean_tables(app_instance):
    yield
    session = get_db()
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    # drop identities so reused primary keys never collide with stale objects
    session.close()


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def db_session(app_instance):
    return get_db()
