import pytest

from db.database import DB_FILE_NAME, connect, initialize_database
from db.queries import add_directory, get_config, set_config


@pytest.fixture
def db_path(tmp_path):
    data_dir = tmp_path / "data"
    db = initialize_database(str(data_dir))
    db.close()
    return str(data_dir / DB_FILE_NAME)


@pytest.fixture
def db(db_path):
    conn = connect(db_path)
    yield conn
    conn.close()


@pytest.fixture
def configure(db):
    def _configure(sources=(), **overrides):
        config = get_config(db)
        for key, value in overrides.items():
            setattr(config, key, value)
        set_config(db, config)
        for source in sources:
            add_directory(db, str(source))
        return get_config(db)

    return _configure


@pytest.fixture
def music(tmp_path):
    root = tmp_path / "music"
    root.mkdir()
    return root
