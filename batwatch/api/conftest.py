import pytest

from batwatch.api.web import create_app
from batwatch.core.bus import SQLiteBus


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / "events.db")


@pytest.fixture()
def bus(db_path):
    return SQLiteBus(db_path)


@pytest.fixture()
def client(tmp_path, db_path):
    config = tmp_path / "config.toml"
    config.write_text(
        f'[watcher]\ninterval_s = 30\n\n[display]\nimage_path = "{tmp_path / "alert.png"}"\n',
        encoding="utf-8",
    )
    app = create_app(config_path=str(config), db_path=db_path)
    app.config["TESTING"] = True
    return app.test_client()
