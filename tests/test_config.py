from pathlib import Path

import pytest

from dbmd.config import build_url, create_metadata_engine, load_connection_properties
from dbmd.exceptions import ConfigurationError
from dbmd.models import ConnectionProperties


def _write_props(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "conn.props"
    path.write_text(content, encoding="utf-8")
    return path


def test_load_connection_properties(tmp_path: Path) -> None:
    props_path = _write_props(
        tmp_path,
        "db.url=postgresql://localhost:5432/shop\n"
        "db.username=reader\n"
        "db.password=s3cret\n"
        "db.schema=sales\n",
    )

    props = load_connection_properties(props_path)

    assert props.url == "postgresql://localhost:5432/shop"
    assert props.username == "reader"
    assert props.password == "s3cret"
    assert props.schema_name == "sales"


def test_optional_properties_may_be_blank(tmp_path: Path) -> None:
    props = load_connection_properties(_write_props(tmp_path, "db.url=sqlite://\ndb.username=\n"))
    assert props.username is None
    assert props.password is None
    assert props.schema_name is None


def test_missing_file_is_a_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_connection_properties(tmp_path / "missing.props")


def test_missing_url_is_a_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="db.url"):
        load_connection_properties(_write_props(tmp_path, "db.username=reader\n"))


def test_environment_overrides_file_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DBMD_DB_URL", "sqlite:///override.db")
    monkeypatch.setenv("DBMD_DB_PASSWORD", "from-env")
    props = load_connection_properties(_write_props(tmp_path, "db.url=sqlite:///file.db\ndb.password=from-file\n"))
    assert props.url == "sqlite:///override.db"
    assert props.password == "from-env"


def test_environment_can_supply_missing_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DBMD_DB_URL", "sqlite://")
    assert load_connection_properties(_write_props(tmp_path, "db.username=reader\n")).url == "sqlite://"


def test_url_variables_are_expanded(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DBMD_TEST_DATA_DIR", str(tmp_path))
    props = load_connection_properties(_write_props(tmp_path, "db.url=sqlite:///${DBMD_TEST_DATA_DIR}/shop.db\n"))
    assert props.url == f"sqlite:///{tmp_path}/shop.db"


def test_build_url_applies_credentials() -> None:
    url = build_url(ConnectionProperties(url="postgresql://localhost/shop", username="reader", password="pw"))
    assert url.username == "reader"
    assert url.password == "pw"
    assert url.database == "shop"


def test_invalid_url_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        build_url(ConnectionProperties(url="not a url"))


def test_unknown_dialect_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        create_metadata_engine(ConnectionProperties(url="nosuchdialect://localhost/db"))


def test_create_metadata_engine_for_sqlite() -> None:
    engine = create_metadata_engine(ConnectionProperties(url="sqlite://"))
    try:
        assert engine.dialect.name == "sqlite"
    finally:
        engine.dispose()
