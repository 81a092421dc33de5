from __future__ import annotations

import logging
from pathlib import Path

import pytest

from posbackup.database_url import get_database_url, parse_restore_target
from posbackup.errors import ConfigurationMissingError, InvalidPolicyError
from posbackup.settings import BackupSettings, NamingConvention, known_locations, resolve_log_level


def test_defaults_without_environment():
    settings = BackupSettings.load({})

    assert settings.backup_dir == Path("backups")
    assert settings.keep_count == 5
    assert settings.database_url is None
    assert settings.convention == NamingConvention()
    assert settings.log_level == "INFO"


def test_backup_dir_wins_over_location():
    settings = BackupSettings.load({"BACKUP_DIR": "/data/dumps", "BACKUP_LOCATION": "desktop"})

    assert settings.backup_dir == Path("/data/dumps")


def test_named_location_is_resolved():
    settings = BackupSettings.load({"BACKUP_LOCATION": "Documents"})

    assert settings.backup_dir == known_locations()["documents"]


def test_unknown_location_falls_back_to_project():
    settings = BackupSettings.load({"BACKUP_LOCATION": "moon"})

    assert settings.backup_dir == Path("backups")


def test_keep_count_and_convention_from_environment():
    settings = BackupSettings.load(
        {"BACKUP_KEEP_COUNT": "30", "BACKUP_PREFIXES": "nightly-, weekly-", "BACKUP_SUFFIX": ".dump", "LOG_LEVEL": "debug"}
    )

    assert settings.keep_count == 30
    assert settings.convention.prefixes == ("nightly-", "weekly-")
    assert settings.convention.matches("weekly-2024.dump")
    assert not settings.convention.matches("backup-2024.sql")
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("value", ["0", "-3", "five"])
def test_invalid_keep_count_in_environment(value):
    with pytest.raises(InvalidPolicyError):
        BackupSettings.load({"BACKUP_KEEP_COUNT": value})


def test_database_url_prefers_explicit_value():
    env = {"DATABASE_URL": "mysql://a:b@h/db", "DB_NAME": "other"}

    assert get_database_url(env) == "mysql://a:b@h/db"


def test_database_url_assembled_from_parts():
    env = {"DB_NAME": "restaurant_pos", "DB_USER": "pos", "DB_PASSWORD": "p@ss:wd", "DB_HOST": "db"}

    url = get_database_url(env)

    assert url == "mysql://pos:p%40ss%3Awd@db:3306/restaurant_pos"
    target = parse_restore_target(url)
    assert target.password == "p@ss:wd"
    assert target.port == 3306


def test_database_url_missing_without_db_name():
    assert get_database_url({"DB_HOST": "db"}) is None


def test_parse_restore_target_strips_driver_and_defaults_port():
    target = parse_restore_target("postgresql+psycopg2://pos@pg/pos")

    assert target.driver == "postgresql"
    assert target.port == 5432
    assert target.password is None
    assert target.describe() == "postgresql://pos@pg:5432/pos"


def test_restore_target_repr_hides_password():
    target = parse_restore_target("mariadb://pos:hunter2@db/pos")

    assert target.driver == "mysql"
    assert "hunter2" not in repr(target)
    assert "hunter2" not in target.describe()


@pytest.mark.parametrize("url", [None, "   ", "://", "oracle://u:p@h/db", "mysql://u:p@h"])
def test_parse_restore_target_rejects_unusable_urls(url):
    with pytest.raises(ConfigurationMissingError):
        parse_restore_target(url)


def test_resolve_log_level():
    assert resolve_log_level("debug") == logging.DEBUG
    assert resolve_log_level(" WARNING ") == logging.WARNING
    assert resolve_log_level(None) == logging.INFO
    assert resolve_log_level("bavard") == logging.INFO
    assert resolve_log_level("bavard", default=logging.ERROR) == logging.ERROR
