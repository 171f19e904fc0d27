"""Tests for Settings loading, validation and persistence."""

import json

import pytest

from src.settings import Settings
from src.settings._paths import LOGS_DIR, OUTPUT_DIR, PROJECT_ROOT
from src.utils.exceptions import ConfigError


class TestDefaults:
    """Tests for default values and path helpers."""

    def test_default_values(self):
        """Test the shipped defaults."""
        settings = Settings()
        assert settings.log_level == "INFO"
        assert settings.log_file == "default"
        assert settings.snapshot_retention == 50
        assert settings.custom_container_kinds == []
        assert settings.title_max_length == 200

    def test_default_database_path(self):
        """Test that the default library lives in the output directory."""
        assert Settings().get_database_path() == OUTPUT_DIR / "library.db"

    def test_relative_database_path(self):
        """Test that relative database paths resolve against the project root."""
        settings = Settings(database_path="data/lib.db")
        assert settings.get_database_path() == PROJECT_ROOT / "data" / "lib.db"

    def test_absolute_database_path(self, tmp_path):
        """Test that absolute database paths are used as-is."""
        settings = Settings(database_path=str(tmp_path / "lib.db"))
        assert settings.get_database_path() == tmp_path / "lib.db"

    def test_log_file_default(self):
        """Test that 'default' maps to the output log directory."""
        assert Settings().get_log_file() == LOGS_DIR / "folio.log"

    def test_log_file_disabled(self):
        """Test that None disables file logging."""
        assert Settings(log_file=None).get_log_file() is None

    def test_log_file_custom(self, tmp_path):
        """Test that a custom log path is returned."""
        path = tmp_path / "custom.log"
        assert Settings(log_file=str(path)).get_log_file() == path


class TestValidate:
    """Tests for Settings.validate."""

    def test_defaults_are_valid(self):
        """Test that defaults pass validation unchanged."""
        assert Settings().validate() is False

    def test_invalid_log_level(self):
        """Test that an unknown log level is rejected."""
        with pytest.raises(ValueError, match="log_level"):
            Settings(log_level="LOUD").validate()

    @pytest.mark.parametrize("value", [0, 1001])
    def test_snapshot_retention_range(self, value):
        """Test that retention outside 1..1000 is rejected."""
        with pytest.raises(ValueError, match="snapshot_retention"):
            Settings(snapshot_retention=value).validate()

    def test_title_max_length_range(self):
        """Test that title_max_length outside 1..1000 is rejected."""
        with pytest.raises(ValueError, match="title_max_length"):
            Settings(title_max_length=0).validate()

    def test_empty_database_path(self):
        """Test that an empty database path is rejected."""
        with pytest.raises(ValueError, match="database_path"):
            Settings(database_path="  ").validate()

    def test_custom_kinds_normalized(self):
        """Test that custom kinds are lowercased, stripped and de-duplicated."""
        settings = Settings(custom_container_kinds=[" Saga ", "saga", "mini-series"])
        assert settings.validate() is True
        assert settings.custom_container_kinds == ["saga", "mini-series"]

    @pytest.mark.parametrize("kind", ["", "9lives", "has space", "x" * 41])
    def test_invalid_custom_kind(self, kind):
        """Test that malformed custom kinds are rejected."""
        with pytest.raises(ValueError, match="container kind"):
            Settings(custom_container_kinds=[kind]).validate()

    def test_custom_kinds_must_be_list(self):
        """Test that a non-list value is rejected."""
        with pytest.raises(ValueError, match="must be a list"):
            Settings(custom_container_kinds="saga").validate()  # type: ignore[arg-type]


class TestLoad:
    """Tests for Settings.load."""

    def test_creates_file_with_defaults(self, settings_file):
        """Test that a missing file is created with default values."""
        settings = Settings.load()

        assert settings.snapshot_retention == 50
        assert settings_file.exists()
        assert json.loads(settings_file.read_text())["title_max_length"] == 200

    def test_preserves_custom_values(self, settings_file):
        """Test that stored values survive loading."""
        settings_file.write_text(json.dumps({"snapshot_retention": 7, "log_level": "DEBUG"}))

        settings = Settings.load()

        assert settings.snapshot_retention == 7
        assert settings.log_level == "DEBUG"

    def test_removes_obsolete_keys(self, settings_file):
        """Test that unknown keys are dropped and the file rewritten."""
        settings_file.write_text(json.dumps({"theme": "dark"}))

        Settings.load()

        assert "theme" not in json.loads(settings_file.read_text())

    def test_uses_cache(self, settings_file):
        """Test that repeated loads return the cached instance."""
        first = Settings.load()
        assert Settings.load() is first
        assert Settings.load(use_cache=False) is not first

    def test_invalid_value_raises(self, settings_file):
        """Test that an invalid stored value raises ValueError."""
        settings_file.write_text(json.dumps({"snapshot_retention": 0}))
        with pytest.raises(ConfigError, match="snapshot_retention") as exc_info:
            Settings.load()
        assert isinstance(exc_info.value, ValueError)

    def test_wrong_type_raises_value_error(self, settings_file):
        """Test that a wrongly typed value surfaces as ValueError."""
        settings_file.write_text(json.dumps({"snapshot_retention": "many"}))
        with pytest.raises(ValueError):
            Settings.load()

    def test_corrupt_file_backed_up(self, settings_file):
        """Test that invalid JSON is copied aside and defaults are used."""
        settings_file.write_text("{not json")

        settings = Settings.load()

        assert settings.snapshot_retention == 50
        corrupt = settings_file.with_suffix(".json.corrupt")
        assert corrupt.read_text() == "{not json"

    def test_recovers_from_backup(self, settings_file):
        """Test that a corrupt primary file is recovered from settings.json.bak."""
        settings_file.write_text("{not json")
        settings_file.with_suffix(".json.bak").write_text(json.dumps({"snapshot_retention": 9}))

        settings = Settings.load()

        assert settings.snapshot_retention == 9
        assert json.loads(settings_file.read_text())["snapshot_retention"] == 9


class TestSave:
    """Tests for Settings.save."""

    def test_save_round_trip(self, settings_file):
        """Test that saved values are loaded back."""
        Settings(snapshot_retention=12, custom_container_kinds=["saga"]).save()

        loaded = Settings.load(use_cache=False)

        assert loaded.snapshot_retention == 12
        assert loaded.custom_container_kinds == ["saga"]

    def test_save_creates_backup(self, settings_file):
        """Test that the previous file is kept as settings.json.bak."""
        Settings(snapshot_retention=5).save()
        Settings(snapshot_retention=6).save()

        backup = json.loads(settings_file.with_suffix(".json.bak").read_text())
        assert backup["snapshot_retention"] == 5

    def test_save_validates(self, settings_file):
        """Test that invalid settings are not written."""
        with pytest.raises(ValueError):
            Settings(log_level="LOUD").save()
        assert not settings_file.exists()
