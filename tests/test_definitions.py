"""Tests for source definition loading and validation."""

import pytest

from emma_ingestor.definitions import (
    SourceCategory,
    SourceDefinition,
    is_valid_category,
    load_definitions,
    parse_duration,
)
from emma_ingestor.errors import ConfigError


class TestParseDuration:
    """Tests for Go-style duration strings."""

    @pytest.mark.parametrize("text,seconds", [
        ("15s", 15.0),
        ("5m", 300.0),
        ("1h30m", 5400.0),
        ("500ms", 0.5),
        ("1.5h", 5400.0),
        ("2m30s", 150.0),
        ("0", 0.0),
    ])
    def test_valid(self, text, seconds):
        assert parse_duration(text) == pytest.approx(seconds)

    def test_negative(self):
        assert parse_duration("-5s") == -5.0

    @pytest.mark.parametrize("text", ["", "15", "abc", "10x", "s", "1h 30m"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestCategories:

    @pytest.mark.parametrize("category", ["environmental", "health", "infrastructure", "economic", "social"])
    def test_known_categories(self, category):
        assert is_valid_category(category)

    @pytest.mark.parametrize("category", ["weather", "Environmental", "", "finance"])
    def test_unknown_categories(self, category):
        assert not is_valid_category(category)

    def test_values(self):
        assert SourceCategory.values() == ["environmental", "health", "infrastructure", "economic", "social"]


class TestSourceDefinition:
    """Tests for SourceDefinition validation."""

    def test_from_dict(self, source_data):
        definition = SourceDefinition.from_dict(source_data, path="weather.yaml")

        assert definition.name == "weather-station"
        assert definition.type == "http_fetch"
        assert definition.category == "environmental"
        assert definition.interval == 15.0
        assert definition.config["url"] == "https://api.example.com/weather"
        assert definition.path == "weather.yaml"

    @pytest.mark.parametrize("field", ["name", "type", "category", "frequency"])
    def test_missing_required_field(self, source_data, field):
        del source_data[field]
        with pytest.raises(ConfigError) as exc_info:
            SourceDefinition.from_dict(source_data, path="bad.yaml")

        assert exc_info.value.field == field
        assert exc_info.value.path == "bad.yaml"
        assert "bad.yaml" in str(exc_info.value)
        assert f"source {field} cannot be empty" in str(exc_info.value)

    def test_blank_name(self, source_data):
        source_data["name"] = "   "
        with pytest.raises(ConfigError, match="name cannot be empty"):
            SourceDefinition.from_dict(source_data)

    @pytest.mark.parametrize("field,value", [("name", 42), ("frequency", 15), ("type", ["http_fetch"])])
    def test_non_string_field(self, source_data, field, value):
        source_data[field] = value
        with pytest.raises(ConfigError, match=f"source {field} must be a string") as exc_info:
            SourceDefinition.from_dict(source_data)
        assert exc_info.value.field == field

    def test_invalid_category(self, source_data):
        source_data["category"] = "weather"
        with pytest.raises(ConfigError, match="invalid category 'weather'") as exc_info:
            SourceDefinition.from_dict(source_data)
        assert exc_info.value.field == "category"

    @pytest.mark.parametrize("frequency", ["0s", "-5s", "0"])
    def test_non_positive_frequency(self, source_data, frequency):
        source_data["frequency"] = frequency
        with pytest.raises(ConfigError, match="frequency must be positive"):
            SourceDefinition.from_dict(source_data)

    def test_malformed_frequency(self, source_data):
        source_data["frequency"] = "every minute"
        with pytest.raises(ConfigError, match="invalid frequency format") as exc_info:
            SourceDefinition.from_dict(source_data)
        assert exc_info.value.field == "frequency"

    def test_config_must_be_mapping(self, source_data):
        source_data["config"] = ["url"]
        with pytest.raises(ConfigError, match="config must be a mapping"):
            SourceDefinition.from_dict(source_data)

    def test_missing_config_defaults_to_empty(self, source_data):
        del source_data["config"]
        definition = SourceDefinition.from_dict(source_data)
        assert dict(definition.config) == {}

    def test_document_must_be_mapping(self):
        with pytest.raises(ConfigError, match="document must be a mapping"):
            SourceDefinition.from_dict(["not", "a", "mapping"], path="list.yaml")


class TestHandlerConfig:
    """Tests for the per-tick augmented config."""

    def test_merges_source_and_category(self, source_data):
        definition = SourceDefinition.from_dict(source_data)
        config = definition.handler_config()

        assert config["source"] == "weather-station"
        assert config["category"] == "environmental"
        assert config["url"] == "https://api.example.com/weather"

    def test_overrides_author_values(self, source_data):
        source_data["config"]["source"] = "something-else"
        source_data["config"]["category"] = "social"
        config = SourceDefinition.from_dict(source_data).handler_config()

        assert config["source"] == "weather-station"
        assert config["category"] == "environmental"

    def test_read_only_and_does_not_touch_definition(self, source_data):
        definition = SourceDefinition.from_dict(source_data)
        config = definition.handler_config()

        with pytest.raises(TypeError):
            config["url"] = "https://evil.example.com"

        assert "source" not in definition.config
        assert "category" not in definition.config

    def test_fresh_snapshot_each_call(self, source_data):
        definition = SourceDefinition.from_dict(source_data)
        assert definition.handler_config() is not definition.handler_config()


class TestLoadDefinitions:
    """Tests for loading a directory of definitions."""

    def test_loads_recursively(self, tmp_path, write_source, source_data):
        write_source("a.yaml", source_data)
        write_source("nested/b.yml", {**source_data, "name": "second"})
        write_source("notes.txt", "not a source")
        write_source("nested/README.md", "# docs")

        definitions = load_definitions(tmp_path)

        assert sorted(d.name for d in definitions) == ["second", "weather-station"]
        assert all(d.path.endswith((".yaml", ".yml")) for d in definitions)

    def test_empty_directory(self, tmp_path):
        assert load_definitions(tmp_path) == []

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigError, match="sources directory not found"):
            load_definitions(tmp_path / "missing")

    def test_one_bad_file_aborts_load(self, tmp_path, write_source, source_data):
        write_source("good.yaml", source_data)
        bad = write_source("bad.yaml", {**source_data, "name": "bad", "category": "weather"})

        with pytest.raises(ConfigError) as exc_info:
            load_definitions(tmp_path)

        assert str(bad) in str(exc_info.value)
        assert exc_info.value.field == "category"

    def test_unparseable_yaml(self, tmp_path, write_source):
        write_source("broken.yaml", "name: [unclosed\n")
        with pytest.raises(ConfigError, match="failed to parse"):
            load_definitions(tmp_path)

    def test_duplicate_names(self, tmp_path, write_source, source_data):
        write_source("a.yaml", source_data)
        write_source("b.yaml", source_data)

        with pytest.raises(ConfigError, match="duplicate source name 'weather-station'"):
            load_definitions(tmp_path)
