"""Tests for Configuration."""

from pathlib import Path

import pytest

from thumbnailer.config import CONFIG_ENV_VAR, Configuration
from thumbnailer.exceptions import ConfigurationError


class TestConfiguration:
    """Tests for reading and writing properties."""

    def test_nested_keys_are_flattened(self) -> None:
        config = Configuration({"endpoint": {"thumbnailer": {"format": "png"}}})
        assert config.get_string("endpoint.thumbnailer.format") == "png"
        assert config.keys() == {"endpoint.thumbnailer.format"}

    def test_defaults(self) -> None:
        config = Configuration()
        assert config.get_string("missing", "jpg") == "jpg"
        assert config.get_int("missing") is None
        assert config.get_bool("missing") is False
        assert not config.has("missing")

    def test_typed_getters(self) -> None:
        config = Configuration({"a": "42", "b": "1.5", "c": "yes", "d": False, "e": 7})
        assert config.get_int("a") == 42
        assert config.get_float("b") == 1.5
        assert config.get_bool("c") is True
        assert config.get_bool("d") is False
        assert config.get_string("e") == "7"

    @pytest.mark.parametrize(
        ("method", "value"), [("get_int", "many"), ("get_float", "x"), ("get_bool", "maybe")]
    )
    def test_invalid_values(self, method: str, value: str) -> None:
        config = Configuration({"key": value})
        with pytest.raises(ConfigurationError):
            getattr(config, method)("key")

    def test_set_and_clear(self) -> None:
        config = Configuration()
        config.set_property("endpoint.thumbnailer.format", "gif")
        assert config.get("endpoint.thumbnailer.format") == "gif"

        config.clear_property("endpoint.thumbnailer.format")
        assert not config.has("endpoint.thumbnailer.format")

        config.set_property("x", 1)
        config.clear()
        assert config.keys() == set()


class TestYaml:
    """Tests for YAML-backed configuration."""

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "thumbnailer.yaml"
        path.write_text("endpoint:\n  thumbnailer:\n    format: webp\nsource.static: http\n")

        config = Configuration.from_yaml(path)

        assert config.get_string("endpoint.thumbnailer.format") == "webp"
        assert config.get_string("source.static") == "http"

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Configuration.from_yaml(path).keys() == set()

    def test_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "thumbnailer.yaml"
        path.write_text("endpoint.thumbnailer.format: png\n")
        config = Configuration.from_yaml(path)

        path.write_text("endpoint.thumbnailer.format: gif\n")
        config.reload()

        assert config.get_string("endpoint.thumbnailer.format") == "gif"

    @pytest.mark.parametrize("content", ["- a\n- b\n", "key: [unclosed\n"])
    def test_invalid_file(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            Configuration.from_yaml(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            Configuration.from_yaml(tmp_path / "missing.yaml")


class TestApplicationConfiguration:
    """Tests for the process-wide configuration."""

    def test_set_application(self, app_config: Configuration) -> None:
        assert Configuration.for_application() is app_config

    def test_loaded_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "thumbnailer.yaml"
        path.write_text("endpoint.thumbnailer.format: tif\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        Configuration.set_application(None)

        config = Configuration.for_application()

        assert config.path == path
        assert config.get_string("endpoint.thumbnailer.format") == "tif"
        assert Configuration.for_application() is config

    def test_empty_without_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        Configuration.set_application(None)
        assert Configuration.for_application().keys() == set()
