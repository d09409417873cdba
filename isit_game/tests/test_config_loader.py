from pathlib import Path

import isit_game.config.loader as loader


def _write_config(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def test_round_settings_defaults_when_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_CONFIG_PATH", tmp_path / "config.yaml")

    settings = loader.get_round_settings()

    assert settings == {"ttl_seconds": 1800, "max_rounds": 10000}


def test_round_settings_coercion(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "rounds:",
                "  ttl_seconds: \"120\"",
                "  max_rounds: 0",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    settings = loader.get_round_settings()

    assert settings["ttl_seconds"] == 120
    assert settings["max_rounds"] == 10000


def test_progression_settings_coercion(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "progression:",
                "  remote_timeout_seconds: \"abc\"",
                "  listing_path: /browse/",
                "  sign_in_path: login",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    settings = loader.get_progression_settings()

    assert settings["remote_timeout_seconds"] == 5.0
    assert settings["listing_path"] == "/browse"
    assert settings["sign_in_path"] == "/auth"


def test_non_mapping_config_uses_defaults(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "- just\n- a list\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.load_config() == {}
    assert loader.get_access_token_expire_minutes() is None


def test_token_expiry_from_config(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "auth:\n  access_token_expire_minutes: 15\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.get_access_token_expire_minutes() == 15
