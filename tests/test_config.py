from pathlib import Path

from yolink_exporter.config import load_config


def test_load_config_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "yolink-exporter.cfg", environ={})

    assert config.server.host == "0.0.0.0"
    assert config.server.port == 8080
    assert config.api.endpoint == "https://api.yosmart.com"
    assert config.api.key is None
    assert config.api.secret is None
    assert not config.api.has_credentials
    assert config.api.request_timeout_seconds == 30.0
    assert config.api.token_safety_buffer_seconds == 60
    assert config.scrape.interval_seconds == 60
    assert config.logging.level == "INFO"
    assert config.logging.path is None


def test_load_config_reads_file(tmp_path: Path) -> None:
    config_path = tmp_path / "yolink-exporter.cfg"
    config_path.write_text(
        """
[server]
host = 127.0.0.1
port = 9101

[api]
key = file-key
secret = p%ss
endpoint = https://api.example.com

[scrape]
interval = 120

[logging]
level = DEBUG
path = ~/logs/exporter.log
""",
        encoding="utf-8",
    )

    config = load_config(config_path, environ={})

    assert config.server.host == "127.0.0.1"
    assert config.server.port == 9101
    assert config.api.key == "file-key"
    assert config.api.secret == "p%ss"
    assert config.api.has_credentials
    assert config.api.endpoint == "https://api.example.com"
    assert config.scrape.interval_seconds == 120
    assert config.logging.level == "DEBUG"
    assert config.logging.path == Path("~/logs/exporter.log").expanduser()


def test_precedence_cli_over_environment_over_file(tmp_path: Path) -> None:
    config_path = tmp_path / "yolink-exporter.cfg"
    config_path.write_text(
        "[api]\nkey = file-key\nsecret = file-secret\n\n[scrape]\ninterval = 30\n",
        encoding="utf-8",
    )
    environ = {
        "YOLINK_API_KEY": "env-key",
        "YOLINK_SECRET": "env-secret",
        "YOLINK_SCRAPE_INTERVAL": "45",
        "YOLINK_SERVER_PORT": "9200",
    }

    config = load_config(
        config_path,
        environ=environ,
        overrides={
            "api": {"key": "cli-key", "secret": None},
            "server": {"port": None},
            "scrape": {"interval": "15"},
        },
    )

    assert config.api.key == "cli-key"
    assert config.api.secret == "env-secret"
    assert config.server.port == 9200
    assert config.scrape.interval_seconds == 15


def test_empty_environment_values_are_ignored(tmp_path: Path) -> None:
    config_path = tmp_path / "yolink-exporter.cfg"
    config_path.write_text("[api]\nkey = file-key\n", encoding="utf-8")

    config = load_config(config_path, environ={"YOLINK_API_KEY": ""})

    assert config.api.key == "file-key"


def test_numeric_values_are_clamped(tmp_path: Path) -> None:
    config_path = tmp_path / "yolink-exporter.cfg"
    config_path.write_text(
        "[scrape]\ninterval = 0\n\n[api]\ntoken_safety_buffer_seconds = -5\n",
        encoding="utf-8",
    )

    config = load_config(config_path, environ={})

    assert config.scrape.interval_seconds == 1
    assert config.api.token_safety_buffer_seconds == 0
