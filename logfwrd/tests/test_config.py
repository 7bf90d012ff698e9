"""Tests for logfwrd.config module."""

import pytest

from logfwrd.config import (
    ForwarderConfig,
    load_config,
    parse_bool,
    parse_count,
    parse_duration,
)
from logfwrd.errors import ConfigError
from logfwrd.sinks import SinkType

S3_ARGS = ["--bucket", "logs", "--endpoint", "https://s3.example.com", "--key", "AK", "--secret", "SK"]


class TestParseDuration:
    """Tests for Go-style duration parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("60s", 60.0),
            ("5m", 300.0),
            ("1h30m", 5400.0),
            ("1.5h", 5400.0),
            ("500ms", 0.5),
            ("2m30s", 150.0),
            ("45", 45.0),
            ("0.25", 0.25),
            (" 10s ", 10.0),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == pytest.approx(expected)

    def test_numbers_pass_through(self):
        assert parse_duration(30) == 30.0
        assert parse_duration(1.5) == 1.5

    def test_negative(self):
        assert parse_duration("-5s") == -5.0

    @pytest.mark.parametrize("text", ["", "abc", "5x", "5s5x", "s", "1h 30m", True])
    def test_invalid(self, text):
        with pytest.raises(ConfigError):
            parse_duration(text)

    @pytest.mark.parametrize(
        "value",
        ["nan", "inf", "-inf", "Infinity", "1e400", "9" * 400 + "s", float("nan"), float("inf")],
    )
    def test_non_finite(self, value):
        with pytest.raises(ConfigError, match="finite"):
            parse_duration(value)


class TestParseScalars:
    def test_count(self):
        assert parse_count("5000", "max-records") == 5000
        assert parse_count(12, "max-records") == 12

    @pytest.mark.parametrize("value", ["many", "1.5", "", True, "nan", "inf", float("nan"), float("inf")])
    def test_count_invalid(self, value):
        with pytest.raises(ConfigError, match="max-records"):
            parse_count(value, "max-records")

    @pytest.mark.parametrize("value,expected", [("1", True), ("yes", True), ("off", False), ("", False), (True, True)])
    def test_bool(self, value, expected):
        assert parse_bool(value, "verbose") is expected

    def test_bool_invalid(self):
        with pytest.raises(ConfigError):
            parse_bool("maybe", "verbose")


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_with_s3_args(self):
        config = load_config(S3_ARGS, env={})

        assert isinstance(config, ForwarderConfig)
        assert config.sink_type is SinkType.S3
        assert config.listen == ":5014"
        assert config.max_records == 5000
        assert config.max_interval == 60.0
        assert config.tag == ""
        assert config.flush_idle is False
        assert config.flush_on_exit is False
        assert config.s3.bucket == "logs"
        assert config.s3.region == "auto"
        assert config.s3.timeout == 10.0

    def test_cli_flags(self):
        config = load_config(
            S3_ARGS + ["--max-records", "100", "--max-interval", "5m", "--tag", "edge", "-v", "--flush-idle"],
            env={},
        )
        assert config.max_records == 100
        assert config.max_interval == 300.0
        assert config.tag == "edge"
        assert config.verbose is True
        assert config.flush_idle is True

    def test_environment_variables(self):
        env = {
            "LOGFWRD_BUCKET": "env-bucket",
            "LOGFWRD_ENDPOINT": "https://minio.local",
            "LOGFWRD_KEY": "AK",
            "LOGFWRD_SECRET": "SK",
            "LOGFWRD_REGION": "eu-west-1",
            "LOGFWRD_MAX_RECORDS": "42",
            "LOGFWRD_MAX_INTERVAL": "30s",
            "LOGFWRD_TAG": "from-env",
            "LOGFWRD_FLUSH_ON_EXIT": "true",
        }
        config = load_config([], env=env)

        assert config.s3.bucket == "env-bucket"
        assert config.s3.region == "eu-west-1"
        assert config.max_records == 42
        assert config.max_interval == 30.0
        assert config.tag == "from-env"
        assert config.flush_on_exit is True

    def test_cli_overrides_environment(self):
        config = load_config(S3_ARGS + ["--tag", "cli"], env={"LOGFWRD_TAG": "env"})
        assert config.tag == "cli"

    def test_http_sink(self):
        config = load_config(
            ["--sink", "http", "--url", "https://collector.example.com", "--auth", "Basic abc"],
            env={},
        )
        assert config.sink_type is SinkType.HTTP
        assert config.http.url == "https://collector.example.com"
        assert config.http.auth == "Basic abc"
        assert config.http.timeout == 15.0

    def test_explicit_timeout(self):
        config = load_config(S3_ARGS + ["--timeout", "3s"], env={})
        assert config.s3.timeout == 3.0


class TestConfigFile:
    """Tests for YAML config files."""

    def test_values_from_file(self, tmp_path):
        path = tmp_path / "logfwrd.yaml"
        path.write_text(
            "max_records: 250\n"
            "max_interval: 2m\n"
            "tag: from-file\n"
            "sink:\n"
            "  type: http\n"
            "  url: https://collector.example.com\n"
        )
        config = load_config(["--config", str(path)], env={})

        assert config.sink_type is SinkType.HTTP
        assert config.max_records == 250
        assert config.max_interval == 120.0
        assert config.tag == "from-file"

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "logfwrd.yaml"
        path.write_text("sink:\n  type: http\n  url: https://a.example.com\ntag: file\n")
        config = load_config([], env={"LOGFWRD_CONFIG": str(path), "LOGFWRD_TAG": "env"})
        assert config.tag == "env"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_config(["--config", str(tmp_path / "nope.yaml")], env={})

    def test_file_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(["--config", str(path)], env={})


class TestValidation:
    """Invalid configuration is fatal at startup."""

    def test_missing_s3_settings_reported_together(self):
        with pytest.raises(ConfigError) as exc_info:
            load_config([], env={})
        message = str(exc_info.value)
        assert "--bucket" in message
        assert "--endpoint" in message
        assert "--key" in message
        assert "--secret" in message

    def test_missing_http_url(self):
        with pytest.raises(ConfigError, match="--url"):
            load_config(["--sink", "http"], env={})

    def test_unknown_sink(self):
        with pytest.raises(ConfigError, match="Unknown sink type"):
            load_config(["--sink", "ftp"], env={})

    @pytest.mark.parametrize("value", ["0", "-3", "lots"])
    def test_bad_max_records(self, value):
        with pytest.raises(ConfigError):
            load_config(S3_ARGS + [f"--max-records={value}"], env={})

    @pytest.mark.parametrize("value", ["0s", "-1m", "soon", "nan", "inf", "1e400"])
    def test_bad_max_interval(self, value):
        with pytest.raises(ConfigError):
            load_config(S3_ARGS + [f"--max-interval={value}"], env={})

    @pytest.mark.parametrize("value", ["nan", "inf"])
    def test_bad_timeout(self, value):
        with pytest.raises(ConfigError):
            load_config(["--sink", "http", "--url", "http://x", f"--timeout={value}"], env={})

    def test_non_finite_interval_from_environment(self):
        with pytest.raises(ConfigError):
            load_config(S3_ARGS, env={"LOGFWRD_MAX_INTERVAL": "nan"})

    def test_bad_listen_address(self):
        with pytest.raises(ConfigError):
            load_config(S3_ARGS + ["--listen", "nowhere"], env={})
