"""Tests for configuration loading."""

import argparse

import pytest

from ccpretty.cli import apply_arguments, build_parser
from ccpretty.config import DEFAULT_THREAD_FILE, PipelineConfig, SlackConfig, load_config


class TestDefaults:
    def test_defaults_without_file_or_env(self):
        config = load_config(environ={})

        assert config == PipelineConfig()
        assert config.sample_interval_ms == 500
        assert config.tool_timeout_ms == 30_000
        assert config.max_queue_size == 1000
        assert config.dispatch_rate == 1.0
        assert config.idle_timeout_seconds == 30.0
        assert config.slack is None


class TestYamlFile:
    """Loading from a YAML file."""

    def test_values_from_file(self, tmp_path):
        path = tmp_path / "ccpretty.yaml"
        path.write_text(
            "sample_interval_ms: 250\n"
            "session_title: Nightly\n"
            "slack:\n"
            "  token: xoxb-file\n"
            "  channel: C1\n"
        )

        config = load_config(path, environ={})

        assert config.sample_interval_ms == 250
        assert config.session_title == "Nightly"
        assert config.slack == SlackConfig(token="xoxb-file", channel="C1")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path, environ={}) == PipelineConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("sample_interval_ms: [1, 2\n")
        with pytest.raises(ValueError, match="parse"):
            load_config(path, environ={})

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path, environ={})

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "typo.yaml"
        path.write_text("sample_interval: 100\n")
        with pytest.raises(ValueError, match="sample_interval"):
            load_config(path, environ={})


class TestEnvironment:
    """CCPRETTY_* overrides."""

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "ccpretty.yaml"
        path.write_text("tool_timeout_ms: 1000\n")

        config = load_config(
            path,
            environ={
                "CCPRETTY_TOOL_TIMEOUT_MS": "5000",
                "CCPRETTY_DISPATCH_RATE": "0.5",
                "CCPRETTY_TITLE": "From env",
            },
        )

        assert config.tool_timeout_ms == 5000
        assert config.dispatch_rate == 0.5
        assert config.session_title == "From env"

    def test_slack_requires_token_and_channel(self):
        assert load_config(environ={"CCPRETTY_SLACK_TOKEN": "xoxb"}).slack is None

        config = load_config(
            environ={
                "CCPRETTY_SLACK_TOKEN": "xoxb",
                "CCPRETTY_SLACK_CHANNEL": "C9",
                "CCPRETTY_SLACK_THREAD_TS": "123.456",
            }
        )
        assert config.slack == SlackConfig(token="xoxb", channel="C9", thread_ts="123.456")

    def test_slack_thread_settings_from_env(self):
        config = load_config(
            environ={
                "CCPRETTY_SLACK_TOKEN": "xoxb",
                "CCPRETTY_SLACK_CHANNEL": "C9",
                "CCPRETTY_SLACK_THREAD_FILE": "/tmp/thread",
                "CCPRETTY_SLACK_RESUME_THREAD": "yes",
            }
        )

        assert config.slack.thread_file == "/tmp/thread"
        assert config.slack.resume_thread is True

    def test_invalid_resume_flag(self):
        with pytest.raises(ValueError, match="CCPRETTY_SLACK_RESUME_THREAD"):
            load_config(environ={"CCPRETTY_SLACK_RESUME_THREAD": "maybe"})

    def test_thread_file_defaults_to_home(self):
        assert SlackConfig(token="x", channel="C").thread_file == DEFAULT_THREAD_FILE
        assert DEFAULT_THREAD_FILE == "~/.ccpretty_slack_ts"

    def test_invalid_number(self):
        with pytest.raises(ValueError, match="CCPRETTY_MAX_QUEUE_SIZE"):
            load_config(environ={"CCPRETTY_MAX_QUEUE_SIZE": "lots"})

    def test_non_positive_values_rejected(self):
        with pytest.raises(ValueError, match="sample_interval_ms"):
            load_config(environ={"CCPRETTY_SAMPLE_INTERVAL_MS": "0"})


class TestCommandLine:
    """Flags layered over loaded configuration."""

    def parse(self, *argv):
        return build_parser().parse_args(list(argv))

    def test_flags_override(self):
        args = self.parse("--sample-interval-ms", "100", "--tool-timeout-ms", "2000", "--no-idle-timeout")

        config = apply_arguments(PipelineConfig(), args, environ={})

        assert config.sample_interval_ms == 100
        assert config.tool_timeout_ms == 2000
        assert config.idle_timeout_seconds is None

    def test_debug_from_flag_or_env(self):
        assert apply_arguments(PipelineConfig(), self.parse("--debug"), environ={}).log_level == "DEBUG"
        config = apply_arguments(PipelineConfig(), self.parse(), environ={"CCPRETTY_DEBUG": "1"})
        assert config.log_level == "DEBUG"

    def test_invalid_flag_value(self):
        with pytest.raises(ValueError):
            apply_arguments(PipelineConfig(), self.parse("--tool-timeout-ms", "-1"), environ={})

    def test_parser_defaults(self):
        args = self.parse()
        assert isinstance(args, argparse.Namespace)
        assert args.config is None
        assert not args.debug
        assert not args.resume_slack_thread

    def test_resume_slack_thread_flag(self):
        config = PipelineConfig(slack=SlackConfig(token="xoxb", channel="C1"))

        config = apply_arguments(config, self.parse("--resume-slack-thread"), environ={})

        assert config.slack.resume_thread is True

    def test_resume_slack_thread_without_slack_is_ignored(self):
        config = apply_arguments(PipelineConfig(), self.parse("--resume-slack-thread"), environ={})

        assert config.slack is None
