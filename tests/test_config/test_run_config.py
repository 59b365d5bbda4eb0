"""Tests for RunConfig."""

import pytest

from ssh_runas.config import ConfigInvalid, RunConfig


def test_valid_config_passes() -> None:
    """Complete config validates."""
    config = RunConfig(command="ls", host="srv", username="me", password="pw")

    config.validate()

    assert config.port == 22
    assert not config.locking_enabled


def test_validate_lists_every_violation() -> None:
    """All violated fields are reported together."""
    config = RunConfig(command=" ", host="", username="", password="", port=70000)

    with pytest.raises(ConfigInvalid) as exc_info:
        config.validate()

    errors = exc_info.value.errors
    assert len(errors) == 5
    assert any(e.startswith("command") for e in errors)
    assert any(e.startswith("port") for e in errors)
    for error in errors:
        assert error in str(exc_info.value)


def test_repr_hides_secrets() -> None:
    """Username and password never show up in repr."""
    config = RunConfig(command="ls", host="srv", username="admin", password="s3cret")

    assert "s3cret" not in repr(config)
    assert "admin" not in repr(config)


def test_config_is_immutable() -> None:
    """Config cannot change during a run."""
    config = RunConfig(command="ls", host="srv", username="me", password="pw")

    with pytest.raises(AttributeError):
        config.command = "rm -rf /"  # type: ignore[misc]


class TestFromEnvNames:
    """Credential resolution from environment variables."""

    def test_resolves_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Variable names are resolved to their values."""
        monkeypatch.setenv("RUNAS_TEST_USER", "deploy")
        monkeypatch.setenv("RUNAS_TEST_PASS", "hunter2")

        config = RunConfig.from_env_names(
            command="uptime",
            host="srv",
            user_env="RUNAS_TEST_USER",
            pass_env="RUNAS_TEST_PASS",
            port=2200,
            lock_file="/tmp/x.lock",
        )

        assert config.username == "deploy"
        assert config.password == "hunter2"
        assert config.port == 2200
        assert config.lock_file == "/tmp/x.lock"

    def test_blank_variable_names(self) -> None:
        """Blank names are reported per option."""
        with pytest.raises(ConfigInvalid) as exc_info:
            RunConfig.from_env_names(command="ls", host="srv", user_env=" ", pass_env="")

        assert exc_info.value.errors == [
            "user_env can not be null, empty, or whitespace.",
            "pass_env can not be null, empty, or whitespace.",
        ]

    def test_empty_variable_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unset or empty variables are reported without their names leaking values."""
        monkeypatch.delenv("RUNAS_TEST_USER", raising=False)
        monkeypatch.setenv("RUNAS_TEST_PASS", "")

        with pytest.raises(ConfigInvalid) as exc_info:
            RunConfig.from_env_names(
                command="ls",
                host="srv",
                user_env="RUNAS_TEST_USER",
                pass_env="RUNAS_TEST_PASS",
            )

        assert exc_info.value.errors == [
            "Given username environment variable is empty!",
            "Given password environment variable is empty!",
        ]

    def test_combines_with_field_errors(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Credential and field errors are reported in one exception."""
        monkeypatch.setenv("RUNAS_TEST_USER", "deploy")

        with pytest.raises(ConfigInvalid) as exc_info:
            RunConfig.from_env_names(
                command="",
                host="",
                user_env="RUNAS_TEST_USER",
                pass_env="",
            )

        assert len(exc_info.value.errors) == 3
