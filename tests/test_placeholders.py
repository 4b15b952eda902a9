"""Test env file parsing and ${VAR} substitution."""

import pytest

from overlay_resolver.errors import MissingInputError
from overlay_resolver.placeholders import (
    merge_variables,
    parse_env_file,
    substitute_placeholders,
)


def test_parse_env_file(tmp_path):
    """Test comments, blank lines, quoting and lines without '='."""
    env_file = tmp_path / ".env.california"
    env_file.write_text(
        "# California deployment\n"
        "\n"
        "HOST=api.california.example.com\n"
        'GREETING="hello world"\n'
        "REGION='us-west-1'\n"
        "NOT_A_PAIR\n"
        "EMPTY=\n"
    )

    variables = parse_env_file(str(env_file))

    assert variables["HOST"] == "api.california.example.com"
    assert variables["GREETING"] == "hello world"
    assert variables["REGION"] == "us-west-1"
    assert variables["EMPTY"] == ""
    assert "NOT_A_PAIR" not in variables


def test_parse_env_file_missing(tmp_path):
    """A missing env file is a fatal input error."""
    with pytest.raises(MissingInputError) as exc_info:
        parse_env_file(str(tmp_path / ".env"))

    assert isinstance(exc_info.value, FileNotFoundError)
    assert "Env file does not exist" in str(exc_info.value)


def test_process_environment_wins():
    """A process environment variable overrides the env file."""
    variables = merge_variables({"HOST": "from-file", "PORT": "8080"}, {"HOST": "from-env"})

    assert variables == {"HOST": "from-env", "PORT": "8080"}


def test_merge_defaults_to_os_environ(monkeypatch):
    """Without an explicit mapping the real process environment is used."""
    monkeypatch.setenv("OVERLAY_TEST_HOST", "from-env")

    variables = merge_variables({"OVERLAY_TEST_HOST": "from-file"})

    assert variables["OVERLAY_TEST_HOST"] == "from-env"


def test_substitute_placeholders():
    """Values are substituted; keys and non-strings are left alone."""
    document = {
        "servers": [{"url": "https://${HOST}:${PORT}/v1"}],
        "info": {"title": "Pizza API", "x-count": 3},
        "${HOST}": "key is not substituted",
    }

    result, unresolved = substitute_placeholders(document, {"HOST": "from-env", "PORT": "8080"})

    assert result["servers"][0]["url"] == "https://from-env:8080/v1"
    assert result["info"] == {"title": "Pizza API", "x-count": 3}
    assert "${HOST}" in result
    assert unresolved == []


def test_unresolved_placeholders_are_kept_and_reported_once():
    """Unknown variables stay as-is and are listed without duplicates."""
    document = {"a": "${MISSING}", "b": ["${MISSING}-${OTHER}"]}

    result, unresolved = substitute_placeholders(document, {})

    assert result == document
    assert unresolved == ["MISSING", "OTHER"]
