"""Tests for the overlay-resolver command line."""

import yaml
from click.testing import CliRunner

from overlay_resolver.main import main


def _write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(content, sort_keys=False))
    return path


def _base(tmp_path):
    base = tmp_path / "contracts"
    _write(
        base / "pizza.yaml",
        {
            "openapi": "3.1.0",
            "info": {"title": "Pizza API"},
            "components": {"schemas": {"Pizza": {"properties": {"name": {}, "status": {}}}}},
        },
    )
    return base


def test_no_flags_copies(tmp_path):
    """Without transformation flags the base tree is copied."""
    base = _base(tmp_path)
    out = tmp_path / "resolved"

    result = CliRunner().invoke(main, ["--base", str(base), "--out", str(out)])

    assert result.exit_code == 0, result.output
    assert (out / "pizza.yaml").read_bytes() == (base / "pizza.yaml").read_bytes()
    assert f"Resolved specs written to {out}" in result.output


def test_overlay_with_warnings(tmp_path):
    """Warnings are printed after the run and do not fail it."""
    base = _base(tmp_path)
    out = tmp_path / "resolved"
    overlay = _write(
        tmp_path / "overlays" / "pizza.yaml",
        {
            "overlay": "1.0.0",
            "info": {"title": "Pizza"},
            "actions": [
                {"target": "$.components.schemas.Pizza.properties.status", "remove": True},
                {"target": "$.components.schemas.Pasta", "remove": True},
            ],
        },
    )

    result = CliRunner().invoke(
        main, ["--base", str(base), "--overlays", str(overlay), "--out", str(out)]
    )

    assert result.exit_code == 0, result.output
    resolved = yaml.safe_load((out / "pizza.yaml").read_text())
    assert list(resolved["components"]["schemas"]["Pizza"]["properties"]) == ["name"]
    assert "Warnings:" in result.output
    assert "  ! Target $.components.schemas.Pasta does not exist in any file" in result.output


def test_config_file_with_cli_override(tmp_path):
    """Options come from the config file, and flags override them."""
    base = _base(tmp_path)
    config_path = _write(
        tmp_path / "resolve.yaml",
        {"base": str(base), "out": str(tmp_path / "from-config"), "env": "production"},
    )
    out = tmp_path / "from-cli"

    result = CliRunner().invoke(main, ["--config", str(config_path), "--out", str(out)])

    assert result.exit_code == 0, result.output
    assert (out / "pizza.yaml").exists()
    assert not (tmp_path / "from-config").exists()


def test_missing_base_fails(tmp_path):
    """A missing input is reported as an error with a non-zero exit code."""
    result = CliRunner().invoke(
        main,
        ["--base", str(tmp_path / "nope"), "--out", str(tmp_path / "out"), "--bundle"],
    )

    assert result.exit_code == 1
    assert "Base specs path does not exist" in result.output


def test_missing_config_fails(tmp_path):
    result = CliRunner().invoke(main, ["--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "Configuration file not found" in result.output
