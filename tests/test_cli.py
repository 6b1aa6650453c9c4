import email
from email import policy

from typer.testing import CliRunner

from rsmf_gen.cli import app


def _flat(output: str) -> str:
    return " ".join(output.split())


def _parse(path):
    return email.message_from_bytes(path.read_bytes(), policy=policy.default)


def test_cli_generate_writes_file(isolated_env, make_input_dir, manifest_data, output_dir):
    runner = CliRunner()
    input_dir = make_input_dir(manifest_data)
    target = output_dir / "chat.rsmf"
    result = runner.invoke(app, ["generate", str(input_dir), str(target)])
    assert result.exit_code == 0, result.output
    assert "Wrote RSMF" in result.output
    assert target.exists()
    parsed = _parse(target)
    assert parsed["X-RSMF-Generator"] == "RSMF Generator Python Library"
    assert parsed["From"] is None


def test_cli_generate_with_custodian_and_generator(isolated_env, make_input_dir, manifest_data, output_dir):
    runner = CliRunner()
    target = output_dir / "chat.rsmf"
    result = runner.invoke(
        app,
        [
            "generate",
            str(make_input_dir(manifest_data)),
            str(target),
            "--generator",
            "Collector 9",
            "--custodian-display",
            "Legal Hold",
            "--custodian-email",
            "legal@example.com",
        ],
    )
    assert result.exit_code == 0, result.output
    parsed = _parse(target)
    assert parsed["X-RSMF-Generator"] == "Collector 9"
    sender = parsed["From"].addresses[0]
    assert (sender.display_name, sender.addr_spec) == ("Legal Hold", "legal@example.com")


def test_cli_generate_reads_settings_from_environment(isolated_env, monkeypatch, make_input_dir, manifest_data, output_dir):
    monkeypatch.setenv("RSMF_CUSTODIAN_EMAIL", "env@example.com")
    monkeypatch.setenv("RSMF_GENERATOR", "From Env")
    runner = CliRunner()
    target = output_dir / "chat.rsmf"
    result = runner.invoke(app, ["generate", str(make_input_dir(manifest_data)), str(target)])
    assert result.exit_code == 0, result.output
    parsed = _parse(target)
    assert parsed["X-RSMF-Generator"] == "From Env"
    assert parsed["From"].addresses[0].addr_spec == "env@example.com"


def test_cli_generate_validate_flag_blocks_bad_input(isolated_env, make_input_dir, manifest_data, output_dir):
    runner = CliRunner()
    input_dir = make_input_dir(manifest_data)
    target = output_dir / "chat.rsmf"
    result = runner.invoke(app, ["generate", str(input_dir), str(target), "--validate"])
    assert result.exit_code == 1
    assert "Failed to create RSMF file" in _flat(result.output)
    assert "notes.txt" in result.output
    assert not target.exists()


def test_cli_generate_accepts_single_dash_validate(isolated_env, make_input_dir, manifest_data, output_dir):
    runner = CliRunner()
    input_dir = make_input_dir(manifest_data, files={"notes.txt": b"n", "bob.png": b"p"})
    target = output_dir / "chat.rsmf"
    result = runner.invoke(app, ["generate", str(input_dir), str(target), "-validate"])
    assert result.exit_code == 0, result.output
    assert "validated=yes" in result.output


def test_cli_no_validate_overrides_environment(isolated_env, monkeypatch, make_input_dir, manifest_data, output_dir):
    monkeypatch.setenv("RSMF_VALIDATE", "true")
    runner = CliRunner()
    target = output_dir / "chat.rsmf"
    result = runner.invoke(app, ["generate", str(make_input_dir(manifest_data)), str(target), "--no-validate"])
    assert result.exit_code == 0, result.output
    assert target.exists()


def test_cli_generate_rejects_output_inside_input(isolated_env, make_input_dir, manifest_data):
    runner = CliRunner()
    input_dir = make_input_dir(manifest_data)
    target = input_dir / "chat.rsmf"
    result = runner.invoke(app, ["generate", str(input_dir), str(target)])
    assert result.exit_code == 1
    assert "should not be created in the input directory" in _flat(result.output)
    assert not target.exists()


def test_cli_generate_missing_output_directory(isolated_env, make_input_dir, manifest_data, tmp_path):
    runner = CliRunner()
    result = runner.invoke(app, ["generate", str(make_input_dir(manifest_data)), str(tmp_path / "nope" / "x.rsmf")])
    assert result.exit_code == 1
    assert "doesn't exist" in _flat(result.output)


def test_cli_generate_missing_manifest(isolated_env, tmp_path, output_dir):
    runner = CliRunner()
    empty = tmp_path / "empty"
    empty.mkdir()
    result = runner.invoke(app, ["generate", str(empty), str(output_dir / "x.rsmf")])
    assert result.exit_code == 1
    assert "rsmf_manifest.json does not exist" in _flat(result.output)


def test_cli_validate_passes_with_warnings(isolated_env, make_input_dir, manifest_data):
    runner = CliRunner()
    input_dir = make_input_dir(manifest_data, files={"notes.txt": b"n", "bob.png": b"p", "stray.txt": b"s"})
    result = runner.invoke(app, ["validate", str(input_dir)])
    assert result.exit_code == 0, result.output
    flat = _flat(result.output)
    assert "stray.txt" in flat
    assert "Validation passed (1 warning(s))" in flat


def test_cli_validate_reports_errors(isolated_env, make_input_dir, manifest_data):
    runner = CliRunner()
    input_dir = make_input_dir(manifest_data, files={"bob.png": b"p"})
    result = runner.invoke(app, ["validate", str(input_dir)])
    assert result.exit_code == 1
    assert "Validation failed with 1 error(s)" in _flat(result.output)


def test_cli_preview_prints_headers_and_body(isolated_env, make_input_dir, manifest_data):
    runner = CliRunner()
    result = runner.invoke(app, ["preview", str(make_input_dir(manifest_data))])
    assert result.exit_code == 0, result.output
    flat = _flat(result.output)
    assert "X-RSMF-EventCount" in flat
    assert "alice@example.com" in flat
    assert flat.index("hello") < flat.index("thumbsup")


def test_cli_preview_bad_manifest(isolated_env, make_input_dir):
    runner = CliRunner()
    result = runner.invoke(app, ["preview", str(make_input_dir(manifest_text="{not json"))])
    assert result.exit_code == 1
    assert "Failed to read manifest" in _flat(result.output)


def test_cli_validate_flag_is_case_insensitive(isolated_env, make_input_dir, manifest_data, output_dir):
    runner = CliRunner()
    input_dir = make_input_dir(manifest_data)
    target = output_dir / "chat.rsmf"
    result = runner.invoke(app, ["generate", str(input_dir), str(target), "-VALIDATE"])
    assert result.exit_code == 1
    assert "notes.txt" in result.output
    assert not target.exists()


def test_cli_crashing_validator_reports_single_diagnostic(isolated_env, monkeypatch, make_input_dir, manifest_data, output_dir):
    def explode(self, archive):
        raise RuntimeError("validator blew up")

    monkeypatch.setattr("rsmf_gen.validator.ZipStructureValidator.validate", explode)
    runner = CliRunner()
    target = output_dir / "chat.rsmf"
    result = runner.invoke(app, ["generate", str(make_input_dir(manifest_data)), str(target), "--validate"])
    assert result.exit_code == 1
    assert "Validator raised: validator blew up" in _flat(result.output)
    assert not isinstance(result.exception, RuntimeError)
    assert not target.exists()
