"""
Tests for CLI commands.
"""
from __future__ import annotations

import json
from unittest.mock import patch

import httpx
from typer.testing import CliRunner

from lmstudio_probe.cli import app
from lmstudio_probe.config import Config, LMStudioConfig, load_config, save_config


runner = CliRunner()


class TestCLIHelp:
    """Tests for CLI help and basic structure."""

    def test_help_shows_all_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("models", "ping", "status", "use", "doctor", "env", "where"):
            assert command in result.output

    def test_wrongly_typed_config_does_not_crash(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text(json.dumps({"logging": {"level": 10}}))
        result = runner.invoke(app, ["where"])
        assert result.exit_code == 0
        assert "log_level=WARNING" in result.output


class TestModelsCommand:
    """Tests for the models command."""

    def test_lists_models(self, serve_models):
        serve_models("qwen2.5-7b-instruct", "llama-3.2-3b")
        result = runner.invoke(app, ["models", "--url", "http://x"])
        assert result.exit_code == 0
        assert "qwen2.5-7b-instruct" in result.output
        assert "llama-3.2-3b" in result.output

    def test_json_output(self, serve_models):
        serve_models("a", "", "b")
        result = runner.invoke(app, ["models", "--url", "http://x", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output) == ["a", "b"]

    def test_uses_configured_url(self, serve_models):
        server = serve_models("a")
        save_config(Config(lm_studio=LMStudioConfig(base_url="http://configured:1234/")))
        result = runner.invoke(app, ["models"])
        assert result.exit_code == 0
        assert server.urls == ["http://configured:1234/v1/models"]

    def test_env_url_wins(self, serve_models, monkeypatch):
        server = serve_models("a")
        monkeypatch.setenv("LMSTUDIO_BASE_URL", "http://env:1234")
        runner.invoke(app, ["models"])
        assert server.urls == ["http://env:1234/v1/models"]

    def test_selects_first_model(self, serve_models):
        serve_models("a", "b")
        result = runner.invoke(app, ["models", "--url", "http://x"])
        assert result.exit_code == 0
        assert load_config().lm_studio.selected_model == "a"

    def test_keeps_existing_selection(self, serve_models):
        serve_models("a", "b")
        save_config(Config(lm_studio=LMStudioConfig(selected_model="b")))
        runner.invoke(app, ["models", "--url", "http://x"])
        assert load_config().lm_studio.selected_model == "b"

    def test_no_models_exits_1(self, serve_models):
        serve_models()
        result = runner.invoke(app, ["models", "--url", "http://x"])
        assert result.exit_code == 1
        assert "No models found" in result.output
        assert load_config().lm_studio.selected_model == ""

    def test_error_status_exits_1(self, lm_studio_server):
        lm_studio_server(lambda request: httpx.Response(502))
        result = runner.invoke(app, ["models", "--url", "http://x"])
        assert result.exit_code == 1
        assert "502" in result.output

    def test_unreachable_exits_1(self, unreachable_server):
        result = runner.invoke(app, ["models", "--url", "http://x"])
        assert result.exit_code == 1
        assert "Failed to connect" in result.output


class TestPingCommand:
    """Tests for the ping command."""

    def test_reachable(self, serve_models):
        serve_models("a")
        result = runner.invoke(app, ["ping", "--url", "http://x"])
        assert result.exit_code == 0
        assert "reachable" in result.output

    def test_unreachable(self, unreachable_server):
        result = runner.invoke(app, ["ping", "--url", "http://x"])
        assert result.exit_code == 1
        assert "Failed to connect" in result.output


class TestStatusCommand:
    """Tests for the status command."""

    def test_json(self, serve_models):
        serve_models("a", "b")
        result = runner.invoke(app, ["status", "--url", "http://x", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["ok"] is True
        assert data["model_count"] == 2
        assert data["api_object"] == "list"

    def test_table(self, serve_models):
        serve_models("a")
        result = runner.invoke(app, ["status", "--url", "http://x"])
        assert result.exit_code == 0
        assert "200 OK" in result.output
        assert "Models available" in result.output

    def test_unreachable(self, unreachable_server):
        result = runner.invoke(app, ["status", "--url", "http://x"])
        assert result.exit_code == 1
        assert "not accessible" in result.output


class TestUseCommand:
    """Tests for the use command."""

    def test_selects_loaded_model(self, serve_models):
        serve_models("a", "b")
        result = runner.invoke(app, ["use", "b", "--url", "http://x"])
        assert result.exit_code == 0
        assert load_config().lm_studio.selected_model == "b"

    def test_rejects_unknown_model(self, serve_models):
        serve_models("a")
        result = runner.invoke(app, ["use", "zzz", "--url", "http://x"])
        assert result.exit_code == 1
        assert "not loaded" in result.output
        assert load_config().lm_studio.selected_model == ""


class TestDoctorCommand:
    """Tests for the doctor command."""

    @patch("lmstudio_probe.cli.run_all_checks")
    @patch("lmstudio_probe.cli.has_critical_failures")
    def test_doctor_runs_checks(self, mock_has_failures, mock_run_checks):
        from lmstudio_probe.doctor import CheckResult, CheckStatus

        async def checks(config):
            return [CheckResult("Test", CheckStatus.PASS, "OK")]

        mock_run_checks.side_effect = checks
        mock_has_failures.return_value = False

        result = runner.invoke(app, ["doctor"])
        assert result.exit_code == 0
        assert "[ok] Test: OK" in result.output
        mock_run_checks.assert_called_once()

    def test_doctor_exits_1_when_unreachable(self, unreachable_server):
        result = runner.invoke(app, ["doctor"])
        assert result.exit_code == 1
        assert "[FAIL] LM Studio reachable" in result.output

    def test_doctor_json(self, serve_models):
        serve_models("a")
        result = runner.invoke(app, ["doctor", "--json"])
        assert result.exit_code == 0
        parsed = json.loads(result.output)
        assert [c["name"] for c in parsed] == ["LM Studio reachable", "Loaded models", "Selected model"]

    def test_doctor_url_option(self, serve_models):
        server = serve_models("a")
        result = runner.invoke(app, ["doctor", "--url", "http://other:1234"])
        assert result.exit_code == 0
        assert server.urls
        assert all(u == "http://other:1234/v1/models" for u in server.urls)


class TestEnvCommand:
    """Tests for the env command."""

    def test_exports_configured_server_and_model(self):
        save_config(Config(lm_studio=LMStudioConfig(base_url="http://box:1234/", selected_model="qwen")))
        result = runner.invoke(app, ["env"])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert "export OPENAI_API_BASE=http://box:1234/v1" in lines
        assert "export ANTHROPIC_API_BASE=http://box:1234/v1" in lines
        assert "export ANTHROPIC_MODEL=qwen" in lines

    def test_url_option(self):
        result = runner.invoke(app, ["env", "--url", "http://other:1"])
        assert "export OPENAI_API_BASE=http://other:1/v1" in result.output.splitlines()
        assert "ANTHROPIC_MODEL" not in result.output

    def test_unset(self):
        result = runner.invoke(app, ["env", "--unset"])
        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "unset ANTHROPIC_API_BASE",
            "unset ANTHROPIC_MODEL",
            "unset OPENAI_API_BASE",
        ]


class TestWhereCommand:
    """Tests for the where command."""

    def test_shows_config(self, monkeypatch):
        monkeypatch.setenv("LMSTUDIO_MODEL", "m")
        result = runner.invoke(app, ["where"])
        assert result.exit_code == 0
        assert "base_url=http://localhost:1234" in result.output
        assert "selected_model=m" in result.output
