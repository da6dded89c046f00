"""Tests for the newsletter agent CLI."""

from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from newsletter_agent.cli import cli
from newsletter_agent.core.exceptions import ModelUnavailableError

from conftest import STRUCTURED_PLAN, FakeModel


def test_cli_group_exists():
    """Test that the CLI group is properly defined."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Newsletter agent CLI." in result.output
    for command in ("draft", "serve", "health", "config"):
        assert command in result.output


def test_draft_writes_html_file(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test_key")
    output = tmp_path / "draft.html"
    model = FakeModel(plan=STRUCTURED_PLAN)

    with patch("newsletter_agent.clients.openrouter.get_model", return_value=model):
        result = CliRunner().invoke(
            cli,
            [
                "draft",
                "--topic",
                "dev tools",
                "--title",
                "Weekly Dev Digest",
                "--tone",
                "warm",
                "--tone",
                "concise",
                "--output",
                str(output),
            ],
        )

    assert result.exit_code == 0, result.output
    html = output.read_text(encoding="utf-8")
    assert "Weekly Dev Digest" in html
    assert "Tone: warm, concise." in model.planner_calls[0]["prompt"]


def test_draft_prints_html_without_output(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test_key")

    with patch("newsletter_agent.clients.openrouter.get_model", return_value=FakeModel()):
        result = CliRunner().invoke(cli, ["draft", "--topic", "dev tools"])

    assert result.exit_code == 0
    assert "<h1>Written by the model</h1>" in result.output


def test_draft_rejects_invalid_range():
    result = CliRunner().invoke(
        cli,
        ["draft", "--topic", "dev tools", "--start-date", "2025-01-22", "--end-date", "2025-01-15"],
    )

    assert result.exit_code == 2
    assert "start_date must be ≤ end_date" in result.output


def test_draft_without_model_fails():
    with patch(
        "newsletter_agent.clients.openrouter.get_model",
        side_effect=ModelUnavailableError("OpenRouter API key not configured"),
    ):
        result = CliRunner().invoke(cli, ["draft", "--topic", "dev tools"])

    assert result.exit_code == 1


def test_serve_runs_uvicorn():
    with patch("uvicorn.run") as run:
        result = CliRunner().invoke(cli, ["serve", "--port", "9001"])

    assert result.exit_code == 0
    run.assert_called_once()
    assert run.call_args.args[0] == "newsletter_agent.web.app:app"
    assert run.call_args.kwargs["port"] == 9001


def test_config_hides_secrets(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-very-secret")

    result = CliRunner().invoke(cli, ["config"])

    assert result.exit_code == 0
    assert "OpenRouter: ✅ Configured" in result.output
    assert "sk-very-secret" not in result.output


def test_health_reports_model_connection(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test_key")

    with patch(
        "newsletter_agent.clients.openrouter.OpenRouterClient.test_connection",
        AsyncMock(return_value=True),
    ) as test_connection:
        result = CliRunner().invoke(cli, ["health"])

    assert result.exit_code == 0, result.output
    test_connection.assert_awaited_once()
    assert "OpenRouter" in result.output and "✅" in result.output
    assert "System healthy" in result.output


def test_health_fails_when_connection_fails(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test_key")

    with patch(
        "newsletter_agent.clients.openrouter.OpenRouterClient.test_connection",
        AsyncMock(return_value=False),
    ):
        result = CliRunner().invoke(cli, ["health"])

    assert result.exit_code == 1
    assert "System healthy" not in result.output


def test_health_without_key_fails(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "")

    result = CliRunner().invoke(cli, ["health"])

    assert result.exit_code == 1
    assert "OpenRouter API key not configured" in result.output
