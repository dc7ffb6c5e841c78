"""Tests for headless mode and the CLI entry point."""

from __future__ import annotations

import sys
from unittest.mock import patch

import pytest

from devnotes.__main__ import _run, build_parser, main
from devnotes.config import DevNotesConfig, NewsConfig, ResolverConfig
from devnotes.headless import (
    format_provider_tag,
    format_status,
    run_headless,
    run_news,
    run_review,
)
from devnotes.inference.engine import (
    BackendAvailability,
    InferenceResponse,
    LocalModelState,
    Provider,
)
from devnotes.inference.static import DEFAULT_RESPONSES, StaticBackend
from devnotes.news import NewsClient
from devnotes.resolver import ProviderResolver
from devnotes.session import AssistantSession

_BY_KEYWORD = dict(DEFAULT_RESPONSES)


def _static_session() -> AssistantSession:
    resolver = ProviderResolver(
        ResolverConfig(), {Provider.STATIC: StaticBackend()},
    )
    return AssistantSession(resolver)


def _offline_config() -> DevNotesConfig:
    config = DevNotesConfig()
    config.local.enabled = False
    config.history.enabled = False
    return config


# ─── Formatting ─────────────────────────────────────────────────────────────


class TestFormatting:
    def test_provider_tag(self):
        response = InferenceResponse("x", Provider.REMOTE, False, "ollama")
        assert format_provider_tag(response) == "[provider: remote, ollama]"

    def test_provider_tag_fallback(self):
        response = InferenceResponse("x", Provider.STATIC, True)
        assert format_provider_tag(response) == "[provider: static, fallback]"

    def test_status_not_probed(self):
        text = format_status(BackendAvailability())
        assert text.splitlines()[0] == "Backend Status"
        assert "Remote: not probed" in text
        assert "Local model: unloaded" in text

    def test_status_loading_and_failed(self):
        status = BackendAvailability(
            remote_reachable=False,
            local_state=LocalModelState.LOADING_HEAVY,
            load_progress=50.0,
            estimated_seconds=12,
        )
        text = format_status(status)
        assert "Remote: unreachable" in text
        assert "Load progress: 50%, ~12s left" in text

        status.local_load_failed = True
        status.local_load_error = "Model file not found"
        status.local_available = False
        text = format_status(status)
        assert "Load failed: Model file not found" in text
        assert "disabled for this session" in text


# ─── run_headless / run_review ──────────────────────────────────────────────


class TestRunHeadless:
    async def test_answer_to_stdout_tag_to_stderr(self, capsys):
        code = await run_headless(_static_session(), "How do I set up monitoring for my cluster?")
        assert code == 0
        captured = capsys.readouterr()
        assert captured.out.strip() == _BY_KEYWORD["monitoring"]
        assert "[provider: static, fallback]" in captured.err

    async def test_empty_prompt(self, capsys):
        assert await run_headless(_static_session(), "   ") == 1
        assert "empty prompt" in capsys.readouterr().err

    async def test_review(self, capsys):
        code = await run_review(_static_session(), "docker build .", "image build")
        assert code == 0
        out = capsys.readouterr().out
        assert "Docker configuration detected" in out
        assert "image build" in out

    async def test_review_empty(self):
        assert await run_review(_static_session(), "\n") == 1


class TestRunNews:
    async def test_simulated_feed(self, capsys):
        code = await run_news(NewsClient(NewsConfig()), category="kubernetes")
        assert code == 0
        captured = capsys.readouterr()
        assert "Kubernetes 1.28 Released" in captured.out
        assert "Docker Announces" not in captured.out
        assert "[news: simulated feed]" in captured.err


# ─── CLI ────────────────────────────────────────────────────────────────────


class TestCli:
    def test_parser_defaults(self):
        args = build_parser().parse_args(["hello"])
        assert args.prompt == "hello"
        assert args.category == "all"
        assert args.no_local is False

    def test_parser_rejects_unknown_category(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--news", "--category", "gossip"])

    async def test_run_prompt_offline(self, capsys):
        args = build_parser().parse_args(["terraform modules?"])
        assert await _run(args, _offline_config()) == 0
        assert capsys.readouterr().out.strip() == _BY_KEYWORD["terraform"]

    async def test_run_prompt_does_not_start_model_load(self, capsys):
        config = DevNotesConfig()
        config.history.enabled = False
        args = build_parser().parse_args(["docker image size?"])

        with patch("devnotes.inference.local.LocalModelBackend.ensure_started") as started:
            assert await _run(args, config) == 0

        started.assert_not_called()
        captured = capsys.readouterr()
        assert "Docker Solution" in captured.out
        assert "[provider: local-model, lightweight, fallback]" in captured.err

    async def test_run_status(self, capsys):
        args = build_parser().parse_args(["--status"])
        assert await _run(args, _offline_config()) == 0
        assert "Backend Status" in capsys.readouterr().out

    async def test_run_review_missing_file(self, tmp_path, capsys):
        args = build_parser().parse_args(["--review", str(tmp_path / "missing.yaml")])
        assert await _run(args, _offline_config()) == 1
        assert "cannot read" in capsys.readouterr().err

    async def test_run_review_file(self, tmp_path, capsys):
        path = tmp_path / "deploy.yaml"
        path.write_text("kind: Deployment\n# kubernetes manifest\n")
        args = build_parser().parse_args(["--review", str(path)])
        assert await _run(args, _offline_config()) == 0
        assert "Kubernetes configuration detected" in capsys.readouterr().out

    def test_main_without_action_exits_1(self, monkeypatch, tmp_path):
        monkeypatch.setattr(sys, "argv", ["devnotes"])
        monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path)
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1

    def test_main_bad_config_exits_2(self, monkeypatch, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('[remote]\napi_style = "grpc"\n')
        monkeypatch.setattr(sys, "argv", ["devnotes", "--config", str(path), "hi"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 2
