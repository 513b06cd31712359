"""Tests for the Hydra-based CLI (cli.py)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from hydra import compose, initialize_config_dir
from omegaconf import OmegaConf

import thesis_orchestrator
from thesis_orchestrator._hydra_conf import CLI_ONLY_KEYS, ThesisConf, register_configs
from thesis_orchestrator.cli import _MODE_DISPATCH, _drive, _resolve_config, _to_project_config
from thesis_orchestrator.models import ProjectConfig

CONF_DIR = str(Path(thesis_orchestrator.__file__).resolve().parent / "conf")


class TestDefaultConfig:
    """Verify the package's conf/config.yaml loads correctly."""

    def test_default_config_loads(self):
        register_configs()
        with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
            cfg = compose(config_name="config")
            assert cfg.mode == "run"
            assert cfg.resume is False
            assert cfg.global_target_word_count == 90000
            assert cfg.outline_file is None

    def test_overrides(self):
        register_configs()
        with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
            cfg = compose(config_name="config", overrides=["mode=flag", "section=12"])
            assert cfg.mode == "flag"
            assert cfg.section == 12

    def test_default_config_converts_to_project_config(self, monkeypatch):
        monkeypatch.setenv("AZURE_OPENAI_API_KEY", "test")
        monkeypatch.setenv("AZURE_OPENAI_API_VERSION", "2024-01-01")
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://test.openai.azure.com")

        register_configs()
        with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
            cfg = compose(config_name="config")
            pc = _to_project_config(cfg)
            assert isinstance(pc, ProjectConfig)
            assert pc.project_name == "thesis"
            assert pc.word_tolerance == 200
            assert pc.azure.api_key == "test"


class TestModeDispatch:
    """Verify mode dispatch table."""

    def test_all_modes_present(self):
        expected = {"run", "plan", "regenerate", "flag", "verify", "export"}
        assert set(_MODE_DISPATCH.keys()) == expected

    def test_all_modes_are_callable(self):
        for name, handler in _MODE_DISPATCH.items():
            assert callable(handler), f"Handler for mode {name!r} is not callable"


class TestSectionRequired:
    @pytest.mark.parametrize("mode", ["flag", "regenerate"])
    def test_missing_section_exits(self, mode):
        cfg = OmegaConf.create({"mode": mode, "section": None})
        with pytest.raises(SystemExit):
            _MODE_DISPATCH[mode](cfg)


class TestDrive:
    @patch("thesis_orchestrator.cli.signal")
    def test_sigint_requests_pause_and_handler_restored(self, mock_signal):
        previous = MagicMock()
        mock_signal.getsignal.return_value = previous
        orchestrator = MagicMock()

        def run(state, max_steps=None):
            handler = mock_signal.signal.call_args_list[0].args[1]
            handler(2, None)
            return state

        orchestrator.run.side_effect = run
        state = MagicMock()
        assert _drive(orchestrator, state, None) is state
        orchestrator.request_pause.assert_called_once()
        assert mock_signal.signal.call_args_list[-1].args[1] is previous


class TestCliOnlyKeys:
    """CLI_ONLY_KEYS should match the extra fields in ThesisConf."""

    def test_cli_keys_not_in_project_config(self):
        pc_fields = set(ProjectConfig.model_fields.keys())
        for key in CLI_ONLY_KEYS:
            assert key not in pc_fields, f"CLI-only key {key!r} found in ProjectConfig"

    def test_cli_keys_in_thesis_conf(self):
        conf_fields = {f.name for f in ThesisConf.__dataclass_fields__.values()}
        for key in CLI_ONLY_KEYS:
            assert key in conf_fields, f"CLI-only key {key!r} not found in ThesisConf"

    def test_remaining_fields_match_project_config(self):
        conf_fields = {f.name for f in ThesisConf.__dataclass_fields__.values()}
        assert conf_fields - CLI_ONLY_KEYS == set(ProjectConfig.model_fields.keys())


class TestResolveConfig:
    def test_config_file_replaces_hydra_settings(self, tmp_path):
        path = tmp_path / "thesis.yaml"
        path.write_text("project_name: standalone\noutput_dir: drafts/\n", encoding="utf-8")
        cfg = OmegaConf.create({"config_file": str(path), "project_name": "ignored"})

        config, config_dir = _resolve_config(cfg)
        assert config.project_name == "standalone"
        assert config_dir == tmp_path.resolve()
        assert config_dir / config.output_dir == tmp_path.resolve() / "drafts"

    def test_missing_config_file_exits(self, tmp_path):
        cfg = OmegaConf.create({"config_file": str(tmp_path / "absent.yaml")})
        with pytest.raises(SystemExit):
            _resolve_config(cfg)

    @patch("thesis_orchestrator.cli._get_config_dir")
    def test_without_config_file_uses_hydra(self, mock_dir, tmp_path):
        mock_dir.return_value = tmp_path
        register_configs()
        with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
            cfg = compose(config_name="config", overrides=["project_name=composed"])
            config, config_dir = _resolve_config(cfg)
        assert config.project_name == "composed"
        assert config_dir == tmp_path
