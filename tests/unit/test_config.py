"""
Tests for engine configuration loading.
"""

from pathlib import Path

import pytest

from sealbid.core.config import EngineConfig, load_config


class TestEngineConfig:

    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.db_path == Path("data") / "sealbid.db"
        assert cfg.enforce_bid_bounds is False
        assert cfg.min_bid_value == 10_000
        assert cfg.max_bid_value == 1_000_000

    def test_bid_value(self):
        cfg = EngineConfig(base_decimals=18)
        # 0.5 base units at a price of 0.2 USDC (6 decimals)
        assert cfg.bid_value(5 * 10**17, 200_000) == 100_000

    def test_ensure_dirs(self, tmp_path):
        cfg = EngineConfig(data_dir=tmp_path / "d", log_dir=tmp_path / "l", log_to_file=True)
        cfg.ensure_dirs()
        assert (tmp_path / "d").is_dir()
        assert (tmp_path / "l").is_dir()


class TestLoadConfig:

    def test_empty_environment_gives_defaults(self):
        assert load_config(environ={}) == EngineConfig()

    def test_environment_overrides(self, tmp_path):
        cfg = load_config(environ={
            "SEALBID_DATA_DIR": str(tmp_path),
            "SEALBID_ENFORCE_BID_BOUNDS": "true",
            "SEALBID_MAX_BID_VALUE": "5000",
            "SEALBID_LOG_LEVEL": "DEBUG",
            "UNRELATED": "x",
        })
        assert cfg.data_dir == tmp_path
        assert cfg.enforce_bid_bounds is True
        assert cfg.max_bid_value == 5000
        assert cfg.log_level == "DEBUG"

    def test_dotenv_file(self, tmp_path):
        env_file = tmp_path / "sealbid.env"
        env_file.write_text("SEALBID_DB_NAME=book.db\nSEALBID_MIN_BID_VALUE=1\n")
        cfg = load_config(str(env_file), environ={})
        assert cfg.db_name == "book.db"
        assert cfg.min_bid_value == 1

    def test_environment_beats_dotenv(self, tmp_path):
        env_file = tmp_path / "sealbid.env"
        env_file.write_text("SEALBID_DB_NAME=file.db\n")
        cfg = load_config(str(env_file), environ={"SEALBID_DB_NAME": "env.db"})
        assert cfg.db_name == "env.db"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.env"), environ={})

    def test_bad_number(self):
        with pytest.raises(ValueError):
            load_config(environ={"SEALBID_MAX_BID_VALUE": "lots"})
