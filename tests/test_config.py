import argparse
import json
import time

import pytest

import main
from autotrader.config import (
    AutoTraderConfig,
    ConfigError,
    DATA_COLLECTION_CONFIG,
    DEFAULT_CONFIG,
)
from autotrader.models import Confidence, MarketCapTier

from fakes import outcomes


def _args(**overrides):
    values = dict(config=None, preset='default', data_collection=False, capital=1.0, outcomes="")
    values.update(overrides)
    return argparse.Namespace(**values)


def test_tier_lookup_by_market_cap():
    config = AutoTraderConfig()
    assert config.tier_for(300_000).tier == MarketCapTier.MICRO
    assert config.tier_for(500_000).tier == MarketCapTier.RISING
    assert config.tier_for(19_999_999).tier == MarketCapTier.EMERGING
    assert config.tier_for(1e12).tier == MarketCapTier.UNKNOWN
    assert not config.tier_for(1e12).enabled


def test_from_dict_overrides_sections():
    config = AutoTraderConfig.from_dict({
        'capital_sol': 3.0,
        'router': {'max_warnings': 2, 'min_prediction_confidence': 'HIGH'},
        'sizing': {'max_open_positions': 3},
        'loops': {'scan_interval': 30.0},
    })

    assert config.capital_sol == 3.0
    assert config.router.max_warnings == 2
    assert config.router.min_prediction_confidence == Confidence.HIGH
    assert config.sizing.max_open_positions == 3
    assert config.loops.scan_interval == 30.0
    assert DEFAULT_CONFIG.router.max_warnings == 4


def test_from_dict_rejects_unknown_keys_and_bad_weights():
    with pytest.raises(ConfigError):
        AutoTraderConfig.from_dict({'routing': {}})
    with pytest.raises(ConfigError):
        AutoTraderConfig.from_dict({'router': {'max_warning': 2}})
    with pytest.raises(ConfigError):
        AutoTraderConfig.from_dict({'tiers': []})
    with pytest.raises(ConfigError):
        AutoTraderConfig.from_dict({'scoring': {'timing_weight': 0.5}})


def test_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({'router': {'data_collection_mode': True}}))
    assert AutoTraderConfig.from_file(str(path)).router.data_collection_mode

    with pytest.raises(ConfigError):
        AutoTraderConfig.from_file(str(tmp_path / "missing.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ConfigError):
        AutoTraderConfig.from_file(str(broken))


def test_to_dict_is_json_serialisable():
    data = AutoTraderConfig().to_dict()
    assert json.loads(json.dumps(data))['tiers'][0]['tier'] == 'MICRO'
    assert data['router']['trusted_validator_tiers'] == ['S', 'A']


def test_load_config_copies_presets():
    config = main.load_config(_args(capital=2.5, data_collection=True, outcomes="data/outcomes.jsonl"))

    assert config.capital_sol == 2.5
    assert config.router.data_collection_mode
    assert config.optimizer.history_path == "data/outcomes.jsonl.thresholds"
    assert DATA_COLLECTION_CONFIG.capital_sol == 1.0
    assert DATA_COLLECTION_CONFIG.optimizer.history_path == ""


def test_optimize_from_outcome_log(tmp_path, capsys):
    log = tmp_path / "outcomes.jsonl"
    log.write_text("".join(json.dumps(o.to_dict()) + "\n" for o in outcomes(25, 8)))
    config = main.load_config(_args(outcomes=str(log)))

    assert main.optimize_from(str(log), config, apply=True) == 0

    printed = capsys.readouterr().out
    assert "THRESHOLD OPTIMIZATION" in printed
    assert "Data points:  25" in printed
    history = (tmp_path / "outcomes.jsonl.thresholds").read_text()
    assert '"min_momentum_score"' in history


def test_untrained_predictor_notice():
    ctx, _, _ = main.build_context(main.load_config(_args()))
    assert "--data-collection" in main.predictor_notice(ctx)

    collecting, _, _ = main.build_context(main.load_config(_args(data_collection=True)))
    assert main.predictor_notice(collecting) is None


def test_build_context_trains_on_recorded_outcomes(tmp_path):
    log = tmp_path / "outcomes.jsonl"
    log.write_text("".join(json.dumps(o.to_dict()) + "\n" for o in outcomes(25, 8, closed_at=time.time())))
    config = main.load_config(_args(outcomes=str(log)))

    ctx, _, _ = main.build_context(config, str(log))

    assert ctx.predictor.is_trained
    assert main.predictor_notice(ctx) is None
