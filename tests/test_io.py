import json
import os

import numpy as np
import pytest

from wealth_sim.data_structures import AnnualPlan, InitialAssets, SimulationParams
from wealth_sim.engine import run_simulation
from wealth_sim.results_io import load_results, save_results


@pytest.fixture
def result():
    plans = tuple(
        AnnualPlan(year=2030 + i, age=65 + i, income=50, basic_expense=400, extra_expense=100 * (i == 2))
        for i in range(6)
    )
    params = SimulationParams(
        initial_assets=InitialAssets(stocks=1500, bonds=500, cash=300),
        annual_plans=plans,
    )
    return run_simulation(params, num_trials=30, seed=11)


def test_save_and_load_full_results(result, tmp_path):
    out_dir = tmp_path / "run"
    save_results(result, str(out_dir))

    assert os.path.exists(out_dir / "metadata.json")
    assert os.path.exists(out_dir / "yearly_results.csv")
    assert os.path.isdir(out_dir / "data.zarr")

    loaded = load_results(str(out_dir))

    assert loaded.median_trial_index == result.median_trial_index
    assert loaded.summary == result.summary
    assert loaded.metadata == result.metadata
    assert loaded.yearly_results == result.yearly_results

    assert len(loaded.trial_results) == len(result.trial_results)
    for a, b in zip(loaded.trial_results, result.trial_results):
        assert a.depletion_year == b.depletion_year
        assert a.crash_count == b.crash_count
        assert a.yearly_results == b.yearly_results


def test_never_depleted_round_trips_as_none(result, tmp_path):
    save_results(result, str(tmp_path))
    loaded = load_results(str(tmp_path))

    survivors = [t for t in result.trial_results if t.depletion_year is None]
    assert survivors, "fixture should contain surviving trials"
    assert sum(t.depletion_year is None for t in loaded.trial_results) == len(survivors)


def test_metadata_json_contents(result, tmp_path):
    save_results(result, str(tmp_path))
    with open(tmp_path / "metadata.json") as f:
        meta = json.load(f)

    assert meta["num_trials"] == 30
    assert meta["horizon"] == 6
    assert meta["metadata"]["seed"] == 11
    assert meta["summary"]["success_rate"] == result.summary.success_rate


def test_regimes_stored_as_codes(result, tmp_path):
    import zarr

    save_results(result, str(tmp_path))
    codes = zarr.open_group(str(tmp_path / "data.zarr"), mode="r")["trials"]["regime"][...]
    assert codes.shape == (30, 6)
    assert codes.dtype == np.int8
    assert set(np.unique(codes)) <= {0, 1, 2}
