"""
Shared fixtures: a synthetic CalCOFI-like bottle/cast pair.

Casts carry distance from coast and wave height; bottles carry depth,
temperature, oxygen, potential density and salinity. Temperature and
oxygen fall with depth, density is almost a function of temperature and
salinity (so VIFs are large), and salinity noise grows with depth
(so the OLS residuals are heteroscedastic).
"""

import numpy as np
import pandas as pd
import pytest

from Schemas.config import AnalysisConfig


def make_calcofi_frames(n_casts: int = 150, bottles_per_cast: int = 20, seed: int = 0):
    rng = np.random.default_rng(seed)

    cast = pd.DataFrame({
        "Cst_Cnt":  np.arange(1, n_casts + 1),
        "Sta_ID":   [f"{80 + i % 10:03d}.0 {50 + i % 7:03d}.0" for i in range(n_casts)],
        "Distance": rng.uniform(5, 400, n_casts).round(1),
        "Wave_Ht":  rng.integers(0, 6, n_casts).astype(float),
    })

    n = n_casts * bottles_per_cast
    cst = np.repeat(cast["Cst_Cnt"].to_numpy(), bottles_per_cast)
    distance = np.repeat(cast["Distance"].to_numpy(), bottles_per_cast)

    depth = rng.uniform(1, 500, n)
    temp = np.clip(17 - 0.022 * depth + 0.004 * distance + rng.normal(0, 0.8, n), 1.0, None)
    oxygen = np.clip(6.2 - 0.009 * depth + 0.05 * temp + rng.normal(0, 0.3, n), 0.2, None)
    salinity = (
        33.2 + 0.0025 * depth - 0.03 * temp - 0.0006 * distance
        + rng.normal(0, 0.02 + 0.0004 * depth, n)
    )
    stheta = 24.5 + 0.78 * (salinity - 33.5) - 0.17 * (temp - 10) + rng.normal(0, 0.01, n)

    bottle = pd.DataFrame({
        "Cst_Cnt": cst,
        "Btl_Cnt": np.arange(1, n + 1),
        "Depthm":  depth.round(1),
        "T_degC":  temp.round(3),
        "Salnty":  salinity.round(4),
        "O2ml_L":  oxygen.round(3),
        "STheta":  stheta.round(3),
    })
    return bottle, cast


@pytest.fixture
def calcofi_frames():
    return make_calcofi_frames()


@pytest.fixture
def merged_frame(calcofi_frames):
    bottle, cast = calcofi_frames
    return bottle.merge(cast, on="Cst_Cnt", how="inner")


@pytest.fixture
def csv_paths(tmp_path, calcofi_frames):
    """Writes the pair to CSV with a few dirty values, as in the real files."""
    bottle, cast = calcofi_frames
    bottle = bottle.copy()
    bottle["O2ml_L"] = bottle["O2ml_L"].astype(object)
    bottle.loc[[3, 40, 41], "O2ml_L"] = np.nan
    bottle.loc[7, "O2ml_L"] = "bad"
    bottle.loc[12, "T_degC"] = 99.0

    bottle_path = tmp_path / "bottle.csv"
    cast_path = tmp_path / "cast.csv"
    bottle.to_csv(bottle_path, index=False)
    cast.to_csv(cast_path, index=False)
    return str(bottle_path), str(cast_path)


@pytest.fixture
def analysis_config(csv_paths, tmp_path):
    bottle_path, cast_path = csv_paths
    return AnalysisConfig(
        bottle_path=bottle_path,
        cast_path=cast_path,
        sample_size=600,
        holdout_size=300,
        output_dir=str(tmp_path / "report"),
    )


@pytest.fixture
def linear_frame():
    """y = 2 + 1.5 a - 0.8 b + noise, c is pure noise with zero partial effect."""
    rng = np.random.default_rng(1)
    n = 300
    a = rng.uniform(1, 10, n)
    b = rng.uniform(1, 5, n)
    y = 2 + 1.5 * a - 0.8 * b + rng.normal(0, 0.5, n)
    # c is orthogonal to the intercept, a, b and y, so its coefficient is exactly zero
    basis = np.column_stack([np.ones(n), a, b, y])
    raw = rng.normal(0, 1, n)
    c = raw - basis @ np.linalg.lstsq(basis, raw, rcond=None)[0]
    return pd.DataFrame({"y": y, "a": a, "b": b, "c": c})
