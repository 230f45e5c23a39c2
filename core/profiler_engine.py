"""
FILE: core/profiler_engine.py
------------------------------
Descriptive statistics for the analysis columns.
No LangChain dependencies — just pandas.
Can be unit tested independently without spinning up any LLM.
"""

import pandas as pd

from Schemas.data_profiler_schema import (
    ContinuousColumnProfile,
    CorrelatedPair,
    ProfilerOutput,
)
from constants.data_profiler_constants import (
    MISSING_LOW_THRESHOLD,
    MISSING_MODERATE_THRESHOLD,
    IQR_MULTIPLIER,
    SKEW_MODERATE,
    SKEW_HIGH,
    HIGH_CORRELATION_THRESHOLD,
)


# ─────────────────────────────────────────────
# PRIVATE HELPERS
# ─────────────────────────────────────────────

def _missing_severity(pct: float) -> str:
    if pct < MISSING_LOW_THRESHOLD:
        return "low"
    elif pct < MISSING_MODERATE_THRESHOLD:
        return "moderate"
    else:
        return "high"


def _skewness_interpretation(skew: float) -> str:
    abs_skew = abs(skew)
    if abs_skew < SKEW_MODERATE:
        return "symmetric"
    elif abs_skew < SKEW_HIGH:
        return "moderate skew"
    else:
        direction = "right" if skew > 0 else "left"
        return f"high {direction} skew"


def _count_anomalies_iqr(series: pd.Series) -> int:
    clean = series.dropna()
    if len(clean) < 4:
        return 0
    q1 = clean.quantile(0.25)
    q3 = clean.quantile(0.75)
    iqr = q3 - q1
    return int(((clean < q1 - IQR_MULTIPLIER * iqr) | (clean > q3 + IQR_MULTIPLIER * iqr)).sum())


def _rounded(value, digits: int = 4) -> float | None:
    if value is None or pd.isna(value):
        return None
    return round(float(value), digits)


def _profile_column(col: str, series: pd.Series, n_rows: int) -> ContinuousColumnProfile:
    clean = series.dropna()
    missing_count = int(series.isna().sum())
    missing_pct = round(missing_count / n_rows, 4) if n_rows else 0.0
    skew = _rounded(clean.skew()) if len(clean) > 2 else None
    anomaly_count = _count_anomalies_iqr(series)

    return ContinuousColumnProfile(
        column=col,
        dtype=str(series.dtype),
        missing_count=missing_count,
        missing_pct=missing_pct,
        missing_severity=_missing_severity(missing_pct),
        mean=_rounded(clean.mean())         if len(clean) > 0 else None,
        median=_rounded(clean.median())     if len(clean) > 0 else None,
        std=_rounded(clean.std())           if len(clean) > 1 else None,
        min=_rounded(clean.min())           if len(clean) > 0 else None,
        max=_rounded(clean.max())           if len(clean) > 0 else None,
        q1=_rounded(clean.quantile(0.25))   if len(clean) > 0 else None,
        q3=_rounded(clean.quantile(0.75))   if len(clean) > 0 else None,
        skewness=skew,
        skewness_interpretation=_skewness_interpretation(skew) if skew is not None else None,
        kurtosis=_rounded(clean.kurtosis()) if len(clean) > 3 else None,
        anomaly_count=anomaly_count,
        anomaly_pct=round(anomaly_count / len(clean), 4) if len(clean) else 0.0,
        non_positive_count=int((clean <= 0).sum()),
    )


# ─────────────────────────────────────────────
# PUBLIC — MAIN PROFILING FUNCTION
# ─────────────────────────────────────────────

def profile_dataframe(
    df: pd.DataFrame,
    columns: list[str],
    predictors: list[str] | None = None,
) -> ProfilerOutput:
    """
    Profiles the given numeric columns and their pairwise correlations.
    Predictor pairs with |r| >= HIGH_CORRELATION_THRESHOLD are flagged —
    they are the first suspects once VIFs are computed.
    Pure Python — no side effects, no mutations to df.
    """
    n_rows = len(df)
    present = [c for c in columns if c in df.columns]
    sub = df[present].apply(pd.to_numeric, errors="coerce")

    total_missing_cells = int(sub.isna().sum().sum())
    denom = n_rows * len(present)
    total_missing_pct = round(total_missing_cells / denom, 4) if denom else 0.0

    profiles: list[ContinuousColumnProfile] = []
    unresolvable: list[str] = [c for c in columns if c not in df.columns]
    warnings: list[str] = [f"Column '{c}' is not in the dataset." for c in unresolvable]

    for col in present:
        series = sub[col]
        if series.isna().all():
            unresolvable.append(col)
            warnings.append(f"Column '{col}' has no numeric values and cannot be profiled.")
            continue

        profile = _profile_column(col, series, n_rows)
        profiles.append(profile)

        if profile.missing_severity == "moderate":
            warnings.append(
                f"Column '{col}' has {profile.missing_pct*100:.1f}% missing values — moderate."
            )
        elif profile.missing_severity == "high":
            warnings.append(
                f"Column '{col}' has {profile.missing_pct*100:.1f}% missing values — "
                f"serious concern, listwise deletion will remove many rows."
            )
        if profile.skewness is not None and abs(profile.skewness) >= SKEW_HIGH:
            warnings.append(
                f"Column '{col}' shows {profile.skewness_interpretation} "
                f"(skewness={profile.skewness}). A power transform may help."
            )

    # ── Correlations ──
    profiled = [p.column for p in profiles]
    corr = sub[profiled].corr(method="pearson") if len(profiled) > 1 else pd.DataFrame()
    correlation_matrix = {
        a: {b: round(float(corr.loc[a, b]), 4) for b in corr.columns if not pd.isna(corr.loc[a, b])}
        for a in corr.index
    }

    candidates = [c for c in (predictors or profiled) if c in profiled]
    high_pairs: list[CorrelatedPair] = []
    for i, a in enumerate(candidates):
        for b in candidates[i + 1:]:
            r = corr.loc[a, b]
            if not pd.isna(r) and abs(r) >= HIGH_CORRELATION_THRESHOLD:
                high_pairs.append(CorrelatedPair(column_a=a, column_b=b, r=round(float(r), 4)))
    high_pairs.sort(key=lambda p: -abs(p.r))

    for pair in high_pairs:
        warnings.append(
            f"Predictors '{pair.column_a}' and '{pair.column_b}' are strongly correlated "
            f"(r={pair.r}); expect inflated variance in their coefficients."
        )

    return ProfilerOutput(
        n_rows=n_rows,
        n_cols=len(present),
        total_missing_cells=total_missing_cells,
        total_missing_pct=total_missing_pct,
        columns=profiles,
        correlation_matrix=correlation_matrix,
        high_correlation_pairs=high_pairs,
        unresolvable_columns=unresolvable,
        warnings=warnings,
    )
