# ─────────────────────────────────────────────
# THRESHOLDS
# ─────────────────────────────────────────────

MIN_ROWS_PER_PREDICTOR = 10     # fewer usable rows than 10 × predictors → fatal

# Physically plausible ranges; rows outside are bad readings
VALID_RANGES: dict[str, tuple[float, float]] = {
    "Salnty":   (0.0, 45.0),
    "T_degC":   (-2.5, 35.0),
    "O2ml_L":   (0.0, 12.0),
    "STheta":   (15.0, 30.0),
    "Depthm":   (0.0, 6000.0),
    "Distance": (-100.0, 1000.0),
    "Wave_Ht":  (0.0, 50.0),
}
