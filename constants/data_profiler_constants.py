# ─────────────────────────────────────────────
# CONSTANTS
# ─────────────────────────────────────────────

# Missingness severity thresholds
MISSING_LOW_THRESHOLD = 0.05       # < 5%  → low, manageable
MISSING_MODERATE_THRESHOLD = 0.20  # < 20% → moderate, worth noting
# >= 20% → serious concern

# Anomaly detection: IQR multiplier
IQR_MULTIPLIER = 1.5

# Skewness thresholds
SKEW_MODERATE = 0.5
SKEW_HIGH = 1.0

# Predictor pairs at or above this |r| are flagged before any model is fitted
HIGH_CORRELATION_THRESHOLD = 0.8
