# ─────────────────────────────────────────────
# DEFAULT COLUMNS (CalCOFI bottle / cast layout)
# ─────────────────────────────────────────────

JOIN_KEY = "Cst_Cnt"
RESPONSE = "Salnty"

BOTTLE_PREDICTORS = ["T_degC", "O2ml_L", "STheta", "Depthm"]
CAST_PREDICTORS   = ["Distance", "Wave_Ht"]
PREDICTORS        = BOTTLE_PREDICTORS + CAST_PREDICTORS

# Columns whose Box-Cox power is estimated (all strictly positive in practice)
BOXCOX_COLUMNS = [RESPONSE, "T_degC", "O2ml_L", "Depthm", "Distance"]

COLUMN_LABELS = {
    "Salnty":   "salinity",
    "T_degC":   "temperature (°C)",
    "O2ml_L":   "dissolved oxygen (ml/L)",
    "STheta":   "potential density (sigma-theta)",
    "Depthm":   "depth (m)",
    "Distance": "distance from coast (nmi)",
    "Wave_Ht":  "wave height",
}

# ─────────────────────────────────────────────
# SAMPLING / RUN DEFAULTS
# ─────────────────────────────────────────────

DEFAULT_SAMPLE_SIZE  = 1000
DEFAULT_HOLDOUT_SIZE = 500
DEFAULT_RANDOM_STATE = 42
DEFAULT_ALPHA        = 0.05
DEFAULT_OUTPUT_DIR   = "salinostat_report"
DEFAULT_LLM_MODEL    = "llama-3.3-70b-versatile"

SELECTION_METHODS = ("pvalue", "aic")
