# ─────────────────────────────────────────────
# CONSTANTS
# ─────────────────────────────────────────────

VIF_THRESHOLD          = 10.0   # VIF above this → multicollinearity problem
DW_LOWER_BOUND         = 1.5    # Durbin-Watson below this → positive autocorrelation
DW_UPPER_BOUND         = 2.5    # Durbin-Watson above this → negative autocorrelation
SHAPIRO_MAX_N          = 5000   # Shapiro-Wilk unreliable above this n
STD_RESID_THRESHOLD    = 3.0    # |standardized residual| above this → outlier
LEVERAGE_MULTIPLIER    = 2.0    # leverage above multiplier · p / n → high leverage
TRIM_STD_RESID_HIGH_LEVERAGE = 2.0   # high-leverage points with |r| above this are trimmed
COOKS_NUMERATOR        = 4.0    # Cook's D above 4 / n → influential
WLS_SD_FLOOR           = 1e-6   # floor for fitted residual spread in WLS weights

# Box-Cox
BOXCOX_NICE_LAMBDAS    = (-2.0, -1.0, -0.5, 0.0, 0.5, 1.0, 2.0)
BOXCOX_PROFILE_GRID    = (-2.0, 2.0, 81)   # start, stop, num points of the plotted curve
BOXCOX_SEARCH_BOUNDS   = (-5.0, 5.0)       # range searched for the response λ̂
