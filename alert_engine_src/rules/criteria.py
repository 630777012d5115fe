"""Rule threshold defaults and reference windows.

Every clinical number used by the built-in rules is defined here and can be
overridden through the environment (see config.py). The defaults are
starting points for configuration, not clinical recommendations.
"""

# =============================================================================
# Reference windows
# =============================================================================

# "Daily resume" and "7-day resume" views of patient data
DAILY_RESUME_HOURS = 24
WEEKLY_RESUME_DAYS = 7


# =============================================================================
# Glycemic thresholds (mg/dL)
# =============================================================================

# Reading strictly above this value counts towards a hyperglycemia streak
HYPERGLYCEMIA_THRESHOLD_MGDL = 180.0

# Number of consecutive readings above threshold required to fire
HYPERGLYCEMIA_CONSECUTIVE_READINGS = 3

# Two readings further apart than this are not "consecutive"
HYPERGLYCEMIA_MAX_GAP_HOURS = 8.0

# Reading strictly below this value fires the hypoglycemia rule (3.9 mmol/L)
HYPOGLYCEMIA_THRESHOLD_MGDL = 70.0

# Mean over the 7-day resume window strictly above this value fires
WEEKLY_AVERAGE_THRESHOLD_MGDL = 154.0

# Fewer readings than this in the week and the average is not assessed
WEEKLY_AVERAGE_MIN_READINGS = 7


# =============================================================================
# Therapy adherence
# =============================================================================

# Minutes after a dose's due time before it counts as missed
MISSED_DOSE_GRACE_MINUTES = 120

# Patient tag marking an active therapy schedule
ACTIVE_THERAPY_TAG = "active_therapy"


# =============================================================================
# Symptoms (intensity on a 0-10 scale)
# =============================================================================

SYMPTOM_SEVERE_INTENSITY = 8
SYMPTOM_RECURRENCE_COUNT = 3


# =============================================================================
# Cooldown
# =============================================================================

# Minimum hours before the same rule may fire again for the same patient
DEFAULT_COOLDOWN_HOURS = 24.0
