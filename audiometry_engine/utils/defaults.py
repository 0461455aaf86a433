"""Constants and default values for pure-tone threshold testing."""

# Test order per ear
STANDARD_FREQUENCIES = (500, 1000, 2000, 4000, 8000)

# Hearing level ladder in dB HL, 5 dB steps
MIN_HEARING_LEVEL = -10
MAX_HEARING_LEVEL = 100
HEARING_LEVEL_STEP = 5
HEARING_LEVELS = tuple(range(MIN_HEARING_LEVEL, MAX_HEARING_LEVEL + 1, HEARING_LEVEL_STEP))

# Threshold search parameters
DEFAULT_STARTING_LEVEL = 40
FAMILIARIZATION_STEP_UP = 20
DESCENDING_STEP_DOWN = 10
ASCENDING_STEP_UP = 5
CONFIRMATION_POSITIVE_RESPONSES = 2
CONFIRMATION_MIN_RESPONSES = 3
CONFIRMATION_MAX_RESPONSES = 5
MAX_PRESENTATIONS_PER_PAIR = 20
NO_RESPONSE_LEVEL = MAX_HEARING_LEVEL

# Timing (seconds)
RESPONSE_TIMEOUT = 5.0
INTER_TONE_DELAY = 1.0
TONE_DURATION = None  # tone plays until the response or the timeout

# Calibration
DEFAULT_REFERENCE_LEVEL = 0.5
CALIBRATION_REFERENCE_FREQUENCY = 1000
RECALIBRATION_AFTER_DAYS = 90

# Classification
MODEL_MIN_FREQUENCIES = 3
ASYMMETRY_THRESHOLD_DB = 15.0

# Response model default parameters
DEFAULT_SLOPE = 0.2
DEFAULT_GUESS_RATE = 0.01
DEFAULT_LAPSE_RATE = 0.01

# Hearing history
TREND_SESSION_LIMIT = 6
TREND_STABLE_DB = 5
PROGRESSION_DECLINE_DB = 10.0
PROGRESSION_IMPROVEMENT_DB = 5.0
NOISE_NOTCH_DB = 10.0
