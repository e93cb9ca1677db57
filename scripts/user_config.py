"""scoutcard user configuration.

This is the user-facing configuration file. Modify settings here to customize
counting, alerts and trend reports. Expert defaults live in
scoutcard.schemas.param.

Usage:
    scoutcard --config scripts/user_config.py trend --unit week --count 8
    scoutcard --config scripts/user_config.py thresholds
"""

CONFIG = {
    # ========================================================================
    # STORAGE
    # ========================================================================
    "BASE_DIR": "./scoutcard_data",   # Record store lives here
    "DB_FILENAME": "scoutcard.db",

    # ========================================================================
    # ORACLE PASSES
    # ========================================================================
    "PASSES": 3,              # Passes per category per image
    "PASS_TIMEOUT_SEC": 45,   # Seconds before a pass counts as timed out
    "HIGH_SPREAD_PCT": 10,    # Spread allowed for high consistency (% of count)
    "MEDIUM_SPREAD_PCT": 30,  # Spread allowed for medium consistency (% of count)

    # ========================================================================
    # TRENDS
    # ========================================================================
    "WEEK_START": "monday",
    "TIMEZONE": "America/Chicago",

    # ========================================================================
    # ALERT THRESHOLDS (override per category; others keep their defaults)
    # ========================================================================
    "THRESHOLDS": [
        {"category": "whitefly", "watch": 5, "action": 15, "critical": 30},
        {"category": "thrips", "watch": 5, "action": 10, "critical": 20},
    ],

    "LOG_LEVEL": "INFO",
}
