# /pp_fee_updater/core/config_validator.py
# Run at startup to validate all configs and secrets.
from pp_fee_updater.core.config import settings as default_settings
from pp_fee_updater.core.logger import log, resolve_log_level

REQUIRED_VARS = ["WS_URL", "API_URL", "PP_ADDRESS", "OWNER_ADDRESS", "OWNER_PRIVATE_KEY"]
PERCENT_VARS = ["UPWARD_THRESHOLD_PCT", "DOWNWARD_THRESHOLD_PCT", "UPWARD_BUFFER_PCT", "DOWNWARD_BUFFER_PCT"]


def validate(settings=None):
    if settings is None:
        settings = default_settings
    log.info("--- CONFIG VALIDATION START ---")
    errors = []

    for var in REQUIRED_VARS:
        if not getattr(settings, var, None):
            errors.append(f"Missing required configuration: {var}")

    for var in PERCENT_VARS:
        if getattr(settings, var) <= 0:
            errors.append(f"{var} must be a positive percentage, got {getattr(settings, var)}")

    if settings.DOWNWARD_THRESHOLD_PCT > settings.UPWARD_THRESHOLD_PCT:
        errors.append(
            f"Inverted threshold band: DOWNWARD_THRESHOLD_PCT={settings.DOWNWARD_THRESHOLD_PCT} "
            f"> UPWARD_THRESHOLD_PCT={settings.UPWARD_THRESHOLD_PCT}"
        )

    if settings.MAX_FEE_MULTIPLIER < 1:
        errors.append(f"MAX_FEE_MULTIPLIER must be at least 1, got {settings.MAX_FEE_MULTIPLIER}")

    if resolve_log_level(settings.LOG_LEVEL) is None:
        errors.append(f"Unknown LOG_LEVEL: {settings.LOG_LEVEL!r}")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    if settings.UPWARD_THRESHOLD_PCT < 100 or settings.DOWNWARD_THRESHOLD_PCT > 100:
        log.warning(
            "THRESHOLD_BAND_DOES_NOT_STRADDLE_CONTRACT_PRICE",
            upward=settings.UPWARD_THRESHOLD_PCT,
            downward=settings.DOWNWARD_THRESHOLD_PCT,
        )

    log.info("--- CONFIG VALIDATION PASSED ---")


if __name__ == "__main__":
    validate()
