# /pp_fee_updater/core/config.py
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, SecretStr


class Settings(BaseSettings):
    # Node endpoints. Each of these five also has a long and a short command line flag.
    WS_URL: str | None = Field(None, validation_alias=AliasChoices("WS_URL", "websocket-url", "w"))
    API_URL: str | None = Field(None, validation_alias=AliasChoices("API_URL", "api-url", "u"))

    # Contract & owner account
    PP_ADDRESS: str | None = Field(None, validation_alias=AliasChoices("PP_ADDRESS", "privacy-pool-address", "c"))
    OWNER_ADDRESS: str | None = Field(None, validation_alias=AliasChoices("OWNER_ADDRESS", "owner-address", "o"))
    OWNER_PRIVATE_KEY: SecretStr | None = Field(
        None, validation_alias=AliasChoices("OWNER_PRIVATE_KEY", "owner-private-key", "p")
    )

    # Chain configuration. Fetched from the node when unset.
    CHAIN_ID: int | None = None
    MAX_FEE_MULTIPLIER: int = 2

    # Fee policy: raise fast, lower slow
    UPWARD_THRESHOLD_PCT: int = 105
    DOWNWARD_THRESHOLD_PCT: int = 85
    UPWARD_BUFFER_PCT: int = 110
    DOWNWARD_BUFFER_PCT: int = 110

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    LOG_SIGNING_KEY: SecretStr | None = None
    AUDIT_LOG_PATH: str | None = None
    SENTRY_DSN: SecretStr | None = None
    HEALTH_PORT: int = 8080
    KILL_SWITCH_FILE: str = ".fee_updater_kill"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from pp_fee_updater.core.logger import get_logger, configure_logging
        configure_logging()
        log = get_logger("PP-Fee-Updater.Config")
        log.critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    # In a container, a hard exit is often appropriate if config fails.
    raise SystemExit(1)


def load_settings(argv: list[str] | None = None, target: Settings | None = None) -> Settings:
    """Re-reads settings with command line flags layered over env and .env.

    Flags win over the environment. Values are copied onto ``target`` (the
    shared ``settings`` by default) so modules holding a reference see them.
    With no ``argv`` the process arguments are parsed.
    """
    parsed = Settings(
        _cli_parse_args=argv if argv is not None else True,
        _cli_prog_name="pp-fee-updater",
    )
    if target is None:
        target = settings
    for name in Settings.model_fields:
        setattr(target, name, getattr(parsed, name))
    return target
