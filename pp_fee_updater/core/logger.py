# /pp_fee_updater/core/logger.py
import logging
import structlog
from structlog.contextvars import bind_contextvars
import sentry_sdk
from prometheus_client import Counter, Gauge
from pp_fee_updater.core.config import settings
import json
import hmac
import hashlib
import os

# --- Prometheus Metrics ---
BLOCKS_PROCESSED = Counter("pp_fee_updater_blocks_processed_total", "Block notifications handed to the engine")
DECISIONS = Counter("pp_fee_updater_decisions_total", "Reconciliation outcomes", ["decision"])
UPDATES_SUBMITTED = Counter("pp_fee_updater_updates_submitted_total", "Gas price updates broadcast", ["direction"])
PENDING_RESOLVED = Counter("pp_fee_updater_pending_resolved_total", "Pending updates cleared", ["outcome"])
CYCLE_ERRORS = Counter("pp_fee_updater_cycle_errors_total", "Block cycles abandoned on error", ["kind"])
ERRORS_LOGGED = Counter("pp_fee_updater_errors_logged_total", "Total number of errors logged", ["level"])
NETWORK_GAS_PRICE = Gauge("pp_fee_updater_network_gas_price", "Last observed network gas price (fee units)")
CONTRACT_GAS_PRICE = Gauge("pp_fee_updater_contract_gas_price", "Last observed contract gas price (fee units)")

# Both set by configure_logging(); tests monkey-patch AUDIT_FILE to a temporary path.
SIGNING_KEY = b"insecure"
AUDIT_FILE = None


def count_errors(logger, method_name: str, event_dict: dict) -> dict:
    if method_name in ("error", "critical", "exception"):
        ERRORS_LOGGED.labels(method_name).inc()
    return event_dict


def sign_and_append(logger, method_name: str, event_dict: dict) -> dict:
    """Structlog processor that signs each event and appends it to the audit log.

    The line written is ``<json payload>|<hex hmac>``; the payload is serialized
    with sorted keys so the signature is reproducible from the file alone.
    Nothing is written when no audit file is configured, but the signature is
    still attached to the event.
    """
    payload = json.dumps(event_dict, sort_keys=True, default=str)
    sig = hmac.new(SIGNING_KEY, payload.encode(), hashlib.sha256).hexdigest()

    audit_file = AUDIT_FILE
    if audit_file:
        audit_file = str(audit_file)
        directory = os.path.dirname(audit_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(audit_file, "a", encoding="utf-8") as f:
            f.write(payload + "|" + sig + "\n")

    event_dict["signature"] = sig
    return event_dict


def resolve_log_level(name: str) -> int | None:
    """Numeric level for a name such as "info", or None when logging does not know it."""
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else None


def configure_logging():
    global SIGNING_KEY, AUDIT_FILE
    SIGNING_KEY = (
        settings.LOG_SIGNING_KEY.get_secret_value().encode()
        if settings.LOG_SIGNING_KEY
        else b"insecure"
    )
    AUDIT_FILE = settings.AUDIT_LOG_PATH

    # An unknown level is reported by the config validator; logging stays usable until then
    level = resolve_log_level(settings.LOG_LEVEL)
    if level is None:
        level = logging.INFO

    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN.get_secret_value(), traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            count_errors,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            sign_and_append,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)


def set_block_context(block_number: int):
    """Tags every log line of the current cycle with the block that triggered it."""
    bind_contextvars(block_number=block_number)


configure_logging()
log = get_logger("PP-Fee-Updater.System")
