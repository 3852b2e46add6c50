import os

from dotenv import find_dotenv, load_dotenv

from finkit.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "FINKIT_ANONYMIZE",
    "FINKIT_RULES_FILE",
    "FINKIT_LEARNED_MAPPINGS_FILE",
    "FINKIT_FUZZY_THRESHOLD",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
    "AI_BATCH_SIZE",
    "AI_MAX_ATTEMPTS",
)

_TRUE_VALUES = {"1", "true", "yes", "on", "ja"}
_FALSE_VALUES = {"0", "false", "no", "off", "nein"}


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _strip_inline_comment(raw_value: str) -> str:
    in_single = False
    in_double = False
    escaped = False
    for index, char in enumerate(raw_value):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"' and not in_single:
            in_double = not in_double
            continue
        if char == "'" and not in_double:
            in_single = not in_single
            continue
        if char == "#" and not in_single and not in_double:
            return raw_value[:index].rstrip()
    return raw_value


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) < 2:
        return raw_value
    if raw_value[0] == raw_value[-1] == '"':
        value = raw_value[1:-1]
        return value.replace('\\"', '"').replace("\\\\", "\\")
    if raw_value[0] == raw_value[-1] == "'":
        value = raw_value[1:-1]
        return value.replace("\\'", "'").replace("\\\\", "\\")
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read a flat ``KEY: value`` file. Nested YAML is not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            if not key:
                continue
            cleaned = _strip_inline_comment(raw_value).strip()
            if not cleaned:
                continue
            value = _unquote_value(cleaned)
            if value:
                values[key] = value
    return values


def load_environment() -> None:
    """Fill unset keys from `.env`, then from `config.yaml`. Real environment variables win."""
    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    config_path = _resolve_config_path()
    config_values = read_config_file(config_path)
    for key in _CONFIG_KEYS:
        if key not in os.environ and key in config_values:
            os.environ[key] = config_values[key]
    if config_values:
        logger.debug("[ENV] Read %d settings from %s.", len(config_values), config_path)


def get_env_str(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(name: str, default: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    if raw.strip().lower() in {"none", "off"}:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default


def get_env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
    return default


_SENSITIVE_ENV_KEYS = (
    "KEY",
    "TOKEN",
    "SECRET",
    "PASSWORD",
    "PASS",
    "AUTH",
    "BEARER",
    "PRIVATE",
)


def _should_mask_env_value(name: str, value: str) -> bool:
    upper_name = name.upper()
    if any(marker in upper_name for marker in _SENSITIVE_ENV_KEYS):
        return True
    if value.startswith("sk-") or value.startswith("rk-"):
        return True
    if value.startswith("Bearer ") or value.startswith("bearer "):
        return True
    return False


def _mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    if not _should_mask_env_value(name, sanitized):
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


DEFAULT_FUZZY_THRESHOLD = 90.0
DEFAULT_AI_BATCH_SIZE = 25
DEFAULT_AI_MAX_ATTEMPTS = 3
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


load_environment()


def anonymize_by_default() -> bool:
    return get_env_bool("FINKIT_ANONYMIZE", True)


def rules_file() -> str | None:
    return get_env_str("FINKIT_RULES_FILE")


def learned_mappings_file() -> str | None:
    return get_env_str("FINKIT_LEARNED_MAPPINGS_FILE")


def fuzzy_threshold() -> float | None:
    return get_env_float("FINKIT_FUZZY_THRESHOLD", DEFAULT_FUZZY_THRESHOLD)


def ai_batch_size() -> int:
    return get_env_int("AI_BATCH_SIZE", DEFAULT_AI_BATCH_SIZE, min_value=1)


def ai_max_attempts() -> int:
    return get_env_int("AI_MAX_ATTEMPTS", DEFAULT_AI_MAX_ATTEMPTS, min_value=1)
