"""System configuration for homestaff.

Holds the tax (GST) rate and trial fee consumed by the billing calculator,
plus the office details printed on invoices.  Values live in
``~/.homestaff/config.yaml``::

    billing:
      tax_rate: 18
      trial_fee: 199
    office:
      company_name: JOB FARMS
      address: ...
      phone1: ...
      phone2: ...
      email: ...
      website: ...

Precedence (highest first):
    1. CLI flags (``--tax-rate``, ``--trial-fee``)
    2. Environment variables (``HOMESTAFF_TAX_RATE``, ``HOMESTAFF_TRIAL_FEE``)
    3. Config file (``HOMESTAFF_CONFIG`` or ``~/.homestaff/config.yaml``)
    4. Built-in defaults (18 % tax, 199 trial fee)
"""

from __future__ import annotations

import contextlib
import logging
import os
import stat
import sys
from dataclasses import asdict, dataclass, replace
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from homestaff.billing import InvalidAmount, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = Decimal("18")
DEFAULT_TRIAL_FEE = Decimal("199")
DEFAULT_COMPANY_NAME = "JOB FARMS"

# Valid top-level keys in the config file.
_KNOWN_KEYS: set[str] = {"billing", "office"}

# SystemConfig field -> (section, key) in the YAML file.
_FIELD_LOCATIONS: dict[str, tuple[str, str]] = {
    "tax_rate": ("billing", "tax_rate"),
    "trial_fee": ("billing", "trial_fee"),
    "company_name": ("office", "company_name"),
    "office_address": ("office", "address"),
    "office_phone1": ("office", "phone1"),
    "office_phone2": ("office", "phone2"),
    "office_email": ("office", "email"),
    "website": ("office", "website"),
}

_ENV_OVERRIDES: dict[str, str] = {
    "tax_rate": "HOMESTAFF_TAX_RATE",
    "trial_fee": "HOMESTAFF_TRIAL_FEE",
}

_AMOUNT_FIELDS = ("tax_rate", "trial_fee")


class ConfigError(ValueError):
    """Raised when a configuration update is rejected."""


@dataclass(frozen=True)
class SystemConfig:
    """Snapshot of the admin-editable system settings.

    Attributes:
        tax_rate: GST percentage applied to commissions.
        trial_fee: Fixed fee added to trial-plan commissions.
        company_name: Trading name shown on invoices.
        office_address: Postal address of the head office.
        office_phone1: Primary office phone.
        office_phone2: Secondary office phone.
        office_email: Office contact e-mail.
        website: Public website URL.
    """

    tax_rate: Decimal = DEFAULT_TAX_RATE
    trial_fee: Decimal = DEFAULT_TRIAL_FEE
    company_name: str = DEFAULT_COMPANY_NAME
    office_address: str | None = None
    office_phone1: str | None = None
    office_phone2: str | None = None
    office_email: str | None = None
    website: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable dictionary."""
        data = asdict(self)
        data["tax_rate"] = str(self.tax_rate)
        data["trial_fee"] = str(self.trial_fee)
        return data


def get_config_path() -> Path:
    """Return the config file path (``HOMESTAFF_CONFIG`` or ``~/.homestaff/config.yaml``)."""
    env_path = os.environ.get("HOMESTAFF_CONFIG", "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".homestaff" / "config.yaml"


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------


def _check_file_permissions(path: Path) -> None:
    """Warn if *path* is readable or writable by group or others."""
    if sys.platform == "win32":
        return
    try:
        mode = path.stat().st_mode
        if mode & (stat.S_IRGRP | stat.S_IWGRP | stat.S_IROTH | stat.S_IWOTH):
            logger.warning(
                "Config file %s has overly permissive permissions (mode %04o). Recommended: chmod 600 %s",
                path,
                stat.S_IMODE(mode),
                path,
            )
    except OSError:
        pass


def _validate_config_schema(data: dict[str, Any], path: Path) -> None:
    """Log warnings for unknown top-level keys in the config file."""
    unknown = set(data.keys()) - _KNOWN_KEYS
    for key in sorted(unknown):
        logger.warning(
            "Config file %s contains unknown key %r (expected one of: %s)",
            path,
            key,
            ", ".join(sorted(_KNOWN_KEYS)),
        )


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read and parse the YAML config file; return ``{}`` on any failure."""
    if not path.is_file():
        return {}
    _check_file_permissions(path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        if not isinstance(data, dict):
            return {}
        _validate_config_schema(data, path)
        return data
    except yaml.YAMLError as exc:
        logger.warning("Config file %s has invalid YAML: %s; using defaults.", path, exc)
        return {}
    except OSError as exc:
        logger.warning("Could not read config file %s: %s", path, exc)
        return {}


def _write_config_file(path: Path, data: dict[str, Any]) -> None:
    """Write *data* to the YAML config file with owner-only permissions."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(data, fh, default_flow_style=False, sort_keys=False)
    if sys.platform != "win32":
        with contextlib.suppress(OSError):
            path.chmod(0o600)


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def _coerce_amount(name: str, raw: Any, source: str, default: Decimal) -> Decimal:
    """Parse a configured amount, logging and falling back to *default* if invalid."""
    try:
        return to_decimal(raw, name)
    except InvalidAmount as exc:
        logger.warning("Ignoring %s from %s: %s; using default %s", name, source, exc, default)
        return default


def load_system_config(
    *,
    config_path: Path | None = None,
    env_overrides: bool = True,
) -> SystemConfig:
    """Resolve the current :class:`SystemConfig`.

    Missing values fall back to the defaults (18 % tax, 199 trial fee).
    Environment variables override the file for the billing amounts unless
    *env_overrides* is false.
    """
    path = config_path or get_config_path()
    raw = _read_config_file(path)
    defaults = SystemConfig()
    values: dict[str, Any] = {}

    for field_name, (section, key) in _FIELD_LOCATIONS.items():
        block = raw.get(section, {})
        if not isinstance(block, dict) or block.get(key) is None:
            continue
        value = block[key]
        if field_name in _AMOUNT_FIELDS:
            value = _coerce_amount(field_name, value, str(path), getattr(defaults, field_name))
        else:
            value = str(value)
        values[field_name] = value

    if env_overrides:
        for field_name, env_name in _ENV_OVERRIDES.items():
            env_value = os.environ.get(env_name, "").strip()
            if env_value:
                fallback = values.get(field_name, getattr(defaults, field_name))
                values[field_name] = _coerce_amount(field_name, env_value, env_name, fallback)

    return replace(defaults, **values)


class ConfigProvider:
    """Callable source of :class:`SystemConfig` snapshots backed by the YAML file.

    Each call re-reads the file so admin changes take effect on the next
    calculation; a single calculation only ever sees one snapshot.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path = config_path

    def __call__(self) -> SystemConfig:
        return load_system_config(config_path=self._config_path)


# ---------------------------------------------------------------------------
# Save / mutate
# ---------------------------------------------------------------------------


def update_system_config(
    *,
    config_path: Path | None = None,
    **changes: Any,
) -> SystemConfig:
    """Apply admin *changes* to the config file and return the saved config.

    The result reflects the file alone; environment overrides are not applied.

    Only :class:`SystemConfig` field names are accepted.  ``None`` values
    are skipped so callers can pass optional form fields straight through.

    Raises :class:`ConfigError` for unknown fields or invalid amounts.
    """
    unknown = set(changes) - set(_FIELD_LOCATIONS)
    if unknown:
        raise ConfigError(
            f"Unknown config field(s): {', '.join(sorted(unknown))}. "
            f"Expected one of: {', '.join(_FIELD_LOCATIONS)}"
        )

    path = config_path or get_config_path()
    raw = _read_config_file(path)

    for field_name, value in changes.items():
        if value is None:
            continue
        section, key = _FIELD_LOCATIONS[field_name]
        if field_name in _AMOUNT_FIELDS:
            try:
                amount = to_decimal(value, field_name)
            except InvalidAmount as exc:
                raise ConfigError(str(exc)) from exc
            # YAML has no decimal type; keep the exact text.
            stored: Any = str(amount)
        else:
            stored = str(value)
        block = raw.get(section)
        if not isinstance(block, dict):
            block = raw[section] = {}
        block[key] = stored

    _write_config_file(path, raw)
    logger.info(
        "Updated system config %s: %s",
        path,
        ", ".join(sorted(k for k, v in changes.items() if v is not None)) or "(no changes)",
    )
    for field_name, env_name in _ENV_OVERRIDES.items():
        if changes.get(field_name) is not None and os.environ.get(env_name, "").strip():
            logger.warning(
                "%s is set and overrides the saved %s in calculations", env_name, field_name,
            )
    return load_system_config(config_path=path, env_overrides=False)
