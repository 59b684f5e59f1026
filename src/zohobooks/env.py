import os

from .types import Region, ZohoConfig

DEFAULT_PREFIX = "ZOHO_"

# suffix -> ZohoConfig field
_REQUIRED = {
    "CLIENT_ID": "client_id",
    "CLIENT_SECRET": "client_secret",
    "ACCESS_TOKEN": "access_token",
    "REFRESH_TOKEN": "refresh_token",
    "ORGANIZATION_ID": "organization_id",
}
_OPTIONAL = {
    "BASE_URL": "base_url",
    "TOKEN_URL": "token_url",
}


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                if key.startswith("export "):
                    key = key[len("export ") :].strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        pass
    return values


def load_config_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: str | None = None,
    **overrides,
) -> ZohoConfig:
    """Create a ZohoConfig from environment variables.

    Reads ``<prefix>CLIENT_ID``, ``CLIENT_SECRET``, ``ACCESS_TOKEN``,
    ``REFRESH_TOKEN``, ``ORGANIZATION_ID`` and, optionally, ``REGION``,
    ``BASE_URL`` and ``TOKEN_URL``. If 'env_path' is provided, variables from
    the .env file fill in anything the process environment lacks; the real
    environment takes precedence. Keyword overrides (ZohoConfig field names)
    win over both.

    Raises:
        ValueError: a required value is missing or REGION is unknown
    """
    file_env = _parse_env_file(env_path) if env_path else {}
    env_map: dict[str, str] = {**file_env, **os.environ}

    values: dict[str, object] = {}
    for suffix, field_name in {**_REQUIRED, **_OPTIONAL}.items():
        val = env_map.get(f"{prefix}{suffix}")
        if val:
            values[field_name] = val
    region = env_map.get(f"{prefix}REGION")
    if region:
        try:
            values["region"] = Region(region.strip().lower())
        except ValueError as e:
            choices = ", ".join(r.value for r in Region)
            raise ValueError(f"{prefix}REGION={region!r} is not one of: {choices}") from e
    values.update({k: v for k, v in overrides.items() if v is not None})

    missing = [f"{prefix}{s}" for s, f in _REQUIRED.items() if not values.get(f)]
    if missing:
        raise ValueError(f"missing Zoho Books settings: {', '.join(missing)}")
    return ZohoConfig(**values)
