"""Load connection profiles from YAML files."""

from __future__ import annotations

from pathlib import Path

import yaml

from ovpnctl.config import OvpnConfig
from ovpnctl.exceptions import ProfileError
from ovpnctl.profile.models import Profile


def load_profile(path: str | Path) -> Profile:
    """Load a profile from a YAML file; relative config paths resolve next to it."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ProfileError("Profile YAML must be a mapping")
    return _build_profile(data, base_dir=path.parent, default_name=path.stem)


def load_profile_from_string(text: str, base_dir: Path | None = None) -> Profile:
    """Parse a YAML string into a Profile."""
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ProfileError("Profile YAML must be a mapping")
    return _build_profile(data, base_dir=base_dir or Path.cwd(), default_name="unnamed")


def find_profile(ref: str, config: OvpnConfig | None = None) -> Profile:
    """Load ``ref`` as a path, or as ``<profile_dir>/<ref>.yaml``."""
    candidate = Path(ref)
    if candidate.is_file():
        return load_profile(candidate)

    config = config or OvpnConfig.load()
    for suffix in (".yaml", ".yml"):
        named = config.profile_dir / f"{ref}{suffix}"
        if named.is_file():
            return load_profile(named)
    raise ProfileError(f"Profile not found: {ref} (looked in {config.profile_dir})")


def _build_profile(data: dict, base_dir: Path, default_name: str) -> Profile:
    name = str(data.get("name", default_name))

    config_ref = data.get("config")
    config_text = data.get("config_text")
    if (config_ref is None) == (config_text is None):
        raise ProfileError(
            f"Profile '{name}' needs exactly one of 'config' or 'config_text'"
        )

    config_path: Path | None = None
    if config_ref is not None:
        config_path = Path(str(config_ref)).expanduser()
        if not config_path.is_absolute():
            config_path = base_dir / config_path

    flags_raw = data.get("flags", ())
    if isinstance(flags_raw, str):
        flags_raw = flags_raw.split()
    if not isinstance(flags_raw, (list, tuple)):
        raise ProfileError(f"Profile '{name}': 'flags' must be a list")

    return Profile(
        name=name,
        config_path=config_path,
        config_text=config_text,
        username=_optional_str(data.get("username")),
        password=_optional_str(data.get("password")),
        password_env=_optional_str(data.get("password_env")),
        auth_file=bool(data.get("auth_file", False)),
        flags=tuple(str(f) for f in flags_raw),
    )


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)
