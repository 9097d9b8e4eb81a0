import logging
import os
from pathlib import Path

import tomlkit

from domain.models import RendererSettings
from domain.toml_sections import flat_to_sectioned, sectioned_to_flat

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = 'FOREST_LOSS_SETTINGS'


def default_settings_path() -> Path:
    """
    Determine the settings file location.

    1) $FOREST_LOSS_SETTINGS if set.
    2) <project_root>/configs/renderer.toml (run-from-repo setups).
    3) ~/.config/forest_loss/renderer.toml otherwise.
    """
    env_path = os.getenv(SETTINGS_ENV_VAR)
    if env_path:
        return Path(env_path)

    project_root = Path(__file__).resolve().parent.parent
    local = project_root / 'configs' / 'renderer.toml'
    if local.exists():
        return local

    return Path.home() / '.config' / 'forest_loss' / 'renderer.toml'


def load_settings(path: str | Path | None = None) -> RendererSettings:
    """
    Load and validate a TOML profile -> RendererSettings.

    With no path the default location is used, and a missing default file
    yields default settings. An explicitly given path must exist.
    """
    if path is None:
        candidate = default_settings_path()
        if not candidate.exists():
            logger.info('No settings file at %s, using defaults', candidate)
            return RendererSettings()
        path = candidate

    path = Path(path)
    if not path.exists():
        msg = f'Settings file not found: {path}'
        raise FileNotFoundError(msg)

    data = tomlkit.parse(path.read_text(encoding='utf-8')).unwrap()
    settings = RendererSettings.model_validate(sectioned_to_flat(data))
    logger.info(
        'Settings loaded from %s: budget=%.0fMB, timeout=%.1fs',
        path,
        settings.cache_budget_mb,
        settings.fetch_timeout_s,
    )
    return settings


def save_settings(settings: RendererSettings, path: str | Path) -> Path:
    """Write settings as a sectioned TOML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sectioned = flat_to_sectioned(settings.model_dump())
    path.write_text(tomlkit.dumps(sectioned), encoding='utf-8')
    logger.info('Settings saved to %s', path)
    return path
