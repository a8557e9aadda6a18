import yaml
from pydantic import ValidationError

from photobattle.common.config import BattleConfig, ConfigError, Settings


def load_battle_config(path: str = "config.yaml") -> BattleConfig:
    """Load battle configuration from a YAML file.

    Args:
        path: Path to the config YAML file

    Returns:
        BattleConfig loaded from the ``battle`` section, or defaults if the
        file doesn't exist or is empty

    Raises:
        ConfigError: If the file is not valid YAML or the section is invalid
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return BattleConfig()
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path!r}: {e}") from e

    if data is None:
        return BattleConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path!r} must contain a mapping at the top level")

    battle_data = data.get("battle") or {}
    try:
        return BattleConfig(**battle_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid battle configuration in {path!r}: {e}") from e


def resolve_battle_config(settings: Settings) -> BattleConfig:
    """Pick the battle configuration for a process.

    ``config.yaml`` (``settings.config_path``) wins when it exists; otherwise
    the ``PHOTOBATTLE_BATTLE__*`` environment values on ``settings`` apply.
    """
    if settings.config_path.exists():
        return load_battle_config(str(settings.config_path))
    return settings.battle
