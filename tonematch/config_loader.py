"""
Configuration loader for analysis settings and match presets.

Reads YAML files of the form:

    analysis:
      fft_size: 8192
      window_type: blackman_harris
      overlap: 0.75
      frequency_bands: [31.5, 63, 125, 250, 500, 1000, 2000, 4000, 8000, 16000]
    match:
      preset: balanced      # optional, explicit keys below override it
      intensity: 0.6

A presets directory may hold extra ``*.yaml`` files, each a ``match:``-style
mapping with an optional ``name`` and ``description``.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging

import yaml

from .errors import ConfigError
from .profile_matcher import MATCH_PRESETS, MatchConfig
from .spectral_analyzer import AnalysisConfig

logger = logging.getLogger(__name__)


@dataclass
class PresetInfo:
    """Metadata about an available match preset."""
    name: str
    description: str
    source: str  # "builtin" or the YAML file path


class ConfigLoader:
    """
    Loads analysis/match configs and user presets from YAML files with caching.

    Attributes:
        presets_dir: Optional directory of user preset files
    """

    def __init__(self, presets_dir: Optional[Union[str, Path]] = None):
        self.presets_dir = Path(presets_dir) if presets_dir else None
        self._cache: Dict[Path, Dict[str, Any]] = {}

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """
        Load a YAML file and return its top-level mapping.

        Raises:
            ConfigError: If the file is missing, unparsable or not a mapping
        """
        path = Path(path)
        if path in self._cache:
            return self._cache[path]

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML file {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {path} must contain a mapping")

        self._cache[path] = data
        logger.debug(f"Loaded configuration from {path}")
        return data

    def load(self, path: Union[str, Path]) -> Tuple[AnalysisConfig, MatchConfig]:
        """
        Load both analysis and match settings from one file.

        Missing sections fall back to defaults.
        """
        data = self._load_yaml(Path(path))
        unknown = set(data) - {"analysis", "match"}
        if unknown:
            raise ConfigError(f"Unknown sections in {path}: {sorted(unknown)}")

        analysis = self.build_analysis_config(data.get("analysis") or {})
        match = self.build_match_config(data.get("match") or {})
        return analysis, match

    def build_analysis_config(self, section: Dict[str, Any]) -> AnalysisConfig:
        if not isinstance(section, dict):
            raise ConfigError("'analysis' section must be a mapping")
        try:
            return AnalysisConfig.from_dict(section)
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid analysis settings: {e}")

    def build_match_config(self, section: Dict[str, Any]) -> MatchConfig:
        """Resolve an optional preset name, then apply explicit overrides."""
        if not isinstance(section, dict):
            raise ConfigError("'match' section must be a mapping")
        settings = dict(section)
        preset_name = settings.pop("preset", None)
        for meta_key in ("name", "description"):
            settings.pop(meta_key, None)

        base = self.load_preset(preset_name) if preset_name else MatchConfig()
        merged = {**base.to_dict(), **settings}
        try:
            return MatchConfig.from_dict(merged)
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid match settings: {e}")

    def load_preset(self, name: str) -> MatchConfig:
        """
        Load a match preset by name.

        User presets in presets_dir take precedence over built-in ones.
        """
        user_path = self._find_user_preset(name)
        if user_path is not None:
            return self.build_match_config(self._load_yaml(user_path))
        return MatchConfig.from_preset(name)

    def list_presets(self) -> List[PresetInfo]:
        """List built-in presets followed by presets found in presets_dir."""
        presets = [PresetInfo(name=name, description="", source="builtin") for name in MATCH_PRESETS]
        for path in self._user_preset_files():
            data = self._load_yaml(path)
            presets.append(PresetInfo(
                name=str(data.get("name", path.stem)),
                description=str(data.get("description", "")),
                source=str(path),
            ))
        return presets

    def clear_cache(self):
        """Clear the file cache."""
        self._cache.clear()

    def _user_preset_files(self) -> List[Path]:
        if self.presets_dir is None or not self.presets_dir.exists():
            return []
        return sorted(self.presets_dir.glob("*.yaml"))

    def _find_user_preset(self, name: str) -> Optional[Path]:
        for path in self._user_preset_files():
            if path.stem == name:
                return path
            if self._load_yaml(path).get("name") == name:
                return path
        return None


# Convenience functions
def load_config(path: Union[str, Path]) -> Tuple[AnalysisConfig, MatchConfig]:
    """Load analysis and match settings from a YAML file."""
    return ConfigLoader().load(path)
