"""
Config system - configuration file loaders and the workspace loader.

Two concerns live here:

- Loading the raw properties of a single cache resource from a location
  (``.properties``, YAML or JSON). These are the loaders the
  configuration resolver calls.
- Loading the workspace declaration of cache factories with merge
  precedence: overrides > environment variables > config files.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from cacheport.bridge.core import PropertyMap, flatten_properties
from cacheport.bridge.faults import CacheConfigFault, ConfigurationLoadFault

logger = logging.getLogger("cacheport.config")

Location = Union[str, "os.PathLike[str]"]

_PROPERTY_LINE = re.compile(r"(?P<key>[^=:\s]*)\s*[=:]?\s*(?P<value>.*)$")

PROPERTIES_SUFFIXES = (".properties",)
YAML_SUFFIXES = (".yaml", ".yml")
JSON_SUFFIXES = (".json",)


# ============================================================================
# Resource loaders
# ============================================================================

def _logical_lines(text: str):
    """Join lines ending in an unescaped backslash with the line that follows."""
    pending = ""
    for raw_line in text.splitlines():
        line = raw_line.lstrip() if pending else raw_line.strip()
        if not pending and line.startswith(("#", "!")):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue
        yield pending + line
        pending = ""
    if pending:
        yield pending


def _parse_properties(text: str) -> PropertyMap:
    """
    Parse ``.properties`` text.

    The key ends at the first ``=``, ``:`` or whitespace; a ``=`` or ``:``
    after that whitespace is part of the separator. ``#`` and ``!`` lines
    are comments and a trailing ``\\`` continues a value on the next line.
    Escape sequences inside keys and values are not interpreted.
    """
    properties: PropertyMap = {}
    for line in _logical_lines(text):
        line = line.strip()
        if not line:
            continue
        match = _PROPERTY_LINE.match(line)
        properties[match.group("key")] = match.group("value").strip()
    return properties


def load_properties(location: Location) -> PropertyMap:
    """
    Load flat key/value properties from a ``.properties`` file.

    Raises:
        ConfigurationLoadFault: If the file cannot be read.
    """
    path = Path(location)
    try:
        with open(path, encoding="utf-8") as f:
            return _parse_properties(f.read())
    except UnicodeDecodeError as e:
        raise ConfigurationLoadFault(path, f"not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigurationLoadFault(path, str(e)) from e


def load_structured(location: Location) -> PropertyMap:
    """
    Load a YAML or JSON document and flatten it into dotted keys.

    Raises:
        ConfigurationLoadFault: If the file cannot be read or parsed.
    """
    path = Path(location)
    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() in JSON_SUFFIXES:
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except UnicodeDecodeError as e:
        raise ConfigurationLoadFault(path, f"not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigurationLoadFault(path, str(e)) from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationLoadFault(path, f"parse error: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationLoadFault(
            path, f"expected a mapping at top level, got {type(data).__name__}"
        )
    return flatten_properties(data)


def load_configuration(location: Location) -> PropertyMap:
    """
    Load raw properties from a location, dispatching on the file suffix.

    Supports ``.properties``, ``.yaml``/``.yml`` and ``.json``.
    """
    suffix = Path(location).suffix.lower()
    if suffix in PROPERTIES_SUFFIXES:
        properties = load_properties(location)
    elif suffix in YAML_SUFFIXES or suffix in JSON_SUFFIXES:
        properties = load_structured(location)
    else:
        raise ConfigurationLoadFault(location, f"unsupported configuration format '{suffix or '<none>'}'")

    logger.debug(f"Loaded {len(properties)} properties from {location}")
    return properties


# ============================================================================
# Workspace loader
# ============================================================================

class ConfigLoader:
    """
    Loads and merges the workspace cache declarations with precedence:
    Manual overrides > Environment variables > config files

    Layout::

        caches:
          users:
            engine: embedded
            kind: contained_cache
            location: config/users-cache.yaml
            overrides:
              eviction.max_entries: 500
    """

    def __init__(self, env_prefix: str = "CACHEPORT_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "CACHEPORT_",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources.

        Merge order (later overrides earlier):
        1. Config files (YAML or JSON, in the given order)
        2. Environment variables (CACHEPORT_* prefix)
        3. Manual overrides

        Args:
            paths: Config file paths. Defaults to ``cacheport.yaml`` when present.
            env_prefix: Prefix for environment variables
            overrides: Manual overrides (highest precedence)
        """
        loader = cls(env_prefix=env_prefix)

        if not paths and Path("cacheport.yaml").exists():
            paths = ["cacheport.yaml"]

        for path_str in paths or []:
            loader._load_file(Path(path_str))

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_file(self, path: Path):
        """Load a workspace file (YAML or JSON) and merge it."""
        try:
            with open(path, encoding="utf-8") as f:
                if path.suffix.lower() in JSON_SUFFIXES:
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except UnicodeDecodeError as e:
            raise ConfigurationLoadFault(path, f"not valid UTF-8: {e}") from e
        except OSError as e:
            raise ConfigurationLoadFault(path, str(e)) from e
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationLoadFault(path, f"parse error: {e}") from e

        if data and not isinstance(data, dict):
            raise ConfigurationLoadFault(path, "top level must be a mapping")
        if data:
            self._merge_dict(self.config_data, data)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert CACHEPORT_CACHES__USERS__NAME to nested dict."""
        key = key[len(self.env_prefix):]

        # Split by double underscore for nested keys
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def get_factory_declarations(self) -> Dict[str, Dict[str, Any]]:
        """
        Get the declared cache factories, keyed by their registration name.

        Returns:
            Mapping of name to declaration dictionary
        """
        caches = self.config_data.get("caches") or {}
        if not isinstance(caches, dict):
            raise CacheConfigFault("the 'caches' section must be a mapping", key="caches")
        return {str(name): dict(decl or {}) for name, decl in caches.items()}
