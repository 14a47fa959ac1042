#!/usr/bin/env python3
"""
Mod Information Parser
Finds the installed Factory Planner mod and reads its version from info.json
"""

import json
import zipfile
import logging
from pathlib import Path
from typing import List, Optional, Set
from dataclasses import dataclass
from datetime import datetime

from errors import ModNotFoundError, VersionFormatError
from versions import ModVersion

# Set up logging
def setup_logging(log_dir: Path = Path("./logs"), verbose: bool = False) -> logging.Logger:
    """Set up logging to both file and console"""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Create log filename with timestamp
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"migration_{timestamp}.log"

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler()  # Also log to console
        ],
        force=True
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging to: {log_file}")
    return logger

@dataclass
class ModInfo:
    """Parsed mod information from info.json"""
    name: str
    version: str
    title: str
    author: str
    path: Path = None
    is_zipped: bool = False

    @property
    def parsed_version(self) -> ModVersion:
        return ModVersion.parse(self.version)

class ModDiscovery:
    """Discovers mods in a Factorio mods directory"""

    def __init__(self, mods_path: Path):
        self.mods_path = Path(mods_path)
        self.logger = logging.getLogger(__name__)
        self._enabled_mods: Optional[Set[str]] = None

    def _load_mod_list(self) -> Optional[Set[str]]:
        """Load enabled mods from mod-list.json"""
        mod_list_path = self.mods_path / "mod-list.json"

        if not mod_list_path.exists():
            self.logger.warning(f"mod-list.json not found at {mod_list_path}. All discovered mods will be considered enabled.")
            return None

        try:
            with open(mod_list_path, 'r', encoding='utf-8') as f:
                mod_list_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"Failed to parse mod-list.json: {e}")
            self.logger.warning("All discovered mods will be considered enabled.")
            return None

        enabled_mods = set()
        # Standard format: {"mods": [{"name": "mod-name", "enabled": true}, ...]}
        for mod_entry in mod_list_data.get("mods", []):
            if isinstance(mod_entry, dict) and mod_entry.get("enabled", False):
                enabled_mods.add(mod_entry["name"])

        self.logger.info(f"Loaded mod-list.json: {len(enabled_mods)} enabled mods")
        return enabled_mods

    def discover_mods(self, only_enabled: bool = True) -> List[ModInfo]:
        """Discover all mods in the directory, zipped or unpacked"""
        mods = []

        if not self.mods_path.exists():
            self.logger.error(f"Mods directory not found: {self.mods_path}")
            return mods

        self._enabled_mods = self._load_mod_list() if only_enabled else None

        for item in sorted(self.mods_path.iterdir()):
            mod_info = None
            if item.is_dir() and (item / "info.json").exists():
                mod_info = self._parse_mod_info(item / "info.json", item, is_zipped=False)
            elif item.suffix == '.zip':
                try:
                    mod_info = self._parse_mod_info(item, item, is_zipped=True)
                except zipfile.BadZipFile:
                    self.logger.warning(f"Skipping invalid zip file: {item}")

            if mod_info is None:
                continue
            if self._enabled_mods is not None and mod_info.name not in self._enabled_mods:
                self.logger.debug(f"Skipping disabled mod: {mod_info.name}")
                continue
            mods.append(mod_info)

        self.logger.info(f"Discovery complete. Found {len(mods)} mods.")
        return mods

    def find_mod(self, mod_name: str, only_enabled: bool = True) -> ModInfo:
        """The newest installed version of a mod"""
        candidates = []
        for mod in self.discover_mods(only_enabled):
            if mod.name != mod_name:
                continue
            try:
                candidates.append((mod.parsed_version, mod))
            except VersionFormatError:
                self.logger.warning(f"Ignoring {mod.path}: invalid version {mod.version!r}")

        if not candidates:
            raise ModNotFoundError(f"Mod {mod_name} not found in {self.mods_path}")

        candidates.sort(key=lambda pair: pair[0].segments)
        newest = candidates[-1][1]
        self.logger.info(f"Using {newest.title} v{newest.version} by {newest.author} from {newest.path}")
        return newest

    def _parse_mod_info(self, info_file: Path, mod_path: Path, is_zipped: bool) -> Optional[ModInfo]:
        """Parse mod info.json file"""
        try:
            if is_zipped:
                # For zipped mods, info_file is actually the zip path
                with zipfile.ZipFile(info_file, 'r') as zf:
                    # info.json sits in the mod's top-level folder inside the zip
                    info_files = sorted(
                        (f for f in zf.namelist() if f.endswith('info.json') and f.count('/') <= 1),
                        key=lambda name: name.count('/')
                    )
                    if not info_files:
                        self.logger.warning(f"No info.json found in {info_file}")
                        return None

                    content = zf.read(info_files[0]).decode('utf-8')
            else:
                with open(info_file, 'r', encoding='utf-8') as f:
                    content = f.read()

            info = json.loads(content)

            mod_info = ModInfo(
                name=info['name'],
                version=info['version'],
                title=info.get('title', info['name']),
                author=info.get('author', 'Unknown'),
                path=mod_path,
                is_zipped=is_zipped
            )

            self.logger.debug(f"Parsed mod: {mod_info.name} v{mod_info.version}")
            return mod_info

        except (OSError, UnicodeDecodeError, json.JSONDecodeError, KeyError) as e:
            self.logger.error(f"Failed to parse {info_file}: {e}")
            return None
