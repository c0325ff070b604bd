"""
JSON datasets for the picture games (Deepfake Detective, Dumb Charades).

Files live in settings.data_dir:
    deepfake_pairs.json   [{"id": 1, "realImage": "...", "fakeImage": "..."}]
    charades.json         [{"id": 1, "image": "...", "prompt": "..."}]
"""
import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from loguru import logger

from config.settings import get_settings
from utils.error_handler import GameRuleError

DEEPFAKE_FILE = "deepfake_pairs.json"
CHARADES_FILE = "charades.json"

DEEPFAKE_KEYS = ("id", "realImage", "fakeImage")
CHARADES_KEYS = ("id", "image", "prompt")


def validate_entries(entries, required: Sequence[str], name: str) -> List[Dict]:
    if not isinstance(entries, list):
        raise GameRuleError(f"{name} dataset must be a list")
    valid = []
    for entry in entries:
        if isinstance(entry, dict) and all(entry.get(k) not in (None, "") for k in required):
            valid.append(entry)
        else:
            logger.warning(f"Skipping malformed {name} entry: {entry!r}")
    return valid


def load_entries(filename: str, required: Sequence[str],
                 data_dir: Optional[Path] = None) -> List[Dict]:
    path = Path(data_dir or get_settings().data_dir) / filename
    if not path.exists():
        raise GameRuleError(f"Dataset not available: {filename}")
    with open(path, encoding="utf-8") as f:
        try:
            entries = json.load(f)
        except json.JSONDecodeError as e:
            raise GameRuleError(f"Dataset {filename} is not valid JSON: {e}") from e
    valid = validate_entries(entries, required, filename)
    logger.debug(f"Loaded {len(valid)} entries from {path}")
    return valid


def load_deepfake_pairs(data_dir: Optional[Path] = None) -> List[Dict]:
    return load_entries(DEEPFAKE_FILE, DEEPFAKE_KEYS, data_dir)


def load_charades(data_dir: Optional[Path] = None) -> List[Dict]:
    return load_entries(CHARADES_FILE, CHARADES_KEYS, data_dir)
