"""User configuration persistence for SeqLink.

Handles saving and loading user preferences and the last-used selection.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.config.settings import DEFAULT_ADDRESSING_MODE, DEFAULT_SELECTION_MODE

logger = logging.getLogger(__name__)

# Configuration file paths
CONFIG_DIR = Path.home() / ".config" / "seqlink"
FULL_CONFIG_FILE = CONFIG_DIR / "config.json"
SELECTION_FILE = CONFIG_DIR / "selection.json"


@dataclass
class SelectionConfig:
    """Configuration for the sequence selection model.

    Attributes:
        selection_mode: 'single', 'range' or 'multiple'.
        max_selections: Maximum number of regions, None for unlimited.
        max_range_size: Maximum residues per region, None for unlimited.
        allowed_chains: Chains that may be selected, None for any.
    """

    selection_mode: str = DEFAULT_SELECTION_MODE
    max_selections: int | None = None
    max_range_size: int | None = None
    allowed_chains: list[str] | None = None


@dataclass
class ViewerConfig:
    """Configuration for the structure side of the synchronization.

    Attributes:
        addressing_mode: 'label' or 'auth' chain/residue identifiers.
        promote_picks: Whether 3D picks become sequence selections.
    """

    addressing_mode: str = DEFAULT_ADDRESSING_MODE
    promote_picks: bool = True


@dataclass
class UserConfig:
    """Complete user configuration.

    Attributes:
        selection: Selection model configuration.
        viewer: Viewer configuration.
        last_structure_id: Last loaded structure source (PDB id or path).
    """

    selection: SelectionConfig = field(default_factory=SelectionConfig)
    viewer: ViewerConfig = field(default_factory=ViewerConfig)
    last_structure_id: str | None = None


def save_config(config: UserConfig) -> bool:
    """Save full user configuration.

    Args:
        config: UserConfig to save.

    Returns:
        True if saved successfully.
    """
    try:
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)

        data = {
            "selection": {
                "selection_mode": config.selection.selection_mode,
                "max_selections": config.selection.max_selections,
                "max_range_size": config.selection.max_range_size,
                "allowed_chains": config.selection.allowed_chains,
            },
            "viewer": {
                "addressing_mode": config.viewer.addressing_mode,
                "promote_picks": config.viewer.promote_picks,
            },
            "last_structure_id": config.last_structure_id,
        }

        with open(FULL_CONFIG_FILE, "w") as f:
            json.dump(data, f, indent=2)

        logger.debug(f"Saved config to {FULL_CONFIG_FILE}")
        return True

    except Exception as e:
        logger.error(f"Failed to save config: {e}")
        return False


def load_config() -> UserConfig:
    """Load full user configuration.

    Returns:
        UserConfig (with defaults if file doesn't exist or is invalid).
    """
    if not FULL_CONFIG_FILE.exists():
        return UserConfig()

    try:
        with open(FULL_CONFIG_FILE) as f:
            data = json.load(f)

        selection_data = data.get("selection", {})
        viewer_data = data.get("viewer", {})

        return UserConfig(
            selection=SelectionConfig(
                selection_mode=selection_data.get("selection_mode", DEFAULT_SELECTION_MODE),
                max_selections=selection_data.get("max_selections"),
                max_range_size=selection_data.get("max_range_size"),
                allowed_chains=selection_data.get("allowed_chains"),
            ),
            viewer=ViewerConfig(
                addressing_mode=viewer_data.get("addressing_mode", DEFAULT_ADDRESSING_MODE),
                promote_picks=viewer_data.get("promote_picks", True),
            ),
            last_structure_id=data.get("last_structure_id"),
        )

    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        return UserConfig()


def save_selection(selection: dict[str, Any]) -> bool:
    """Save the last-used selection to disk.

    Args:
        selection: Serialized selection (see SequenceSelection.to_dict).

    Returns:
        True if saved successfully, False otherwise.
    """
    try:
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)

        with open(SELECTION_FILE, "w") as f:
            json.dump(selection, f, indent=2)

        logger.debug(f"Saved selection to {SELECTION_FILE}")
        return True

    except Exception as e:
        logger.error(f"Failed to save selection: {e}")
        return False


def load_selection() -> dict[str, Any] | None:
    """Load the last-used selection from disk.

    Returns:
        Serialized selection if the file exists and is valid, None otherwise.
    """
    if not SELECTION_FILE.exists():
        return None

    try:
        with open(SELECTION_FILE) as f:
            data = json.load(f)

        if not isinstance(data, dict) or not isinstance(data.get("regions", []), list):
            logger.warning(f"Ignoring malformed selection file {SELECTION_FILE}")
            return None

        return data

    except Exception as e:
        logger.error(f"Failed to load selection: {e}")
        return None


def clear_selection_file() -> bool:
    """Clear the saved selection.

    Returns:
        True if cleared successfully (or didn't exist), False on error.
    """
    try:
        if SELECTION_FILE.exists():
            SELECTION_FILE.unlink()
            logger.debug(f"Cleared selection at {SELECTION_FILE}")
        return True
    except Exception as e:
        logger.error(f"Failed to clear selection: {e}")
        return False
