"""
Preferences Manager for PocketBeat
Persistent user preferences (audio device, sample rate, default tempo)
stored in the platform config directory via platformdirs
"""

import json
import os
from typing import Any, Dict, Optional
from platformdirs import user_config_dir
from .constants import DEFAULT_BPM


class PreferencesManager:
    """
    Manages application preferences with persistent storage.
    Preferences are stored in a JSON file in the platform-appropriate location.
    """

    APP_NAME = "PocketBeat"
    APP_AUTHOR = "PocketBeat"
    PREFS_FILENAME = "preferences.json"

    DEFAULT_PREFERENCES = {
        'window_width': 780,
        'window_height': 560,
        # Audio settings
        'audio_output_device': None,  # None = system default
        'sample_rate': 44100,
        'audio_blocksize': 512,
        'master_volume': 0.8,
        # Sequencer
        'default_bpm': DEFAULT_BPM,
    }

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize the preferences manager

        Args:
            config_dir: Override the storage directory (defaults to the
                platform config dir)
        """
        self.prefs_dir = config_dir or user_config_dir(self.APP_NAME, self.APP_AUTHOR)
        self.prefs_file = os.path.join(self.prefs_dir, self.PREFS_FILENAME)
        self.preferences = self._load_preferences()

    def _load_preferences(self) -> Dict[str, Any]:
        """Load preferences from file"""
        prefs = self.DEFAULT_PREFERENCES.copy()
        if os.path.exists(self.prefs_file):
            try:
                with open(self.prefs_file, 'r', encoding='utf-8') as f:
                    loaded_prefs = json.load(f)
                if not isinstance(loaded_prefs, dict):
                    raise ValueError("preferences file does not contain an object")
                # Merge with defaults to ensure all keys exist
                prefs.update(loaded_prefs)
            except (OSError, ValueError) as e:
                print(f"Error loading preferences: {e}", flush=True)
        return prefs

    def _save_preferences(self) -> bool:
        """Save preferences to file"""
        try:
            os.makedirs(self.prefs_dir, exist_ok=True)
            with open(self.prefs_file, 'w', encoding='utf-8') as f:
                json.dump(self.preferences, f, indent=2)
            return True
        except OSError as e:
            print(f"Error saving preferences: {e}", flush=True)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Get a preference value"""
        return self.preferences.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        """Set a preference value and save"""
        self.preferences[key] = value
        return self._save_preferences()

    def reset_to_defaults(self) -> bool:
        """Reset all preferences to defaults"""
        self.preferences = self.DEFAULT_PREFERENCES.copy()
        return self._save_preferences()

    def get_all_preferences(self) -> Dict[str, Any]:
        """Get all preferences"""
        return self.preferences.copy()
