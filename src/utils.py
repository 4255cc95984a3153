"""
Shared helper functions and utilities.

This module contains logging setup and configuration loading used across the
project.
"""

import copy
import json
import logging
import os


def setup_logging(level=logging.INFO):
    """Set up logging configuration.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logger = logging.getLogger(__name__)
    logger.info("Logging initialized")


DEFAULT_CONFIG = {
    # Video settings
    'camera_id': 0,
    'video_width': 1280,
    'video_height': 720,
    'video_fps': 30,
    'camera_backend_priority': None,
    'camera_init_attempts': 10,
    'mirror_vertical': False,

    # Marker detection
    'detection': {
        'warp_size': 300,
        'min_contour_area': 6500.0,
        'approx_epsilon': 4.0,
        'grid_size': 6,
        'grid_threshold': 128,
        'emit_debug_images': False,
        'draw_grid_values': True,
    },

    # Optional JSON file of marker reference grids (built-in markers if None)
    'patterns_file': None,

    # Display
    'display_width': 640,
    'display_height': 480,
    'show_debug_windows': False,
}


def get_config(config_path=None):
    """Load configuration from file or return defaults.

    Nested sections (e.g. 'detection') are merged key by key.

    Args:
        config_path: Path to configuration file (optional)

    Returns:
        dict: Configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                loaded_config = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"Failed to load config from {config_path}: {e}")
            return config

        for key, value in loaded_config.items():
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key].update(value)
            else:
                config[key] = value
        logging.info(f"Configuration loaded from {config_path}")
    elif config_path:
        logging.warning(f"Config file not found: {config_path}; using defaults")

    return config


def save_config(config, config_path):
    """Save configuration to file.

    Args:
        config: Configuration dictionary
        config_path: Path to save configuration file

    Returns:
        bool: True if save successful, False otherwise
    """
    try:
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=4)
        logging.info(f"Configuration saved to {config_path}")
        return True
    except (OSError, TypeError) as e:
        logging.error(f"Failed to save config to {config_path}: {e}")
        return False


def validate_config(config):
    """Validate configuration parameters.

    Args:
        config: Configuration dictionary

    Returns:
        bool: True if valid, False otherwise
    """
    required_keys = ['camera_id', 'video_width', 'video_height', 'detection']

    for key in required_keys:
        if key not in config:
            logging.error(f"Missing required config key: {key}")
            return False

    # Validate numeric values
    if config['video_width'] <= 0 or config['video_height'] <= 0:
        logging.error("Video dimensions must be positive")
        return False

    detection = config['detection']
    if detection.get('warp_size', 300) <= 1 or detection.get('grid_size', 6) <= 0:
        logging.error("Detection warp_size and grid_size must be positive")
        return False

    if not 0 <= detection.get('grid_threshold', 128) <= 255:
        logging.error("Detection grid_threshold must be within [0, 255]")
        return False

    logging.info("Configuration validated successfully")
    return True
