"""
Load the library config at import time, check it against the validation file
and do the initial log config
"""

# Standard
import os

# First Party
import aconfig
import alog

# Local
from ..exceptions import assert_config
from .validation import get_invalid_params

## Loading #####################################################################

_CONFIG_DIR = os.path.dirname(__file__)

# Defaults, overridable with env vars of the same name in upper case
library_config = aconfig.Config.from_yaml(
    os.path.join(_CONFIG_DIR, "config.yaml"),
    override_env_vars=True,
)

# The validation file is never overridden
validation_config = aconfig.Config.from_yaml(
    os.path.join(_CONFIG_DIR, "config_validation.yaml"),
    override_env_vars=False,
)

## Validation ##################################################################


def validate_library_config(config_obj: aconfig.Config = None):
    """Check a loaded (and possibly overridden) library config

    Beyond the per-key checks in config_validation.yaml, the retry backoff
    base may not exceed its cap.

    Args:
        config_obj:  aconfig.Config
            The config to check. Defaults to the library config.

    Raises:
        ConfigError: If any value is invalid
    """
    if config_obj is None:
        config_obj = library_config
    invalid_params = get_invalid_params(config_obj, validation_config)
    assert_config(
        not invalid_params,
        f"Library configuration found invalid values: {invalid_params}",
    )
    assert_config(
        config_obj.retry_backoff_base_seconds <= config_obj.retry_backoff_max_seconds,
        "retry_backoff_base_seconds must not exceed retry_backoff_max_seconds",
    )


validate_library_config()

# Initial alog configuration. The CLI reconfigures once overrides are known.
alog.configure(
    default_level=library_config.log_level,
    filters=library_config.log_filters,
    formatter="json" if library_config.log_json else "pretty",
    thread_id=library_config.log_thread_id,
)
