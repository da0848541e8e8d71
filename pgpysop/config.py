"""Configuration utilities."""

import logging
from os import environ
from os.path import expanduser
from os.path import join

DEFAULT_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"
DEFAULT_LOG_LEVEL = "WARNING"
PIN_STORE_NAME = "pins.json"


def init_log(root_level=""):
    """Initializes python logging.

    Arguments:
        root_level (str): Root logging level. Defaults to 'WARNING'.
    """
    log_format = _get_log_format()
    log_level = _get_log_level(root_level)
    logging.basicConfig(format=log_format, level=log_level)
    logging.getLogger(__name__).debug("init logging at %s", log_level)


def _get_log_level(default=""):
    environment_variable = environ.get("PGPYSOP_LOG_LEVEL")
    if environment_variable:
        return environment_variable.upper()

    if default == 1:
        return "INFO"
    if default == 2:
        return "DEBUG"
    if default:
        return default.upper()

    return DEFAULT_LOG_LEVEL


def _get_log_format(default=""):
    return environ.get("PGPYSOP_LOG_FORMAT") or default or DEFAULT_LOG_FORMAT


def get_pin_store_path(default=""):
    """Determines where token PINs are kept.

    Arguments:
        default (str): PIN store path.

    Returns:
        str: PIN store path.
    """
    configured = environ.get("PGPYSOP_PIN_STORE") or default
    if configured:
        return configured

    config_home = environ.get("XDG_CONFIG_HOME") or join(expanduser("~"), ".config")
    return join(config_home, "pgpysop", PIN_STORE_NAME)


def cards_enabled():
    """Whether connected OpenPGP cards should be searched for key material.

    Returns:
        bool: False if disabled via ``PGPYSOP_CARDS=0``.
    """
    return environ.get("PGPYSOP_CARDS", "1").strip().lower() not in ("0", "no", "false", "off")
