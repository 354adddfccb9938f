"""
Configuration lookup for :func:`jmap.get_jmap_client`.

Connection parameters may come from keyword arguments, from ``JMAP_*``
environment variables or from a JSON/YAML config file with named
sections.  A config file looks like::

    {
        "default": {
            "jmap_url": "https://jmap.example.com/.well-known/jmap",
            "jmap_user": "alice@example.com",
            "jmap_pass": "secret"
        },
        "work": {
            "inherits": "default",
            "jmap_user": "alice@work.example.com"
        }
    }
"""

import json
import logging
import os

log = logging.getLogger(__name__)

ENV_PREFIX = "JMAP_"
CONFIG_KEY_PREFIX = "jmap_"

## Config file keys that differ from the JMAPClient parameter names
_KEY_ALIASES = {
    "user": "username",
    "pass": "password",
}


def config_section(config, section="default"):
    """
    Return the settings of ``section``.  A section may name another
    section with ``inherits``; its settings are used as defaults.
    """
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


## get_connection_params has a parameter shadowing the name
_section_of = config_section


def read_config(fn):
    """
    Read a config file.  JSON is tried first, then YAML if pyyaml is
    installed.  Without ``fn`` the usual locations are searched and the
    first non-empty file wins.

    Returns the parsed config, ``{}`` for a missing or broken file, or
    ``None`` if nothing was found in the usual locations.
    """
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/jmap/client.conf",
            f"{cfgdir}/jmap/client.yaml",
            f"{cfgdir}/jmap/client.json",
            "/etc/jmap/client.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## yaml is optional, and not included in the requirements
            try:
                import yaml

                try:
                    with open(fn, "rb") as config_file:
                        return yaml.safe_load(config_file) or {}
                except yaml.YAMLError:
                    log.error(f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax.")
            except ImportError:
                log.error(f"config file {fn} exists but is not valid json, and pyyaml is not installed.")
    except FileNotFoundError:
        log.debug(f"no config file {fn}")
    except ValueError:
        log.error(f"error in config file {fn}.  It will be ignored", exc_info=True)
    return {}


def _normalize_key(key):
    return _KEY_ALIASES.get(key, key)


def get_connection_params(
    check_config_file=True,
    config_file=None,
    config_section=None,
    environment=True,
    **explicit,
):
    """
    Find connection parameters.  The first source yielding anything wins:

    * The keyword arguments given
    * Environment variables prefixed ``JMAP_``, like ``JMAP_URL``,
      ``JMAP_USERNAME`` and ``JMAP_PASSWORD``.  ``JMAP_CONFIG_FILE`` and
      ``JMAP_CONFIG_SECTION`` select the config file and section.
    * The config file; keys prefixed ``jmap_`` are used, with
      ``jmap_user`` and ``jmap_pass`` meaning username and password.

    Returns a dict of parameters, or ``None`` if nothing was configured.
    """
    params = {k: v for k, v in explicit.items() if v is not None}
    if params:
        return params

    if environment:
        for key, value in os.environ.items():
            if key.startswith(ENV_PREFIX) and not key.startswith(ENV_PREFIX + "CONFIG"):
                params[_normalize_key(key[len(ENV_PREFIX) :].lower())] = value
        if params:
            log.debug(f"connection parameters from environment: {sorted(params)}")
            return params
        if not config_file:
            config_file = os.environ.get(ENV_PREFIX + "CONFIG_FILE")
        if not config_section:
            config_section = os.environ.get(ENV_PREFIX + "CONFIG_SECTION")

    if check_config_file:
        cfg = read_config(config_file)
        if cfg:
            section = _section_of(cfg, config_section or "default")
            for k, value in section.items():
                if k.startswith(CONFIG_KEY_PREFIX) and value:
                    params[_normalize_key(k[len(CONFIG_KEY_PREFIX) :])] = value
            if params:
                log.debug(f"connection parameters from config file: {sorted(params)}")
                return params

    return None
