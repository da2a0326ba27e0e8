import dataclasses
import json
import logging
import os

import yaml

import constants

logger = logging.getLogger(__name__)

OPTIONS_PATH = "/data/options.json"
YAML_PATH = "config.yaml"

DEFAULTS = {
    "serial_port": "/dev/ttyUSB0",
    "read_timeout": constants.READ_TIMEOUT,
    "scan_interval": 300,
    "registers": [],
    "force_refresh": True,
    "debug_output": 0,
    "mqtt_host": "localhost",
    "mqtt_port": 1883,
    "mqtt_user": "",
    "mqtt_password": "",
    "mqtt_base_topic": "m18bms",
    "mqtt_ha_discovery": True,
    "mqtt_ha_discovery_topic": "homeassistant",
    "timing": {},
}


@dataclasses.dataclass
class Timing:
    """Delays (seconds) and retry budgets, tuned to match a genuine charger."""

    reset_break: float = constants.RESET_BREAK_DURATION
    reset_settle: float = constants.RESET_SETTLE_DURATION
    reset_sync_delay: float = constants.RESET_SYNC_DELAY
    reset_retries: int = constants.RESET_RETRIES
    reset_retry_delay: float = constants.RESET_RETRY_DELAY
    response_settle: float = constants.RESPONSE_SETTLE_DELAY
    refresh_settle: float = constants.REFRESH_SETTLE_DELAY
    keepalive_interval: float = constants.KEEPALIVE_INTERVAL
    configure_delay: float = constants.CONFIGURE_DELAY
    keepalive_failure_limit: int = constants.KEEPALIVE_FAILURE_LIMIT

    @classmethod
    def from_config(cls, config):
        overrides = config.get("timing") or {}
        known = {field.name for field in dataclasses.fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError("Unknown timing option(s): " + ", ".join(sorted(unknown)))
        return cls(**overrides)


def load_config(options_path=OPTIONS_PATH, yaml_path=YAML_PATH):
    config = dict(DEFAULTS)

    if os.path.exists(options_path):
        logger.info("Loading %s", options_path)
        with open(options_path) as file:
            config.update(json.load(file))

    elif os.path.exists(yaml_path):
        logger.info("Loading %s", yaml_path)
        with open(yaml_path) as file:
            config.update(yaml.load(file, Loader=yaml.FullLoader)['options'])

    else:
        raise FileNotFoundError("No config file found")

    return config
