import paho.mqtt.client as mqtt
import atexit
import json
import logging
import re
import sys
import time
from typing import NamedTuple, Optional

import health
import registers
from config import Timing, load_config
from errors import M18Error
from session import Session
from values import CellVoltagesValue, SerialInfoValue, TimestampValue

logger = logging.getLogger("bms")

DISCOVERY_REPUBLISH_INTERVAL = 3600
RETRY_DELAY = 5


class Sensor(NamedTuple):
    key: str
    name: str
    unit: Optional[str] = None
    device_class: Optional[str] = None


HEALTH_SENSORS = [
    Sensor("health/battery_description", "Battery Type"),
    Sensor("health/pack_voltage", "Pack Voltage", "V", "voltage"),
    Sensor("health/cell_imbalance", "Cell Imbalance", "mV", "voltage"),
    Sensor("health/temperature", "Temperature", "°C", "temperature"),
    Sensor("health/days_since_last_charge", "Days Since Last Charge", "d"),
    Sensor("health/days_since_last_tool_use", "Days Since Last Tool Use", "d"),
    Sensor("health/total_discharge_ah", "Total Discharge", "Ah"),
    Sensor("health/total_discharge_cycles", "Discharge Cycles"),
    Sensor("health/total_time_on_tool", "Time On Tool"),
]


def setup_logging(debug_output):
    level = logging.DEBUG if debug_output >= 1 else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)-7s %(name)s: %(message)s")


def slugify(definition):
    label = re.sub(r"[^a-z0-9]+", "_", definition.label.lower()).strip("_")
    return "reg_%03d_%s" % (definition.id, label)


def sensors(definition):
    slug = slugify(definition)
    kind = definition.kind

    if kind is registers.CELL_V:
        cells = [Sensor("%s/cell_%d" % (slug, i), "Cell %d Voltage" % i, "mV", "voltage")
                 for i in range(1, 6)]
        return cells + [Sensor(slug + "/pack_voltage", "Pack Voltage", "V", "voltage"),
                        Sensor(slug + "/imbalance", "Cell Imbalance", "mV", "voltage")]

    if kind is registers.SN:
        return [Sensor(slug + "/battery_type", "Battery Type Code"),
                Sensor(slug + "/serial", "Electronic Serial")]

    if kind in (registers.ADC_T, registers.DEC_T):
        return [Sensor(slug, definition.label, "°C", "temperature")]

    if kind is registers.DATE:
        return [Sensor(slug, definition.label, None, "timestamp")]

    return [Sensor(slug, definition.label)]


def value_payloads(definition, value):
    slug = slugify(definition)

    if isinstance(value, CellVoltagesValue):
        payloads = {"%s/cell_%d" % (slug, i + 1): str(mv) for i, mv in enumerate(value.value)}
        payloads[slug + "/pack_voltage"] = str(round(value.pack_voltage, 3))
        payloads[slug + "/imbalance"] = str(value.imbalance)
        return payloads

    if isinstance(value, SerialInfoValue):
        return {slug + "/battery_type": str(value.battery_type),
                slug + "/serial": str(value.serial)}

    if isinstance(value, TimestampValue):
        return {slug: value.value.isoformat()}

    return {slug: str(value)}


def health_payloads(report):
    cycles = report.usage_stats.total_discharge_cycles
    temperature = report.temperature
    return {
        "health/battery_description": report.battery_description,
        "health/pack_voltage": str(round(report.pack_voltage, 3)),
        "health/cell_imbalance": str(report.cell_imbalance),
        "health/temperature": "" if temperature is None else str(temperature),
        "health/days_since_last_charge": str(report.days_since_last_charge),
        "health/days_since_last_tool_use": str(report.days_since_last_tool_use),
        "health/total_discharge_ah": str(round(report.usage_stats.total_discharge_ah, 2)),
        "health/total_discharge_cycles": "" if cycles is None else str(round(cycles, 2)),
        "health/total_time_on_tool": report.usage_stats.total_time_on_tool,
    }


class Bridge:
    """Reads the configured registers on every scan and mirrors them to MQTT."""

    def __init__(self, config, client, session_factory=Session.open):
        self.config = config
        self.client = client
        self.session_factory = session_factory
        self.session = None
        self.mqtt_connected = False
        self.publish_discovery = True
        self.last_discovery = 0
        self.serial_info = None

        self.base_topic = config['mqtt_base_topic']
        self.register_ids = list(config['registers'] or health.HEALTH_REGISTERS)
        self.definitions = [registers.lookup(register_id) for register_id in self.register_ids]
        self.timing = Timing.from_config(config)

        client.on_connect = self.on_connect
        client.on_disconnect = self.on_disconnect

    def on_connect(self, client, userdata, flags, rc):
        logger.info("MQTT connected with result code %s", rc)
        self.mqtt_connected = True

    def on_disconnect(self, client, userdata, rc):
        logger.warning("MQTT disconnected with result code %s", rc)
        self.mqtt_connected = False

    @property
    def availability_topic(self):
        return self.base_topic + "/availability"

    def publish(self, subtopic, payload):
        self.client.publish(self.base_topic + "/" + subtopic, payload)

    def connect_mqtt(self):
        config = self.config
        self.client.will_set(self.availability_topic, "offline", qos=0, retain=False)
        if config['mqtt_user']:
            self.client.username_pw_set(username=config['mqtt_user'], password=config['mqtt_password'])
        self.client.connect(config['mqtt_host'], config['mqtt_port'], 60)
        self.client.loop_start()

    def open_session(self):
        config = self.config
        echo = config['debug_output'] > 2
        logger.info("Connecting to pack on %s", config['serial_port'])
        self.session = self.session_factory(config['serial_port'],
                                            timeout=config['read_timeout'],
                                            timing=self.timing,
                                            print_tx=echo,
                                            print_rx=echo)

    def close_session(self):
        if self.session is not None:
            try:
                self.session.close()
            except M18Error as e:
                logger.warning("Error closing serial port: %s", e)
            self.session = None

    def ha_discovery(self):
        if not self.config['mqtt_ha_discovery'] or self.serial_info is None:
            return

        logger.info("Publishing HA Discovery topic...")
        serial = str(self.serial_info.serial)

        device = {}
        device['manufacturer'] = "Milwaukee"
        device['model'] = "M18 (type %d)" % self.serial_info.battery_type
        device['identifiers'] = "m18bms_" + serial
        device['name'] = "M18 Battery " + serial

        entries = [sensor for definition in self.definitions for sensor in sensors(definition)]
        if self._reports_health():
            entries += HEALTH_SENSORS

        for sensor in entries:
            object_id = sensor.key.replace("/", "_")
            disc_payload = {
                'name': sensor.name,
                'unique_id': "m18bms_" + serial + "_" + object_id,
                'state_topic': self.base_topic + "/" + sensor.key,
                'availability_topic': self.availability_topic,
                'device': device,
            }
            if sensor.unit:
                disc_payload['unit_of_measurement'] = sensor.unit
            if sensor.device_class:
                disc_payload['device_class'] = sensor.device_class
            self.client.publish(self.config['mqtt_ha_discovery_topic'] + "/sensor/M18-" + serial + "/" + object_id + "/config",
                                json.dumps(disc_payload), qos=0, retain=True)

    def _reports_health(self):
        return set(health.HEALTH_REGISTERS) <= set(self.register_ids)

    def scan(self):
        # Every scan goes back to the pack; the cache only serves other callers
        self.session.cache.clear()
        results = self.session.read_registers(self.register_ids, force_refresh=self.config['force_refresh'])

        for register_id, value in results:
            if isinstance(value, SerialInfoValue):
                self.serial_info = value
            for subtopic, payload in value_payloads(registers.lookup(register_id), value).items():
                self.publish(subtopic, payload)

        if self._reports_health():
            report = health.build_report(dict(results))
            for subtopic, payload in health_payloads(report).items():
                self.publish(subtopic, payload)

        return results

    def identify(self):
        # Discovery needs the electronic serial even when it isn't polled
        if self.serial_info is None:
            [(_, self.serial_info)] = self.session.read_registers([2])

    def run_once(self):
        if self.session is None:
            self.open_session()

        self.identify()
        self.scan()

        now = time.monotonic()
        if self.publish_discovery or now - self.last_discovery > DISCOVERY_REPUBLISH_INTERVAL:
            self.ha_discovery()
            self.publish_discovery = False
            self.last_discovery = now

        self.client.publish(self.availability_topic, "online")

    def run(self):
        scan_interval = self.config['scan_interval']

        while True:
            if not self.mqtt_connected:
                self.client.loop_stop()
                logger.warning("MQTT disconnected, trying to reconnect...")
                try:
                    self.client.connect(self.config['mqtt_host'], self.config['mqtt_port'], 60)
                except OSError as e:
                    logger.error("MQTT connection failed: %s", e)
                self.client.loop_start()
                time.sleep(RETRY_DELAY)
                self.publish_discovery = True
                continue

            if self.poll():
                time.sleep(scan_interval)
            else:
                time.sleep(RETRY_DELAY)

    def poll(self):
        """One scan; on failure mark the pack offline and drop the session. Returns success."""
        try:
            self.run_once()
        except (M18Error, OSError) as e:
            logger.error("Error reading pack: %s", e)
            try:
                self.client.publish(self.availability_topic, "offline")
            except OSError as publish_error:
                logger.error("Could not publish availability: %s", publish_error)
            self.close_session()
            self.publish_discovery = True
            return False
        return True

    def exit_handler(self):
        logger.info("Script exiting")
        self.client.publish(self.availability_topic, "offline")
        self.close_session()


def main():
    try:
        config = load_config()
    except FileNotFoundError as e:
        sys.exit(str(e))

    setup_logging(config['debug_output'])
    logger.info("Starting up...")

    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION1)
    bridge = Bridge(config, client)
    atexit.register(bridge.exit_handler)

    bridge.connect_mqtt()
    time.sleep(2)
    client.publish(bridge.availability_topic, "offline")

    try:
        bridge.run()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        client.loop_stop()


if __name__ == "__main__":
    main()
