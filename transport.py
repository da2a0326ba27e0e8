import logging
import time

import serial

import constants
from errors import Timeout, TransportFailure

logger = logging.getLogger(__name__)


class SerialLine:
    """
    Duplex byte stream to the pack plus the power-control line.

    The power line is the charger's J2 pin. Through the usual level shifter it
    follows the break condition and DTR together: both asserted pulls it low
    (idle), both released drives it high.
    """

    def __init__(self, port, baudrate=constants.BAUD_RATE, timeout=constants.READ_TIMEOUT):
        try:
            logger.info("Opening serial port %s", port)
            self.port = serial.serial_for_url(port,
                                              baudrate=baudrate,
                                              bytesize=serial.EIGHTBITS,
                                              parity=serial.PARITY_NONE,
                                              stopbits=serial.STOPBITS_TWO,
                                              timeout=timeout)
        except (serial.SerialException, ValueError) as e:
            raise TransportFailure("Error opening serial port %s: %s" % (port, e)) from e
        self.timeout = timeout
        self.set_power_line(False)

    def write(self, data):
        try:
            self.port.reset_input_buffer()
            self.port.write(data)
            self.port.flush()
        except serial.SerialException as e:
            raise TransportFailure("Serial write error: %s" % e) from e

    def read(self, size, timeout=None):
        try:
            if timeout is not None and timeout != self.port.timeout:
                self.port.timeout = timeout
            data = self.port.read(size)
        except serial.SerialException as e:
            raise TransportFailure("Serial read error: %s" % e) from e
        finally:
            if timeout is not None and self.port.timeout != self.timeout:
                self.port.timeout = self.timeout

        if not data:
            raise Timeout("No response within %.2fs" % (timeout if timeout is not None else self.timeout))
        return bytes(data)

    def set_power_line(self, high):
        try:
            self.port.break_condition = not high
            self.port.dtr = not high
        except serial.SerialException as e:
            raise TransportFailure("Error driving power line: %s" % e) from e

    def pulse_power_line(self, duration):
        self.set_power_line(True)
        try:
            time.sleep(duration)
        finally:
            self.set_power_line(False)

    def close(self):
        if self.port.is_open:
            try:
                self.set_power_line(False)
            finally:
                self.port.close()
