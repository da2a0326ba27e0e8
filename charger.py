import logging
import time
from dataclasses import dataclass

import constants
from errors import EmptyResponse, InvalidResponse
from session import SessionState

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    keepalives: int = 0
    failures: int = 0
    elapsed: float = 0.0
    aborted: bool = False


class ChargerSimulator:
    """
    Plays the part of a charger for a fixed time.

    After the configure handshake the pack expects a keepalive roughly every
    half second; missing a few is harmless, a run of them is not.

    The duration covers the setup handshake too. Its pauses are cut short when
    the time runs out, the setup commands themselves are always sent.
    """

    def __init__(self, session, timing=None, clock=time.monotonic, sleep=time.sleep):
        self.session = session
        self.timing = timing or session.timing
        self.clock = clock
        self.sleep = sleep

    def simulate_for(self, duration):
        result = SimulationResult()
        if duration <= 0:
            return result

        logger.info("Simulating charger communication for %.1f seconds", duration)
        start = self.clock()
        try:
            self._begin_charge(start + duration)
            self._keepalive_loop(start, duration, result)
        except KeyboardInterrupt:
            logger.info("Charger simulation interrupted")
            result.aborted = True
        finally:
            result.elapsed = self.clock() - start
            if self.session.state is not SessionState.DISCONNECTED:
                self.session.idle()

        logger.info("Charger simulation finished after %.1fs: %d keepalives, %d failures",
                    result.elapsed, result.keepalives, result.failures)
        return result

    def _pause(self, delay, deadline):
        remaining = deadline - self.clock()
        if remaining > 0:
            self.sleep(min(delay, remaining))

    def _begin_charge(self, deadline):
        session = self.session
        session.reset()
        session.configure(constants.CHARGE_STATE_INIT)
        session.get_snapshot()
        self._pause(self.timing.configure_delay, deadline)
        session.keepalive()
        self._pause(self.timing.configure_delay, deadline)
        session.configure(constants.CHARGE_STATE_ACTIVE)
        session.get_snapshot()

    def _keepalive_loop(self, start, duration, result):
        consecutive = 0
        while True:
            remaining = duration - (self.clock() - start)
            if remaining <= 0:
                break

            try:
                self.session.keepalive(implicit_reset=False)
            except (EmptyResponse, InvalidResponse) as e:
                result.failures += 1
                consecutive += 1
                logger.warning("Keepalive failed (%d in a row): %s", consecutive, e)
                if consecutive >= self.timing.keepalive_failure_limit:
                    raise
            else:
                result.keepalives += 1
                consecutive = 0

            remaining = duration - (self.clock() - start)
            if remaining > 0:
                self.sleep(min(self.timing.keepalive_interval, remaining))
