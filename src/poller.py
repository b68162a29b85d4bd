"""
Polling of a Rancher resource until it reaches a desired state.
"""

import logging
import time
from typing import Iterable, Optional

from errors import TransportError, WaitTimeout
from models import Service

logger = logging.getLogger(__name__)


class StatePoller:
    """Blocks until a service reaches one of a set of states."""

    def __init__(
        self,
        client,
        check_interval: float = 1,
        timeout: float = 3600,
        max_consecutive_failures: int = 0,
    ):
        """
        Args:
            client: RancherRestClient (or anything with get_service)
            check_interval: Seconds to sleep between state checks
            timeout: Seconds before a wait is abandoned, per wait_for call
            max_consecutive_failures: Give up after this many consecutive
                fetch failures; 0 means only the timeout applies
        """
        self.client = client
        self.check_interval = check_interval
        self.timeout = timeout
        self.max_consecutive_failures = max_consecutive_failures

    def wait_for(self, resource_url: str, desired_states: Iterable[str]) -> Service:
        """
        Poll a service until its state is one of desired_states.

        Fetch failures are logged and retried straight away; they do not
        count as a check but the overall timeout still applies.

        Args:
            resource_url: Service URL
            desired_states: States that end the wait

        Returns:
            The first snapshot whose state is in desired_states

        Raises:
            WaitTimeout: With the last fetched snapshot (or None) when time runs out
            ResponseError: If a response cannot be decoded
        """
        desired = frozenset(desired_states)
        wanted = ", ".join(sorted(desired))
        logger.info(f"Waiting for service to reach '{wanted}' (max {self.timeout}s)")

        start = time.monotonic()
        last: Optional[Service] = None
        failures = 0

        while True:
            try:
                service = self.client.get_service(resource_url)
            except TransportError as e:
                failures += 1
                elapsed = time.monotonic() - start
                logger.warning(f"State check failed ({failures} in a row): {e}")
                if elapsed > self.timeout or (
                    self.max_consecutive_failures
                    and failures >= self.max_consecutive_failures
                ):
                    logger.error(f"Giving up waiting for '{wanted}' after {elapsed:.0f}s")
                    raise WaitTimeout(desired, last, elapsed)
                continue

            failures = 0
            last = service
            logger.info(f"  {service.name}: state={service.state}")
            if service.state in desired:
                return service

            time.sleep(self.check_interval)
            elapsed = time.monotonic() - start
            if elapsed > self.timeout:
                logger.error(
                    f"Timed out waiting for '{wanted}' after {elapsed:.0f}s "
                    f"(last state={service.state})"
                )
                raise WaitTimeout(desired, last, elapsed)
