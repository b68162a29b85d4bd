"""
Cancel and rollback handling for a service caught mid-upgrade.

Rancher's rollback restores the service definition but can leave the old
containers stopped, so every rollback ends with a sweep that starts any
container offering a 'start' action.
"""

import logging
from typing import List, Optional

from errors import (
    NoServiceConfig,
    RecoveryFailed,
    ResponseError,
    TransportError,
    WaitTimeout,
)
from models import Container, Service

logger = logging.getLogger(__name__)

CANCEL_SETTLED_STATES = frozenset({"upgraded", "canceled-upgrade", "active"})


class RecoveryController:
    """Issues cancel, rollback and container start actions for one service."""

    def __init__(self, client, poller, service_url: str):
        """
        Args:
            client: RancherRestClient
            poller: StatePoller used to wait for state transitions
            service_url: URL of the service being recovered
        """
        self.client = client
        self.poller = poller
        self.service_url = service_url
        self.started_containers: List[Container] = []

    def _refresh(self) -> Service:
        try:
            return self.client.get_service(self.service_url)
        except (TransportError, ResponseError) as e:
            raise RecoveryFailed(f"Cannot read service state: {e}")

    def _post(self, service: Service, action: str) -> None:
        url = service.action_url(action)
        if not url:
            raise RecoveryFailed(
                f"Action '{action}' not available for {service.name} "
                f"(state={service.state})"
            )
        logger.warning(f"Requesting {action} for {service.name} (state={service.state})")
        try:
            body = self.client.post_action(url)
        except (TransportError, ResponseError) as e:
            raise RecoveryFailed(f"{action} failed for {service.name}: {e}")
        if body.get("state"):
            logger.info(f"  {service.name}: state={body['state']} after {action}")

    def cancel(self, service: Optional[Service]) -> Service:
        """
        Cancel an in-progress upgrade, then roll it back.

        Args:
            service: Latest service snapshot, if any

        Returns:
            Service snapshot after the rollback

        Raises:
            NoServiceConfig: If the service never reported a state after cancelling
            RecoveryFailed: If cancelling or the rollback fails
        """
        if service is None or not service.action_url("cancelupgrade"):
            service = self._refresh()
        self._post(service, "cancelupgrade")

        try:
            settled = self.poller.wait_for(self.service_url, CANCEL_SETTLED_STATES)
        except WaitTimeout as e:
            if e.service is None:
                raise NoServiceConfig(
                    "No service state observed after cancelling the upgrade"
                )
            logger.warning(
                f"{e}; rolling back from last observed state={e.service.state}"
            )
            settled = e.service
        except ResponseError as e:
            raise RecoveryFailed(f"Cannot read service state after cancel: {e}")

        return self.rollback(settled)

    def rollback(self, service: Service) -> Service:
        """
        Roll an upgraded service back and restart its stopped containers.

        Args:
            service: Latest service snapshot

        Returns:
            Service snapshot once it is active again

        Raises:
            RecoveryFailed: If the rollback or the container restart fails
        """
        self._post(service, "rollback")

        try:
            active = self.poller.wait_for(self.service_url, {"active"})
        except (WaitTimeout, ResponseError) as e:
            raise RecoveryFailed(f"Rollback of {service.name} did not complete: {e}")

        self.start_containers(active)
        logger.warning(f"Rollback COMPLETED for {active.name}")
        return active

    def start_containers(self, service: Service) -> List[Container]:
        """
        Start every container of the service that can be started.

        Containers without a 'start' action are skipped. Every startable
        container is attempted even if an earlier start fails.

        Args:
            service: Service snapshot whose instances are swept

        Returns:
            Containers a start was issued for

        Raises:
            RecoveryFailed: If the instances cannot be listed or any start fails
        """
        url = service.instances_url
        if not url:
            raise RecoveryFailed(f"No instances link for {service.name}")
        try:
            containers = self.client.list_containers(url)
        except (TransportError, ResponseError) as e:
            raise RecoveryFailed(f"Cannot list containers of {service.name}: {e}")

        started: List[Container] = []
        failed: List[str] = []
        for container in containers:
            if not container.can_start:
                logger.info(
                    f"{container.kind} {container.id} is {container.state} "
                    "and cannot be started, skipping"
                )
                continue
            logger.info(
                f"Starting {container.kind} {container.id} (state={container.state})"
            )
            try:
                self.client.post_action(container.actions["start"])
            except (TransportError, ResponseError) as e:
                logger.error(f"Failed to start {container.kind} {container.id}: {e}")
                failed.append(container.id)
                continue
            started.append(container)

        self.started_containers.extend(started)
        if failed:
            raise RecoveryFailed(f"Could not start containers: {', '.join(failed)}")
        return started
