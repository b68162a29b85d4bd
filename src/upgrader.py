"""
Blue/green upgrade of a single Rancher service.
"""

import json
import logging
import time
from dataclasses import asdict
from datetime import datetime
from typing import Callable, Optional, Sequence

from clients import RancherRestClient
from config import UpgraderConfig
from errors import (
    PreconditionError,
    RecoveryFailed,
    ResponseError,
    UpgraderError,
    VerificationFailed,
    WaitTimeout,
)
from models import Service, UpgradeResult, build_upgrade_request
from poller import StatePoller
from recovery import RecoveryController
from verifier import run_verification

logger = logging.getLogger(__name__)


class ServiceUpgrader:
    """Drives one service through upgrade, verification and finish or rollback."""

    def __init__(
        self,
        config: UpgraderConfig,
        client: Optional[RancherRestClient] = None,
        poller: Optional[StatePoller] = None,
        recovery: Optional[RecoveryController] = None,
        verifier: Callable[[str, Sequence[str]], None] = run_verification,
    ):
        """
        Initialize the service upgrader.

        Args:
            config: Upgrade configuration
            client: Rancher API client (built from config if omitted)
            poller: State poller (built from config if omitted)
            recovery: Recovery controller (built from config if omitted)
            verifier: Callable running the verification command
        """
        self.config = config
        self.service_url = config.service_url
        self.client = client or RancherRestClient(
            access_key=config.access_key,
            secret_key=config.secret_key,
            timeout_s=config.request_timeout,
        )
        self.poller = poller or StatePoller(
            self.client,
            check_interval=config.check_interval,
            timeout=config.wait_timeout,
            max_consecutive_failures=config.max_poll_failures,
        )
        self.recovery = recovery or RecoveryController(
            self.client, self.poller, self.service_url
        )
        self.verifier = verifier

    def run(self) -> UpgradeResult:
        """
        Execute the upgrade.

        Returns:
            UpgradeResult describing the outcome
        """
        result = UpgradeResult(
            service_name=self.config.service_id,
            status="failed",
            start_time=time.time(),
        )
        self._print_banner()

        try:
            self._upgrade(result)
        except UpgraderError as e:
            logger.error(f"Upgrade FAILED: {e}")
            result.error_message = str(e)
        else:
            result.status = "success"

        result.end_time = time.time()
        result.duration_seconds = result.end_time - result.start_time
        result.started_containers = [c.id for c in self.recovery.started_containers]
        self._print_report(result)
        return result

    def _upgrade(self, result: UpgradeResult) -> None:
        service = self.client.get_service(self.service_url)
        result.service_name = service.name or result.service_name
        result.final_state = service.state
        logger.info(f"Service {service.name}: state={service.state}")

        upgrade_url = service.action_url("upgrade")
        if not upgrade_url:
            raise PreconditionError(
                f"Service {service.name} is not upgradeable in state '{service.state}'"
            )

        request = build_upgrade_request(
            service, self.config.build_tag, self.config.start_first
        )
        result.target_image = request.launch_config["imageUuid"]
        logger.info(
            f"Upgrading {service.name} in env {self.config.env_id} "
            f"to {result.target_image} (start first={request.start_first})"
        )
        self.client.post_action(upgrade_url, request.to_payload())

        try:
            upgraded = self.poller.wait_for(self.service_url, {"upgraded"})
        except (WaitTimeout, ResponseError) as e:
            logger.error(f"Upgrade did not complete: {e}; cancelling")
            last = e.service if isinstance(e, WaitTimeout) else None
            result.recovery = "cancel"
            self._recover(result, lambda: self.recovery.cancel(last))
            raise
        result.final_state = upgraded.state

        argv = self.config.verify_argv
        if argv:
            try:
                self.verifier(argv[0], argv[1:])
            except VerificationFailed:
                logger.error("Verification failed, rolling back the upgrade")
                result.recovery = "rollback"
                self._recover(result, lambda: self.recovery.rollback(upgraded))
                raise
        else:
            logger.info("No verification command configured, skipping verification")

        if not self.config.finish_upgrade:
            logger.info("Service upgraded, skipping the finish upgrade step")
            return

        finish_url = upgraded.action_url("finishupgrade")
        if not finish_url:
            raise PreconditionError(
                f"Cannot finish upgrade of {upgraded.name} in state '{upgraded.state}'"
            )
        logger.info(f"Service {upgraded.name} upgraded, finishing the upgrade")
        body = self.client.post_action(finish_url)
        logger.info(f"Finish upgrade response: {json.dumps(body)}")
        result.finished = True
        result.final_state = body.get("state") or result.final_state

    def _recover(self, result: UpgradeResult, action: Callable[[], Service]) -> None:
        try:
            service = action()
        except RecoveryFailed as e:
            logger.error(f"Recovery ({result.recovery}) FAILED: {e}")
            raise
        result.rolled_back = True
        result.final_state = service.state

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            mins = int(seconds // 60)
            secs = seconds % 60
            return f"{mins}m {secs:.0f}s"
        else:
            hours = int(seconds // 3600)
            mins = int((seconds % 3600) // 60)
            secs = seconds % 60
            return f"{hours}h {mins}m {secs:.0f}s"

    def _print_banner(self) -> None:
        cfg = self.config
        logger.info("=" * 70)
        logger.info("Rancher Service Blue/Green Upgrade")
        logger.info("=" * 70)
        logger.info(f"Service URL: {self.service_url}")
        logger.info(f"Build tag: {cfg.build_tag}")
        logger.info(f"Start first: {cfg.start_first}")
        logger.info(f"Finish upgrade: {cfg.finish_upgrade}")
        logger.info(f"Verification command: {cfg.verify_command or 'none'}")
        logger.info(f"Wait timeout: {cfg.wait_timeout}s")
        logger.info(f"Check interval: {cfg.check_interval}s")
        logger.info(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 70)

    def _print_report(self, result: UpgradeResult) -> None:
        """Print the outcome of the run."""
        logger.info("")
        logger.info("=" * 70)
        logger.info("UPGRADE REPORT")
        logger.info("=" * 70)
        logger.info(f"Service:         {result.service_name}")
        logger.info(f"Target image:    {result.target_image or 'N/A'}")
        logger.info(f"Status:          {result.status.upper()}")
        logger.info(f"Final state:     {result.final_state or 'unknown'}")
        logger.info(f"Finished:        {'Yes' if result.finished else 'No'}")
        logger.info(f"Recovery:        {result.recovery or 'none'}")
        logger.info(f"Rolled back:     {'Yes' if result.rolled_back else 'No'}")
        if result.started_containers:
            logger.info(f"Restarted:       {', '.join(result.started_containers)}")
        if result.error_message:
            logger.info(f"Error:           {result.error_message}")
        logger.info(f"Total duration:  {self._format_duration(result.duration_seconds)}")
        logger.info("=" * 70)

        if self.config.report_file:
            self._export_result_json(result)

    def _export_result_json(self, result: UpgradeResult) -> None:
        """Export the result to JSON for CI pipelines."""
        report = asdict(result)
        report["start_time"] = datetime.fromtimestamp(result.start_time).isoformat()
        report["end_time"] = datetime.fromtimestamp(result.end_time).isoformat()
        report["service_url"] = self.service_url
        report["build_tag"] = self.config.build_tag

        try:
            with open(self.config.report_file, "w") as f:
                json.dump(report, f, indent=2)
        except OSError as e:
            logger.error(f"Could not write report to {self.config.report_file}: {e}")
            return
        logger.info(f"Detailed report exported to: {self.config.report_file}")
