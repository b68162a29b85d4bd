"""
Rancher service blue/green upgrader.
"""

from clients import RancherRestClient
from config import UpgraderConfig
from log_utils import setup_logging
from models import Container, InServiceStrategy, Service, UpgradeResult
from poller import StatePoller
from recovery import RecoveryController
from upgrader import ServiceUpgrader
from verifier import run_verification

__all__ = [
    "RancherRestClient",
    "UpgraderConfig",
    "setup_logging",
    "Container",
    "InServiceStrategy",
    "Service",
    "UpgradeResult",
    "StatePoller",
    "RecoveryController",
    "ServiceUpgrader",
    "run_verification",
]
