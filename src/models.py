"""
Data models for the Rancher service upgrader.
"""

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from errors import MissingField, ResponseError

# Docker tag grammar; anchored so a registry port ("host:5000/img") never matches.
TAG_PATTERN = re.compile(r":[\w][\w.-]*$")
DOCKER_SCHEME = "docker:"


def _get_int(data: Dict, key: str, default: int) -> int:
    value = data.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ResponseError(f"'{key}' is not an integer: {value!r}")


def _get_object(data: Dict, key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ResponseError(f"'{key}' is not an object: {value!r}")
    return value


def _get_links(data: Dict, key: str) -> Dict[str, str]:
    """Non-empty entries of an actions or links map."""
    return {k: v for k, v in _get_object(data, key).items() if v}


def rewrite_image_tag(image: str, tag: str) -> str:
    """
    Replace the tag of an image reference.

    Handles Rancher's "docker:" prefix, registries with ports and digests.
    Applying the same tag twice gives the same result.

    Args:
        image: Image reference, e.g. 'docker:repo/img:old'
        tag: New tag

    Returns:
        Image reference carrying the new tag
    """
    prefix = DOCKER_SCHEME if image.startswith(DOCKER_SCHEME) else ""
    ref = image[len(prefix) :]
    repo, slash, name = ref.rpartition("/")
    name = name.split("@", 1)[0]
    name = TAG_PATTERN.sub("", name)
    return f"{prefix}{repo}{slash}{name}:{tag}"


@dataclass
class InServiceStrategy:
    """In-service upgrade strategy; also the body of an upgrade request."""

    batch_size: int = 1
    interval_millis: int = 2000
    launch_config: Dict[str, Any] = field(default_factory=dict)
    start_first: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "InServiceStrategy":
        data = data or {}
        return cls(
            batch_size=_get_int(data, "batchSize", 1),
            interval_millis=_get_int(data, "intervalMillis", 2000),
            launch_config=_get_object(data, "launchConfig"),
            start_first=bool(data.get("startFirst", False)),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Render the JSON body expected by the service 'upgrade' action."""
        return {
            "inServiceStrategy": {
                "batchSize": self.batch_size,
                "intervalMillis": self.interval_millis,
                "launchConfig": self.launch_config,
                "startFirst": self.start_first,
            }
        }


@dataclass
class Service:
    """Snapshot of a Rancher service, valid until the next fetch."""

    name: str
    state: str
    actions: Dict[str, str] = field(default_factory=dict)
    links: Dict[str, str] = field(default_factory=dict)
    launch_config: Dict[str, Any] = field(default_factory=dict)
    upgrade_strategy: InServiceStrategy = field(default_factory=InServiceStrategy)

    @classmethod
    def from_dict(cls, data: Dict) -> "Service":
        upgrade = _get_object(data, "upgrade")
        return cls(
            name=str(data.get("name") or ""),
            state=str(data.get("state") or ""),
            actions=_get_links(data, "actions"),
            links=_get_links(data, "links"),
            launch_config=_get_object(data, "launchConfig"),
            upgrade_strategy=InServiceStrategy.from_dict(
                _get_object(upgrade, "inServiceStrategy")
            ),
        )

    def action_url(self, action: str) -> Optional[str]:
        """URL of an action, or None if the action is not currently allowed."""
        return self.actions.get(action)

    @property
    def instances_url(self) -> Optional[str]:
        return self.links.get("instances")

    @property
    def image_uuid(self) -> str:
        value = self.launch_config.get("imageUuid")
        if not isinstance(value, str) or not value:
            raise MissingField("launchConfig.imageUuid")
        return value


@dataclass
class Container:
    """A service instance as listed by the service's instances link."""

    id: str
    kind: str
    state: str
    actions: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> "Container":
        if not isinstance(data, dict):
            raise ResponseError(f"Container entry is not an object: {data!r}")
        return cls(
            id=str(data.get("id") or ""),
            kind=str(data.get("type") or "container"),
            state=str(data.get("state") or ""),
            actions=_get_links(data, "actions"),
        )

    @property
    def can_start(self) -> bool:
        return bool(self.actions.get("start"))


def build_upgrade_request(
    service: Service, build_tag: str, start_first: bool
) -> InServiceStrategy:
    """
    Build the upgrade request for a service.

    The launch config is copied and only its imageUuid is rewritten; batch
    size and interval come from the service's current strategy.

    Args:
        service: Latest service snapshot
        build_tag: Image tag to deploy
        start_first: Start new containers before stopping old ones

    Returns:
        InServiceStrategy ready to be posted

    Raises:
        MissingField: If the launch config has no imageUuid
    """
    launch_config = copy.deepcopy(service.launch_config)
    launch_config["imageUuid"] = rewrite_image_tag(service.image_uuid, build_tag)
    return InServiceStrategy(
        batch_size=service.upgrade_strategy.batch_size,
        interval_millis=service.upgrade_strategy.interval_millis,
        launch_config=launch_config,
        start_first=start_first,
    )


@dataclass
class UpgradeResult:
    """Result of one upgrade run."""

    service_name: str
    status: str  # "success", "failed"
    final_state: Optional[str] = None
    target_image: Optional[str] = None
    finished: bool = False
    recovery: Optional[str] = None  # None, "cancel", "rollback"
    rolled_back: bool = False
    error_message: Optional[str] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    duration_seconds: Optional[float] = None
    started_containers: List[str] = field(default_factory=list)
