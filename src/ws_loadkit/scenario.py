"""
Channel planning and message accounting for the broadcast load scenario.

Every virtual user (VU) subscribes to its personal channel; the first
`extra_channels_amount * user_per_extra_channel` users also share extra
channels, `user_per_extra_channel` users per channel. Publications arrive as
JSON objects that may be packed several to a WebSocket message.
"""

import base64
import binascii
import json
import math
import uuid as uuid_lib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .streaming.splitter import SplitResult
from .utils.config import LoadTestConfig, DEFAULT_TOKEN_EXPIRY
from .utils.logging import get_logger
from .utils.metrics import MetricsCollector, record_split

logger = get_logger("ws-loadkit.scenario")

EXTRA_CHANNEL_PREFIX = "extra"


def personal_channel(vu: int, namespace: str = "personal") -> str:
    """Name of a VU's personal channel, e.g. `personal:#user3`."""
    return f"{namespace}:#user{vu}"


def build_connect_claims(vu: int, expires_at: int = DEFAULT_TOKEN_EXPIRY) -> Dict[str, Any]:
    """Claims a VU presents when connecting."""
    return {"sub": f"user{vu}", "exp": expires_at}


@dataclass
class ChannelPlan:
    """Channel layout for one load-test run."""
    vus: int
    namespace: str = "personal"
    extra_channels_amount: int = 0
    user_per_extra_channel: int = 0

    @classmethod
    def from_config(cls, config: LoadTestConfig) -> "ChannelPlan":
        return cls(
            vus=config.vus,
            namespace=config.namespace,
            extra_channels_amount=config.extra_channels_amount,
            user_per_extra_channel=config.user_per_extra_channel,
        )

    @property
    def personal_channels(self) -> List[str]:
        return [personal_channel(vu, self.namespace) for vu in range(1, self.vus + 1)]

    @property
    def extra_channels(self) -> List[str]:
        return [
            f"{EXTRA_CHANNEL_PREFIX}{n}"
            for n in range(1, self.extra_channels_amount + 1)
        ]

    def extra_channel_for(self, vu: int) -> Optional[str]:
        """Extra channel a VU joins, or None when it only has a personal one."""
        if self.extra_channels_amount <= 0 or self.user_per_extra_channel <= 0:
            return None
        if vu > self.extra_channels_amount * self.user_per_extra_channel:
            return None
        return f"{EXTRA_CHANNEL_PREFIX}{math.ceil(vu / self.user_per_extra_channel)}"


def broadcast_payload(
    channels: List[str],
    vu: int,
    message_uuid: Optional[str] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Body of a broadcast API request.

    Args:
        channels: Target channels
        vu: Sending VU
        message_uuid: Correlation id; generated when omitted
        now: Send time; defaults to the current UTC time

    Returns:
        JSON-serializable request body
    """
    message_uuid = message_uuid or str(uuid_lib.uuid4())
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return {
        "channels": list(channels),
        "data": {
            "uuid": message_uuid,
            "text": f"Message from VU {vu} at {timestamp}",
            "timestamp": timestamp,
        },
    }


@dataclass
class Publication:
    """A broadcast message received on a channel."""
    uuid: str
    channel: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_extra(self) -> bool:
        return EXTRA_CHANNEL_PREFIX in self.channel


def _decode_publication_data(data: Any) -> Optional[Dict[str, Any]]:
    if isinstance(data, dict):
        return data
    if not isinstance(data, str):
        return None

    # Publication data is either raw JSON text or base64-encoded JSON
    try:
        decoded = json.loads(data)
    except ValueError:
        try:
            decoded = json.loads(base64.b64decode(data, validate=True).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return None

    return decoded if isinstance(decoded, dict) else None


def extract_publication(message: Dict[str, Any]) -> Optional[Publication]:
    """
    Pull the correlation id and channel out of a push message.

    Args:
        message: Decoded object shaped like
            `{"push": {"channel": ..., "pub": {"data": ...}}}`

    Returns:
        Publication, or None when the message is not a publication or
        carries no uuid
    """
    push = message.get("push")
    if not isinstance(push, dict):
        return None

    pub = push.get("pub")
    if not isinstance(pub, dict) or "data" not in pub:
        return None

    data = _decode_publication_data(pub["data"])
    if data is None:
        logger.warning("publication_data_undecodable", channel=push.get("channel"))
        return None

    message_uuid = data.get("uuid")
    if not message_uuid:
        return None

    return Publication(uuid=str(message_uuid), channel=str(push.get("channel", "")), data=data)


class MessageTally:
    """Counts publications received by one VU."""

    def __init__(self, collector: Optional[MetricsCollector] = None, vu: Optional[int] = None):
        self.collector = collector or MetricsCollector()
        self.vu = vu
        self.received: List[Publication] = []

    def record(self, result: SplitResult) -> List[Publication]:
        """
        Account for the objects of one split message.

        Returns:
            Publications found in the message
        """
        record_split(self.collector, result)

        found = []
        for obj in result.objects:
            publication = extract_publication(obj)
            if publication is None:
                continue

            if publication.is_extra:
                self.collector.counter("extra_messages_received")
            else:
                self.collector.counter("messages_received")

            logger.debug(
                "publication_received",
                vu=self.vu,
                uuid=publication.uuid,
                channel=publication.channel,
                extra=publication.is_extra,
            )
            found.append(publication)

        self.received.extend(found)
        return found


__all__ = [
    'personal_channel',
    'build_connect_claims',
    'broadcast_payload',
    'ChannelPlan',
    'Publication',
    'extract_publication',
    'MessageTally',
]
