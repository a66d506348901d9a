"""
Orchestrator message protocol.

Every message on the orchestrator link is a JSON object ``{"type": ..., "payload": ...}``.
Each message kind is its own dataclass; ``decode_message`` turns inbound
text into one of the inbound variants and ``encode_message`` serializes any
variant. Decoding problems raise MessageDecodeError, which callers log and skip.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class MessageType(str, Enum):
    # inbound
    START_MISSION = "start-mission"
    STOP_MISSION = "stop-mission"
    COMMAND = "command"
    COMPLETE = "complete"
    GET_STATUS = "get-status"
    # outbound
    RESPONSE = "response"
    DETECTION = "detection"
    ABORTED = "aborted"


class MessageDecodeError(ValueError):
    """Raised for malformed or unknown orchestrator messages."""

    def __init__(self, message: str, message_type: Optional[str] = None):
        super().__init__(message)
        self.message_type = message_type


# ---------------------------------------------------------------- inbound

@dataclass(frozen=True)
class StartMission:
    label: str
    type = MessageType.START_MISSION

    def payload(self):
        return self.label


@dataclass(frozen=True)
class StopMission:
    type = MessageType.STOP_MISSION

    def payload(self):
        return None


@dataclass(frozen=True)
class RawCommand:
    command: str
    type = MessageType.COMMAND

    def payload(self):
        return self.command


@dataclass(frozen=True)
class CompleteMission:
    """Sent by the orchestrator to end the mission from its side. Also the outbound completion report."""
    cycle_count: Optional[int] = None
    target: Optional[str] = None
    type = MessageType.COMPLETE

    def payload(self):
        return {'cycle_count': self.cycle_count, 'target': self.target}


@dataclass(frozen=True)
class GetStatus:
    type = MessageType.GET_STATUS

    def payload(self):
        return None


# ---------------------------------------------------------------- outbound

@dataclass(frozen=True)
class Response:
    text: str
    type = MessageType.RESPONSE

    def payload(self):
        return self.text


@dataclass(frozen=True)
class DetectionReport:
    detection: Dict[str, Any]
    command: Optional[str]
    telemetry: Optional[Dict[str, Any]]
    cycle_count: int
    decision: Optional[Dict[str, Any]] = None
    type = MessageType.DETECTION

    def payload(self):
        payload = dict(self.detection)
        payload.update({
            'command': self.command,
            'telemetry': self.telemetry,
            'cycle_count': self.cycle_count,
        })
        if self.decision is not None:
            payload['decision'] = self.decision
        return payload


@dataclass(frozen=True)
class MissionAborted:
    reason: str
    target: str
    cycle_count: int
    type = MessageType.ABORTED

    def payload(self):
        return {'reason': self.reason, 'target': self.target, 'cycle_count': self.cycle_count}


InboundMessage = Union[StartMission, StopMission, RawCommand, CompleteMission, GetStatus]
OutboundMessage = Union[Response, DetectionReport, CompleteMission, MissionAborted]


def encode_message(message: Union[InboundMessage, OutboundMessage]) -> str:
    body = {'type': message.type.value}
    payload = message.payload()
    if payload is not None:
        body['payload'] = payload
    return json.dumps(body)


def _payload_text(message_type: str, payload: Any) -> str:
    if not isinstance(payload, str) or not payload.strip():
        raise MessageDecodeError(f"'{message_type}' needs a non-empty string payload", message_type)
    return payload.strip()


def decode_message(text: Union[str, bytes]) -> InboundMessage:
    """
    Decode one inbound message.

    Raises:
        MessageDecodeError: On invalid JSON, a missing/unknown type or a bad payload.
    """
    try:
        body = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MessageDecodeError(f"invalid JSON: {e}") from e

    if not isinstance(body, dict):
        raise MessageDecodeError("message is not a JSON object")

    message_type = body.get('type')
    payload = body.get('payload')

    if message_type == MessageType.START_MISSION.value:
        return StartMission(_payload_text(message_type, payload))
    if message_type == MessageType.STOP_MISSION.value:
        return StopMission()
    if message_type == MessageType.COMMAND.value:
        return RawCommand(_payload_text(message_type, payload))
    if message_type == MessageType.COMPLETE.value:
        payload = payload if isinstance(payload, dict) else {}
        return CompleteMission(payload.get('cycle_count'), payload.get('target'))
    if message_type == MessageType.GET_STATUS.value:
        return GetStatus()

    raise MessageDecodeError(f"unknown message type: {message_type!r}", message_type)
