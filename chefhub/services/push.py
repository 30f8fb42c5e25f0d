"""Push gateway: delivers notifications to device tokens or topics.

Two modes, picked by `settings.push_mode`:
- mock: logs and records every message in memory (development, tests)
- fcm: Firebase Cloud Messaging through firebase-admin
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..settings import settings

logger = logging.getLogger("chefhub.push")

TOPIC_PREFIX = "/topics/"


@dataclass
class BatchResult:
    success_count: int = 0
    failure_count: int = 0

    def to_dict(self) -> dict:
        return {"success_count": self.success_count, "failure_count": self.failure_count}


@dataclass
class PushMessage:
    target: str
    title: str
    body: str
    data: dict = field(default_factory=dict)


class PushGateway(Protocol):
    def send(self, target: str, title: str, body: str, data: Optional[dict] = None) -> bool: ...

    def send_batch(self, tokens: list[str], title: str, body: str, data: Optional[dict] = None) -> BatchResult: ...


def _stringify(data: Optional[dict]) -> dict[str, str]:
    # FCM data payloads only carry string values
    return {str(k): "" if v is None else str(v) for k, v in (data or {}).items()}


class MockPushGateway:
    def __init__(self):
        self.sent: list[PushMessage] = []

    def send(self, target: str, title: str, body: str, data: Optional[dict] = None) -> bool:
        self.sent.append(PushMessage(target, title, body, _stringify(data)))
        logger.info(f"[mock push] to={target[:16]} title='{title}'")
        return True

    def send_batch(self, tokens: list[str], title: str, body: str, data: Optional[dict] = None) -> BatchResult:
        result = BatchResult()
        for token in tokens:
            if self.send(token, title, body, data):
                result.success_count += 1
            else:
                result.failure_count += 1
        return result


class FcmPushGateway:
    """firebase-admin backed gateway. A target starting with /topics/ is sent to that topic."""

    def __init__(self, credentials_path: Optional[str] = None):
        import firebase_admin
        from firebase_admin import credentials

        path = credentials_path or settings.firebase_credentials_path
        if not path:
            raise RuntimeError("FIREBASE_CREDENTIALS_PATH is required when PUSH_MODE=fcm")
        try:
            self._app = firebase_admin.get_app("chefhub")
        except ValueError:
            self._app = firebase_admin.initialize_app(credentials.Certificate(path), name="chefhub")

    def send(self, target: str, title: str, body: str, data: Optional[dict] = None) -> bool:
        from firebase_admin import messaging, exceptions

        kwargs = {"topic": target[len(TOPIC_PREFIX):]} if target.startswith(TOPIC_PREFIX) else {"token": target}
        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data=_stringify(data),
            **kwargs,
        )
        try:
            message_id = messaging.send(message, app=self._app)
            logger.info(f"FCM message sent: {message_id}")
            return True
        except exceptions.FirebaseError as e:
            logger.error(f"FCM send failed: {e}")
            return False

    def send_batch(self, tokens: list[str], title: str, body: str, data: Optional[dict] = None) -> BatchResult:
        from firebase_admin import messaging, exceptions

        if not tokens:
            return BatchResult()
        message = messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=title, body=body),
            data=_stringify(data),
        )
        try:
            response = messaging.send_each_for_multicast(message, app=self._app)
        except exceptions.FirebaseError as e:
            logger.error(f"FCM multicast failed: {e}")
            return BatchResult(failure_count=len(tokens))
        if response.failure_count:
            logger.warning(f"FCM multicast: {response.failure_count}/{len(tokens)} tokens failed")
        return BatchResult(success_count=response.success_count, failure_count=response.failure_count)


_gateway: Optional[PushGateway] = None


def get_push_gateway() -> PushGateway:
    """Process-wide gateway for the configured mode. Used as a FastAPI dependency."""
    global _gateway
    if _gateway is None:
        _gateway = FcmPushGateway() if settings.push_mode == "fcm" else MockPushGateway()
    return _gateway
