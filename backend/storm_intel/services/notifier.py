"""Storm prediction push notifications.

received -> classified -> dispatch-requested -> dispatched | partially-dispatched

Every subscription is attempted independently and concurrently. Dispatch
returns only after all attempts have settled and never raises on partial
failure. A 404/410 from the push service prunes that subscription; any other
failure leaves it in place for the next alert.
"""

import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from storm_intel.errors import PushDeliveryError
from storm_intel.models.crm import User
from storm_intel.models.notification import Activity, PushSubscription
from storm_intel.schemas.prediction import NotifyRequest, NotifyResponse
from storm_intel.services.prediction_classifier import classify_icon

logger = logging.getLogger(__name__)


class PushTransport(Protocol):
    def send(self, endpoint: str, p256dh: str, auth: str, payload: str) -> None: ...


@dataclass(frozen=True)
class DispatchTarget:
    """Detached copy of a subscription row, safe to hand to worker threads."""
    subscription_id: str
    user_id: str
    endpoint: str
    p256dh: str
    auth: str

    @classmethod
    def from_row(cls, sub: PushSubscription) -> "DispatchTarget":
        return cls(sub.id, sub.user_id, sub.endpoint, sub.p256dh, sub.auth)


@dataclass
class DispatchOutcome:
    subscription_id: str
    user_id: str
    success: bool
    status_code: int | None = None
    error: str | None = None
    pruned: bool = False


@dataclass
class DispatchResult:
    outcomes: list[DispatchOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def notified(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def pruned(self) -> int:
        return sum(1 for o in self.outcomes if o.pruned)


class Notifier:
    def __init__(
        self,
        transport: PushTransport,
        session_factory: sessionmaker,
        timeout_seconds: float | None = 10.0,
        icon_path: str = "/icons/icon-192x192.svg",
        max_workers: int = 10,
    ):
        self.transport = transport
        self.session_factory = session_factory
        self.timeout_seconds = timeout_seconds
        self.icon_path = icon_path
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="push")
        # One slot per worker, held until the send thread finishes, so an
        # acquired slot always means a free worker
        self._slots = asyncio.Semaphore(max_workers)

    def close(self):
        self._executor.shutdown(wait=False)

    def build_payload(self, req: NotifyRequest) -> str:
        icon = classify_icon(req.severity)
        return json.dumps({
            "title": f"{icon} {req.title}",
            "body": req.body,
            "icon": self.icon_path,
            "badge": self.icon_path,
            "tag": f"storm-prediction-{req.prediction_id}",
            "data": {
                "type": "storm-prediction",
                "prediction_id": req.prediction_id,
                "severity": req.severity.value,
                "url": f"/storms?prediction={req.prediction_id}",
            },
            "actions": [
                {"action": "view", "title": "View Details"},
                {"action": "dismiss", "title": "Dismiss"},
            ],
        }, ensure_ascii=False)

    def select_targets(self, db: Session, user_ids: list[str] | None = None) -> list[PushSubscription]:
        """Explicit users get exactly their subscriptions; otherwise every active user's.

        Subscriptions are not state-tagged, so affected states do not narrow the set.
        """
        query = db.query(PushSubscription)
        if user_ids:
            query = query.filter(PushSubscription.user_id.in_(user_ids))
        else:
            query = query.join(User, User.id == PushSubscription.user_id).filter(User.is_active.is_(True))
        return query.order_by(PushSubscription.created_at, PushSubscription.id).all()

    async def dispatch(self, subscriptions: list, payload: str) -> DispatchResult:
        targets = [
            s if isinstance(s, DispatchTarget) else DispatchTarget.from_row(s)
            for s in subscriptions
        ]
        settled = await asyncio.gather(
            *(self._attempt(t, payload) for t in targets),
            return_exceptions=True,
        )

        outcomes = []
        for target, result in zip(targets, settled):
            if isinstance(result, BaseException):
                outcomes.append(DispatchOutcome(
                    subscription_id=target.subscription_id,
                    user_id=target.user_id,
                    success=False,
                    error=str(result) or type(result).__name__,
                ))
            else:
                outcomes.append(result)

        result = DispatchResult(outcomes)
        logger.info(
            "Push dispatch settled: %d/%d delivered, %d pruned",
            result.notified, result.total, result.pruned,
        )
        return result

    async def _attempt(self, target: DispatchTarget, payload: str) -> DispatchOutcome:
        try:
            await self._send(target, payload)
        except PushDeliveryError as e:
            logger.warning(
                "Push to subscription %s failed (status %s): %s",
                target.subscription_id, e.status_code, e,
            )
            pruned = False
            if e.is_terminal:
                pruned = await asyncio.to_thread(self._prune, target.subscription_id)
            return DispatchOutcome(
                subscription_id=target.subscription_id,
                user_id=target.user_id,
                success=False,
                status_code=e.status_code,
                error=str(e),
                pruned=pruned,
            )
        except asyncio.TimeoutError:
            logger.warning("Push to subscription %s timed out", target.subscription_id)
            return DispatchOutcome(
                subscription_id=target.subscription_id,
                user_id=target.user_id,
                success=False,
                error="timeout",
            )
        except Exception as e:
            logger.warning("Push to subscription %s failed: %s", target.subscription_id, e)
            return DispatchOutcome(
                subscription_id=target.subscription_id,
                user_id=target.user_id,
                success=False,
                error=str(e) or type(e).__name__,
            )

        return DispatchOutcome(
            subscription_id=target.subscription_id,
            user_id=target.user_id,
            success=True,
        )

    async def _send(self, target: DispatchTarget, payload: str):
        """Deliver on the push pool. The timeout starts once a worker is running the send."""
        loop = asyncio.get_running_loop()
        await self._slots.acquire()
        try:
            future = self._executor.submit(
                self.transport.send, target.endpoint, target.p256dh, target.auth, payload,
            )
        except BaseException:
            self._slots.release()
            raise

        def release(_):
            # A hung send keeps its slot until the thread actually returns
            if not loop.is_closed():
                loop.call_soon_threadsafe(self._slots.release)

        future.add_done_callback(release)
        running = asyncio.wrap_future(future)
        if self.timeout_seconds:
            await asyncio.wait_for(running, timeout=self.timeout_seconds)
        else:
            await running

    def _prune(self, subscription_id: str) -> bool:
        """Delete a dead subscription in its own transaction.

        A row that is already gone counts as handled.
        """
        db: Session = self.session_factory()
        try:
            deleted = (
                db.query(PushSubscription)
                .filter(PushSubscription.id == subscription_id)
                .delete(synchronize_session=False)
            )
            db.commit()
            if deleted:
                logger.info("Pruned expired push subscription %s", subscription_id)
            else:
                logger.debug("Push subscription %s already removed", subscription_id)
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to prune push subscription %s: %s", subscription_id, e)
            return False
        finally:
            db.close()

    def record_activity(self, db: Session, actor_id: str, req: NotifyRequest, result: DispatchResult):
        db.add(Activity(
            user_id=actor_id,
            type="create",
            entity_type="notification",
            entity_id=req.prediction_id,
            description=f"Sent storm alert to {result.notified} users: {req.title}",
            metadata_json=json.dumps({
                "severity": req.severity.value,
                "affected_states": req.affected_states,
                "total_subscriptions": result.total,
                "successful": result.notified,
                "pruned": result.pruned,
            }),
        ))
        db.commit()

    async def notify(self, db: Session, actor_id: str, req: NotifyRequest) -> NotifyResponse:
        subscriptions = await asyncio.to_thread(self.select_targets, db, req.user_ids)
        if not subscriptions:
            return NotifyResponse(message="No subscriptions to notify", notified=0, total=0)

        payload = self.build_payload(req)
        targets = [DispatchTarget.from_row(s) for s in subscriptions]
        result = await self.dispatch(targets, payload)
        await asyncio.to_thread(self.record_activity, db, actor_id, req, result)

        return NotifyResponse(
            message=f"Notifications sent to {result.notified} of {result.total} users",
            notified=result.notified,
            total=result.total,
            pruned=result.pruned,
        )
