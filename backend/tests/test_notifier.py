import asyncio
import json
import threading
import time
from unittest.mock import MagicMock, patch

import pytest
from pywebpush import WebPushException

from storm_intel.errors import PushDeliveryError
from storm_intel.models.notification import Activity, PushSubscription
from storm_intel.schemas.prediction import NotifyRequest
from storm_intel.services.notifier import DispatchTarget, Notifier
from storm_intel.services.push_transport import WebPushTransport
from conftest import FakePushTransport, make_subscription, make_user


def _request(**kwargs) -> NotifyRequest:
    defaults = {
        "prediction_id": "pred-39.9526--75.1652-25-1750000000000",
        "title": "Hail expected tonight",
        "body": "Large hail possible across Philadelphia County.",
        "severity": "moderate",
        "hours_until": 8,
        "affected_states": ["PA"],
    }
    defaults.update(kwargs)
    return NotifyRequest(**defaults)


def _remaining(db) -> set[str]:
    db.expire_all()
    return {s.endpoint for s in db.query(PushSubscription).all()}


@pytest.fixture
def manager(db):
    return make_user(db, role="manager")


@pytest.fixture
def five_subscriptions(db):
    users = [make_user(db) for _ in range(5)]
    return [make_subscription(db, u, f"https://push.example.com/{i}") for i, u in enumerate(users)]


@pytest.mark.asyncio
async def test_terminal_failures_are_pruned(db, session_factory, manager, five_subscriptions):
    transport = FakePushTransport(failures={
        "https://push.example.com/1": 410,
        "https://push.example.com/3": 404,
    })
    notifier = Notifier(transport, session_factory)

    resp = await notifier.notify(db, manager.id, _request())

    assert (resp.notified, resp.total, resp.pruned) == (3, 5, 2)
    assert _remaining(db) == {"https://push.example.com/0", "https://push.example.com/2", "https://push.example.com/4"}

    transport.sent.clear()
    again = await notifier.notify(db, manager.id, _request())
    assert (again.notified, again.total) == (3, 3)
    assert sorted(transport.sent) == sorted(_remaining(db))


@pytest.mark.asyncio
async def test_other_failures_keep_subscription(db, session_factory, manager, five_subscriptions):
    transport = FakePushTransport(failures={
        "https://push.example.com/0": 500,
        "https://push.example.com/1": None,
    })
    resp = await Notifier(transport, session_factory).notify(db, manager.id, _request())

    assert (resp.notified, resp.total, resp.pruned) == (3, 5, 0)
    assert len(_remaining(db)) == 5


@pytest.mark.asyncio
async def test_one_failure_does_not_block_others(db, session_factory):
    user = make_user(db)
    subs = [make_subscription(db, user, f"https://push.example.com/{i}") for i in range(3)]

    class Exploding(FakePushTransport):
        def send(self, endpoint, p256dh, auth, payload):
            if endpoint.endswith("/0"):
                raise RuntimeError("socket closed")
            super().send(endpoint, p256dh, auth, payload)

    transport = Exploding()
    result = await Notifier(transport, session_factory).dispatch(subs, "{}")

    assert result.notified == 2
    [failed] = [o for o in result.outcomes if not o.success]
    assert failed.subscription_id == subs[0].id
    assert failed.error == "socket closed"
    assert not failed.pruned


@pytest.mark.asyncio
async def test_timeout_is_non_terminal(db, session_factory):
    user = make_user(db)
    sub = make_subscription(db, user, "https://push.example.com/slow")
    notifier = Notifier(FakePushTransport(delay=0.5), session_factory, timeout_seconds=0.05)

    result = await notifier.dispatch([sub], "{}")

    [outcome] = result.outcomes
    assert not outcome.success
    assert outcome.error == "timeout"
    assert len(_remaining(db)) == 1


@pytest.mark.asyncio
async def test_timeout_starts_when_a_worker_picks_up_the_send(db, session_factory):
    user = make_user(db)
    subs = [make_subscription(db, user, f"https://push.example.com/{i}") for i in range(6)]
    # Three rounds of 0.2s on two workers; only a queue-inclusive timeout would trip
    notifier = Notifier(FakePushTransport(delay=0.2), session_factory, timeout_seconds=0.3, max_workers=2)

    result = await notifier.dispatch(subs, "{}")
    notifier.close()

    assert (result.notified, result.total) == (6, 6)


@pytest.mark.asyncio
async def test_hung_send_holds_its_worker_until_it_returns(db, session_factory):
    user = make_user(db)
    slow = make_subscription(db, user, "https://push.example.com/slow")
    fast = make_subscription(db, user, "https://push.example.com/fast")

    class OneSlowEndpoint(FakePushTransport):
        def send(self, endpoint, p256dh, auth, payload):
            if endpoint.endswith("/slow"):
                threading.Event().wait(0.4)
            super().send(endpoint, p256dh, auth, payload)

    notifier = Notifier(OneSlowEndpoint(), session_factory, timeout_seconds=0.2, max_workers=1)
    result = await notifier.dispatch([slow, fast], "{}")
    notifier.close()

    by_id = {o.subscription_id: o for o in result.outcomes}
    assert by_id[slow.id].error == "timeout"
    assert by_id[fast.id].success


@pytest.mark.asyncio
async def test_prunes_run_off_the_event_loop(db, session_factory):
    user = make_user(db)
    subs = [make_subscription(db, user, f"https://push.example.com/{i}") for i in range(3)]

    def slow_session_factory():
        threading.Event().wait(0.3)
        return session_factory()

    transport = FakePushTransport(failures={s.endpoint: 410 for s in subs})
    notifier = Notifier(transport, slow_session_factory)

    ticks = 0

    async def heartbeat():
        nonlocal ticks
        while True:
            await asyncio.sleep(0.02)
            ticks += 1

    beat = asyncio.create_task(heartbeat())
    started = time.monotonic()
    result = await notifier.dispatch(subs, "{}")
    elapsed = time.monotonic() - started
    beat.cancel()

    assert result.pruned == 3
    assert elapsed < 0.6
    assert ticks >= 5
    assert _remaining(db) == set()


@pytest.mark.asyncio
async def test_concurrent_prune_of_same_row_is_already_handled(db, session_factory):
    user = make_user(db)
    sub = make_subscription(db, user, "https://push.example.com/gone")
    target = DispatchTarget.from_row(sub)
    notifier = Notifier(FakePushTransport(failures={target.endpoint: 410}), session_factory)

    first, second = await asyncio.gather(
        notifier.dispatch([target], "{}"),
        notifier.dispatch([target], "{}"),
    )

    assert first.pruned == 1
    assert second.pruned == 1
    assert _remaining(db) == set()


def test_request_accepts_camel_case_and_field_names():
    camel = NotifyRequest(
        predictionId="spc-1-42",
        title="Hail",
        body="",
        severity="slight",
        hoursUntil=4,
        affectedStates=["PA"],
        userIds=["u1"],
    )
    assert (camel.prediction_id, camel.hours_until, camel.affected_states, camel.user_ids) == (
        "spc-1-42", 4.0, ["PA"], ["u1"],
    )
    assert _request(user_ids=["u2"]).user_ids == ["u2"]


def test_prune_missing_row_succeeds(session_factory):
    notifier = Notifier(FakePushTransport(), session_factory)
    assert notifier._prune("no-such-subscription") is True


def test_select_targets(db, session_factory):
    active, inactive = make_user(db), make_user(db, is_active=False)
    a = make_subscription(db, active, "https://push.example.com/active")
    i = make_subscription(db, inactive, "https://push.example.com/inactive")
    notifier = Notifier(FakePushTransport(), session_factory)

    assert [s.id for s in notifier.select_targets(db)] == [a.id]
    assert [s.id for s in notifier.select_targets(db, [inactive.id])] == [i.id]
    assert notifier.select_targets(db, ["nobody"]) == []


@pytest.mark.asyncio
async def test_activity_recorded(db, session_factory, manager, five_subscriptions):
    transport = FakePushTransport(failures={"https://push.example.com/4": 410})
    await Notifier(transport, session_factory).notify(db, manager.id, _request(affected_states=["PA", "NJ"]))

    [activity] = db.query(Activity).all()
    assert activity.user_id == manager.id
    assert activity.entity_type == "notification"
    assert activity.entity_id == _request().prediction_id
    assert json.loads(activity.metadata_json) == {
        "severity": "moderate",
        "affected_states": ["PA", "NJ"],
        "total_subscriptions": 5,
        "successful": 4,
        "pruned": 1,
    }


@pytest.mark.asyncio
async def test_no_subscriptions(db, session_factory, manager):
    resp = await Notifier(FakePushTransport(), session_factory).notify(db, manager.id, _request())

    assert resp.model_dump(exclude={"pruned"}) == {
        "success": True, "message": "No subscriptions to notify", "notified": 0, "total": 0,
    }
    assert db.query(Activity).count() == 0


def test_payload(session_factory):
    notifier = Notifier(FakePushTransport(), session_factory, icon_path="/icons/storm.svg")
    payload = json.loads(notifier.build_payload(_request(severity="high", prediction_id="spc-1-42")))

    assert payload["title"] == "⚠️ Hail expected tonight"
    assert payload["icon"] == "/icons/storm.svg"
    assert payload["tag"] == "storm-prediction-spc-1-42"
    assert payload["data"] == {
        "type": "storm-prediction",
        "prediction_id": "spc-1-42",
        "severity": "high",
        "url": "/storms?prediction=spc-1-42",
    }
    assert [a["action"] for a in payload["actions"]] == ["view", "dismiss"]


# --- pywebpush transport ---

def test_webpush_gone_maps_to_terminal_error():
    transport = WebPushTransport("private-key", "mailto:ops@example.com")
    gone = WebPushException("Push failed: 410 Gone", response=MagicMock(status_code=410))

    with patch("storm_intel.services.push_transport.webpush", side_effect=gone) as webpush:
        with pytest.raises(PushDeliveryError) as exc_info:
            transport.send("https://push.example.com/x", "p256dh", "auth", "{}")

    assert exc_info.value.is_terminal
    assert webpush.call_args.kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}


def test_webpush_without_response_is_not_terminal():
    transport = WebPushTransport("private-key", "mailto:ops@example.com")
    with patch("storm_intel.services.push_transport.webpush", side_effect=WebPushException("boom")):
        with pytest.raises(PushDeliveryError) as exc_info:
            transport.send("https://push.example.com/x", "p256dh", "auth", "{}")
    assert exc_info.value.status_code is None
    assert not exc_info.value.is_terminal


def test_unconfigured_transport_fails_without_sending():
    transport = WebPushTransport("", "mailto:ops@example.com")
    with patch("storm_intel.services.push_transport.webpush") as webpush:
        with pytest.raises(PushDeliveryError):
            transport.send("https://push.example.com/x", "p256dh", "auth", "{}")
    webpush.assert_not_called()
