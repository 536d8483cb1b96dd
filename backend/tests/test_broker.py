"""Tests for the call signaling broker."""

import pytest

from firelink.realtime.protocol import CallRole, SignalKind


def events_for(outbounds, connection_id: str) -> list[dict]:
    """Wire payloads addressed to one connection, in order."""
    return [o.event.to_wire() for o in outbounds if o.connection_id == connection_id]


@pytest.fixture
def connected(broker, make_channel):
    """Connect the given ids to the broker."""

    def _connect(*connection_ids: str) -> None:
        for cid in connection_ids:
            broker.connect(cid, make_channel())

    return _connect


class TestJoin:
    """Tests for joining call rooms."""

    def test_first_join_creates_room(self, broker, connected):
        connected("a")

        outbounds = broker.join("a", "inc-1", CallRole.INITIATOR, "user-a")

        assert outbounds == []
        assert broker.room_ids() == ["inc-1"]
        assert broker.members("inc-1") == ["a"]
        assert broker.room_of("a") == "inc-1"

    def test_two_peers_learn_about_each_other(self, broker, connected):
        """Each side gets exactly one peer-joined about the other, none about itself."""
        connected("a", "b")
        first = broker.join("a", "inc-1", CallRole.INITIATOR)
        second = broker.join("b", "inc-1", CallRole.INITIATOR)
        outbounds = first + second

        to_a = [e for e in events_for(outbounds, "a") if e["type"] == "peer-joined"]
        to_b = [e for e in events_for(outbounds, "b") if e["type"] == "peer-joined"]
        assert [e["connectionId"] for e in to_a] == ["b"]
        assert [e["connectionId"] for e in to_b] == ["a"]

    def test_peer_joined_carries_role_and_subscriber(self, broker, connected):
        connected("a", "b")
        broker.join("a", "inc-1", CallRole.INITIATOR)

        outbounds = broker.join("b", "inc-1", CallRole.RESPONDER, "agent-7")

        [joined] = [e for e in events_for(outbounds, "a") if e["type"] == "peer-joined"]
        assert joined == {
            "type": "peer-joined",
            "connectionId": "b",
            "role": "responder",
            "subscriberId": "agent-7",
        }

    def test_responder_invited_to_call_initiator(self, broker, connected):
        """A responder joining a room with an initiator gets an invite naming it."""
        connected("caller", "agent")
        broker.join("caller", "inc-1", CallRole.INITIATOR)

        outbounds = broker.join("agent", "inc-1", CallRole.RESPONDER)

        invites = [e for e in events_for(outbounds, "agent") if e["type"] == "invite"]
        assert invites == [{"type": "invite", "peerId": "caller"}]
        assert all(e["type"] != "invite" for e in events_for(outbounds, "caller"))

    def test_no_invite_without_initiator(self, broker, connected):
        connected("agent-1", "agent-2")
        broker.join("agent-1", "inc-1", CallRole.RESPONDER)

        outbounds = broker.join("agent-2", "inc-1", CallRole.RESPONDER)

        assert all(o.event.type != "invite" for o in outbounds)

    def test_initiator_joining_after_responder_gets_no_invite(self, broker, connected):
        connected("agent", "caller")
        broker.join("agent", "inc-1", CallRole.RESPONDER)

        outbounds = broker.join("caller", "inc-1", CallRole.INITIATOR)

        assert all(o.event.type != "invite" for o in outbounds)
        assert [e["type"] for e in events_for(outbounds, "agent")] == ["peer-joined"]

    def test_unknown_connection_cannot_join(self, broker):
        assert broker.join("ghost", "inc-1", CallRole.INITIATOR) == []
        assert broker.room_ids() == []

    def test_rejoin_same_room_is_quiet(self, broker, connected):
        """Joining the room you are in does not re-announce you."""
        connected("a", "b")
        broker.join("a", "inc-1", CallRole.INITIATOR)
        broker.join("b", "inc-1", CallRole.RESPONDER)

        assert broker.join("b", "inc-1", CallRole.RESPONDER) == []
        assert broker.members("inc-1") == ["a", "b"]

    def test_joining_new_room_leaves_old_one(self, broker, connected):
        """A connection is in one room at a time."""
        connected("a", "b", "c")
        broker.join("a", "inc-1", CallRole.INITIATOR)
        broker.join("b", "inc-1", CallRole.RESPONDER)
        broker.join("c", "inc-2", CallRole.INITIATOR)

        outbounds = broker.join("b", "inc-2", CallRole.RESPONDER)

        assert broker.members("inc-1") == ["a"]
        assert broker.members("inc-2") == ["c", "b"]
        assert [e["type"] for e in events_for(outbounds, "a")] == ["peer-left"]
        assert "peer-joined" in [e["type"] for e in events_for(outbounds, "c")]


class TestRelay:
    """Tests for signaling relay."""

    def test_offer_forwarded_verbatim(self, broker, connected):
        """Payload is untouched; only the sender id is added."""
        connected("a", "b")
        payload = {"sdp": "v=0\r\no=- 46117317 2 IN IP4 127.0.0.1", "type": "offer"}

        outbounds = broker.relay("a", "b", SignalKind.OFFER, payload)

        assert len(outbounds) == 1
        assert outbounds[0].connection_id == "b"
        assert outbounds[0].event.to_wire() == {
            "type": "signal-offer",
            "from": "a",
            "payload": payload,
        }

    @pytest.mark.parametrize(
        "kind,wire_type",
        [
            (SignalKind.ANSWER, "signal-answer"),
            (SignalKind.ICE_CANDIDATE, "signal-ice"),
        ],
    )
    def test_other_kinds(self, broker, connected, kind, wire_type):
        connected("a", "b")

        [outbound] = broker.relay("a", "b", kind, {"candidate": "x"})

        assert outbound.event.to_wire()["type"] == wire_type

    def test_relay_to_departed_peer_dropped(self, broker, connected):
        """Nothing is delivered to anyone when the target is gone."""
        connected("a", "b", "c")
        broker.disconnect("b")

        assert broker.relay("a", "b", SignalKind.OFFER, {"sdp": "x"}) == []

    def test_relay_from_unknown_sender_dropped(self, broker, connected):
        connected("b")

        assert broker.relay("ghost", "b", SignalKind.OFFER, {}) == []


class TestLeave:
    """Tests for leaving rooms and disconnect cleanup."""

    def test_remaining_member_told_once(self, broker, connected):
        connected("a", "b")
        broker.join("a", "inc-1", CallRole.INITIATOR)
        broker.join("b", "inc-1", CallRole.RESPONDER)

        outbounds = broker.leave("b")

        assert events_for(outbounds, "a") == [
            {"type": "peer-left", "connectionId": "b", "role": "responder", "subscriberId": None}
        ]
        assert events_for(outbounds, "b") == []
        assert broker.members("inc-1") == ["a"]
        assert broker.room_of("b") is None

    def test_leave_is_idempotent(self, broker, connected):
        connected("a", "b")
        broker.join("a", "inc-1", CallRole.INITIATOR)
        broker.join("b", "inc-1", CallRole.RESPONDER)

        broker.leave("b")

        assert broker.leave("b") == []
        assert broker.leave("never-joined") == []

    def test_last_leave_deletes_room(self, broker, connected):
        connected("a")
        broker.join("a", "inc-1", CallRole.INITIATOR)

        assert broker.leave("a") == []
        assert broker.room_ids() == []

    def test_disconnect_mid_room(self, broker, connected):
        """A later joiner only sees the member that is still live."""
        connected("a", "b", "c")
        broker.join("a", "inc-1", CallRole.INITIATOR)
        broker.join("b", "inc-1", CallRole.RESPONDER)

        left = broker.disconnect("a")
        joined = broker.join("c", "inc-1", CallRole.RESPONDER)

        assert [e["type"] for e in events_for(left, "b")] == ["peer-left"]
        assert broker.members("inc-1") == ["b", "c"]
        assert [e["connectionId"] for e in events_for(joined, "c") if e["type"] == "peer-joined"] == ["b"]
        assert broker.connection_count == 2

    def test_disconnect_twice_cleans_once(self, broker, connected):
        connected("a", "b")
        broker.join("a", "inc-1", CallRole.INITIATOR)
        broker.join("b", "inc-1", CallRole.RESPONDER)

        first = broker.disconnect("b")
        second = broker.disconnect("b")

        assert len(first) == 1
        assert second == []
