from groupscore import socketio
from groupscore.socketio_handlers import (
    GROUPS_NAMESPACE,
    broadcast_leader_change,
    connected_clients,
    group_notifier,
)


def _group_events(client):
    return [
        event["args"][0]
        for event in client.get_received(GROUPS_NAMESPACE)
        if event["name"] == "group_event"
    ]


def test_subscribed_clients_receive_rank_changes(app):
    client = socketio.test_client(app, namespace=GROUPS_NAMESPACE)
    outsider = socketio.test_client(app, namespace=GROUPS_NAMESPACE)
    try:
        client.emit("subscribe_group", {"group_id": 7}, namespace=GROUPS_NAMESPACE)
        client.get_received(GROUPS_NAMESPACE)

        assert group_notifier.emit_rank_change(7, 3, 5, 2, username="dave") is True

        events = _group_events(client)
        assert len(events) == 1
        assert events[0]["type"] == "ranking_change"
        assert events[0]["data"] == {
            "user_id": 3,
            "username": "dave",
            "old_position": 5,
            "new_position": 2,
        }
        assert _group_events(outsider) == []
    finally:
        client.disconnect(namespace=GROUPS_NAMESPACE)
        outsider.disconnect(namespace=GROUPS_NAMESPACE)


def test_unsubscribe_stops_events(app):
    client = socketio.test_client(app, namespace=GROUPS_NAMESPACE)
    try:
        client.emit("subscribe_group", {"group_id": 9}, namespace=GROUPS_NAMESPACE)
        assert any(
            "group_9" in c["subscriptions"] for c in connected_clients.values()
        )
        client.emit("unsubscribe_group", {"group_id": 9}, namespace=GROUPS_NAMESPACE)
        client.get_received(GROUPS_NAMESPACE)

        broadcast_leader_change(9, 1)

        assert _group_events(client) == []
    finally:
        client.disconnect(namespace=GROUPS_NAMESPACE)
