"""
SocketIO Event Handlers for group events

Clients join a group's room to receive ranking events produced by
settlement. Broadcasts are best-effort: failures are logged, never raised.
"""

import logging
from datetime import datetime, timezone

from flask import request
from flask_socketio import emit, join_room, leave_room

from groupscore import socketio

logger = logging.getLogger(__name__)

GROUPS_NAMESPACE = "/groups"

# Track connected clients and their group rooms
connected_clients = {}


def group_room(group_id):
    return f"group_{group_id}"


@socketio.on("connect", namespace=GROUPS_NAMESPACE)
def on_connect():
    """Handle client connection to groups namespace"""
    try:
        client_id = request.sid
        connected_clients[client_id] = {"subscriptions": set()}
        logger.info(f"Client connected to {GROUPS_NAMESPACE}: {client_id}")
    except Exception as e:
        logger.error(f"Error in groups connect: {e}")


@socketio.on("disconnect", namespace=GROUPS_NAMESPACE)
def on_disconnect():
    """Handle client disconnection from groups namespace"""
    try:
        client_id = request.sid
        if client_id in connected_clients:
            del connected_clients[client_id]
            logger.info(f"Client disconnected from {GROUPS_NAMESPACE}: {client_id}")
    except Exception as e:
        logger.error(f"Error in groups disconnect: {e}")


@socketio.on("subscribe_group", namespace=GROUPS_NAMESPACE)
def on_subscribe_group(data):
    """Subscribe to events for a specific group"""
    try:
        client_id = request.sid
        group_id = (data or {}).get("group_id")

        if client_id in connected_clients and group_id:
            room_name = group_room(group_id)

            # Skip if already subscribed
            if room_name in connected_clients[client_id]["subscriptions"]:
                return

            connected_clients[client_id]["subscriptions"].add(room_name)
            join_room(room_name)
            emit("subscribed", {"group_id": group_id})

            logger.debug(f"Client {client_id} subscribed to group {group_id}")
    except Exception as e:
        logger.error(f"Error in subscribe_group: {e}")


@socketio.on("unsubscribe_group", namespace=GROUPS_NAMESPACE)
def on_unsubscribe_group(data):
    """Unsubscribe from a group's events"""
    try:
        client_id = request.sid
        group_id = (data or {}).get("group_id")

        if client_id in connected_clients and group_id:
            connected_clients[client_id]["subscriptions"].discard(group_room(group_id))
            leave_room(group_room(group_id))

            logger.debug(f"Client {client_id} unsubscribed from group {group_id}")
    except Exception as e:
        logger.error(f"Error in unsubscribe_group: {e}")


def _broadcast_group_event(group_id, event_type, data):
    try:
        socketio.emit(
            "group_event",
            {
                "type": event_type,
                "group_id": group_id,
                "data": data,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            room=group_room(group_id),
            namespace=GROUPS_NAMESPACE,
        )
        logger.debug(f"Broadcasted {event_type} to group {group_id}")
        return True
    except Exception as e:
        logger.error(f"Error broadcasting {event_type} to group {group_id}: {e}")
        return False


def broadcast_rank_change(group_id, user_id, old_rank, new_rank, username=None):
    """Broadcast that a member climbed in the group standings"""
    return _broadcast_group_event(
        group_id,
        "ranking_change",
        {
            "user_id": user_id,
            "username": username or "Someone",
            "old_position": old_rank,
            "new_position": new_rank,
        },
    )


def broadcast_leader_change(group_id, user_id, username=None):
    """Broadcast a new sole leader of the group"""
    return _broadcast_group_event(
        group_id,
        "leader_change",
        {"user_id": user_id, "username": username or "Someone"},
    )


class GroupEventNotifier:
    """Notification seam used by settlement"""

    def emit_rank_change(self, group_id, user_id, old_rank, new_rank, username=None):
        return broadcast_rank_change(group_id, user_id, old_rank, new_rank, username)

    def emit_leader_change(self, group_id, user_id, username=None):
        return broadcast_leader_change(group_id, user_id, username)


group_notifier = GroupEventNotifier()
