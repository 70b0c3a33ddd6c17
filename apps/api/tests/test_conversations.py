"""Tests for grouping messages into conversation threads."""

from datetime import datetime, timedelta

from corphub.db.models import Message
from corphub.services.message_service import group_conversations

T0 = datetime(2026, 1, 1, 9, 0)


def msg(id, sender, receiver, minutes, is_read=False):
    return Message(
        id=id,
        sender_id=sender,
        receiver_id=receiver,
        type="text",
        content=f"m{id}",
        is_read=is_read,
        created_at=T0 + timedelta(minutes=minutes),
    )


def test_one_thread_per_partner_newest_first():
    messages = [
        msg(1, 2, 1, 0),
        msg(2, 1, 3, 5),
        msg(3, 2, 1, 10),
        msg(4, 1, 2, 1),
    ]

    threads = group_conversations(messages, user_id=1)

    assert [t.partner_id for t in threads] == [2, 3]
    assert threads[0].last_message.id == 3
    assert threads[1].last_message.id == 2


def test_unread_counts_only_incoming_unread():
    messages = [
        msg(1, 2, 1, 0),
        msg(2, 2, 1, 1, is_read=True),
        msg(3, 1, 2, 2),
        msg(4, 2, 1, 3),
    ]

    (thread,) = group_conversations(messages, user_id=1)

    assert thread.unread_count == 2
    assert thread.last_message.id == 4


def test_same_timestamp_breaks_ties_by_id():
    messages = [msg(5, 2, 1, 0), msg(6, 1, 2, 0)]
    (thread,) = group_conversations(messages, user_id=1)
    assert thread.last_message.id == 6


def test_unrelated_messages_are_ignored():
    messages = [msg(1, 2, 3, 0)]
    assert group_conversations(messages, user_id=1) == []
