import pytest

from agent_marketplace.notifications.models import Notification

pytestmark = pytest.mark.django_db


def test_new_notification_is_pushed_after_commit(
    buyer, realtime_push, django_capture_on_commit_callbacks
):
    with django_capture_on_commit_callbacks(execute=True):
        notification = Notification.objects.create(
            recipient=buyer,
            title="New Chat Message",
            message="seller: hi",
            notification_type=Notification.Type.CHAT_MESSAGE,
            data={"chatId": 1, "messageId": 2},
        )

    realtime_push["user"].assert_called_once()
    user_id, event, payload = realtime_push["user"].call_args.args
    assert user_id == buyer.pk
    assert event == "notification"
    assert payload["id"] == notification.pk
    assert payload["type"] == "CHAT_MESSAGE"
    assert payload["data"] == {"chatId": 1, "messageId": 2}
    assert payload["read"] is False


def test_updates_are_not_pushed(buyer, realtime_push, django_capture_on_commit_callbacks):
    notification = Notification.objects.create(recipient=buyer, title="t", message="m")
    with django_capture_on_commit_callbacks(execute=True):
        notification.set_read()

    realtime_push["user"].assert_not_called()


def test_push_failure_is_logged_not_raised(
    buyer, realtime_push, django_capture_on_commit_callbacks, caplog
):
    realtime_push["user"].side_effect = RuntimeError("socket gone")

    with django_capture_on_commit_callbacks(execute=True):
        Notification.objects.create(recipient=buyer, title="t", message="m")

    assert "Realtime push failed" in caplog.text
