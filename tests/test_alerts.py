import pytest

from conftest import T0, minutes
from monitoring.alerts import AlertService, AlertType
from storage.memory import NotFoundError


class BrokenStore:
    def save_alert(self, alert):
        raise IOError("disk full")


def test_create_and_mark_read(store):
    alerts = AlertService(store)
    alert = alerts.create("org-a", AlertType.DRIVER_ABUSE, "toggling", driver_id="dd-1", now=T0)

    assert alerts.unread("org-a") == [alert]

    read = alerts.mark_read(alert.id)

    assert read.is_read
    assert alerts.unread("org-a") == []
    assert alerts.find("org-a", AlertType.DRIVER_ABUSE, driver_id="dd-1") == [read]


def test_mark_read_unknown_alert(store):
    with pytest.raises(NotFoundError):
        AlertService(store).mark_read("missing")


def test_failed_write_is_logged_not_raised():
    assert AlertService(BrokenStore()).create("org-a", AlertType.DISPATCH_FAILURE, "x") is None


def test_feed_is_per_organization_newest_first(store):
    alerts = AlertService(store)
    feeds = []
    subscription = alerts.subscribe_feed("org-a", lambda feed: feeds.append([a.message for a in feed]))

    alerts.create("org-a", AlertType.DRIVER_ABUSE, "first", now=T0)
    alerts.create("org-b", AlertType.DRIVER_ABUSE, "elsewhere", now=T0)
    alerts.create("org-a", AlertType.PROLONGED_INACTIVITY, "second", now=T0 + minutes(1))
    subscription.cancel()
    alerts.create("org-a", AlertType.PROLONGED_INACTIVITY, "third", now=T0 + minutes(2))

    assert feeds == [[], ["first"], ["second", "first"]]
