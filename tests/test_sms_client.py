import pytest
import requests

from notifications.sms_client import SmsClient, SmsError, is_valid_e164


class FakeResponse:
    def __init__(self, status_code=201, payload=None):
        self.status_code = status_code
        self.payload = payload or {"sid": "SM123"}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    """Replays a scripted list of responses/exceptions for POST calls."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def post(self, url, data=None, auth=None, timeout=None):
        self.calls.append({"url": url, "data": data, "auth": auth, "timeout": timeout})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_client(outcomes, sleeps):
    return SmsClient(
        account_sid="AC123",
        auth_token="secret",
        from_number="+15550001111",
        session=FakeSession(outcomes),
        sleep=sleeps.append,
    )


@pytest.mark.parametrize("phone, expected", [
    ("+15551234567", True),
    ("+447911123456", True),
    ("5551234567", False),
    ("+1 555 123 4567", False),
    ("", False),
    (None, False),
])
def test_e164_validation(phone, expected):
    assert is_valid_e164(phone) is expected


def test_send_posts_to_twilio():
    sleeps = []
    client = make_client([FakeResponse()], sleeps)

    assert client.send("+15551234567", "New ride: Alex at 12 Elm St") == "SM123"

    call = client.session.calls[0]
    assert call["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert call["data"] == {"To": "+15551234567", "From": "+15550001111", "Body": "New ride: Alex at 12 Elm St"}
    assert call["auth"] == ("AC123", "secret")
    assert sleeps == []


def test_transient_failures_back_off_exponentially():
    sleeps = []
    client = make_client([requests.ConnectionError("down"), FakeResponse(500), FakeResponse()], sleeps)

    assert client.send("+15551234567", "hello") == "SM123"
    assert sleeps == [1.0, 2.0]
    assert len(client.session.calls) == 3


def test_gives_up_after_three_attempts():
    sleeps = []
    client = make_client([requests.Timeout("slow")] * 3, sleeps)

    with pytest.raises(SmsError):
        client.send("+15551234567", "hello")
    assert sleeps == [1.0, 2.0]


def test_invalid_number_is_never_sent():
    client = make_client([], [])

    with pytest.raises(SmsError):
        client.send("555-1234", "hello")
    assert client.session.calls == []


def test_missing_credentials():
    client = SmsClient(account_sid="", auth_token="", from_number="", session=FakeSession([]))
    client.account_sid = None

    with pytest.raises(SmsError):
        client.send("+15551234567", "hello")


def test_send_safe_swallows_failures():
    client = make_client([requests.ConnectionError("down")] * 3, [])

    assert client.send_safe("+15551234567", "hello") is False
    assert client.send_safe("bad", "hello") is False
