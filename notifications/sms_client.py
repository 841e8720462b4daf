#Purpose: The Twilio SMS "adapter/client".
#Sole responsibility: send one text message through the Twilio REST API.
#Encapsulates Twilio-specific details:
#credentials + sender number (from .env)
#E.164 validation of the destination
#retries with exponential backoff (1s, 2s, 4s by default)
#It should not decide who gets texted or what the text says.


from dotenv import load_dotenv
import logging
import os
import time
from typing import Callable, Optional

import phonenumbers
import requests

# Read Twilio credentials from environment
# Example in .env:
# TWILIO_ACCOUNT_SID=AC...
# TWILIO_AUTH_TOKEN=...
# TWILIO_PHONE_NUMBER=+15550001111
load_dotenv()
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"

logger = logging.getLogger(__name__)


class SmsError(Exception):
    """Raised when a text message cannot be sent."""
    pass


def is_valid_e164(phone: Optional[str]) -> bool:
    """
    True only for a '+<country><number>' string that is already in E.164 form.
    """
    if not phone or not phone.startswith("+"):
        return False
    try:
        parsed = phonenumbers.parse(phone, None)
    except phonenumbers.NumberParseException:
        return False
    if not phonenumbers.is_possible_number(parsed):
        return False
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164) == phone


class SmsClient:
    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        *,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.account_sid = account_sid or TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or TWILIO_AUTH_TOKEN
        self.from_number = from_number or TWILIO_PHONE_NUMBER
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self.sleep = sleep

    def send(self, to: str, body: str) -> str:
        """
        Sends the message and returns the Twilio message sid.
        Raises SmsError on bad input, missing credentials, or once retries run out.
        """
        if not is_valid_e164(to):
            raise SmsError(f"Invalid E.164 phone number format: {to}")

        if not body or not body.strip():
            raise SmsError("SMS body cannot be empty")

        if not (self.account_sid and self.auth_token and self.from_number):
            raise SmsError(
                "Twilio credentials not configured. Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER."
            )

        url = TWILIO_MESSAGES_URL.format(account_sid=self.account_sid)
        last_error = None

        for attempt in range(self.max_retries):
            try:
                response = self.session.post(
                    url,
                    data={"To": to, "From": self.from_number, "Body": body},
                    auth=(self.account_sid, self.auth_token),
                    timeout=self.timeout,
                )
                response.raise_for_status()
                sid = response.json().get("sid", "")
                logger.info(f"SMS sent to {to} (sid {sid}, attempt {attempt + 1})")
                return sid
            except (requests.RequestException, ValueError) as error:
                last_error = error
                logger.warning(f"SMS attempt {attempt + 1}/{self.max_retries} to {to} failed: {error}")
                if attempt < self.max_retries - 1:
                    self.sleep(self.backoff_seconds * 2 ** attempt)

        raise SmsError(f"Failed to send SMS to {to} after {self.max_retries} attempts: {last_error}")

    def send_safe(self, to: str, body: str) -> bool:
        """
        Same as send() but never raises; texts are best-effort.
        """
        try:
            self.send(to, body)
            return True
        except SmsError as error:
            logger.error(f"SMS to {to} not sent: {error}")
            return False
