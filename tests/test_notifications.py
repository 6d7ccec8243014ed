from unittest.mock import patch

import pytest
from twilio.base.exceptions import TwilioRestException

from apps.jobs.utils import send_notification
from .conftest import UserFactory

pytestmark = pytest.mark.django_db


@pytest.fixture
def twilio_enabled(settings):
    settings.TWILIO_ACCOUNT_SID = 'AC-test'
    settings.TWILIO_AUTH_TOKEN = 'token'
    settings.TWILIO_PHONE_NUMBER = '+15550001111'


def test_email_and_sms_are_sent(twilio_enabled, mailoutbox):
    user = UserFactory(phone_number='+919812345670')
    with patch('apps.jobs.utils.TwilioClient') as twilio:
        send_notification(user, 'Offer Accepted', 'Long body', 'Short body')

    assert mailoutbox[0].subject == 'Offer Accepted'
    twilio.return_value.messages.create.assert_called_once_with(
        body='Short body', from_='+15550001111', to='+919812345670'
    )


def test_malformed_phone_skips_sms(twilio_enabled, mailoutbox):
    user = UserFactory(phone_number='98123')
    with patch('apps.jobs.utils.TwilioClient') as twilio:
        send_notification(user, 'Subject', 'Body', 'SMS')
    twilio.assert_not_called()
    assert len(mailoutbox) == 1


def test_sms_failure_is_not_raised(twilio_enabled):
    user = UserFactory(phone_number='+919812345670')
    with patch('apps.jobs.utils.TwilioClient') as twilio:
        twilio.return_value.messages.create.side_effect = TwilioRestException(400, 'https://api.twilio.com', 'bad')
        send_notification(user, 'Subject', 'Body', 'SMS')
