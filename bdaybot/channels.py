"""
Notification channels

Every channel exposes the same capability: send(message, recipient) returning
a SendResult, plus is_available() and get_metadata(). Channels are built from
configuration through CHANNEL_REGISTRY, keyed by ChannelKind.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Dict, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from bdaybot.errors import ErrorKind
from bdaybot.models import SendResult

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


def fan_out(send: Callable[[str, Optional[str]], SendResult], message: str,
            recipients: List[str], max_workers: int = 1) -> List[SendResult]:
    """
    Send one message per recipient without stopping at the first failure

    Results are indexed like recipients regardless of completion order. An
    exception raised for one recipient becomes a failed result for it.
    """
    def attempt(recipient):
        try:
            return send(message, recipient)
        except Exception as e:
            logger.error(f"Error sending to {recipient}: {e}")
            return SendResult.failed(recipient, e)

    if max_workers <= 1 or len(recipients) <= 1:
        return [attempt(recipient) for recipient in recipients]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(recipients))) as pool:
        return list(pool.map(attempt, recipients))


class ChannelKind(Enum):
    CONSOLE = 'console'
    TELEGRAM = 'telegram'
    WHATSAPP = 'whatsapp'
    SMS = 'sms'


class Channel:
    """Base class providing the default per-recipient fan-out"""

    kind: ChannelKind = None

    def __init__(self, recipients: Optional[List[str]] = None):
        self.recipients = list(recipients or [])

    def send(self, message: str, recipient: Optional[str] = None) -> SendResult:
        raise NotImplementedError

    def send_to_multiple(self, message: str, recipients: List[str], max_workers: int = 1) -> List[SendResult]:
        return fan_out(self.send, message, recipients, max_workers)

    def is_available(self) -> bool:
        raise NotImplementedError

    def get_metadata(self) -> Dict:
        raise NotImplementedError


class ConsoleChannel(Channel):
    """Prints messages to stdout; always available"""

    kind = ChannelKind.CONSOLE

    def send(self, message: str, recipient: Optional[str] = None) -> SendResult:
        print(message, flush=True)
        return SendResult(success=True, recipient=recipient, message_id=f"console-{time.time_ns()}")

    def is_available(self) -> bool:
        return True

    def get_metadata(self) -> Dict:
        return {'name': 'console', 'type': self.kind.value, 'capabilities': ['logging', 'always-available']}

    @classmethod
    def from_config(cls, config: Dict) -> 'ConsoleChannel':
        return cls()


class TelegramChannel(Channel):
    """Posts to a Telegram group chat through the Bot API"""

    kind = ChannelKind.TELEGRAM
    API_URL = 'https://api.telegram.org'

    def __init__(self, bot_token: str, chat_ids: Optional[List[str]] = None):
        super().__init__(chat_ids)
        self.bot_token = bot_token

    def send(self, message: str, recipient: Optional[str] = None) -> SendResult:
        chat_id = recipient or (self.recipients[0] if self.recipients else None)
        if not chat_id:
            return SendResult.failed(None, "No Telegram chat id configured", ErrorKind.CONFIGURATION_UNAVAILABLE)

        url = f"{self.API_URL}/bot{self.bot_token}/sendMessage"
        try:
            response = requests.post(url, json={'chat_id': chat_id, 'text': message}, timeout=REQUEST_TIMEOUT)
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Telegram request failed for chat {chat_id}: {e}")
            return SendResult.failed(chat_id, e)

        if response.status_code != 200 or not data.get('ok'):
            error = data.get('description', f"HTTP {response.status_code}")
            logger.error(f"Telegram rejected message for chat {chat_id}: {error}")
            return SendResult.failed(chat_id, error)

        message_id = data.get('result', {}).get('message_id')
        return SendResult(success=True, recipient=chat_id, message_id=str(message_id))

    def is_available(self) -> bool:
        return bool(self.bot_token and self.recipients)

    def get_metadata(self) -> Dict:
        return {'name': 'telegram', 'type': self.kind.value, 'capabilities': ['group-messaging']}

    @classmethod
    def from_config(cls, config: Dict) -> 'TelegramChannel':
        return cls(config['telegram_bot_token'], config['telegram_chat_ids'])


class WhatsAppChannel(Channel):
    """Sends text messages through the WhatsApp Cloud API"""

    kind = ChannelKind.WHATSAPP
    API_URL = 'https://graph.facebook.com'

    def __init__(self, access_token: str, phone_number_id: str, recipients: Optional[List[str]] = None,
                 api_version: str = 'v21.0'):
        super().__init__(recipients)
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version

    def send(self, message: str, recipient: Optional[str] = None) -> SendResult:
        to = recipient or (self.recipients[0] if self.recipients else None)
        if not to:
            return SendResult.failed(None, "No WhatsApp recipient configured", ErrorKind.CONFIGURATION_UNAVAILABLE)

        url = f"{self.API_URL}/{self.api_version}/{self.phone_number_id}/messages"
        payload = {
            'messaging_product': 'whatsapp',
            'to': to,
            'type': 'text',
            'text': {'body': message},
        }
        headers = {'Authorization': f"Bearer {self.access_token}"}
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"WhatsApp request failed for {to}: {e}")
            return SendResult.failed(to, e)

        if response.status_code not in (200, 201):
            error = data.get('error', {}).get('message', f"HTTP {response.status_code}")
            logger.error(f"WhatsApp rejected message for {to}: {error}")
            return SendResult.failed(to, error)

        messages = data.get('messages') or [{}]
        return SendResult(success=True, recipient=to, message_id=messages[0].get('id'))

    def is_available(self) -> bool:
        return bool(self.access_token and self.phone_number_id and self.recipients)

    def get_metadata(self) -> Dict:
        return {'name': 'whatsapp', 'type': self.kind.value, 'capabilities': ['whatsapp', 'cloud-api']}

    @classmethod
    def from_config(cls, config: Dict) -> 'WhatsAppChannel':
        return cls(
            config['whatsapp_access_token'],
            config['whatsapp_phone_number_id'],
            config['whatsapp_recipients'],
            config['whatsapp_api_version'],
        )


class SMSChannel(Channel):
    """Sends SMS through the Twilio REST API"""

    kind = ChannelKind.SMS
    API_URL = 'https://api.twilio.com/2010-04-01'

    def __init__(self, account_sid: str, auth_token: str, from_number: str, recipients: Optional[List[str]] = None):
        super().__init__(recipients)
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number

    def send(self, message: str, recipient: Optional[str] = None) -> SendResult:
        if not recipient:
            return SendResult.failed(None, "No recipient specified for SMS", ErrorKind.CONFIGURATION_UNAVAILABLE)

        url = f"{self.API_URL}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = requests.post(
                url,
                data={'To': recipient, 'From': self.from_number, 'Body': message},
                auth=HTTPBasicAuth(self.account_sid, self.auth_token),
                timeout=REQUEST_TIMEOUT,
            )
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Twilio request failed for {recipient}: {e}")
            return SendResult.failed(recipient, e)

        if response.status_code not in (200, 201):
            error = data.get('message', f"HTTP {response.status_code}")
            logger.error(f"Twilio rejected SMS for {recipient}: {error}")
            return SendResult.failed(recipient, error)

        return SendResult(success=True, recipient=recipient, message_id=data.get('sid'))

    def is_available(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number and self.recipients)

    def get_metadata(self) -> Dict:
        return {'name': 'sms', 'type': self.kind.value, 'capabilities': ['sms', 'twilio']}

    @classmethod
    def from_config(cls, config: Dict) -> 'SMSChannel':
        return cls(
            config['twilio_account_sid'],
            config['twilio_auth_token'],
            config['twilio_from_number'],
            config['sms_recipients'],
        )


CHANNEL_REGISTRY: Dict[ChannelKind, Callable[[Dict], Channel]] = {
    ChannelKind.CONSOLE: ConsoleChannel.from_config,
    ChannelKind.TELEGRAM: TelegramChannel.from_config,
    ChannelKind.WHATSAPP: WhatsAppChannel.from_config,
    ChannelKind.SMS: SMSChannel.from_config,
}


def build_channels(config: Dict) -> List[Channel]:
    """Build the channels named in NOTIFY_CHANNELS, skipping unknown names"""
    channels = []
    for name in config['channels']:
        try:
            kind = ChannelKind(name)
        except ValueError:
            logger.warning(f"Unknown channel '{name}' in NOTIFY_CHANNELS, ignoring it")
            continue
        channel = CHANNEL_REGISTRY[kind](config)
        if not channel.is_available():
            logger.warning(f"Channel '{name}' is not fully configured and will be skipped")
        channels.append(channel)
    return channels
