import requests
from typing import Any, Dict, List, Optional

from config.constants import TELEGRAM_BOT_TOKEN, Timeouts
from models import Artifact, EventKind, InboundEvent, Keyboard
from security import secure_log

# Global session
_telegram_session = None


def get_telegram_session():
    """Get secure request session for the Telegram Bot API."""
    global _telegram_session
    if _telegram_session is None:
        from requests.adapters import HTTPAdapter
        from urllib3.util.retry import Retry
        _telegram_session = requests.Session()
        retry = Retry(total=3, backoff_factor=1, status_forcelist=[429, 500, 502, 503])
        adapter = HTTPAdapter(pool_connections=5, pool_maxsize=5, max_retries=retry)
        _telegram_session.mount("https://", adapter)
        _telegram_session.headers.update({'Content-Type': 'application/json'})
    return _telegram_session


def build_inline_keyboard(buttons: Keyboard) -> Dict[str, List[List[Dict[str, str]]]]:
    """[[(label, data)]] -> Telegram reply_markup."""
    return {
        'inline_keyboard': [
            [{'text': label, 'callback_data': data} for label, data in row]
            for row in buttons
        ]
    }


class TelegramSender:
    """Outbound half of the transport: messages and callback answers."""

    def __init__(self, token: Optional[str] = TELEGRAM_BOT_TOKEN, session=None):
        self._token = token
        self._session = session

    @property
    def session(self):
        return self._session or get_telegram_session()

    def _api_url(self, method: str) -> Optional[str]:
        if not self._token:
            return None
        return f"https://api.telegram.org/bot{self._token}/{method}"

    def _call(self, method: str, payload: Dict[str, Any]) -> bool:
        url = self._api_url(method)
        if not url:
            secure_log("WARNING", f"Telegram {method} skipped: TELEGRAM_BOT_TOKEN not set")
            return False

        try:
            resp = self.session.post(url, json=payload, timeout=Timeouts.REQUEST_TIMEOUT)
        except requests.RequestException as e:
            secure_log("ERROR", f"Telegram {method} failed: {type(e).__name__}")
            return False

        if resp.status_code != 200:
            secure_log("ERROR", f"Telegram {method} HTTP {resp.status_code}: {resp.text[:200]}")
            return False

        try:
            return bool(resp.json().get('ok'))
        except ValueError:
            secure_log("ERROR", f"Telegram {method} returned non-JSON body")
            return False

    def send(self, session_id: str, text: str, buttons: Optional[Keyboard] = None) -> bool:
        payload = {'chat_id': session_id, 'text': text}
        if buttons:
            payload['reply_markup'] = build_inline_keyboard(buttons)
        return self._call('sendMessage', payload)

    def acknowledge(self, callback_id: str, text: Optional[str] = None) -> bool:
        payload = {'callback_query_id': callback_id}
        if text:
            payload['text'] = text
        return self._call('answerCallbackQuery', payload)

    def set_webhook(self, url: str) -> bool:
        return self._call('setWebhook', {'url': url})


def _display_name(user: Dict) -> str:
    if user.get('username'):
        return user['username']
    name = ' '.join(p for p in (user.get('first_name'), user.get('last_name')) if p)
    return name or 'Unknown'


def parse_telegram_update(update: Dict) -> Optional[InboundEvent]:
    """
    Convert a Telegram update into an InboundEvent.

    Returns None for update kinds the bot does not handle
    (edited messages, channel posts, stickers...).
    """
    if not isinstance(update, dict):
        return None

    callback = update.get('callback_query')
    if callback:
        sender = callback.get('from') or {}
        if 'id' not in sender:
            return None
        return InboundEvent(
            session_id=str(sender['id']),
            kind=EventKind.BUTTON,
            data=callback.get('data'),
            callback_id=callback.get('id'),
            display_name=_display_name(sender),
        )

    message = update.get('message')
    if not message:
        return None

    chat = message.get('chat') or {}
    if 'id' not in chat:
        return None
    session_id = str(chat['id'])
    display_name = _display_name(message.get('from') or {})

    if message.get('text') is not None:
        return InboundEvent(session_id=session_id, kind=EventKind.TEXT,
                            text=message['text'], display_name=display_name)

    photos = message.get('photo')
    if photos:
        # Largest size is last
        photo = photos[-1]
        artifact = Artifact(file_id=photo.get('file_id', ''), kind='photo',
                            file_size=photo.get('file_size'))
        return InboundEvent(session_id=session_id, kind=EventKind.FILE,
                            artifact=artifact, display_name=display_name)

    document = message.get('document')
    if document:
        artifact = Artifact(file_id=document.get('file_id', ''), kind='document',
                            file_size=document.get('file_size'),
                            mime_type=document.get('mime_type'))
        return InboundEvent(session_id=session_id, kind=EventKind.FILE,
                            artifact=artifact, display_name=display_name)

    return None
