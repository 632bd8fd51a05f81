"""
handlers/conversation.py - Conversation Engine

Entry point for every inbound event:
1. Rate limit (rejected events are dropped silently)
2. Serialize per session (one event of a session at a time)
3. Register the user, then route:
   - button  -> menu_handler.handle_button (callback is always answered)
   - /start, /menu, /help
   - active admin dialogue -> admin_handler
   - active user dialogue  -> dialogue_handler
   - anything else         -> main menu
4. Run updates queued for other sessions under their own lock

Outbound sends are fire-and-forget: failures are logged and never undo
a state change.
"""

import logging
import threading
from typing import Callable, Iterable, List, Optional

from config.allowlist import ADMIN_IDS, is_admin
from config.constants import ADMIN_CHAT_ID, Commands
from config.errors import StoreError, UserErrors
from handlers.admin_handler import handle_admin_input
from handlers.dialogue_handler import handle_dialogue_input
from handlers.menu_handler import BACK_ROW, handle_button, show_main_menu
from messages import MSG
from models import EventKind, InboundEvent, Keyboard, User
from security import RateLimiter, secure_log
from services.settings_service import SettingsCache
from services.state_manager import SessionStore
from services.transaction_service import TransactionWorkflow
from utils.parsers import is_command_match

logger = logging.getLogger(__name__)


class ConversationEngine:

    def __init__(self, store, sender, settings: Optional[SettingsCache] = None,
                 sessions: Optional[SessionStore] = None,
                 admin_sessions: Optional[SessionStore] = None,
                 rate_limiter: Optional[RateLimiter] = None,
                 admin_ids: Optional[Iterable[str]] = None,
                 admin_chat_id: Optional[str] = ADMIN_CHAT_ID):
        self.store = store
        self.sender = sender
        self.settings = settings if settings is not None else SettingsCache(store)
        self.sessions = sessions if sessions is not None else SessionStore("user_dialogues")
        self.admin_sessions = (admin_sessions if admin_sessions is not None
                               else SessionStore("admin_dialogues"))
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.admin_ids = set(ADMIN_IDS if admin_ids is None else (str(i) for i in admin_ids))
        self.admin_chat_id = admin_chat_id or None
        self.workflow = TransactionWorkflow(store)
        self._local = threading.local()

    # ---------------- outbound ----------------

    def send(self, session_id: str, text: str, buttons: Optional[Keyboard] = None) -> bool:
        try:
            return bool(self.sender.send(session_id, text, buttons))
        except Exception as e:
            secure_log("ERROR", f"Send failed: {type(e).__name__}", session=session_id)
            return False

    def acknowledge(self, callback_id: Optional[str], text: Optional[str] = None) -> None:
        if not callback_id:
            return
        try:
            self.sender.acknowledge(callback_id, text)
        except Exception as e:
            secure_log("ERROR", f"Callback answer failed: {type(e).__name__}")

    def admin_targets(self) -> List[str]:
        if self.admin_chat_id:
            return [self.admin_chat_id]
        return sorted(self.admin_ids)

    def notify_admins(self, text: str, buttons: Optional[Keyboard] = None) -> int:
        """Send to the admin chat (or every admin). Returns the number delivered."""
        targets = self.admin_targets()
        if not targets:
            logger.warning("No admin configured, notification dropped")
            return 0
        return sum(1 for target in targets if self.send(target, text, buttons))

    # ---------------- cross-session ----------------

    def run_for_session(self, session_id: str, action: Callable[[], None]) -> None:
        """
        Run action under another session's lock.

        While an event is being handled the action is queued and runs once
        the handling session's lock is released, so at most one session
        lock is held at a time.
        """
        queued = getattr(self._local, 'queued', None)
        if queued is not None:
            queued.append((str(session_id), action))
            return
        with self.sessions.lock(session_id):
            action()

    # ---------------- identity ----------------

    def is_admin(self, session_id: str) -> bool:
        return is_admin(session_id, self.admin_ids)

    def ensure_user(self, event: InboundEvent, refresh: bool = False) -> User:
        """Fetch the user, creating it on first contact."""
        user = None if refresh else self.store.find_user_by_session(event.session_id)
        if user is None:
            user = self.store.upsert_user(event.session_id, event.display_name or "Unknown")
        return user

    # ---------------- inbound ----------------

    def handle(self, event: InboundEvent) -> bool:
        """
        Process one inbound event.

        Returns:
            False if the event was dropped by the rate limiter
        """
        if not self.rate_limiter.admit(event.session_id):
            secure_log("DEBUG", "Rate limited, event dropped", session=event.session_id)
            return False

        queued = []
        self._local.queued = queued
        try:
            with self.sessions.lock(event.session_id):
                if event.kind is EventKind.BUTTON:
                    self._handle_button(event)
                else:
                    self._handle_message(event)
        finally:
            self._local.queued = None

        for session_id, action in queued:
            with self.sessions.lock(session_id):
                action()
        return True

    def _handle_button(self, event: InboundEvent) -> None:
        answer = None
        try:
            self.ensure_user(event)
            answer = handle_button(self, event)
        except StoreError as e:
            self._store_failed(event, e)
        finally:
            self.acknowledge(event.callback_id, answer)

    def _handle_message(self, event: InboundEvent) -> None:
        session_id = event.session_id
        text = event.text if event.kind is EventKind.TEXT else None

        try:
            if is_command_match(text, Commands.START):
                self.ensure_user(event, refresh=True)
                show_main_menu(self, session_id, MSG.WELCOME)
                return

            user = self.ensure_user(event)

            if is_command_match(text, Commands.HELP):
                self.send(session_id, MSG.HELP, [BACK_ROW])
                return

            admin_dialogue = self.admin_sessions.get(session_id)
            if admin_dialogue is not None and self.is_admin(session_id):
                handle_admin_input(self, event, admin_dialogue)
                return

            dialogue = self.sessions.get(session_id)
            if dialogue is not None:
                handle_dialogue_input(self, event, user, dialogue)
                return

            show_main_menu(self, session_id, MSG.USE_MENU)
        except StoreError as e:
            self._store_failed(event, e)

    def _store_failed(self, event: InboundEvent, error: StoreError) -> None:
        secure_log("ERROR", f"Store failure: {error}", session=event.session_id)
        self.sessions.pop(event.session_id)
        self.admin_sessions.pop(event.session_id)
        self.send(event.session_id, UserErrors.STORE_FAILED)
