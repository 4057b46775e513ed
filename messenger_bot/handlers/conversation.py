"""Conversation handler - executes state machine steps and admin text commands."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from database.models import ConversationState, UserProfile
from messenger_bot.errors import UnknownConversationCommand, ValidationFailure
from messenger_bot.messaging.outbound import (
    ButtonTemplate,
    LoginButton,
    LogoutButton,
    PostbackButton,
    QuickReplies,
    QuickReplyOption,
)
from messenger_bot.messaging.state_machine import (
    TEXT_INPUT,
    Action,
    Payload,
    Step,
    accepts_text,
    next_step,
    validate_nickname,
)
from messenger_bot.messaging.templates import parse_broadcast
from messenger_bot.utils import messages

if TYPE_CHECKING:
    from messenger_bot.container import ServiceContainer

logger = logging.getLogger(__name__)

LOGIN_KEYWORD = "login"
LOGOUT_KEYWORD = "logout"
HELP_PREFIX = "help"


def login_template(register_url: str) -> ButtonTemplate:
    return ButtonTemplate(messages.login_button_message(), [LoginButton(register_url)])


def logout_template() -> ButtonTemplate:
    return ButtonTemplate(messages.logout_button_message(), [LogoutButton()])


def registered_menu(user: UserProfile) -> ButtonTemplate:
    return ButtonTemplate(
        messages.registered_menu_message(user.display_name or None),
        [
            PostbackButton("Set nickname", Payload.MENU_NICKNAME),
            PostbackButton("Send feedback", Payload.MENU_FEEDBACK),
            LogoutButton(),
        ],
    )


def _cancel(payload: str) -> list[QuickReplyOption]:
    return [QuickReplyOption("Cancel", payload)]


class ConversationHandler:
    """
    Drives one sender's dialogue.

    Every method takes the snapshot read at dispatch start and returns the
    snapshot after its writes, so callers never see a stale state.
    """

    def __init__(self, container: "ServiceContainer"):
        self.container = container
        self.users = container.user_service
        self.outbound = container.outbound_service

    async def handle_payload(self, user: UserProfile, payload: str) -> UserProfile:
        try:
            step = next_step(user.state, payload)
        except UnknownConversationCommand as e:
            logger.info(f"User {user.id}: {e}")
            await self.outbound.reply(user.facebook_id, messages.unsupported_input_message())
            return user
        return await self._execute(user, step)

    async def handle_text(self, user: UserProfile, text: str) -> UserProfile:
        if accepts_text(user.state):
            return await self._execute(user, next_step(user.state, TEXT_INPUT), text)

        if user.state != ConversationState.NO_STATE:
            await self.outbound.reply(user.facebook_id, messages.unsupported_input_message())
            return user

        keyword = text.strip().lower()
        if keyword == LOGIN_KEYWORD:
            await self.outbound.reply(user.facebook_id, login_template(self.container.config.register_url))
        elif keyword == LOGOUT_KEYWORD:
            await self.outbound.reply(user.facebook_id, logout_template())
        elif user.is_admin:
            await self._handle_admin_text(user, text)
        else:
            await self.outbound.reply(user.facebook_id, messages.unsupported_input_message())
        return user

    async def _execute(self, user: UserProfile, step: Step, text: str = "") -> UserProfile:
        handler = getattr(self, f"_on_{step.action.value}")
        logger.debug(f"User {user.id}: {step.action.value} -> {step.next_state}")
        return await handler(user, step, text)

    async def _transition(self, user: UserProfile, step: Step, **changes) -> UserProfile:
        if step.next_state is not None and step.next_state != user.state:
            changes["state"] = step.next_state
        if not changes:
            return user
        return await self.users.save_changes(user, **changes)

    async def _on_welcome(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        await self.outbound.reply(user.facebook_id, messages.welcome_message(user.display_name or None))
        if user.is_registered:
            await self.outbound.reply(user.facebook_id, registered_menu(user))
        else:
            await self.outbound.reply(
                user.facebook_id,
                ButtonTemplate(
                    messages.register_prompt_message(),
                    [LoginButton(self.container.config.register_url)],
                ),
            )
        return user

    async def _on_about(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        await self.outbound.reply(user.facebook_id, messages.about_message())
        return user

    async def _on_ask_nickname(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        user = await self._transition(user, step)
        options = [
            QuickReplyOption("Yes", Payload.NICKNAME_ASK_YES),
            QuickReplyOption("No", Payload.NICKNAME_ASK_NO),
        ]
        if user.nickname:
            options.append(QuickReplyOption("Delete", Payload.NICKNAME_DELETE))
        await self.outbound.reply(user.facebook_id, QuickReplies(messages.ask_nickname_message(user.nickname), options))
        return user

    async def _on_prompt_nickname(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        user = await self._transition(user, step)
        await self.outbound.reply(
            user.facebook_id,
            QuickReplies(messages.input_nickname_message(), _cancel(Payload.NICKNAME_CANCEL)),
        )
        return user

    async def _on_keep_nickname(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        user = await self._transition(user, step)
        await self.outbound.reply(user.facebook_id, messages.nickname_unchanged_message())
        return user

    async def _on_delete_nickname(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        user = await self._transition(user, step, nickname=None)
        await self.outbound.reply(user.facebook_id, messages.nickname_deleted_message())
        return user

    async def _on_save_nickname(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        try:
            nickname = validate_nickname(text)
        except ValidationFailure as e:
            await self.outbound.reply(
                user.facebook_id,
                QuickReplies(messages.invalid_nickname_message(str(e)), _cancel(Payload.NICKNAME_CANCEL)),
            )
            return user

        user = await self._transition(user, step, nickname=nickname)
        await self.outbound.reply(user.facebook_id, messages.nickname_saved_message(nickname))
        return user

    async def _on_prompt_feedback(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        user = await self._transition(user, step)
        await self.outbound.reply(
            user.facebook_id,
            QuickReplies(messages.feedback_prompt_message(), _cancel(Payload.FEEDBACK_CANCEL)),
        )
        return user

    async def _on_discard_feedback(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        user = await self._transition(user, step)
        await self.outbound.reply(user.facebook_id, messages.feedback_cancelled_message())
        return user

    async def _on_save_feedback(self, user: UserProfile, step: Step, text: str) -> UserProfile:
        try:
            ticket_id = await self.container.feedback_service.create_ticket(user_id=user.id, text=text)
        except ValidationFailure:
            await self.outbound.reply(
                user.facebook_id,
                QuickReplies(messages.feedback_empty_message(), _cancel(Payload.FEEDBACK_CANCEL)),
            )
            return user

        user = await self._transition(user, step)
        await self.outbound.reply(user.facebook_id, messages.feedback_saved_message(ticket_id))
        return user

    async def _handle_admin_text(self, admin: UserProfile, text: str) -> None:
        stripped = text.strip()
        if stripped.lower().startswith(HELP_PREFIX):
            await self.outbound.reply(admin.facebook_id, messages.help_message(stripped[len(HELP_PREFIX):]))
            return

        template = parse_broadcast(text)
        if template is None:
            await self.outbound.reply(admin.facebook_id, messages.broadcast_invalid_message())
            return
        if not template.body.strip():
            await self.outbound.reply(admin.facebook_id, messages.broadcast_empty_message())
            return

        logger.info(f"Admin {admin.id} started broadcast to {template.target.label}")
        self.container.broadcast_service.start(template, admin=admin)
        await self.outbound.reply(admin.facebook_id, messages.broadcast_queued_message(template.target.label))
