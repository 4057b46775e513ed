"""Broadcast service - paced fan-out of admin announcements to a target group."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from database.models import UserProfile
from messenger_bot.errors import TransportError
from messenger_bot.messaging.outbound import MessagingType
from messenger_bot.messaging.templates import BroadcastTemplate
from messenger_bot.services.outbound_service import OutboundService
from messenger_bot.services.user_service import UserService
from messenger_bot.utils import messages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BroadcastResult:
    total: int
    sent: int
    failed: int


class BroadcastService:
    def __init__(self, users: UserService, outbound: OutboundService, *, send_interval: float = 0.25):
        self.users = users
        self.outbound = outbound
        self.send_interval = float(send_interval)
        self._tasks: set[asyncio.Task] = set()

    async def run(
        self,
        template: BroadcastTemplate,
        admin: Optional[UserProfile] = None,
        *,
        now: Optional[datetime] = None,
    ) -> BroadcastResult:
        """
        Send `template` to every user matching its target, one message per interval.

        The initiating admin never receives the broadcast. A failed send is
        logged and counted without stopping the fan-out; a failed target query
        aborts the broadcast.
        """
        recipients = await self.users.find_by_target(template.target)
        if admin is not None:
            recipients = [user for user in recipients if user.id != admin.id]

        logger.info(f"Broadcast to {template.target.label}: {len(recipients)} recipients")

        sent = 0
        failed = 0
        for index, user in enumerate(recipients):
            if index:
                await asyncio.sleep(self.send_interval)
            try:
                text = template.render(user, now=now)
                await self.outbound.deliver(user.facebook_id, text, MessagingType.NON_PROMOTIONAL_SUBSCRIPTION)
                sent += 1
            except TransportError as e:
                failed += 1
                logger.warning(f"Broadcast to user {user.id} failed: {e}")
            except Exception as e:
                failed += 1
                logger.error(f"Broadcast to user {user.id} failed: {e}", exc_info=True)

        result = BroadcastResult(total=len(recipients), sent=sent, failed=failed)
        logger.info(f"Broadcast to {template.target.label} finished: {sent} sent, {failed} failed")

        if admin is not None:
            await self.outbound.reply(admin.facebook_id, messages.broadcast_done_message(sent, result.total, failed))
            await self.outbound.reply(
                admin.facebook_id,
                messages.broadcast_preview_message(template.render(admin, now=now)),
            )
        return result

    def start(self, template: BroadcastTemplate, admin: Optional[UserProfile] = None) -> asyncio.Task:
        """Run a broadcast in the background; the task is tracked until it finishes."""
        task = asyncio.create_task(self._run_logged(template, admin))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_logged(self, template: BroadcastTemplate, admin: Optional[UserProfile]) -> Optional[BroadcastResult]:
        try:
            return await self.run(template, admin)
        except asyncio.CancelledError:
            logger.warning(f"Broadcast to {template.target.label} cancelled")
            raise
        except Exception as e:
            logger.error(f"Broadcast to {template.target.label} aborted: {e}", exc_info=True)
            return None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel broadcasts that are still running."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
