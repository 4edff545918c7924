"""Route-side notification scheduling.

Handles are resolved with the request's session, delivery runs after the response.
"""

from uuid import UUID

from fastapi import BackgroundTasks

from confidant.core.domain_types import SenderType
from confidant.core.repository_protocols import Notifier
from confidant.services.directory import Directory
from confidant.services.notification_dispatch import deliver


async def schedule_notification(
    background_tasks: BackgroundTasks,
    notifier: Notifier,
    directory: Directory,
    entity_id: UUID,
    entity_type: SenderType,
    text: str,
) -> None:
    handle = await directory.resolve_chat_handle(entity_id, entity_type)
    background_tasks.add_task(deliver, notifier, handle, text)
