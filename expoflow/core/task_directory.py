import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.common.enums import TaskType
from expoflow.common.exceptions import BadRequestError, NotFoundError
from expoflow.db.models.enquiry import EnquiryTask


class TaskDirectory:
    """Resolves tasks and their siblings within the same enquiry."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_task(self, task_id: uuid.UUID) -> EnquiryTask:
        result = await self.db.execute(
            select(EnquiryTask).where(EnquiryTask.id == task_id, EnquiryTask.is_deleted.is_(False))
        )
        task = result.scalar_one_or_none()
        if not task:
            raise NotFoundError("Task", str(task_id))
        return task

    async def require_task(self, task_id: uuid.UUID, task_type: TaskType) -> EnquiryTask:
        task = await self.get_task(task_id)
        if task.type != task_type.value:
            raise BadRequestError(f"Task must be a {task_type.value} task")
        return task

    async def find_sibling(self, task: EnquiryTask, task_type: TaskType) -> EnquiryTask | None:
        result = await self.db.execute(
            select(EnquiryTask)
            .where(
                EnquiryTask.enquiry_id == task.enquiry_id,
                EnquiryTask.type == task_type.value,
                EnquiryTask.is_deleted.is_(False),
            )
            .order_by(EnquiryTask.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()
