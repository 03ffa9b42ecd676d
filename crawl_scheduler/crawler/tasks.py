"""任务载荷定义模块。

就绪队列中保存的是任务的 JSON 快照。快照只用于提升时取出任务 id，
Worker 执行前始终会从数据库重新读取任务的当前状态。
"""

from __future__ import annotations

import dataclasses
import json
from typing import TYPE_CHECKING, Any

from ..core.errors import TaskPayloadError
from ..core.models import TaskStatus

if TYPE_CHECKING:
    from ..core.models import CrawlTask


@dataclasses.dataclass(slots=True, frozen=True)
class TaskPayload:
    """放入就绪队列的任务快照。

    Attributes:
        id: 任务id
        name: 任务名称
        url: 任务目标 URL
        status: 序列化时的任务状态
    """

    id: int
    name: str
    url: str
    status: TaskStatus = TaskStatus.STOPPED

    @classmethod
    def from_task(cls, task: CrawlTask) -> TaskPayload:
        return cls(id=task.id, name=task.name, url=task.url, status=TaskStatus(task.status))

    def to_json(self) -> str:
        return json.dumps(dataclasses.asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str | bytes) -> TaskPayload:
        """从 JSON 文本解析任务快照。

        Raises:
            TaskPayloadError: 文本不是合法 JSON，或缺少字段 / 字段类型错误。
        """
        try:
            data: Any = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise TaskPayloadError(f"task payload is not valid JSON: {raw!r}") from e

        if not isinstance(data, dict):
            raise TaskPayloadError(f"task payload must be a JSON object: {raw!r}")

        task_id = data.get("id")
        if not isinstance(task_id, int) or isinstance(task_id, bool):
            raise TaskPayloadError(f"task payload has no integer id: {raw!r}")

        try:
            status = TaskStatus(data.get("status", TaskStatus.STOPPED))
        except ValueError as e:
            raise TaskPayloadError(f"task payload has unknown status: {raw!r}") from e

        return cls(id=task_id, name=str(data.get("name", "")), url=str(data.get("url", "")), status=status)
