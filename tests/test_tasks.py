import json

import pytest

from crawl_scheduler.core.errors import TaskPayloadError
from crawl_scheduler.core.models import CrawlTask, TaskStatus
from crawl_scheduler.crawler.tasks import TaskPayload


def test_payload_from_task_serializes_snapshot():
    task = CrawlTask(id=3, name="Job1", url="http://www.example.com", status=TaskStatus.RUNNING)

    raw = TaskPayload.from_task(task).to_json()

    assert json.loads(raw) == {"id": 3, "name": "Job1", "url": "http://www.example.com", "status": "running"}
    assert TaskPayload.from_json(raw) == TaskPayload(3, "Job1", "http://www.example.com", TaskStatus.RUNNING)


def test_payload_accepts_bytes_and_missing_optional_fields():
    payload = TaskPayload.from_json(b'{"id": 7}')

    assert payload.id == 7
    assert payload.status is TaskStatus.STOPPED


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        '{"name": "no id"}',
        '{"id": "7"}',
        '{"id": true}',
        '{"id": 1, "status": "exploded"}',
    ],
)
def test_payload_rejects_malformed_input(raw):
    with pytest.raises(TaskPayloadError):
        TaskPayload.from_json(raw)
