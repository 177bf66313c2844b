"""packages/core 测试配置 -- 任务构造辅助 fixture"""

import pytest
from beehive.core.models import SubmissionCreate, TaskCreate


def make_submission(**overrides) -> SubmissionCreate:
    """构造默认提交，可覆盖任意字段"""
    data = {
        "pr_url": "https://github.com/acme/widgets/pull/1",
        "summary": "Implemented the feature",
    }
    data.update(overrides)
    return SubmissionCreate.model_validate(data)


@pytest.fixture
def new_task(store, project):
    """在测试项目中创建任务的工厂"""

    async def _create(description: str = "Do the work", **fields):
        return await store.create_task(project, TaskCreate(description=description, **fields))

    return _create


@pytest.fixture
def submission_factory():
    return make_submission
