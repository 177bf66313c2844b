"""提交/评审流程测试 -- SQLite 与 JSON 后端各运行一次

测试内容：
1. submit 存储提交、派生评审任务、追加日志
2. approve 关闭任务与评审任务、派生后续任务、删除提交；重复批准无副作用
3. reject 回到 open、关闭评审任务
4. release / fail 撤回提交
5. 派生后续任务中途失败时整体回滚
"""

import importlib

import pytest
from beehive.core.exceptions import ConflictError, GenerationExhaustedError
from beehive.core.models import TaskCreate, TaskState


async def _submitted(store, project, new_task, submission, **overrides):
    task = await new_task("Implement login\nUse OAuth", priority=1)
    await store.claim_task(project, task.id, "bee-1")
    await store.submit_task(project, task.id, submission(**overrides))
    return task


async def _review_tasks(store, project, task_id):
    return [t for t in await store.list_tasks(project) if t.reviews_task == task_id]


class TestSubmit:
    async def test_submit_creates_review_task(self, store, project, new_task, submission_factory):
        task = await _submitted(store, project, new_task, submission_factory, log="ran tests")

        current = await store.get_task(project, task.id)
        assert current.state == TaskState.PENDING_REVIEW

        stored = await store.get_submission(project, task.id)
        assert stored.pr_url == "https://github.com/acme/widgets/pull/1"
        assert stored.summary == "Implemented the feature"

        [review] = await _review_tasks(store, project, task.id)
        assert review.state == TaskState.OPEN
        assert review.role == "pr_review"
        assert review.priority == 1
        assert review.pr_url == stored.pr_url
        assert review.description == f"Review: Implement login ({task.id})"

        assert await store.get_task_log(project, task.id) == ["ran tests"]

    async def test_submit_requires_in_progress(self, store, project, new_task, submission_factory):
        task = await new_task()
        with pytest.raises(ConflictError):
            await store.submit_task(project, task.id, submission_factory())
        assert await store.get_submission(project, task.id) is None

    async def test_find_by_pr_url(self, store, project, new_task, submission_factory):
        task = await _submitted(store, project, new_task, submission_factory)
        found = await store.find_task_by_pr_url("https://github.com/acme/widgets/pull/1")
        assert found.id == task.id
        assert await store.find_task_by_pr_url("https://github.com/acme/widgets/pull/9") is None


class TestApprove:
    async def test_approve(self, store, project, new_task, submission_factory):
        task = await _submitted(
            store,
            project,
            new_task,
            submission_factory,
            details="All green",
            follow_up_tasks=[
                {"description": "Add docs", "role": "writer"},
                {"description": "Add metrics", "priority": 0, "dependencies": ["demo-ext1"]},
            ],
        )

        approved = await store.approve_task(project, task.id)
        assert approved.state == TaskState.CLOSED
        assert approved.summary == "Implemented the feature"
        assert approved.details == "All green"
        assert approved.pr_url == "https://github.com/acme/widgets/pull/1"

        [review] = await _review_tasks(store, project, task.id)
        assert review.state == TaskState.CLOSED
        assert await store.get_submission(project, task.id) is None

        follow_ups = [t for t in await store.list_tasks(project) if t.parent_task == task.id]
        assert [t.description for t in follow_ups] == ["Add docs", "Add metrics"]
        assert all(t.state == TaskState.OPEN for t in follow_ups)
        assert follow_ups[0].role == "writer"
        assert follow_ups[1].priority == 0
        # 后续任务依赖原样保存，不做存在性校验
        assert follow_ups[1].dependencies == ["demo-ext1"]

    async def test_approve_twice_is_noop(self, store, project, new_task, submission_factory):
        task = await _submitted(
            store,
            project,
            new_task,
            submission_factory,
            follow_up_tasks=[{"description": "Next"}],
        )
        first = await store.approve_task(project, task.id)
        count = len(await store.list_tasks(project))

        second = await store.approve_task(project, task.id)
        assert second == first
        assert len(await store.list_tasks(project)) == count

    async def test_approve_without_submission_returns_task(self, store, project, new_task):
        task = await new_task()
        assert await store.approve_task(project, task.id) == task

    async def test_follow_up_failure_rolls_back(
        self, store, store_backend, project, new_task, submission_factory, monkeypatch
    ):
        """派生第二个后续任务时失败：任务保持 pending_review，不产生任何后续任务"""
        task = await _submitted(
            store,
            project,
            new_task,
            submission_factory,
            follow_up_tasks=[{"description": f"follow-up {i}"} for i in range(3)],
        )
        before = await store.list_tasks(project)

        module = importlib.import_module(f"beehive.core.store.{store_backend}_store")
        real_generate_id = module.generate_id
        calls = {"n": 0}

        def flaky_generate_id(existing, prefix=None, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise GenerationExhaustedError(prefix or "bh", 0)
            return real_generate_id(existing, prefix, **kwargs)

        monkeypatch.setattr(module, "generate_id", flaky_generate_id)

        with pytest.raises(GenerationExhaustedError):
            await store.approve_task(project, task.id)

        after = await store.list_tasks(project)
        assert [t.id for t in after] == [t.id for t in before]
        assert (await store.get_task(project, task.id)).state == TaskState.PENDING_REVIEW
        assert await store.get_submission(project, task.id) is not None
        [review] = await _review_tasks(store, project, task.id)
        assert review.state == TaskState.OPEN

        # 故障解除后可正常批准
        monkeypatch.setattr(module, "generate_id", real_generate_id)
        approved = await store.approve_task(project, task.id)
        assert approved.state == TaskState.CLOSED
        follow_ups = [t for t in await store.list_tasks(project) if t.parent_task == task.id]
        assert len(follow_ups) == 3


class TestReject:
    async def test_reject(self, store, project, new_task, submission_factory):
        task = await _submitted(store, project, new_task, submission_factory)
        rejected = await store.reject_task(project, task.id, "Missing tests")
        assert rejected.state == TaskState.OPEN
        assert rejected.claimed_by is None
        assert await store.get_submission(project, task.id) is None

        [review] = await _review_tasks(store, project, task.id)
        assert review.state == TaskState.CLOSED
        assert review.summary == "Rejected: Missing tests"

    async def test_reject_without_reason(self, store, project, new_task, submission_factory):
        task = await _submitted(store, project, new_task, submission_factory)
        await store.reject_task(project, task.id, "")
        [review] = await _review_tasks(store, project, task.id)
        assert review.summary == "Rejected: No reason provided"

    async def test_reject_requires_pending_review(self, store, project, new_task):
        task = await new_task()
        with pytest.raises(ConflictError):
            await store.reject_task(project, task.id, "nope")

    async def test_resubmit_after_reject(self, store, project, new_task, submission_factory):
        task = await _submitted(store, project, new_task, submission_factory)
        await store.reject_task(project, task.id, "again")
        await store.claim_task(project, task.id, "bee-2")
        await store.submit_task(project, task.id, submission_factory(summary="second try"))

        reviews = await _review_tasks(store, project, task.id)
        assert [r.state for r in reviews] == [TaskState.CLOSED, TaskState.OPEN]
        assert (await store.get_submission(project, task.id)).summary == "second try"


class TestWithdraw:
    async def test_release_from_pending_review(self, store, project, new_task, submission_factory):
        task = await _submitted(store, project, new_task, submission_factory)
        released = await store.release_task(project, task.id)
        assert released.state == TaskState.OPEN
        assert await store.get_submission(project, task.id) is None
        [review] = await _review_tasks(store, project, task.id)
        assert review.state == TaskState.CLOSED
        assert review.summary == "Released: submission withdrawn"

    async def test_fail_from_pending_review(self, store, project, new_task, submission_factory):
        task = await _submitted(store, project, new_task, submission_factory)
        await store.fail_task(project, task.id, "abandoned")
        assert await store.get_submission(project, task.id) is None
        [review] = await _review_tasks(store, project, task.id)
        assert review.state == TaskState.CLOSED

        # 重新打开后可以再次提交
        await store.reopen_task(project, task.id)
        await store.claim_task(project, task.id, "bee-1")
        await store.submit_task(project, task.id, submission_factory())
        assert (await store.get_task(project, task.id)).state == TaskState.PENDING_REVIEW


class TestFollowUpSpec:
    async def test_parent_task_override(self, store, project, new_task, submission_factory):
        task = await _submitted(
            store,
            project,
            new_task,
            submission_factory,
            follow_up_tasks=[TaskCreate(description="child", parent_task="demo-else").model_dump()],
        )
        await store.approve_task(project, task.id)
        [child] = [t for t in await store.list_tasks(project) if t.description == "child"]
        assert child.parent_task == task.id
