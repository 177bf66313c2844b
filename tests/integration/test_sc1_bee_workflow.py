"""SC-1 端到端：bee 认领 -> 提交 -> 评审 -> 批准 -> 依赖任务解锁"""

from httpx import AsyncClient

PROJECT = "demo"
PR_URL = "https://github.com/acme/widgets/pull/11"


class TestBeeWorkflow:
    async def _next(self, client: AsyncClient, headers, **body):
        return await client.post("/tasks/next", json={"project": PROJECT, **body}, headers=headers)

    async def test_full_cycle(self, client: AsyncClient, hive):
        admin, bee = hive["admin"], hive["bee"]

        a = (await client.post(
            "/tasks", json={"project": PROJECT, "description": "A"}, headers=admin
        )).json()
        b = (await client.post(
            "/tasks",
            json={"project": PROJECT, "description": "B", "dependencies": [a["id"]]},
            headers=admin,
        )).json()

        # 1. bee 认领 A；B 被依赖门控
        claimed = await self._next(client, bee, bee="worker-1")
        assert claimed.json()["task"]["id"] == a["id"]
        assert (await self._next(client, bee)).status_code == 204

        # 2. 提交 A，评审任务可被认领
        submitted = await client.post(
            f"/tasks/{a['id']}/submit",
            json={
                "project": PROJECT,
                "pr_url": PR_URL,
                "summary": "A done",
                "log": "pytest: 12 passed",
                "follow_up_tasks": [{"description": "A follow-up", "priority": 3}],
            },
            headers=bee,
        )
        assert submitted.json()["state"] == "pending_review"

        review = await self._next(client, bee, roles=["pr_review"], bee="reviewer")
        assert review.json()["task"]["reviews_task"] == a["id"]
        assert (await self._next(client, bee)).status_code == 204

        # 3. admin 批准
        approved = await client.post(
            f"/tasks/{a['id']}/approve", json={"project": PROJECT}, headers=admin
        )
        assert approved.json()["state"] == "closed"

        # 4. B 解锁，后续任务优先级更低排在其后
        assert (await self._next(client, bee)).json()["task"]["id"] == b["id"]
        follow_up = (await self._next(client, bee)).json()["task"]
        assert follow_up["parent_task"] == a["id"]

        log = await client.get(f"/tasks/{a['id']}/log", params={"project": PROJECT}, headers=bee)
        assert log.json() == ["pytest: 12 passed"]

    async def test_reject_and_resubmit(self, client: AsyncClient, hive):
        admin, bee = hive["admin"], hive["bee"]
        task = (await client.post(
            "/tasks", json={"project": PROJECT, "description": "C"}, headers=admin
        )).json()
        body = {"project": PROJECT, "pr_url": PR_URL, "summary": "C v1"}

        await client.post(f"/tasks/{task['id']}/claim", json={"project": PROJECT}, headers=bee)
        await client.post(f"/tasks/{task['id']}/submit", json=body, headers=bee)
        rejected = await client.post(
            f"/tasks/{task['id']}/reject",
            json={"project": PROJECT, "reason": "flaky test"},
            headers=admin,
        )
        assert rejected.json()["state"] == "open"

        await client.post(f"/tasks/{task['id']}/claim", json={"project": PROJECT}, headers=bee)
        await client.post(
            f"/tasks/{task['id']}/submit", json={**body, "summary": "C v2"}, headers=bee
        )
        approved = await client.post(
            f"/tasks/{task['id']}/approve", json={"project": PROJECT}, headers=admin
        )
        assert approved.json()["summary"] == "C v2"
