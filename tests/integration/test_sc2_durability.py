"""SC-2 持久化：网关重启后任务、提交与密钥保留"""

from httpx import ASGITransport, AsyncClient

PROJECT = "demo"


async def test_state_survives_restart(hive_env):
    from beehive.gateway.main import create_app

    first = create_app()
    async with first.router.lifespan_context(first):
        async with AsyncClient(transport=ASGITransport(app=first), base_url="http://test") as c:
            created = await c.post("/projects", json={"name": PROJECT})
            admin = {"Authorization": f"Bearer {created.json()['admin_key']}"}
            task = (await c.post(
                "/tasks", json={"project": PROJECT, "description": "persist me"}, headers=admin
            )).json()
            await c.post(f"/tasks/{task['id']}/claim", json={"project": PROJECT}, headers=admin)
            await c.post(
                f"/tasks/{task['id']}/submit",
                json={
                    "project": PROJECT,
                    "pr_url": "https://github.com/acme/widgets/pull/3",
                    "summary": "saved",
                },
                headers=admin,
            )

    second = create_app()
    async with second.router.lifespan_context(second):
        async with AsyncClient(transport=ASGITransport(app=second), base_url="http://test") as c:
            response = await c.get(
                f"/tasks/{task['id']}", params={"project": PROJECT}, headers=admin
            )
            assert response.status_code == 200
            assert response.json()["state"] == "pending_review"

            approved = await c.post(
                f"/tasks/{task['id']}/approve", json={"project": PROJECT}, headers=admin
            )
            assert approved.json()["summary"] == "saved"
