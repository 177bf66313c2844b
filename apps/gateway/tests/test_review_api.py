"""评审接口测试 -- approve 合并 PR、reject 评论 PR

测试内容：
1. 未配置 GitHub：approve 只推进状态机
2. 配置 GitHub：approve 先 squash 合并，再关闭任务并派生后续任务
3. 合并失败：502，任务保持 pending_review；PR 已被并发请求合并时照常关闭
4. reject：状态回到 open，尽力评论驳回原因，评论失败不影响结果
"""

import json

import httpx
from beehive.github import GitHubClient

PROJECT = "demo"
PR_URL = "https://github.com/acme/widgets/pull/7"
MERGED = {"sha": "abc123", "merged": True, "message": "Pull Request successfully merged"}


async def _get(client, headers, task_id):
    response = await client.get(f"/tasks/{task_id}", params={"project": PROJECT}, headers=headers)
    return response.json()


async def _tasks(client, headers):
    response = await client.get("/tasks", params={"project": PROJECT}, headers=headers)
    return response.json()


async def test_submit_creates_review_task(client, admin_headers, submitted_task):
    assert submitted_task["state"] == "pending_review"
    [review] = [t for t in await _tasks(client, admin_headers) if t["reviews_task"]]
    assert review["reviews_task"] == submitted_task["id"]
    assert review["role"] == "pr_review"
    assert review["pr_url"] == PR_URL


async def test_approve_without_github(client, admin_headers, submitted_task):
    task_id = submitted_task["id"]
    response = await client.post(
        f"/tasks/{task_id}/approve", json={"project": PROJECT}, headers=admin_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "closed"
    assert body["summary"] == "Login done"
    assert body["pr_url"] == PR_URL

    tasks = await _tasks(client, admin_headers)
    [follow_up] = [t for t in tasks if t["parent_task"] == task_id]
    assert follow_up["description"] == "Document login"
    assert follow_up["state"] == "open"


async def test_approve_merges_pull_request(client, admin_headers, submitted_task, github_responder):
    requests = github_responder(body=MERGED)
    task_id = submitted_task["id"]

    response = await client.post(
        f"/tasks/{task_id}/approve", json={"project": PROJECT}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["state"] == "closed"

    [merge] = requests
    assert merge.method == "PUT"
    assert merge.url.path == "/repos/acme/widgets/pulls/7/merge"
    assert json.loads(merge.content) == {"merge_method": "squash"}
    assert merge.headers["Authorization"] == "Bearer ghp_test"


async def test_merge_failure_keeps_pending_review(
    client, admin_headers, submitted_task, github_responder
):
    github_responder(status_code=405, body={"message": "Pull Request is not mergeable"})
    task_id = submitted_task["id"]
    before = await _tasks(client, admin_headers)

    response = await client.post(
        f"/tasks/{task_id}/approve", json={"project": PROJECT}, headers=admin_headers
    )
    assert response.status_code == 502
    error = response.json()["error"]
    assert error["code"] == "UPSTREAM_ERROR"
    assert "not mergeable" in error["message"]

    assert (await _get(client, admin_headers, task_id))["state"] == "pending_review"
    assert await _tasks(client, admin_headers) == before


async def test_approve_twice(client, admin_headers, submitted_task, github_responder):
    requests = github_responder(body=MERGED)
    url = f"/tasks/{submitted_task['id']}/approve"
    first = await client.post(url, json={"project": PROJECT}, headers=admin_headers)
    count = len(await _tasks(client, admin_headers))

    second = await client.post(url, json={"project": PROJECT}, headers=admin_headers)
    assert second.status_code == 200
    assert second.json() == first.json()
    assert len(requests) == 1
    assert len(await _tasks(client, admin_headers)) == count


async def test_reject_comments_on_pull_request(
    client, admin_headers, submitted_task, github_responder
):
    requests = github_responder(status_code=201, body={"id": 1})
    task_id = submitted_task["id"]

    response = await client.post(
        f"/tasks/{task_id}/reject",
        json={"project": PROJECT, "reason": "Missing tests"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["state"] == "open"
    assert response.json()["claimed_by"] is None

    [comment] = requests
    assert comment.method == "POST"
    assert comment.url.path == "/repos/acme/widgets/issues/7/comments"
    assert "Missing tests" in json.loads(comment.content)["body"]

    [review] = [t for t in await _tasks(client, admin_headers) if t["reviews_task"] == task_id]
    assert review["state"] == "closed"
    assert review["summary"] == "Rejected: Missing tests"


async def test_reject_comment_failure_is_ignored(
    client, admin_headers, submitted_task, github_responder
):
    github_responder(status_code=500, body={"message": "boom"})
    response = await client.post(
        f"/tasks/{submitted_task['id']}/reject",
        json={"project": PROJECT, "reason": "nope"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["state"] == "open"


async def test_reject_requires_pending_review(client, admin_headers):
    created = await client.post(
        "/tasks", json={"project": PROJECT, "description": "x"}, headers=admin_headers
    )
    response = await client.post(
        f"/tasks/{created.json()['id']}/reject",
        json={"project": PROJECT, "reason": "not yet"},
        headers=admin_headers,
    )
    assert response.status_code == 409


async def test_reject_requires_reason(client, admin_headers, submitted_task, github_responder):
    requests = github_responder(status_code=201, body={"id": 1})
    task_id = submitted_task["id"]

    for body in ({"project": PROJECT}, {"project": PROJECT, "reason": ""}):
        response = await client.post(f"/tasks/{task_id}/reject", json=body, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    assert (await _get(client, admin_headers, task_id))["state"] == "pending_review"
    assert requests == []


async def test_approve_when_pull_request_already_merged(
    app, client, admin_headers, submitted_task
):
    """并发 approve 的后到者收到 405，但 PR 已合并，任务照常关闭"""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "PUT":
            return httpx.Response(405, json={"message": "Pull Request is not mergeable"})
        return httpx.Response(200, json={"number": 7, "merged": True})

    app.state.github_client = GitHubClient(token="ghp_test", transport=httpx.MockTransport(handler))
    task_id = submitted_task["id"]

    response = await client.post(
        f"/tasks/{task_id}/approve", json={"project": PROJECT}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["state"] == "closed"
    assert [r.method for r in requests] == ["PUT", "GET"]

    tasks = await _tasks(client, admin_headers)
    assert [t for t in tasks if t["parent_task"] == task_id]
