#!/usr/bin/env python3
"""Send a signed sample pull_request webhook to a running relay."""
import argparse
import asyncio
import hashlib
import hmac
import json
import os
import uuid

import aiohttp
from dotenv import load_dotenv

load_dotenv()


def sample_payload(pr_number: int, action: str) -> dict:
    return {
        "action": action,
        "number": pr_number,
        "pull_request": {
            "number": pr_number,
            "title": "Test PR: Add amazing feature",
            "body": "This is a test PR to verify the webhook integration.\n\nCloses #1",
            "state": "open",
            "draft": False,
            "merged": False,
            "user": {"login": "testuser"},
            "head": {"ref": "feature/test-webhook"},
            "base": {"ref": "main"},
            "html_url": f"https://github.com/test-owner/test-repo/pull/{pr_number}",
            "requested_reviewers": [{"login": "reviewer1"}, {"login": "reviewer2"}],
        },
        "repository": {"name": "test-repo", "owner": {"login": "test-owner"}},
        "sender": {"login": "testuser"},
    }


async def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--url", default="http://localhost:3000/api/webhook/github")
    parser.add_argument("--pr", type=int, default=123)
    parser.add_argument("--action", default="opened")
    args = parser.parse_args()

    body = json.dumps(sample_payload(args.pr, args.action)).encode()
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Event": "pull_request",
        "X-GitHub-Delivery": str(uuid.uuid4()),
    }

    secret = os.getenv("GITHUB_WEBHOOK_SECRET")
    if secret:
        digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        headers["X-Hub-Signature-256"] = f"sha256={digest}"

    async with aiohttp.ClientSession() as session:
        async with session.post(args.url, data=body, headers=headers) as response:
            print(f"Status: {response.status}")
            print(f"Response: {await response.text()}")


if __name__ == "__main__":
    asyncio.run(main())
