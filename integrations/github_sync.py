"""Source-control sync: commit the accumulated file set to a GitHub branch.

Uses the git data API so an iteration lands as a single commit:
ref -> commit -> blobs -> tree -> commit -> update ref.
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

import requests

from contracts import GeneratedFile, SyncResult
from config import settings

from .errors import SyncError

logger = logging.getLogger(__name__)


class SourceControl(ABC):
    """Pushes a file set and returns the resulting commit."""

    @abstractmethod
    async def push(self, repo_ref: str, files: Iterable[GeneratedFile], message: str) -> SyncResult:
        """Commit files to ``owner/repo``.

        Raises:
            SyncError: on any failure
        """
        pass


class GitHubSync(SourceControl):
    """GitHub REST implementation of SourceControl."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        branch: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.token = token or settings.github_token
        self.api_url = (api_url or settings.github_api_url).rstrip("/")
        self.branch = branch or settings.github_branch
        self.timeout = timeout or settings.api_timeout_seconds

    def is_available(self) -> bool:
        return bool(self.token)

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        r = requests.request(
            method,
            f"{self.api_url}{path}",
            json=payload,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()

    def push_sync(self, repo_ref: str, files: Iterable[GeneratedFile], message: str) -> SyncResult:
        """Blocking push; see push()."""
        owner, _, repo = repo_ref.partition("/")
        if not owner or not repo:
            raise SyncError(f"Repository must be given as owner/repo, got {repo_ref!r}")
        base = f"/repos/{owner}/{repo}/git"

        ref = self._request("GET", f"{base}/ref/heads/{self.branch}")
        parent_sha = ref["object"]["sha"]
        parent = self._request("GET", f"{base}/commits/{parent_sha}")

        tree = []
        for f in files:
            blob = self._request("POST", f"{base}/blobs", {
                "content": base64.b64encode(f.content.encode("utf-8")).decode("ascii"),
                "encoding": "base64",
            })
            tree.append({"path": f.path, "mode": "100644", "type": "blob", "sha": blob["sha"]})

        new_tree = self._request("POST", f"{base}/trees", {
            "base_tree": parent["tree"]["sha"],
            "tree": tree,
        })
        commit = self._request("POST", f"{base}/commits", {
            "message": message,
            "tree": new_tree["sha"],
            "parents": [parent_sha],
        })
        self._request("PATCH", f"{base}/refs/heads/{self.branch}", {"sha": commit["sha"]})

        return SyncResult(
            commit_sha=commit["sha"],
            commit_url=f"https://github.com/{owner}/{repo}/commit/{commit['sha']}",
        )

    async def push(self, repo_ref: str, files: Iterable[GeneratedFile], message: str) -> SyncResult:
        if not self.token:
            raise SyncError("GitHub token is not configured")
        file_list = list(files)
        try:
            result = await asyncio.to_thread(self.push_sync, repo_ref, file_list, message)
        except (requests.RequestException, KeyError, ValueError) as e:
            raise SyncError(f"GitHub sync failed: {e}") from e
        logger.info("Pushed %d files to %s at %s", len(file_list), repo_ref, result.commit_sha[:7])
        return result
