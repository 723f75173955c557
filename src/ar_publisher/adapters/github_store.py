"""GitHub contents API store."""

import base64
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from ar_publisher.domain.errors import RemoteWriteError
from ar_publisher.services.publisher import RemoteStore

_RETRYABLE_STATUS = {409, 429}


@dataclass
class GitHubContentsStore(RemoteStore):
    """Create-or-update file writes against a GitHub repository."""

    token: str
    owner: str
    repo: str
    http_client: httpx.AsyncClient
    branch: str | None = None
    api_url: str = "https://api.github.com"

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        token: str,
        owner: str,
        repo: str,
        branch: str | None = None,
        api_url: str = "https://api.github.com",
    ) -> "GitHubContentsStore":
        """Create a store with a managed httpx session."""
        return cls(
            token=token,
            owner=owner,
            repo=repo,
            branch=branch,
            api_url=api_url,
            http_client=httpx.AsyncClient(),
        )

    def _contents_url(self, path: str) -> str:
        base = self.api_url.rstrip("/")
        return f"{base}/repos/{self.owner}/{self.repo}/contents/{quote(path)}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def write_file(self, path: str, content: bytes, message: str) -> None:
        """Create the file, or update it in place when it already exists."""
        try:
            sha = await self._existing_sha(path)
            payload: dict[str, object] = {
                "message": message,
                "content": base64.b64encode(content).decode("ascii"),
            }
            if self.branch:
                payload["branch"] = self.branch
            if sha:
                payload["sha"] = sha
            response = await self.http_client.put(
                self._contents_url(path),
                headers=self._headers(),
                json=payload,
                timeout=60,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise RemoteWriteError(
                f"GitHub returned {status} for {path}",
                retryable=status >= 500 or status in _RETRYABLE_STATUS,
            ) from exc
        except httpx.TransportError as exc:
            raise RemoteWriteError(
                f"Transport error for {path}: {exc}", retryable=True
            ) from exc
        except ValueError as exc:
            raise RemoteWriteError(
                f"Unreadable GitHub response for {path}: {exc}", retryable=False
            ) from exc

    async def _existing_sha(self, path: str) -> str | None:
        params = {"ref": self.branch} if self.branch else None
        response = await self.http_client.get(
            self._contents_url(path),
            headers=self._headers(),
            params=params,
            timeout=15,
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        payload = response.json()
        if isinstance(payload, dict):
            sha = payload.get("sha")
            return sha if isinstance(sha, str) else None
        return None

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
