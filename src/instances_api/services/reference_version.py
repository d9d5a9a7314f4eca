from __future__ import annotations

import logging
from typing import Dict, Optional

from src.instances_api.errors import ParseError
from src.instances_api.services.http_client import ProbeHttpClient

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def fetch_latest_commit(
    http: ProbeHttpClient,
    owner: str,
    repo: str,
    *,
    api_url: str = "https://api.github.com",
    token: Optional[str] = None,
) -> str:
    """Return the SHA of the newest commit on the repository's default branch."""
    url = f"{api_url}/repos/{owner}/{repo}/commits?per_page=1"
    headers: Dict[str, str] = {"Accept": "application/vnd.github+json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    resp = await http.get(url, headers=headers)
    try:
        commits = resp.json()
    except ValueError as e:
        raise ParseError(f"Malformed commits body: {e}", url) from e

    if not isinstance(commits, list) or not commits:
        raise ParseError("No commits returned", url)
    sha = commits[0].get("sha") if isinstance(commits[0], dict) else None
    if not sha:
        raise ParseError("Latest commit has no sha", url)
    return str(sha)
