"""
Add every repository of a GitHub organisation that ships a composer.json to
the mirror's configuration file.

Run ``build`` afterwards to pick up the new repositories.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import httpx
import yaml

from packmirror.domain.errors import ConfigError

logger = logging.getLogger(__name__)

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"

REPOSITORIES_QUERY = """
query($organisation: String!, $after: String) {
    organization(login: $organisation) {
        repositories(first: 100, after: $after) {
            totalCount
            nodes {
                id
                sshUrl
                folder: object(expression: "HEAD:composer.json") {
                    ... on Blob {
                        text
                    }
                }
            }
            pageInfo {
                hasNextPage
                endCursor
            }
        }
    }
}
"""


async def load_github_organisation(client: httpx.AsyncClient, organisation: str) -> List[Dict[str, str]]:
    """
    Page through the organisation's repositories and return ``vcs`` entries
    for the ones whose default branch has a composer.json with a name.
    """
    repositories: List[Dict[str, str]] = []
    after: Optional[str] = None
    page = 0

    while True:
        page += 1
        logger.debug(f"Fetching repositories of {organisation}, page {page}")
        response = await client.post(
            GITHUB_GRAPHQL_URL,
            json={"query": REPOSITORIES_QUERY, "variables": {"organisation": organisation, "after": after}},
        )
        response.raise_for_status()
        payload = response.json()

        for error in payload.get("errors") or []:
            logger.error(error.get("message") or "Unknown error Github GraphQL")

        connection = ((payload.get("data") or {}).get("organization") or {}).get("repositories") or {}

        for node in connection.get("nodes") or []:
            folder = node.get("folder")
            if folder is None:
                continue
            try:
                composer_json = json.loads(folder.get("text") or "{}")
            except ValueError as e:
                logger.warning(f"Skipping {node.get('sshUrl')}: invalid composer.json ({e})")
                continue
            if not isinstance(composer_json, dict) or "name" not in composer_json:
                continue
            repositories.append({"type": "vcs", "url": node["sshUrl"]})

        page_info = connection.get("pageInfo") or {}
        if page_info.get("hasNextPage") is not True:
            break
        cursor = page_info.get("endCursor")
        if not cursor or cursor == after:
            logger.error(f"Stopping scan of {organisation} after page {page}: no new cursor returned")
            break
        after = cursor

    logger.info(f"Found {len(repositories)} composer repositories in {organisation}")
    return repositories


def merge_repositories(config: Dict[str, Any], repositories: List[Dict[str, str]]) -> int:
    """
    Append repositories whose URL is not configured yet. Returns how many were added.
    """
    if not isinstance(config.get("repositories"), list):
        config["repositories"] = []

    known = {repo.get("url") for repo in config["repositories"] if isinstance(repo, dict)}
    added = 0
    for repository in repositories:
        if repository["url"] in known:
            continue
        config["repositories"].append(repository)
        known.add(repository["url"])
        added += 1
    return added


async def scan_organisation(
    organisation: str,
    config_file: str = "./satis.json",
    token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """
    Scan a GitHub organisation and merge its repositories into ``config_file``.

    Returns the number of repositories added.
    """
    if re.match(r"^https?://", config_file, flags=re.IGNORECASE):
        raise ConfigError(f"Unable to write to remote file {config_file}")

    path = Path(config_file)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {config_file}")

    is_yaml = path.suffix in (".yaml", ".yml")
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        text = await f.read()
    try:
        config = (yaml.safe_load(text) if is_yaml else json.loads(text)) or {}
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(config, dict):
        raise ConfigError(f"Config file {path} must contain an object")

    token = token or os.environ.get(GITHUB_TOKEN_ENV_VAR)
    headers = {"Authorization": f"bearer {token}"} if token else {}

    async with httpx.AsyncClient(headers=headers, timeout=30.0, transport=transport) as client:
        repositories = await load_github_organisation(client, organisation)

    added = merge_repositories(config, repositories)

    if is_yaml:
        content = yaml.safe_dump(config, sort_keys=False, allow_unicode=True)
    else:
        content = json.dumps(config, indent=4, ensure_ascii=False) + "\n"
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(content)

    logger.info(f"Added {added} repositories to {path}")
    return added


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if len(sys.argv) < 2:
        print("Usage: python -m packmirror.services.organisation_scanner <organisation> [file]")
        sys.exit(2)

    org = sys.argv[1]
    file = sys.argv[2] if len(sys.argv) > 2 else "./satis.json"

    try:
        count = asyncio.run(scan_organisation(org, file))
        print(f"Your configuration file successfully updated ({count} added)! It's time to rebuild your repository")
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
