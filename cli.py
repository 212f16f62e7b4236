#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from gitplatform import GITHUB, PLATFORMS, GitConnector, GitPlatformError, create_client

REPO_ROOT = Path(__file__).resolve().parent

logger = logging.getLogger("gitplatform.cli")


def _load_dotenv(path: Path) -> int:
    """
    Load a .env file into process environment (without overriding existing vars).

    Keeps dependencies minimal (avoids python-dotenv).
    """
    if not path.exists():
        return 0
    loaded = 0
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key or key in os.environ:
            continue
        if (len(value) >= 2) and ((value[0] == value[-1]) and value[0] in {"'", '"'}):
            value = value[1:-1]
        os.environ[key] = value
        loaded += 1
    return loaded


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseException):
        return str(value)
    return value


def _print_json(value: Any) -> None:
    print(json.dumps(_to_jsonable(value), indent=2, sort_keys=True))


def _run(ns: argparse.Namespace, action: Callable[[GitConnector], Awaitable[Any]]) -> int:
    overrides = {"token": ns.auth, "base_url": ns.base_url}

    async def _runner() -> Any:
        async with create_client(ns.platform, **overrides) as client:
            return await action(client)

    _print_json(asyncio.run(_runner()))
    return 0


def _cmd_repo(ns: argparse.Namespace) -> int:
    if len(ns.identifiers) == 1:
        return _run(ns, lambda c: c.get_repository(ns.identifiers[0], refresh=ns.refresh))
    return _run(
        ns,
        lambda c: c.get_repositories(ns.identifiers, max_concurrent=ns.max_concurrent),
    )


def _cmd_search(ns: argparse.Namespace) -> int:
    return _run(
        ns,
        lambda c: c.search_repositories(
            ns.query, sort=ns.sort, order=ns.order, page=ns.page, per_page=ns.per_page
        ),
    )


def _list_filters(ns: argparse.Namespace) -> dict:
    filters = {}
    if getattr(ns, "labels", None):
        filters["labels"] = ns.labels
    return filters


def _cmd_issues(ns: argparse.Namespace) -> int:
    if ns.number is not None:
        ref = f"{ns.identifier}#{ns.number}"
        return _run(ns, lambda c: c.get_issue(ref))
    return _run(
        ns,
        lambda c: c.get_issues(
            ns.identifier,
            state=ns.state,
            filters=_list_filters(ns),
            page=ns.page,
            per_page=ns.per_page,
        ),
    )


def _cmd_pulls(ns: argparse.Namespace) -> int:
    if ns.number is not None:
        ref = f"{ns.identifier}#{ns.number}"
        return _run(ns, lambda c: c.get_pull_request(ref))
    return _run(
        ns,
        lambda c: c.get_pull_requests(
            ns.identifier, state=ns.state, page=ns.page, per_page=ns.per_page
        ),
    )


def _cmd_user(ns: argparse.Namespace) -> int:
    if ns.username:
        return _run(ns, lambda c: c.get_user(ns.username))
    return _run(ns, lambda c: c.get_authenticated_user())


def _cmd_rate_limit(ns: argparse.Namespace) -> int:
    return _run(ns, lambda c: c.get_rate_limit())


def _cmd_verify_webhook(ns: argparse.Namespace) -> int:
    from gitplatform.utils.webhooks import verify_signature

    secret = ns.secret or os.getenv("WEBHOOK_SECRET") or ""
    if not secret:
        raise SystemExit("Missing webhook secret (pass --secret or set WEBHOOK_SECRET).")
    if ns.payload_file == "-":
        payload = sys.stdin.buffer.read()
    else:
        payload = Path(ns.payload_file).read_bytes()

    valid = verify_signature(payload, ns.signature, secret)
    _print_json({"valid": valid})
    return 0 if valid else 1


def _add_paging(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--page", type=int, default=1, help="Page number (1-based).")
    parser.add_argument("--per-page", type=int, default=30, help="Page size (max 100).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitplatform",
        description="Query GitHub and GitLab through one resilient client.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING). Defaults to env LOG_LEVEL or INFO.",
    )
    parser.add_argument(
        "--platform",
        choices=PLATFORMS,
        default=os.getenv("GIT_PLATFORM", GITHUB),
        help="Platform to query. Defaults to env GIT_PLATFORM or github.",
    )
    parser.add_argument(
        "--auth",
        help="Access token. Defaults to env GITHUB_TOKEN or GITLAB_TOKEN.",
    )
    parser.add_argument(
        "--base-url",
        help="API base URL for GitHub Enterprise or self-managed GitLab.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    repo = sub.add_parser("repo", help="Show one or more repositories.")
    repo.add_argument("identifiers", nargs="+", help="owner/repo identifiers.")
    repo.add_argument("--refresh", action="store_true", help="Bypass the cache.")
    repo.add_argument(
        "--max-concurrent",
        type=int,
        default=4,
        help="Maximum concurrent requests when several repositories are given.",
    )
    repo.set_defaults(func=_cmd_repo)

    search = sub.add_parser("search", help="Search repositories.")
    search.add_argument("query")
    search.add_argument("--sort", help="Sort field (stars, forks, updated, ...).")
    search.add_argument("--order", choices=("asc", "desc"))
    _add_paging(search)
    search.set_defaults(func=_cmd_search)

    issues = sub.add_parser("issues", help="List issues or show one issue.")
    issues.add_argument("identifier", help="owner/repo")
    issues.add_argument("--number", type=int, help="Show a single issue.")
    issues.add_argument("--state", choices=("open", "closed", "all"), default="open")
    issues.add_argument("--labels", help="Comma separated label filter.")
    _add_paging(issues)
    issues.set_defaults(func=_cmd_issues)

    pulls = sub.add_parser("pulls", help="List pull/merge requests or show one.")
    pulls.add_argument("identifier", help="owner/repo")
    pulls.add_argument("--number", type=int, help="Show a single pull request.")
    pulls.add_argument(
        "--state", choices=("open", "closed", "merged", "all"), default="open"
    )
    _add_paging(pulls)
    pulls.set_defaults(func=_cmd_pulls)

    user = sub.add_parser("user", help="Show a user (default: the token owner).")
    user.add_argument("username", nargs="?")
    user.set_defaults(func=_cmd_user)

    rate = sub.add_parser("rate-limit", help="Show the upstream rate limit.")
    rate.set_defaults(func=_cmd_rate_limit)

    hook = sub.add_parser("verify-webhook", help="Verify a webhook signature.")
    hook.add_argument("--payload-file", required=True, help="Raw body file, or - for stdin.")
    hook.add_argument("--signature", required=True, help="Signature header value.")
    hook.add_argument("--secret", help="Shared secret. Defaults to env WEBHOOK_SECRET.")
    hook.set_defaults(func=_cmd_verify_webhook)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if os.getenv("DISABLE_DOTENV", "").strip().lower() not in {
        "1",
        "true",
        "yes",
        "on",
    }:
        _load_dotenv(REPO_ROOT / ".env")

    parser = build_parser()
    ns = parser.parse_args(argv)

    level_name = str(getattr(ns, "log_level", "") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    func = getattr(ns, "func", None)
    if func is None:
        parser.print_help()
        return 2
    try:
        return int(func(ns))
    except GitPlatformError as exc:
        logger.error(f"{exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
