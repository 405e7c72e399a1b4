from __future__ import annotations

import argparse
import dataclasses
import enum
import json
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Sequence

from .client import WalletGateClient
from .config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, WalletGateConfig
from .exceptions import ConfigurationError, HTTPRequestError, RateLimitError, ValidationError, WalletGateError
from .helpers import make_qr_data_url
from .retry import RetryPolicy
from .webhook import WebhookError, WebhookSignatureError, WebhookVerifier

SIGNUP_URL = "https://walletgate.app/signup"
DOCS_URL = "https://walletgate.app/docs"


def build_parser() -> argparse.ArgumentParser:
    shared = argparse.ArgumentParser(add_help=False)
    _add_global_args(shared)

    parser = argparse.ArgumentParser(
        prog="walletgate",
        description="WalletGate - EU Digital Identity verification CLI",
        parents=[shared],
    )
    parser.set_defaults(handler=_cmd_links)
    subparsers = parser.add_subparsers(dest="group")

    help_parser = subparsers.add_parser("help", help="Show signup and documentation links", parents=[shared])
    help_parser.set_defaults(handler=_cmd_links)
    links_parser = subparsers.add_parser("links", help="Show signup and documentation links", parents=[shared])
    links_parser.set_defaults(handler=_cmd_links)

    _build_session_commands(subparsers, shared)
    _build_webhook_commands(subparsers, shared)
    _build_qr_commands(subparsers, shared)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    output_format = "human"
    try:
        args = parser.parse_args(argv)
        output_format = str(getattr(args, "output_format", "human"))
        handler = getattr(args, "handler", None)
        if handler is None:
            raise ValueError("missing command handler")
        result = handler(args)
        _print_result(result, output_format=output_format)
        return 0
    except SystemExit as exc:
        return _system_exit_code(exc)
    except ConfigurationError as exc:
        return _print_error(str(exc), exit_code=2, output_format=output_format)
    except ValidationError as exc:
        return _print_error(str(exc), exit_code=2, output_format=output_format)
    except ValueError as exc:
        return _print_error(str(exc), exit_code=2, output_format=output_format)
    except WebhookError as exc:
        return _print_error(str(exc), exit_code=3, output_format=output_format)
    except HTTPRequestError as exc:
        return _print_error(_format_http_error(exc), exit_code=4, output_format=output_format)
    except WalletGateError as exc:
        return _print_error(str(exc), exit_code=4, output_format=output_format)
    except Exception as exc:
        return _print_error(f"{type(exc).__name__}: {exc}", exit_code=1, output_format=output_format)


def _add_global_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=("human", "json"),
        default=argparse.SUPPRESS,
        help="Output format. Default: human",
    )
    parser.add_argument("--api-key", default=argparse.SUPPRESS, help="WalletGate API key (or WALLETGATE_API_KEY)")
    parser.add_argument(
        "--base-url",
        default=argparse.SUPPRESS,
        help=f"API base url. Default: {DEFAULT_BASE_URL}",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=argparse.SUPPRESS,
        help=f"HTTP timeout seconds. Default: {DEFAULT_TIMEOUT_SECONDS}",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=argparse.SUPPRESS,
        help="Retries for timeouts, network and 5xx errors. Default: 0",
    )


def _build_session_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    session_parser = subparsers.add_parser("session", help="Verification sessions")
    session_sub = session_parser.add_subparsers(dest="session_command")
    session_sub.required = True

    start_parser = session_sub.add_parser("start", help="Start a verification session", parents=[shared])
    start_parser.add_argument(
        "--check",
        dest="checks",
        action="append",
        default=[],
        help="Check as TYPE or TYPE=VALUE, e.g. age_over=18. Repeatable",
    )
    start_parser.add_argument("--redirect-url", help="HTTPS url to return the user to")
    start_parser.add_argument("--webhook-url", help="HTTPS url for result notifications")
    start_parser.add_argument("--metadata-json", help="Session metadata as JSON object string")
    start_parser.add_argument("--enable-ai", action="store_true", help="Request AI risk insights")
    start_parser.add_argument("--input-file", help="Full session input as JSON file path")
    start_parser.set_defaults(handler=_cmd_session_start)

    get_parser = session_sub.add_parser("get", help="Get the result of a verification session", parents=[shared])
    get_parser.add_argument("session_id", help="Session id returned by `session start`")
    get_parser.set_defaults(handler=_cmd_session_get)


def _build_webhook_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    webhook_parser = subparsers.add_parser("webhook", help="Webhook utilities")
    webhook_sub = webhook_parser.add_subparsers(dest="webhook_command")
    webhook_sub.required = True

    verify_parser = webhook_sub.add_parser("verify", help="Verify a webhook signature", parents=[shared])
    verify_parser.add_argument("--secret", help="Webhook secret (or WALLETGATE_WEBHOOK_SECRET)")
    verify_parser.add_argument("--signature", required=True, help="X-WalletGate-Signature header value")
    verify_parser.add_argument("--timestamp", required=True, help="X-WalletGate-Timestamp header value")
    verify_parser.add_argument("--body", help="Raw request body")
    verify_parser.add_argument("--body-file", help="Raw request body file path")
    verify_parser.add_argument("--body-stdin", action="store_true", help="Read raw request body from stdin")
    verify_parser.set_defaults(handler=_cmd_webhook_verify)


def _build_qr_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    qr_parser = subparsers.add_parser("qr", help="Render a verification url as a PNG data url", parents=[shared])
    qr_parser.add_argument("url", help="Verification url")
    qr_parser.add_argument("--output", help="Write the data url to this file instead of stdout")
    qr_parser.set_defaults(handler=_cmd_qr)


def _cmd_links(_args: argparse.Namespace) -> Mapping[str, Any]:
    return {
        "signup_url": SIGNUP_URL,
        "docs_url": DOCS_URL,
    }


def _cmd_session_start(args: argparse.Namespace) -> Any:
    data = _build_session_input(args)
    with _build_client(args) as client:
        return client.start_verification(data)


def _cmd_session_get(args: argparse.Namespace) -> Any:
    with _build_client(args) as client:
        return client.get_result(str(args.session_id))


def _cmd_webhook_verify(args: argparse.Namespace) -> Mapping[str, Any]:
    secret = getattr(args, "secret", None) or os.getenv("WALLETGATE_WEBHOOK_SECRET")
    if not secret:
        raise ConfigurationError("webhook secret is required: use --secret or WALLETGATE_WEBHOOK_SECRET")
    raw_body = _resolve_raw_body(args)
    valid = WebhookVerifier().verify(raw_body, str(args.signature), secret, str(args.timestamp))
    if not valid:
        raise WebhookSignatureError("webhook signature is invalid or stale")
    return {"valid": True}


def _cmd_qr(args: argparse.Namespace) -> Any:
    data_url = make_qr_data_url(str(args.url))
    output = getattr(args, "output", None)
    if output:
        Path(str(output)).write_text(data_url, encoding="utf-8")
        return {"output": str(output), "bytes": len(data_url)}
    return data_url


def _build_client(args: argparse.Namespace) -> WalletGateClient:
    return WalletGateClient(_build_config(args))


def _build_config(args: argparse.Namespace) -> WalletGateConfig:
    env_api_key = os.getenv("WALLETGATE_API_KEY")
    env_base_url = os.getenv("WALLETGATE_BASE_URL")

    api_key = env_api_key or getattr(args, "api_key", None)
    base_url = getattr(args, "base_url", None) or env_base_url or DEFAULT_BASE_URL
    if not api_key:
        raise ConfigurationError(
            f"missing api key: set WALLETGATE_API_KEY or use --api-key (get a test key at {SIGNUP_URL})"
        )

    max_retries = getattr(args, "max_retries", None)
    retry_policy = RetryPolicy(max_retries=max_retries) if max_retries is not None else RetryPolicy()
    return WalletGateConfig(
        api_key=api_key,
        base_url=base_url,
        timeout_seconds=_resolve_timeout_seconds(args),
        retry_policy=retry_policy,
    )


def _resolve_timeout_seconds(args: argparse.Namespace) -> float:
    value = getattr(args, "timeout", None)
    if value is None:
        return DEFAULT_TIMEOUT_SECONDS
    timeout = float(value)
    if timeout <= 0:
        raise ValueError("--timeout must be > 0")
    return timeout


def _build_session_input(args: argparse.Namespace) -> dict[str, Any]:
    input_file = getattr(args, "input_file", None)
    if input_file:
        data = _parse_json_object(Path(str(input_file)).read_text(encoding="utf-8"), name="--input-file")
    else:
        data = {}
    checks = [_parse_check(item) for item in getattr(args, "checks", None) or []]
    if checks:
        data["checks"] = checks
    if getattr(args, "redirect_url", None):
        data["redirectUrl"] = args.redirect_url
    if getattr(args, "webhook_url", None):
        data["webhookUrl"] = args.webhook_url
    if getattr(args, "metadata_json", None):
        data["metadata"] = _parse_json_object(args.metadata_json, name="--metadata-json")
    if getattr(args, "enable_ai", False):
        data["enableAI"] = True
    if "checks" not in data:
        raise ValueError("at least one --check is required")
    return data


def _parse_check(raw: str) -> dict[str, Any]:
    check_type, sep, value = str(raw).partition("=")
    check_type = check_type.strip()
    if not check_type:
        raise ValueError(f"invalid --check: {raw!r}")
    if not sep:
        return {"type": check_type}
    return {"type": check_type, "value": _parse_scalar(value.strip())}


def _parse_scalar(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def _parse_json_object(raw: str, *, name: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{name} is not valid json: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{name} must be a json object")
    return data


def _resolve_raw_body(args: argparse.Namespace) -> str:
    body = getattr(args, "body", None)
    body_file = getattr(args, "body_file", None)
    body_stdin = bool(getattr(args, "body_stdin", False))
    sources = [source for source in (body is not None, bool(body_file), body_stdin) if source]
    if len(sources) != 1:
        raise ValueError("exactly one of --body, --body-file, --body-stdin is required")
    if body is not None:
        return str(body)
    if body_file:
        return Path(str(body_file)).read_text(encoding="utf-8")
    return sys.stdin.read()


def _print_result(result: Any, *, output_format: str) -> None:
    normalized = _to_jsonable(result)
    if output_format == "json":
        print(json.dumps(normalized, ensure_ascii=False, indent=2))
        return
    _print_human(normalized)


def _print_human(result: Any) -> None:
    if result is None:
        print("OK")
        return
    if isinstance(result, Mapping):
        mapping = {str(key): value for key, value in result.items()}
        if not mapping:
            print("OK")
            return
        if _is_flat_mapping(mapping):
            width = max(len(key) for key in mapping)
            for key in sorted(mapping):
                print(f"{key:<{width}} : {mapping[key]}")
            return
        print(json.dumps(mapping, ensure_ascii=False, indent=2))
        return
    print(result)


def _print_error(message: str, *, exit_code: int, output_format: str) -> int:
    if output_format == "json":
        print(
            json.dumps(
                {
                    "ok": False,
                    "error": message,
                    "exit_code": exit_code,
                },
                ensure_ascii=False,
            )
        )
    else:
        print(f"Error: {message}", file=sys.stderr)
    return exit_code


def _format_http_error(exc: HTTPRequestError) -> str:
    parts = [str(exc)]
    if exc.status_code is not None:
        parts.append(f"status_code={exc.status_code}")
    if exc.code:
        parts.append(f"code={exc.code}")
    if exc.request_id:
        parts.append(f"request_id={exc.request_id}")
    if isinstance(exc, RateLimitError) and exc.info.upgrade_url is None:
        parts.append(f"hint=see {DOCS_URL} for plan limits")
    return "; ".join(parts)


def _is_flat_mapping(mapping: Mapping[str, Any]) -> bool:
    for value in mapping.values():
        if isinstance(value, (dict, list, tuple, set)):
            return False
    return True


def _to_jsonable(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return _to_jsonable(to_dict())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _to_jsonable(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _system_exit_code(exc: SystemExit) -> int:
    code = exc.code
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1
