from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from importlib.metadata import PackageNotFoundError, version

from dotenv import load_dotenv

from slack_profile.config import LOG_FORMAT, Settings, load_settings, resolve_log_level
from slack_profile.errors import ProfileApiError, ValidationError
from slack_profile.executor import UpdateExecutor, parse_profile_payload, parse_user_ids
from slack_profile.fields import build_field_payload
from slack_profile.models import BatchResult, UpdateOutcome
from slack_profile.rendering import (
    GOODBYE,
    build_examples_text,
    build_setup_text,
    format_batch_start,
    format_failure_count,
    format_field_listing,
    format_outcome,
    format_profile,
    format_summary,
)
from slack_profile.session import InteractiveSession
from slack_profile.slack_client import SlackProfileClient

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slack-profile",
        description="CLI tool for updating Slack user profiles",
        epilog=build_setup_text(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--token", "-t", help="Slack API token (overrides SLACK_TOKEN env var)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging on stderr")
    parser.add_argument("--version", action="version", version=f"slack-profile version {_package_version()}")
    subparsers = parser.add_subparsers(dest="command", metavar="command")

    set_field = subparsers.add_parser("set-field", help="Set a single profile field for a user")
    set_field.add_argument("--user", "-u", required=True, help="Slack user ID (e.g., U1234567890)")
    set_field.add_argument("--name", "-n", required=True, help="Field name (e.g., title, or Xf0111111 for custom)")
    set_field.add_argument("--value", "-v", required=True, help='Field value (use "" to clear)')

    set_profile = subparsers.add_parser("set-profile", help="Set multiple profile fields for a user using JSON")
    set_profile.add_argument("--user", "-u", required=True, help="Slack user ID")
    set_profile.add_argument("--profile", "-p", required=True, help="Profile data as JSON string")

    batch_field = subparsers.add_parser("batch-field", help="Set a single field for multiple users")
    batch_field.add_argument("--users", "-u", required=True, help="Comma-separated list of Slack user IDs")
    batch_field.add_argument("--name", "-n", required=True, help="Field name")
    batch_field.add_argument("--value", "-v", required=True, help="Field value")

    batch_profile = subparsers.add_parser("batch-profile", help="Set multiple fields for multiple users using JSON")
    batch_profile.add_argument("--users", "-u", required=True, help="Comma-separated list of Slack user IDs")
    batch_profile.add_argument("--profile", "-p", required=True, help="Profile data as JSON string")

    get_profile = subparsers.add_parser("get-profile", help="Show a user's current profile")
    get_profile.add_argument("--user", "-u", required=True, help="Slack user ID")

    subparsers.add_parser("list-fields", help="List available profile fields for the team")
    subparsers.add_parser("interactive", help="Interactive mode - prompts for all inputs")
    subparsers.add_parser("examples", help="Show usage examples")
    subparsers.add_parser("help", help="Show setup instructions, token scopes and common workflows")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(level=resolve_log_level(args.verbose), format=LOG_FORMAT)

    command = args.command or "interactive"
    LOGGER.debug("Running command %s", command)
    if command == "examples":
        print(build_examples_text())
        return EXIT_OK
    if command == "help":
        build_parser().print_help()
        return EXIT_OK

    try:
        settings = load_settings(args.token, dotenv=False)
        client = _build_client(settings)
        handler = COMMANDS[command]
        return handler(args, client)
    except ValidationError as exc:
        print(f"❌ Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except ProfileApiError as exc:
        print(f"❌ Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print(f"\n\n{GOODBYE}")
        return EXIT_INTERRUPTED


def _build_client(settings: Settings) -> SlackProfileClient:
    return SlackProfileClient(
        token=settings.token,
        base_url=settings.api_base_url,
        timeout_seconds=settings.timeout_seconds,
    )


def run_set_field(args: argparse.Namespace, client: SlackProfileClient) -> int:
    payload = build_field_payload(args.name, args.value)
    UpdateExecutor(client).apply_to_one(args.user, payload)
    print(f"✅ Successfully updated {args.name} for user {args.user}")
    return EXIT_OK


def run_set_profile(args: argparse.Namespace, client: SlackProfileClient) -> int:
    payload = parse_profile_payload(args.profile)
    UpdateExecutor(client).apply_to_one(args.user, payload)
    print(f"✅ Successfully updated profile for user {args.user}")
    return EXIT_OK


def run_batch_field(args: argparse.Namespace, client: SlackProfileClient) -> int:
    user_ids = parse_user_ids(args.users)
    if not user_ids:
        raise ValidationError("No valid user IDs provided")
    payload = build_field_payload(args.name, args.value)

    print(format_batch_start(args.name, len(user_ids)))
    result = UpdateExecutor(client).apply_to_many(user_ids, payload, on_progress=_progress_printer(args.name))
    return _finish_batch(result)


def run_batch_profile(args: argparse.Namespace, client: SlackProfileClient) -> int:
    user_ids = parse_user_ids(args.users)
    if not user_ids:
        raise ValidationError("No valid user IDs provided")
    payload = parse_profile_payload(args.profile)

    print(format_batch_start("profile", len(user_ids)))
    result = UpdateExecutor(client).apply_to_many(user_ids, payload, on_progress=_progress_printer("profile"))
    return _finish_batch(result)


def run_get_profile(args: argparse.Namespace, client: SlackProfileClient) -> int:
    profile = client.get_profile(args.user)
    print(format_profile(args.user, profile))
    return EXIT_OK


def run_list_fields(args: argparse.Namespace, client: SlackProfileClient) -> int:
    catalog = client.get_team_fields()
    for line in format_field_listing(catalog):
        print(line)
    return EXIT_OK


def run_interactive(args: argparse.Namespace, client: SlackProfileClient) -> int:
    session = InteractiveSession(client)
    session.run()
    if any(result.failure_count for result in session.results):
        return EXIT_FAILURE
    return EXIT_OK


def _progress_printer(subject: str):
    def report(outcome: UpdateOutcome) -> None:
        print(format_outcome(outcome, subject))

    return report


def _finish_batch(result: BatchResult) -> int:
    print(format_summary(result))
    if result.failure_count:
        print(format_failure_count(result))
        return EXIT_FAILURE
    return EXIT_OK


def _package_version() -> str:
    try:
        return version("slack-profile")
    except PackageNotFoundError:
        return "0.0.0"


COMMANDS = {
    "set-field": run_set_field,
    "set-profile": run_set_profile,
    "batch-field": run_batch_field,
    "batch-profile": run_batch_profile,
    "get-profile": run_get_profile,
    "list-fields": run_list_fields,
    "interactive": run_interactive,
}


if __name__ == "__main__":
    sys.exit(main())
