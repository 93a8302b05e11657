"""
Command-line interface for the hours logging tool.

This module provides the CLI using argparse and orchestrates each command:
login, fetching the week document, patching the target day, confirming
overwrites, and saving.
"""

import argparse
import getpass
import sys
import traceback
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Tuple

import requests
import yaml

from . import __version__
from .api_client import APIError, VMSClient
from .auth import Authenticator, AuthenticationError, new_http_session, user_fields
from .browser_login import login_with_browser
from .config import Config, ConfigError, config_path, load_config, load_timezone, resolve_timezone, save_config
from .credentials import Credentials, CredentialsError, delete_credentials, load_credentials, save_credentials
from .errors import VMSHoursError
from .logging_utils import setup_logging, get_logger, log_step, log_success, log_warning, log_error
from .models import DayChange, Span
from .output import error_payload, format_day_change_human, write
from .session_tokens import TokenNotFoundError, extract_xsrf_token
from .spans import SpanParseError, SpanValidationError, labor_hours, parse_and_validate_spans
from .timecard import DateNotFoundError, MetadataError, find_day_summary, format_day_summary_human, patch_day
from .week_utils import DateParseError, format_mdy, parse_date, week_start_monday


class CommandError(VMSHoursError):
    """Raised for command-level failures (aborted, missing input, ...)."""
    pass


@dataclass
class AppContext:
    """
    Everything a command needs besides its own arguments.

    Attributes:
        cfg: Loaded configuration
        cfg_path: Path the configuration was loaded from
        json_output: Emit JSON instead of human text
        base_url: Backend base URL (config or --base-url)
        use_browser: Log in through a browser window instead of stored credentials
        stdin/stdout/stderr: Streams used for prompts and results
    """
    cfg: Config
    cfg_path: Path
    json_output: bool
    base_url: str
    use_browser: bool
    stdin: TextIO
    stdout: TextIO
    stderr: TextIO

    @property
    def timezone(self) -> tzinfo:
        return resolve_timezone(self.cfg)

    def is_interactive(self) -> bool:
        return _isatty(self.stdin) and _isatty(self.stdout)

    def emit(self, human: str, payload: Dict[str, Any]):
        write(self.stdout, self.json_output, human, payload)


def _isatty(stream) -> bool:
    return hasattr(stream, 'isatty') and stream.isatty()


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    Returns:
        Configured ArgumentParser
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--json',
        action='store_true',
        help='Emit machine-readable JSON output'
    )
    common.add_argument(
        '--base-url',
        metavar='URL',
        help='Override API base URL'
    )
    common.add_argument(
        '--browser',
        action='store_true',
        help='Log in through a browser window (for SSO/MFA accounts)'
    )
    common.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging (debug level)'
    )

    parser = argparse.ArgumentParser(
        prog='hours',
        description='Log work hours to the Pro Unlimited worker portal',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Store credentials and verify login
  hours auth login --username me@example.com

  # Show what is logged for a day
  hours show --date 2026-02-18

  # Replace a day's entries
  hours set --date 2026-02-18 --span labor:09:00-12:00 --span lunch:12:00-12:30 --span labor:12:30-17:00

  # Preview without saving
  hours set --date today --span labor:09:00-17:00 --dry-run

  # Mark a day as not worked
  hours mark-dnw --date 2026-02-19 --yes
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # auth
    auth_parser = subparsers.add_parser('auth', help='Manage authentication credentials')
    auth_sub = auth_parser.add_subparsers(dest='auth_command')

    login_parser = auth_sub.add_parser(
        'login', parents=[common],
        help='Store credentials in keychain and verify login'
    )
    login_parser.add_argument('--username', metavar='USER', help='Account username (email)')
    login_parser.add_argument(
        '--password',
        metavar='PASSWORD',
        help='Account password (non-interactive; avoid shell history leaks)'
    )
    login_parser.add_argument(
        '--password-stdin',
        action='store_true',
        help='Read account password from stdin'
    )
    login_parser.set_defaults(func=cmd_auth_login)

    status_parser = auth_sub.add_parser(
        'status', parents=[common],
        help='Check whether stored credentials can authenticate'
    )
    status_parser.set_defaults(func=cmd_auth_status)

    logout_parser = auth_sub.add_parser(
        'logout', parents=[common],
        help='Delete stored credentials from keychain'
    )
    logout_parser.set_defaults(func=cmd_auth_logout)

    # engagement
    engagement_parser = subparsers.add_parser('engagement', help='Engagement discovery commands')
    engagement_sub = engagement_parser.add_subparsers(dest='engagement_command')
    list_parser = engagement_sub.add_parser('list', parents=[common], help='List available engagements')
    list_parser.set_defaults(func=cmd_engagement_list)

    # config
    config_parser = subparsers.add_parser('config', help='Manage CLI config')
    config_sub = config_parser.add_subparsers(dest='config_command')

    default_parser = config_sub.add_parser(
        'set-default-engagement', parents=[common],
        help='Set default engagement ID'
    )
    default_parser.add_argument('--id', type=int, required=True, dest='engagement_id', help='Engagement ID')
    default_parser.set_defaults(func=cmd_config_set_default_engagement)

    tz_parser = config_sub.add_parser(
        'set-timezone', parents=[common],
        help='Set default timezone for date/week calculations'
    )
    tz_parser.add_argument('--tz', required=True, help='IANA timezone, e.g. America/Los_Angeles')
    tz_parser.set_defaults(func=cmd_config_set_timezone)

    show_config_parser = config_sub.add_parser('show', parents=[common], help='Show current config')
    show_config_parser.set_defaults(func=cmd_config_show)

    # day commands
    show_parser = subparsers.add_parser('show', parents=[common], help='Show logged spans for a day')
    _add_day_arguments(show_parser)
    show_parser.set_defaults(func=cmd_show)

    set_parser = subparsers.add_parser('set', parents=[common], help="Replace a day's spans")
    _add_day_arguments(set_parser)
    set_parser.add_argument(
        '--span',
        action='append',
        required=True,
        metavar='TYPE:HH:MM-HH:MM',
        help='Span to log, e.g. labor:09:00-17:00 (repeatable)'
    )
    _add_write_arguments(set_parser)
    set_parser.set_defaults(func=cmd_set)

    dnw_parser = subparsers.add_parser('mark-dnw', parents=[common], help='Mark a day as did-not-work')
    _add_day_arguments(dnw_parser)
    _add_write_arguments(dnw_parser)
    dnw_parser.set_defaults(func=cmd_mark_dnw)

    return parser


def _add_day_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('--date', required=True, metavar='YYYY-MM-DD', help="Target date (or 'today')")
    parser.add_argument('--engagement', type=int, default=0, metavar='ID', help='Engagement ID override')


def _add_write_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate and show the change without saving'
    )
    parser.add_argument(
        '--yes',
        action='store_true',
        help='Skip interactive overwrite confirmation'
    )


# ---------- shared helpers ----------

def build_context(args: argparse.Namespace, stdin: TextIO, stdout: TextIO,
                  stderr: TextIO) -> AppContext:
    """Load configuration and combine it with the global flags."""
    path = config_path()
    cfg = load_config(path)

    base_url = (getattr(args, 'base_url', None) or "").strip() or cfg.base_url
    return AppContext(
        cfg=cfg,
        cfg_path=path,
        json_output=bool(getattr(args, 'json', False)) or cfg.output.json_default,
        base_url=base_url.rstrip('/'),
        use_browser=bool(getattr(args, 'browser', False)),
        stdin=stdin,
        stdout=stdout,
        stderr=stderr,
    )


def prompt_line(ctx: AppContext, message: str) -> str:
    ctx.stderr.write(message)
    ctx.stderr.flush()
    return ctx.stdin.readline().strip()


def prompt_confirm(ctx: AppContext, message: str) -> bool:
    """
    Ask a yes/no question on the terminal.

    Raises:
        CommandError: If there is no terminal to ask on
    """
    if not ctx.is_interactive():
        raise CommandError("confirmation required but terminal is non-interactive; use --yes")
    answer = prompt_line(ctx, f"{message} [y/N]: ").lower()
    return answer in ('y', 'yes')


def new_authed_client(ctx: AppContext) -> Tuple[VMSClient, Dict[str, Any], requests.Session]:
    """
    Log in and return an API client bound to the logged-in session.

    Uses a browser window with --browser, stored keychain credentials otherwise.

    Returns:
        Tuple of (client, current user record, session)
    """
    logger = get_logger()
    session = new_http_session()
    authenticator = Authenticator(ctx.base_url, session, timeout=ctx.cfg.timeout)

    if ctx.use_browser:
        login_with_browser(session, ctx.base_url)
        user = authenticator.current_user()
    else:
        try:
            creds = load_credentials()
        except CredentialsError as e:
            raise CredentialsError(f"credentials unavailable, run `hours auth login` first: {e}")

        log_step(f"Logging in as {creds.username}...", logger)
        try:
            user = authenticator.login(creds.username, creds.password)
        except AuthenticationError as e:
            raise AuthenticationError(f"login failed using stored credentials: {e}")

    log_success(f"Logged in ({user.get('fullName') or user.get('email') or 'unknown user'})", logger)
    return VMSClient(ctx.base_url, session, timeout=ctx.cfg.timeout), user, session


def resolve_engagement_id(ctx: AppContext, client: VMSClient, override: int) -> int:
    """
    Pick the engagement to work on.

    Order: --engagement, configured default, interactive choice.
    """
    if override and override > 0:
        return override
    if ctx.cfg.default_engagement_id > 0:
        return ctx.cfg.default_engagement_id

    items = client.get_engagement_items(0, 200)
    if not items:
        raise CommandError("no engagements returned by API")

    if not ctx.is_interactive():
        raise CommandError(
            "no default engagement configured; set one via "
            "`hours config set-default-engagement --id <id>` or pass --engagement"
        )

    ctx.stderr.write("Select engagement:\n")
    for i, item in enumerate(items, 1):
        ctx.stderr.write(f"  {i}) {item.id}  [{item.status}]  {item.display_buyer}\n")
    line = prompt_line(ctx, "Enter number: ")

    try:
        index = int(line)
    except ValueError:
        raise CommandError("invalid selection")
    if not (1 <= index <= len(items)):
        raise CommandError("invalid selection")
    return items[index - 1].id


def confirm_overwrite(ctx: AppContext, change: DayChange, yes: bool):
    """
    Require confirmation before replacing a day that already has entries.

    Raises:
        CommandError: If the user declines or cannot be asked
    """
    if not change.had_existing or yes:
        return
    if not prompt_confirm(ctx, "Target day already has entries. Replace them?"):
        raise CommandError("aborted by user")


def _fetch_total_hours(client: VMSClient, engagement_id: int, week_start_mdy: str) -> Dict[str, float]:
    try:
        return client.get_total_hours(engagement_id, week_start_mdy)
    except APIError as e:
        log_warning(f"Could not fetch total hours: {e}")
        return {}


def resolve_password(ctx: AppContext, provided: Optional[str], from_stdin: bool) -> str:
    """
    Get the password from --password, stdin, or a hidden prompt.

    Raises:
        CommandError: If no password can be obtained
    """
    if provided is not None and from_stdin:
        raise CommandError("use only one of --password or --password-stdin")

    if from_stdin:
        value = ctx.stdin.read().rstrip("\r\n")
        if not value:
            raise CommandError("password is required")
        return value

    if provided is not None:
        if not provided:
            raise CommandError("password is required")
        return provided

    if not _isatty(ctx.stdin):
        raise CommandError(
            "password is required; pass --password or --password-stdin when non-interactive"
        )
    password = getpass.getpass("Password: ", stream=ctx.stderr)
    if not password:
        raise CommandError("password is required")
    return password


# ---------- auth ----------

def cmd_auth_login(args: argparse.Namespace, ctx: AppContext) -> int:
    """Verify a login and store the credentials that produced it."""
    logger = get_logger()

    username = (args.username or "").strip()
    if not username and not ctx.use_browser:
        username = prompt_line(ctx, "Username: ")
    if not username and not ctx.use_browser:
        raise CommandError("username is required")

    session = new_http_session()
    authenticator = Authenticator(ctx.base_url, session, timeout=ctx.cfg.timeout)

    if ctx.use_browser:
        login_with_browser(session, ctx.base_url, username=username or None)
        user = authenticator.current_user()
        stored = False
    else:
        password = resolve_password(ctx, args.password, args.password_stdin)
        log_step(f"Logging in as {username}...", logger)
        user = authenticator.login(username, password)
        save_credentials(Credentials(username=username, password=password))
        stored = True

    payload = {
        'ok': True,
        'operation': 'auth_login',
        'username': username or user.get('email'),
        'stored_credentials': stored,
        'user': user_fields(user),
    }
    ctx.emit(f"Login successful for {payload['username']}", payload)
    return 0


def cmd_auth_status(args: argparse.Namespace, ctx: AppContext) -> int:
    """Report whether the stored credentials still log in."""
    try:
        creds = load_credentials()
    except CredentialsError:
        payload = {'ok': True, 'operation': 'auth_status', 'authenticated': False}
        ctx.emit("No stored credentials", payload)
        return 0

    session = new_http_session()
    authenticator = Authenticator(ctx.base_url, session, timeout=ctx.cfg.timeout)
    try:
        user = authenticator.login(creds.username, creds.password)
    except AuthenticationError as e:
        payload = {
            'ok': True,
            'operation': 'auth_status',
            'authenticated': False,
            'reason': str(e),
        }
        ctx.emit("Stored credentials are invalid", payload)
        return 0

    payload = {
        'ok': True,
        'operation': 'auth_status',
        'authenticated': True,
        'username': creds.username,
        'user': user_fields(user),
    }
    ctx.emit("Authenticated", payload)
    return 0


def cmd_auth_logout(args: argparse.Namespace, ctx: AppContext) -> int:
    delete_credentials()
    ctx.emit("Credentials removed", {'ok': True, 'operation': 'auth_logout'})
    return 0


# ---------- engagement ----------

def cmd_engagement_list(args: argparse.Namespace, ctx: AppContext) -> int:
    client, user, _ = new_authed_client(ctx)
    items = client.get_engagement_items(0, 200)

    if items:
        lines = [f"Found {len(items)} engagement(s):"]
        lines.extend(f"- {item.id}  [{item.status}]  {item.display_buyer}" for item in items)
        human = "\n".join(lines)
    else:
        human = "No engagements returned"

    payload = {
        'ok': True,
        'operation': 'engagement_list',
        'count': len(items),
        'user_id': user.get('userId'),
        'engagements': items,
    }
    ctx.emit(human, payload)
    return 0


# ---------- config ----------

def cmd_config_set_default_engagement(args: argparse.Namespace, ctx: AppContext) -> int:
    if args.engagement_id <= 0:
        raise CommandError("--id must be > 0")

    ctx.cfg.default_engagement_id = args.engagement_id
    save_config(ctx.cfg, ctx.cfg_path)

    payload = {
        'ok': True,
        'operation': 'config_set_default_engagement',
        'default_engagement_id': args.engagement_id,
        'config_path': str(ctx.cfg_path),
    }
    ctx.emit(f"Default engagement set to {args.engagement_id}", payload)
    return 0


def cmd_config_set_timezone(args: argparse.Namespace, ctx: AppContext) -> int:
    tz_name = args.tz.strip()
    if not tz_name:
        raise CommandError("--tz is required")
    load_timezone(tz_name)

    ctx.cfg.timezone = tz_name
    save_config(ctx.cfg, ctx.cfg_path)

    payload = {
        'ok': True,
        'operation': 'config_set_timezone',
        'timezone': tz_name,
        'config_path': str(ctx.cfg_path),
    }
    ctx.emit(f"Timezone set to {tz_name}", payload)
    return 0


def cmd_config_show(args: argparse.Namespace, ctx: AppContext) -> int:
    data = ctx.cfg.to_dict()
    human = f"# {ctx.cfg_path}\n" + yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip()
    payload = {
        'ok': True,
        'operation': 'config_show',
        'config': data,
        'config_path': str(ctx.cfg_path),
    }
    ctx.emit(human, payload)
    return 0


# ---------- day commands ----------

def cmd_show(args: argparse.Namespace, ctx: AppContext) -> int:
    """Show the spans logged for one day."""
    target_date = parse_date(args.date, ctx.timezone)

    client, _, _ = new_authed_client(ctx)
    engagement_id = resolve_engagement_id(ctx, client, args.engagement)

    week_start_mdy = format_mdy(week_start_monday(target_date))
    log_step(f"Fetching week of {week_start_mdy}...")
    metadata = client.get_metadata(engagement_id, week_start_mdy)
    summary = find_day_summary(metadata, target_date)
    total_hours = _fetch_total_hours(client, engagement_id, week_start_mdy)
    hours = labor_hours(summary.spans)

    payload = {
        'ok': True,
        'operation': 'show',
        'engagement_id': engagement_id,
        'date': target_date.isoformat(),
        'week_start': week_start_mdy,
        'summary': summary,
        'labor_hours': round(hours, 2),
        'total_hours': total_hours,
    }
    human = format_day_summary_human(summary)
    if summary.spans:
        human += f"\nLabor hours: {hours:.2f}"
    ctx.emit(human, payload)
    return 0


def apply_day_change(args: argparse.Namespace, ctx: AppContext, operation: str,
                     spans: List[Span], mark_not_worked: bool) -> int:
    """
    Patch one day and save it, shared by `set` and `mark-dnw`.

    Flow: login, fetch the week, patch the day, confirm an overwrite,
    then either stop (dry run) or save with the anti-forgery token.
    """
    logger = get_logger()
    target_date = parse_date(args.date, ctx.timezone)

    client, _, session = new_authed_client(ctx)
    engagement_id = resolve_engagement_id(ctx, client, args.engagement)

    week_start_mdy = format_mdy(week_start_monday(target_date))
    log_step(f"Fetching week of {week_start_mdy}...", logger)
    metadata = client.get_metadata(engagement_id, week_start_mdy)

    patched, change = patch_day(metadata, target_date, spans, mark_not_worked)
    confirm_overwrite(ctx, change, args.yes)

    if args.dry_run:
        payload = {
            'ok': True,
            'operation': operation,
            'date': target_date.isoformat(),
            'engagement_id': engagement_id,
            'dry_run': True,
            'change': change,
            'payload': patched,
        }
        ctx.emit("Dry run complete\n" + format_day_change_human(change), payload)
        return 0

    xsrf_token = extract_xsrf_token(session, ctx.base_url)

    log_step("Saving timecard...", logger)
    result = client.save_billing_items(patched, xsrf_token)
    if result.has_errors:
        raise APIError(
            f"save API returned validation errors: "
            f"errors={result.errors!r} details={result.billing_item_detail_errors!r}"
        )
    log_success(f"Saved billing item {result.billing_item_id}", logger)

    total_hours = _fetch_total_hours(client, engagement_id, week_start_mdy)

    payload = {
        'ok': True,
        'operation': operation,
        'date': target_date.isoformat(),
        'engagement_id': engagement_id,
        'dry_run': False,
        'billing_item_id': result.billing_item_id,
        'change': change,
        'total_hours': total_hours,
    }
    if mark_not_worked:
        human = f"Marked {target_date.isoformat()} as did-not-work (billingItemId={result.billing_item_id})"
    else:
        human = (
            f"Saved {target_date.isoformat()} (billingItemId={result.billing_item_id})\n"
            + format_day_change_human(change)
        )
    ctx.emit(human, payload)
    return 0


def cmd_set(args: argparse.Namespace, ctx: AppContext) -> int:
    """Replace a day's spans."""
    spans = parse_and_validate_spans(args.span)
    return apply_day_change(args, ctx, 'set', spans, mark_not_worked=False)


def cmd_mark_dnw(args: argparse.Namespace, ctx: AppContext) -> int:
    """Mark a day as did-not-work."""
    return apply_day_change(args, ctx, 'mark_dnw', [], mark_not_worked=True)


# ---------- entry point ----------

ERROR_CODES = (
    ((DateParseError, SpanParseError, SpanValidationError), 'invalid_input'),
    ((DateNotFoundError, MetadataError), 'day_not_found'),
    ((TokenNotFoundError,), 'token_missing'),
    ((AuthenticationError, CredentialsError), 'auth_failed'),
    ((APIError,), 'api_error'),
    ((ConfigError,), 'config_error'),
    ((CommandError,), 'command_failed'),
)


def error_code(error: BaseException) -> str:
    for types, code in ERROR_CODES:
        if isinstance(error, types):
            return code
    if isinstance(error, requests.RequestException):
        return 'network_error'
    return 'error'


def _report_error(error: BaseException, json_output: bool, stdout: TextIO):
    log_error(str(error))
    if json_output:
        write(stdout, True, "", error_payload(error_code(error), str(error)))


def main(argv=None, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None,
         stderr: Optional[TextIO] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)
        stdin/stdout/stderr: Streams (default to the sys streams)

    Returns:
        Exit code
    """
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr

    parser = create_parser()
    args = parser.parse_args(argv)

    verbose = getattr(args, 'verbose', False)
    setup_logging(verbose=verbose, stream=stderr)
    logger = get_logger()

    if not getattr(args, 'func', None):
        parser.print_help(stderr)
        return 1

    json_output = bool(getattr(args, 'json', False))
    try:
        ctx = build_context(args, stdin, stdout, stderr)
        json_output = ctx.json_output
        logger.debug(f"Base URL: {ctx.base_url}")
        return args.func(args, ctx)

    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130

    except (VMSHoursError, requests.RequestException) as e:
        _report_error(e, json_output, stdout)
        return 1

    except Exception as e:
        _report_error(e, json_output, stdout)
        if verbose:
            logger.debug(traceback.format_exc())
        return 1


if __name__ == '__main__':
    sys.exit(main())
