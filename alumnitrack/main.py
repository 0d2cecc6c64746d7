#!/usr/bin/env python3
"""
AlumniTrack CLI - Main Entry Point

Usage:
    alumnitrack login                     # Login to your account
    alumnitrack jobs list -q python       # Search the job board
    alumnitrack surveys pending           # Surveys waiting for you
    alumnitrack surveys take SURVEY_ID    # Answer a survey
    alumnitrack --help                    # Show help

Students and alumni are offered at most one new survey when a command
starts (checked at most once per throttle window).
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, List

from rich.console import Console

from alumnitrack import __version__
from alumnitrack.api import APIClient
from alumnitrack.auth import AuthManager
from alumnitrack.commands import CommandHandler
from alumnitrack.config import ClientConfig
from alumnitrack.eligibility import EligibilityProber
from alumnitrack.exceptions import AlumniTrackError, APIConnectionError
from alumnitrack.logging_config import setup_logging
from alumnitrack.storage import JSONFileStore, PromptHistory
from alumnitrack.survey_form import SurveyForm
from alumnitrack.survey_prompt import AutoPrompt, PromptController

logger = logging.getLogger(__name__)


# Commands that never trigger the automatic survey prompt
NO_PROMPT_COMMANDS = {"login", "logout", "register", "verify-otp", "resend-otp", "surveys"}


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="alumnitrack",
        description="AlumniTrack - college job board and alumni tracking from the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  alumnitrack login                           Login to your account
  alumnitrack status                          Check login status
  alumnitrack jobs list -q "data analyst"     Search active jobs
  alumnitrack surveys pending                 List surveys to answer
  alumnitrack surveys take 64f0c2...          Answer a survey
  alumnitrack surveys create survey.json      Create a survey (admin)
  alumnitrack surveys edit ID --require 2      Make question 2 required (admin)
  alumnitrack profile update --set city=Pune  Update your profile
        """
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--server-url", type=str, help="API base URL (overrides config)")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--no-survey-prompt",
        action="store_true",
        help="Do not check for surveys before running the command"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Account
    login_parser = subparsers.add_parser("login", help="Login to AlumniTrack")
    login_parser.add_argument("--email", "-e", help="Account email")
    login_parser.add_argument("--password", "-p", help="Account password (prompted if omitted)")

    subparsers.add_parser("logout", help="Logout from AlumniTrack")
    subparsers.add_parser("status", help="Show authentication status")
    subparsers.add_parser("whoami", help="Show current user info")

    register_parser = subparsers.add_parser("register", help="Create an account")
    register_parser.add_argument("--name", help="Full name")
    register_parser.add_argument("--email", help="Email")
    register_parser.add_argument("--role", choices=["student", "alumni"], default="student")

    otp_parser = subparsers.add_parser("verify-otp", help="Verify the emailed code")
    otp_parser.add_argument("email")
    otp_parser.add_argument("otp")

    resend_parser = subparsers.add_parser("resend-otp", help="Send a new verification code")
    resend_parser.add_argument("email")

    profile_parser = subparsers.add_parser("profile", help="Show or update your profile")
    profile_sub = profile_parser.add_subparsers(dest="action")
    profile_sub.add_parser("show", help="Show your profile")
    profile_update = profile_sub.add_parser("update", help="Update profile fields")
    profile_update.add_argument(
        "--set", dest="fields", action="append", required=True, metavar="FIELD=VALUE",
        help="Field to change, repeatable"
    )

    # Jobs
    jobs_parser = subparsers.add_parser("jobs", help="Browse the job board")
    jobs_sub = jobs_parser.add_subparsers(dest="action", required=True)
    jobs_list = jobs_sub.add_parser("list", help="List active jobs")
    jobs_list.add_argument("-q", "--query", help="Search text")
    jobs_list.add_argument("--type", dest="job_type", help="Job type (full-time, internship, ...)")
    jobs_list.add_argument("--category", help="Category")
    jobs_list.add_argument("--location", help="Location")
    jobs_show = jobs_sub.add_parser("show", help="Show a job")
    jobs_show.add_argument("id")
    jobs_delete = jobs_sub.add_parser("delete", help="Delete a job (admin)")
    jobs_delete.add_argument("id")
    jobs_sub.add_parser("categories", help="List job categories")
    jobs_create = jobs_sub.add_parser("create", help="Create a job from a JSON file (admin)")
    jobs_create.add_argument("file")
    jobs_update = jobs_sub.add_parser("update", help="Update a job from a JSON file (admin)")
    jobs_update.add_argument("id")
    jobs_update.add_argument("file")
    jobs_approve = jobs_sub.add_parser("approve", help="Approve a job posting (admin)")
    jobs_approve.add_argument("id")
    jobs_approve.add_argument("--revoke", action="store_true", help="Remove the approval instead")
    jobs_toggle = jobs_sub.add_parser("toggle", help="Switch a job between active and inactive (admin)")
    jobs_toggle.add_argument("id")

    # Companies
    companies_parser = subparsers.add_parser("companies", help="Companies")
    companies_sub = companies_parser.add_subparsers(dest="action", required=True)
    companies_sub.add_parser("list", help="List companies")
    companies_create = companies_sub.add_parser("create", help="Add a company (admin)")
    companies_create.add_argument("name")
    companies_create.add_argument("--location", default="")
    companies_create.add_argument("--website", default="")
    companies_create.add_argument("--email", default="")
    companies_create.add_argument("--phone", default="")
    companies_create.add_argument("--description", default="")
    companies_create.add_argument("--logo", help="Logo image to upload")

    # Users
    users_parser = subparsers.add_parser("users", help="Manage users (admin)")
    users_sub = users_parser.add_subparsers(dest="action", required=True)
    users_list = users_sub.add_parser("list", help="List users")
    users_list.add_argument("--role", choices=["admin", "student", "alumni", "employer"])
    users_delete = users_sub.add_parser("delete", help="Delete a user")
    users_delete.add_argument("id")
    users_create = users_sub.add_parser("create", help="Create a user")
    users_create.add_argument("email")
    users_create.add_argument("--role", choices=["student", "alumni", "admin"], default="student")
    users_create.add_argument("--first-name", required=True)
    users_create.add_argument("--last-name", required=True)
    users_create.add_argument("--student-id")
    users_create.add_argument("--course")
    users_create.add_argument("--year-level")
    users_create.add_argument("--phone")
    users_activate = users_sub.add_parser("activate", help="Activate a user")
    users_activate.add_argument("id")
    users_deactivate = users_sub.add_parser("deactivate", help="Deactivate a user")
    users_deactivate.add_argument("id")

    subparsers.add_parser("stats", help="Dashboard numbers (admin)")

    # Surveys
    surveys_parser = subparsers.add_parser("surveys", help="Surveys")
    surveys_sub = surveys_parser.add_subparsers(dest="action", required=True)
    surveys_sub.add_parser("list", help="List all surveys (admin)")
    surveys_sub.add_parser("pending", help="Surveys waiting for your answer")
    take_parser = surveys_sub.add_parser("take", help="Answer a survey")
    take_parser.add_argument("id")
    survey_create = surveys_sub.add_parser("create", help="Create a survey from a JSON file (admin)")
    survey_create.add_argument("file")
    survey_create.add_argument("--activate", action="store_true", help="Publish immediately")
    survey_edit = surveys_sub.add_parser("edit", help="Edit a survey (admin)")
    survey_edit.add_argument("id")
    survey_edit.add_argument("--file", help="Replace the survey with this JSON definition")
    survey_edit.add_argument("--title")
    survey_edit.add_argument("--description")
    survey_edit.add_argument("--audience", choices=["all", "students", "alumni"])
    survey_edit.add_argument("--status", choices=["active", "draft"])
    survey_edit.add_argument(
        "--remove-question", type=int, action="append", default=[], metavar="N",
        help="Remove question N (1-based), repeatable"
    )
    survey_edit.add_argument(
        "--require", type=int, action="append", default=[], metavar="N",
        help="Mark question N as required, repeatable"
    )
    survey_edit.add_argument("--add-question", metavar="TEXT", help="Append a question")
    survey_edit.add_argument("--type", dest="question_type", default="short_text",
                             help="Type of the added question")
    survey_edit.add_argument("--options", default="",
                             help="Comma separated options for an added choice question")
    survey_edit.add_argument("--required", action="store_true", help="The added question is required")
    delete_parser = surveys_sub.add_parser("delete", help="Delete a survey (admin)")
    delete_parser.add_argument("id")
    responses_parser = surveys_sub.add_parser("responses", help="Show survey responses (admin)")
    responses_parser.add_argument("id")
    responses_parser.add_argument("--role", choices=["student", "alumni"])

    return parser


def build_config(args: argparse.Namespace) -> ClientConfig:
    config = ClientConfig.load_default(config_file=args.config)
    if args.server_url:
        config.api_base_url = args.server_url
    if args.verbose:
        config.verbose = True
    return config


def can_prompt(console: Console) -> bool:
    """Surveys are only offered when someone can answer at the terminal"""
    return console.is_interactive and sys.stdin is not None and sys.stdin.isatty()


async def offer_survey(
    config: ClientConfig,
    api: APIClient,
    auth: AuthManager,
    console: Console
) -> None:
    """Open and run the first eligible survey, if any"""
    if not can_prompt(console):
        logger.debug("No interactive terminal, skipping survey offer")
        return

    history = PromptHistory(JSONFileStore(config.storage_file))
    prober = EligibilityProber(
        api.eligible_surveys,
        auth.session_info,
        history,
        throttle_minutes=config.survey_throttle_minutes
    )
    controller = PromptController(api.submit_survey_response)
    auto_prompt = AutoPrompt(controller, prober, api.get_survey)

    if not await auto_prompt.run():
        return
    try:
        await SurveyForm(controller, console).run()
    except EOFError:
        survey_id = controller.survey.id if controller.survey else None
        controller.dismiss()
        logger.warning("Input closed while answering survey %s", survey_id)
        console.print("\n[dim]Survey skipped[/dim]")


async def run(args: argparse.Namespace, config: ClientConfig, console: Console) -> int:
    async with APIClient(config.api_base_url, timeout=config.timeout) as api:
        auth = AuthManager(api, config.credentials_file)

        if (
            config.auto_survey_prompt
            and not args.no_survey_prompt
            and args.command not in NO_PROMPT_COMMANDS
            and auth.is_authenticated()
        ):
            await offer_survey(config, api, auth, console)

        return await CommandHandler(api, auth, console).handle(args)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    console = Console()

    try:
        config = build_config(args)
        setup_logging(config)
        exit_code = asyncio.run(run(args, config, console))
    except KeyboardInterrupt:
        console.print("\n\nGoodbye! 👋")
        sys.exit(0)
    except APIConnectionError as e:
        console.print(f"\n[red]❌ Connection Error: {e.message}[/red]")
        console.print("The AlumniTrack server is not available. Please try again later.")
        sys.exit(1)
    except AlumniTrackError as e:
        console.print(f"\n[red]❌ {e.message}[/red]")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
