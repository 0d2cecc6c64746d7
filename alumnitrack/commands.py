"""
Command Handler - implements the `alumnitrack` subcommands

Available commands:
  login / logout / status       Account session
  register / verify-otp         Account creation
  resend-otp
  profile [show|update]         Own profile
  jobs list|show|categories     Job board
  jobs create|update|approve    Job management (admin)
  jobs toggle|delete
  companies list|create         Companies
  users list|create|delete      User management (admin)
  users activate|deactivate
  stats                         Dashboard numbers (admin)
  surveys list|pending|take     Surveys
  surveys create|edit|delete    Survey management (admin)
  surveys responses
"""

import json
from argparse import Namespace
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich.table import Table

from alumnitrack.api import APIClient
from alumnitrack.auth import AuthManager
from alumnitrack.exceptions import AlumniTrackError
from alumnitrack.survey_builder import QuestionDraft, SurveyDraft, load_draft_file
from alumnitrack.survey_form import SurveyForm
from alumnitrack.survey_prompt import PromptController, HostDrivenPrompt, SubmitOutcome
from alumnitrack.survey_schema import Survey


def format_answer_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or "-"
    if value is None or value == "":
        return "-"
    return str(value)


def answer_for(response: Dict[str, Any], question_id: str) -> Any:
    """Value a response gave for one question, matched by id as text"""
    for answer in response.get("answers") or []:
        if str(answer.get("questionId")) == str(question_id):
            return answer.get("value")
    return None


def respondent_name(response: Dict[str, Any]) -> str:
    user = response.get("userId")
    if isinstance(user, dict):
        return user.get("name") or user.get("email") or "Anonymous"
    return "Anonymous"


def _id_of(item: Dict[str, Any]) -> str:
    return str(item.get("_id") or item.get("id") or "")


def parse_assignments(pairs: Optional[List[str]]) -> Dict[str, str]:
    """`["city=Pune", "bio=Hi"]` -> `{"city": "Pune", "bio": "Hi"}`"""
    fields = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise AlumniTrackError(f"Expected FIELD=VALUE, got {pair!r}", code="INVALID_ARGUMENT")
        fields[key.strip()] = value
    return fields


def read_json_object(path: str) -> Dict[str, Any]:
    file_path = Path(path)
    try:
        with open(file_path, 'r') as f:
            data = json.load(f)
    except OSError as e:
        raise AlumniTrackError(f"Cannot read {file_path}: {e}", code="INVALID_ARGUMENT")
    except json.JSONDecodeError as e:
        raise AlumniTrackError(f"Invalid JSON in {file_path}: {e}", code="INVALID_ARGUMENT")
    if not isinstance(data, dict):
        raise AlumniTrackError(f"{file_path} must contain a JSON object", code="INVALID_ARGUMENT")
    return data


def job_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shape a job definition the way the API stores it: lower-case jobType,
    a single `category` becomes `categories`, empty fields are left out.
    """
    payload = dict(data)
    if payload.get("jobType"):
        payload["jobType"] = str(payload["jobType"]).lower()
    category = payload.pop("category", None)
    if category and not payload.get("categories"):
        payload["categories"] = [category]
    return {key: value for key, value in payload.items() if value not in (None, "")}


def uploaded_url(result: Any) -> str:
    """Logo upload returns either the URL or {"url": ...}"""
    if isinstance(result, dict):
        return str(result.get("url") or "")
    return str(result or "")


class CommandHandler:
    """Runs one parsed command against the API"""

    def __init__(self, api: APIClient, auth: AuthManager, console: Console):
        self.api = api
        self.auth = auth
        self.console = console

        self.commands: Dict[str, Callable[[Namespace], Awaitable[int]]] = {
            "login": self.cmd_login,
            "logout": self.cmd_logout,
            "status": self.cmd_status,
            "whoami": self.cmd_status,
            "register": self.cmd_register,
            "verify-otp": self.cmd_verify_otp,
            "resend-otp": self.cmd_resend_otp,
            "profile": self.cmd_profile,
            "jobs": self.cmd_jobs,
            "companies": self.cmd_companies,
            "users": self.cmd_users,
            "stats": self.cmd_stats,
            "surveys": self.cmd_surveys,
        }

    async def handle(self, args: Namespace) -> int:
        handler = self.commands.get(args.command)
        if handler is None:
            self.console.print(f"[red]Unknown command: {args.command}[/red]")
            return 2
        return await handler(args)

    def _require_auth(self) -> bool:
        if not self.auth.is_authenticated():
            self.console.print("[yellow]This action requires authentication[/yellow]")
            self.console.print("[dim]Use 'alumnitrack login' first[/dim]")
            return False
        return True

    def _require_admin(self) -> bool:
        if not self._require_auth():
            return False
        if not self.auth.is_admin():
            self.console.print("[red]Admin access required[/red]")
            return False
        return True

    # ==================== Account ====================

    async def cmd_login(self, args: Namespace) -> int:
        email = args.email or Prompt.ask("Email", console=self.console)
        password = args.password or Prompt.ask("Password", password=True, console=self.console)
        credentials = await self.auth.login(email, password)
        self.console.print(f"[green]✓ Logged in as {credentials.name}[/green]")
        return 0

    async def cmd_logout(self, args: Namespace) -> int:
        self.auth.logout()
        self.console.print("[green]Logged out successfully[/green]")
        return 0

    async def cmd_status(self, args: Namespace) -> int:
        if not self.auth.is_authenticated():
            self.console.print(Panel(
                "[red]Not authenticated[/red]\n\nPlease login using: [cyan]alumnitrack login[/cyan]",
                title="Authentication Status",
                border_style="red"
            ))
            return 1

        user = self.auth.user or {}
        self.console.print(Panel(
            f"[green]Authenticated[/green]\n\n"
            f"[bold]Name:[/bold] {user.get('name') or 'Not set'}\n"
            f"[bold]Email:[/bold] {user.get('email') or 'Not set'}\n"
            f"[bold]Role:[/bold] {self.auth.role or 'unknown'}",
            title="Authentication Status",
            border_style="green"
        ))
        return 0

    async def cmd_register(self, args: Namespace) -> int:
        name = args.name or Prompt.ask("Full name", console=self.console)
        email = args.email or Prompt.ask("Email", console=self.console)
        password = Prompt.ask("Password", password=True, console=self.console)
        await self.auth.register(name=name, email=email, password=password, role=args.role)
        self.console.print("[green]Account created.[/green] Check your email for the verification code:")
        self.console.print(f"  [cyan]alumnitrack verify-otp {email} CODE[/cyan]")
        return 0

    async def cmd_verify_otp(self, args: Namespace) -> int:
        credentials = await self.auth.verify_otp(args.email, args.otp)
        if credentials:
            self.console.print(f"[green]✓ Verified, logged in as {credentials.name}[/green]")
        else:
            self.console.print("[green]✓ Verified.[/green] You can now login.")
        return 0

    async def cmd_resend_otp(self, args: Namespace) -> int:
        await self.auth.resend_otp(args.email)
        self.console.print(f"[green]A new code was sent to {args.email}[/green]")
        return 0

    async def cmd_profile(self, args: Namespace) -> int:
        if not self._require_auth():
            return 1
        if getattr(args, "action", None) == "update":
            changes = parse_assignments(args.fields)
            updated = await self.api.update_profile(changes)
            profile = updated.get("profile", updated) if isinstance(updated, dict) else {}
            self.console.print(f"[green]✓ Updated {', '.join(changes)}[/green]")
        else:
            profile = await self.api.get_profile()
        table = Table(title="Profile", show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for key, value in (profile or {}).items():
            if key.startswith("_") or isinstance(value, (dict, list)):
                continue
            table.add_row(key, format_answer_value(value))
        self.console.print(table)
        return 0

    # ==================== Jobs & companies ====================

    async def cmd_jobs(self, args: Namespace) -> int:
        if not self._require_auth():
            return 1
        action = args.action

        if action == "categories":
            for category in await self.api.list_job_categories() or []:
                self.console.print(f"  • {category}")
            return 0

        if action == "show":
            job = await self.api.get_job(args.id)
            company = job.get("company") if isinstance(job.get("company"), dict) else {}
            self.console.print(Panel(
                f"[bold]{job.get('title', '')}[/bold]\n"
                f"{company.get('name', '')} · {job.get('location', '')} · {job.get('jobType', '')}\n\n"
                f"{job.get('description', '')}",
                title=f"Job {_id_of(job)}",
                border_style="cyan"
            ))
            return 0

        if action in ("create", "update", "approve", "toggle"):
            if not self._require_admin():
                return 1
            return await self._jobs_write(args)

        if action == "delete":
            if not self._require_admin():
                return 1
            if not Confirm.ask(f"Delete job {args.id}?", console=self.console, default=False):
                return 0
            await self.api.delete_job(args.id)
            self.console.print(f"[green]Deleted job {args.id}[/green]")
            return 0

        jobs = await self.api.list_jobs(
            q=args.query,
            jobType=args.job_type,
            category=args.category,
            location=args.location,
            status="active",
            approvedOnly=True,
        )
        table = Table(title="Jobs", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Title")
        table.add_column("Company")
        table.add_column("Type")
        table.add_column("Location")
        for job in jobs or []:
            company = job.get("company")
            company_name = company.get("name", "") if isinstance(company, dict) else str(company or "")
            table.add_row(
                _id_of(job),
                job.get("title", ""),
                company_name,
                job.get("jobType", ""),
                job.get("location", ""),
            )
        self.console.print(table)
        if not jobs:
            self.console.print("[dim]No jobs match. Try clearing filters.[/dim]")
        return 0

    async def _jobs_write(self, args: Namespace) -> int:
        action = args.action

        if action == "create":
            created = await self.api.create_job(job_payload(read_json_object(args.file)))
            job = created.get("job", created) if isinstance(created, dict) else {}
            self.console.print(f"[green]✓ Job created {_id_of(job)}[/green]")
            return 0

        if action == "update":
            await self.api.update_job(args.id, job_payload(read_json_object(args.file)))
            self.console.print(f"[green]✓ Job {args.id} updated[/green]")
            return 0

        if action == "approve":
            approved = not args.revoke
            await self.api.update_job(args.id, {"isApproved": approved})
            self.console.print(f"[green]{'Job approved' if approved else 'Approval removed'}[/green]")
            return 0

        job = await self.api.get_job(args.id)
        status = "inactive" if (job.get("status") or "active") == "active" else "active"
        await self.api.update_job(args.id, {"status": status})
        self.console.print(
            f"[green]{'Job reactivated' if status == 'active' else 'Job set to inactive'}[/green]"
        )
        return 0

    async def cmd_companies(self, args: Namespace) -> int:
        if not self._require_auth():
            return 1
        if args.action == "create":
            return await self._companies_create(args)

        companies = await self.api.list_companies()
        table = Table(title="Companies", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Industry")
        table.add_column("Website")
        for company in companies or []:
            table.add_row(
                _id_of(company),
                company.get("name", ""),
                company.get("industry", ""),
                company.get("website", ""),
            )
        self.console.print(table)
        return 0

    async def _companies_create(self, args: Namespace) -> int:
        if not self._require_admin():
            return 1
        if not args.name.strip():
            self.console.print("[red]Company name is required.[/red]")
            return 1

        logo_url = ""
        if args.logo:
            logo_url = uploaded_url(await self.api.upload_company_logo(args.logo))

        created = await self.api.create_company({
            "name": args.name.strip(),
            "location": args.location.strip(),
            "website": args.website.strip(),
            "email": args.email.strip(),
            "phone": args.phone.strip(),
            "description": args.description.strip(),
            "logoUrl": logo_url,
        })
        company = created.get("company", created) if isinstance(created, dict) else {}
        self.console.print(f"[green]✓ Company added {_id_of(company)}[/green]")
        return 0

    # ==================== Admin ====================

    async def cmd_users(self, args: Namespace) -> int:
        if not self._require_admin():
            return 1

        if args.action == "delete":
            if not Confirm.ask(f"Delete user {args.id}?", console=self.console, default=False):
                return 0
            await self.api.delete_user(args.id)
            self.console.print(f"[green]Deleted user {args.id}[/green]")
            return 0

        if args.action in ("activate", "deactivate"):
            active = args.action == "activate"
            await self.api.update_user(args.id, {"isActive": active})
            self.console.print(f"[green]User {args.id} {'activated' if active else 'deactivated'}[/green]")
            return 0

        if args.action == "create":
            return await self._users_create(args)

        users = await self.api.list_users(role=args.role)
        table = Table(title="Users", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Email")
        table.add_column("Role")
        for user in users or []:
            table.add_row(_id_of(user), user.get("name", ""), user.get("email", ""), user.get("role", ""))
        self.console.print(table)
        return 0

    async def _users_create(self, args: Namespace) -> int:
        password = Prompt.ask("Password", password=True, console=self.console)
        role = args.role
        user = {
            "userType": role,
            "firstName": args.first_name.strip(),
            "lastName": args.last_name.strip(),
            "email": args.email.strip().lower(),
            "password": password,
            "studentId": args.student_id if role in ("student", "alumni") else None,
            "course": args.course if role == "student" else None,
            "yearLevel": args.year_level if role == "student" else None,
            "phone": (args.phone or "").strip() or None,
            "status": "active",
            "isEmailVerified": True,
            "isActive": True,
        }
        created = await self.api.create_user({k: v for k, v in user.items() if v is not None})
        self.console.print(f"[green]✓ User created {_id_of(created or {})}[/green]")
        return 0

    async def cmd_stats(self, args: Namespace) -> int:
        if not self._require_admin():
            return 1
        stats = await self.api.get_stats()
        table = Table(title="Dashboard", show_header=False)
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        for key, value in (stats or {}).items():
            if not isinstance(value, (dict, list)):
                table.add_row(key, str(value))
        self.console.print(table)
        return 0

    # ==================== Surveys ====================

    async def cmd_surveys(self, args: Namespace) -> int:
        if not self._require_auth():
            return 1
        actions = {
            "list": self._surveys_list,
            "pending": self._surveys_pending,
            "take": self._surveys_take,
            "create": self._surveys_create,
            "edit": self._surveys_edit,
            "delete": self._surveys_delete,
            "responses": self._surveys_responses,
        }
        return await actions[args.action](args)

    async def _surveys_list(self, args: Namespace) -> int:
        if not self._require_admin():
            return 1
        surveys = await self.api.list_surveys()
        table = Table(title="Surveys", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Title")
        table.add_column("Audience")
        table.add_column("Status")
        table.add_column("Questions", justify="right")
        for survey in surveys or []:
            questions = survey.get("questions")
            table.add_row(
                _id_of(survey),
                survey.get("title", ""),
                survey.get("audience", "all"),
                survey.get("status", "draft"),
                str(len(questions)) if isinstance(questions, list) else "-",
            )
        self.console.print(table)
        return 0

    async def _surveys_pending(self, args: Namespace) -> int:
        pending = await self.api.eligible_surveys()
        pending = pending if isinstance(pending, list) else []
        if not pending:
            self.console.print("[dim]No surveys to answer[/dim]")
            return 0
        plural = "s" if len(pending) > 1 else ""
        self.console.print(f"[bold]You have {len(pending)} survey{plural} to answer[/bold]")
        for survey in pending:
            self.console.print(
                f"  • {survey.get('title') or 'Untitled survey'} "
                f"[dim](alumnitrack surveys take {_id_of(survey)})[/dim]"
            )
        return 0

    async def _surveys_take(self, args: Namespace) -> int:
        data = await self.api.get_survey(args.id)
        controller = PromptController(self.api.submit_survey_response)
        prompt = HostDrivenPrompt(controller)
        prompt.show(data)
        outcome = await SurveyForm(controller, self.console).run(confirm_start=False)
        return 0 if outcome == SubmitOutcome.SUBMITTED else 1

    async def _surveys_create(self, args: Namespace) -> int:
        if not self._require_admin():
            return 1
        draft = load_draft_file(args.file)
        if args.activate:
            draft.status = "active"
        created = await self.api.create_survey(draft.to_payload())
        self.console.print(f"[green]Created survey {_id_of(created or {})}[/green] ({draft.status})")
        return 0

    async def _surveys_edit(self, args: Namespace) -> int:
        if not self._require_admin():
            return 1
        if args.file:
            draft = load_draft_file(args.file)
        else:
            draft = SurveyDraft.from_survey(await self.api.get_survey(args.id))

        for field_name in ("title", "description", "audience", "status"):
            value = getattr(args, field_name)
            if value is not None:
                setattr(draft, field_name, value)

        for number in args.require:
            self._check_question_number(draft, number)
            draft.update_question(number - 1, required=True)
        for number in sorted(set(args.remove_question), reverse=True):
            self._check_question_number(draft, number)
            draft.remove_question(number - 1)
        if args.add_question:
            draft.add_question(QuestionDraft(
                text=args.add_question,
                type=args.question_type,
                required=args.required,
                options_text="\n".join(args.options.split(",")),
            ))

        draft.validate()
        await self.api.update_survey(args.id, draft.to_payload())
        self.console.print(
            f"[green]✓ Survey {args.id} saved[/green] ({draft.status}, {len(draft.questions)} question(s))"
        )
        return 0

    @staticmethod
    def _check_question_number(draft: SurveyDraft, number: int) -> None:
        if not 1 <= number <= len(draft.questions):
            raise AlumniTrackError(
                f"Question {number} does not exist (survey has {len(draft.questions)})",
                code="INVALID_ARGUMENT"
            )

    async def _surveys_delete(self, args: Namespace) -> int:
        if not self._require_admin():
            return 1
        if not Confirm.ask(f"Delete survey {args.id}?", console=self.console, default=False):
            return 0
        await self.api.delete_survey(args.id)
        self.console.print(f"[green]Deleted survey {args.id}[/green]")
        return 0

    async def _surveys_responses(self, args: Namespace) -> int:
        if not self._require_admin():
            return 1
        survey = Survey.from_dict(await self.api.get_survey(args.id))
        responses = await self.api.list_survey_responses(args.id, role=args.role)
        self.render_responses(survey, responses if isinstance(responses, list) else [])
        return 0

    def render_responses(self, survey: Survey, responses: List[Dict[str, Any]]) -> None:
        self.console.print(f"[bold]Responses: {survey.title or 'Survey'}[/bold]")
        if not responses:
            self.console.print("[dim]No responses yet[/dim]")
            return
        for response in responses:
            table = Table(
                title=f"{respondent_name(response)} • {response.get('role', '')} • {response.get('createdAt', '')}",
                show_header=False,
                title_justify="left"
            )
            table.add_column("Question", style="bold")
            table.add_column("Answer")
            for question in survey.questions:
                table.add_row(question.text, format_answer_value(answer_for(response, question.id)))
            self.console.print(table)
