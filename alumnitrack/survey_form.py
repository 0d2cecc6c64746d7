"""
Terminal rendering of a survey questionnaire

Walks the questions of an open `PromptController`, asks each one with the
input style that fits its kind, then drives submission: a missing required
answer re-asks that question, a failed send offers a retry with every
answer kept.
"""

from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm

from alumnitrack.survey_prompt import PromptController, SubmitOutcome, SUBMIT_SUCCESS_MESSAGE
from alumnitrack.survey_schema import Question, QuestionType


def question_heading(index: int, question: Question) -> str:
    marker = " [red]*[/red]" if question.required else ""
    return f"[bold]Q{index + 1}. {question.text}[/bold]{marker}"


def rating_display(value, scale_max: int) -> str:
    """Stars for a rating, e.g. '★★★☆☆ 3/5'"""
    try:
        filled = int(value or 0)
    except (TypeError, ValueError):
        filled = 0
    filled = max(0, min(filled, scale_max))
    stars = "★" * filled + "☆" * (scale_max - filled)
    return f"{stars} {filled}/{scale_max}" if filled else stars


def parse_selection(raw: str, options: List[str]) -> List[str]:
    """Options picked by 1-based numbers such as '1, 3'"""
    picked = []
    for part in raw.replace(" ", "").split(","):
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= len(options):
            raise ValueError(f"'{part}' is not one of 1-{len(options)}")
        option = options[int(part) - 1]
        if option not in picked:
            picked.append(option)
    return picked


def can_answer(question: Question) -> bool:
    """Choice questions without options cannot be answered from the terminal"""
    return not (question.kind.is_choice and not question.options)


def _read_multiline_default(default: str) -> str:
    from prompt_toolkit import prompt as pt_prompt
    return pt_prompt("> ", multiline=True, default=default)


class SurveyForm:
    """Interactive questionnaire for the survey open in `controller`"""

    def __init__(
        self,
        controller: PromptController,
        console: Optional[Console] = None,
        read_multiline: Optional[Callable[[str], str]] = None
    ):
        self.controller = controller
        self.console = console or Console()
        self.read_multiline = read_multiline or _read_multiline_default

        self._askers: Dict[QuestionType, Callable[[Question], None]] = {
            QuestionType.SHORT_TEXT: self._ask_short_text,
            QuestionType.LONG_TEXT: self._ask_long_text,
            QuestionType.SINGLE_CHOICE: self._ask_single_choice,
            QuestionType.MULTI_CHOICE: self._ask_multi_choice,
            QuestionType.RATING: self._ask_rating,
        }

    # ==================== Askers ====================

    def _current(self, question: Question):
        return self.controller.answers.get(question.id)

    def _ask_short_text(self, question: Question) -> None:
        current = self._current(question) or ""
        value = Prompt.ask(
            "Answer",
            console=self.console,
            default=current,
            show_default=bool(current)
        )
        self.controller.set_answer(question.id, value.strip())

    def _ask_long_text(self, question: Question) -> None:
        self.console.print("[dim]Finish with Esc then Enter[/dim]")
        value = self.read_multiline(self._current(question) or "")
        self.controller.set_answer(question.id, value.strip())

    def _print_options(self, question: Question, selected: List[str]) -> None:
        for number, option in enumerate(question.options, start=1):
            mark = "[green]x[/green]" if option in selected else " "
            self.console.print(f"  [cyan]{number}.[/cyan] [{mark}] {option}")

    def _ask_single_choice(self, question: Question) -> None:
        if not question.options:
            self.console.print("[dim]No options available[/dim]")
            return
        current = self._current(question) or ""
        self._print_options(question, [current])

        default = ""
        if current in question.options:
            default = str(question.options.index(current) + 1)
        choices = [str(n) for n in range(1, len(question.options) + 1)]

        answer = Prompt.ask(
            "Choose",
            console=self.console,
            choices=choices,
            default=default,
            show_choices=False,
            show_default=bool(default)
        )
        if answer:
            self.controller.set_answer(question.id, question.options[int(answer) - 1])

    def _ask_multi_choice(self, question: Question) -> None:
        if not question.options:
            self.console.print("[dim]No options available[/dim]")
            return
        while True:
            selected = self._current(question) or []
            self._print_options(question, selected)
            raw = Prompt.ask(
                "Toggle options (e.g. 1,3), Enter when done",
                console=self.console,
                default="",
                show_default=False
            )
            if not raw.strip():
                return
            try:
                picked = parse_selection(raw, list(question.options))
            except ValueError as e:
                self.console.print(f"[red]{e}[/red]")
                continue
            for option in picked:
                self.controller.toggle_option(question.id, option)

    def _ask_rating(self, question: Question) -> None:
        scale_max = question.scale_max
        while True:
            current = self._current(question)
            raw = Prompt.ask(
                f"Rating 1-{scale_max}",
                console=self.console,
                default=str(current) if current else "",
                show_default=bool(current)
            )
            if not raw.strip():
                return
            if raw.strip().isdigit() and 1 <= int(raw) <= scale_max:
                self.controller.set_answer(question.id, int(raw))
                self.console.print(f"  [yellow]{rating_display(int(raw), scale_max)}[/yellow]")
                return
            self.console.print(f"[red]Enter a number from 1 to {scale_max}[/red]")

    def ask(self, index: int, question: Question) -> None:
        self.console.print(question_heading(index, question))
        self._askers[question.kind](question)

    # ==================== Flow ====================

    def render_header(self) -> None:
        survey = self.controller.survey
        body = survey.description or "[dim]No description[/dim]"
        self.console.print(Panel(
            f"{body}\n\n[dim]{len(survey.questions)} question(s), * = required[/dim]",
            title=f"[bold cyan]{survey.title or 'Survey'}[/bold cyan]",
            border_style="cyan"
        ))

    async def run(self, confirm_start: bool = True) -> SubmitOutcome:
        """Ask every question and submit; returns the final outcome"""
        if not self.controller.is_open or self.controller.survey is None:
            return SubmitOutcome.IGNORED

        self.render_header()
        if confirm_start and not Confirm.ask("Answer this survey now?", console=self.console, default=True):
            self.controller.dismiss()
            self.console.print("[dim]Survey dismissed[/dim]")
            return SubmitOutcome.IGNORED

        questions = list(self.controller.questions)
        for index, question in enumerate(questions):
            self.ask(index, question)

        while True:
            with self.console.status("Submitting..."):
                outcome = await self.controller.submit()

            if outcome == SubmitOutcome.SUBMITTED:
                self.console.print(f"[green]✓ {SUBMIT_SUCCESS_MESSAGE}[/green]")
                return outcome

            if outcome == SubmitOutcome.INVALID:
                missing = self.controller.missing
                self.console.print(f"[red]{self.controller.error}[/red]")
                if not can_answer(missing):
                    self.controller.dismiss()
                    self.console.print(
                        "[yellow]This survey cannot be completed here: "
                        "a required question has no options. Survey dismissed.[/yellow]"
                    )
                    return outcome
                self.ask(questions.index(missing), missing)
                continue

            if outcome == SubmitOutcome.FAILED:
                self.console.print(f"[red]✗ {self.controller.error}[/red]")
                if Confirm.ask("Try again?", console=self.console, default=True):
                    continue
                self.controller.dismiss()
                return outcome

            return outcome
