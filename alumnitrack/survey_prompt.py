"""
Survey Prompt Controller

State machine behind the survey questionnaire:

    CLOSED --open()--> OPEN --submit() ok--> SUBMITTING --server ok--> CLOSED
                        ^                        |
                        +------ server error ----+

`dismiss()` closes from OPEN but not while a submission is in flight.
The controller does not know who drives it: `HostDrivenPrompt` lets a host
open and close it, `AutoPrompt` opens it from the eligibility prober.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from alumnitrack.answers import AnswerStore
from alumnitrack.eligibility import EligibilityProber
from alumnitrack.exceptions import AlumniTrackError
from alumnitrack.survey_schema import Question, Survey
from alumnitrack.validation import first_unmet_requirement, missing_answer_message

logger = logging.getLogger(__name__)

SUBMIT_SUCCESS_MESSAGE = "Thanks! Your response has been submitted."
SUBMIT_FALLBACK_MESSAGE = "Submission failed"

SubmitFn = Callable[[str, Dict[str, Any]], Awaitable[Any]]
Notifier = Callable[[str, str], None]


class PromptState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    SUBMITTING = "submitting"


class SubmitOutcome(str, Enum):
    SUBMITTED = "submitted"
    INVALID = "invalid"     # a required question is unanswered
    FAILED = "failed"       # server or network rejected the submission
    STALE = "stale"         # prompt closed or replaced while in flight
    IGNORED = "ignored"     # nothing open to submit


def failure_message(error: Exception) -> str:
    """User-facing text for a failed submission"""
    if isinstance(error, AlumniTrackError) and error.message:
        return error.message
    return str(error) or SUBMIT_FALLBACK_MESSAGE


def _log_notify(level: str, message: str) -> None:
    logger.log(logging.ERROR if level == "error" else logging.INFO, message)


class PromptController:
    """Open/closed state, current survey, answers and the submit path"""

    def __init__(
        self,
        submit_fn: SubmitFn,
        on_submitted: Optional[Callable[[], Any]] = None,
        on_close: Optional[Callable[[], Any]] = None,
        notify: Optional[Notifier] = None
    ):
        self.submit_fn = submit_fn
        self.on_submitted = on_submitted
        self.on_close = on_close
        self.notify = notify or _log_notify

        self.state = PromptState.CLOSED
        self.survey: Optional[Survey] = None
        self.answers = AnswerStore()
        self.error: Optional[str] = None
        self.missing: Optional[Question] = None

        # Bumped on every open/close so late responses can be recognised
        self.generation = 0

    @property
    def is_open(self) -> bool:
        return self.state != PromptState.CLOSED

    @property
    def saving(self) -> bool:
        return self.state == PromptState.SUBMITTING

    @property
    def questions(self) -> List[Question]:
        return self.survey.questions if self.survey else []

    def open(self, survey: Union[Survey, Dict[str, Any]]) -> None:
        """Show `survey` with fresh answers, replacing whatever was open"""
        previous_id = self.survey.id if self.survey is not None else None
        self.survey = Survey.coerce(survey)
        if previous_id == self.survey.id:
            # Re-showing the open survey keeps answers unless its questions changed
            self.answers.load(self.survey.questions)
        else:
            self.answers.reset(self.survey.questions)
        self.state = PromptState.OPEN
        self.error = None
        self.missing = None
        self.generation += 1
        logger.debug("Opened survey %s", self.survey.id)

    def dismiss(self) -> bool:
        """Close without submitting; refused while submitting"""
        if self.state != PromptState.OPEN:
            return False
        self._close()
        return True

    def _close(self) -> None:
        self.state = PromptState.CLOSED
        self.survey = None
        self.answers.clear()
        self.error = None
        self.missing = None
        self.generation += 1
        if self.on_close is not None:
            self.on_close()

    # ==================== Answers ====================

    def _require_question(self, question_id: str) -> None:
        if self.state != PromptState.OPEN:
            raise RuntimeError("Answers can only change while the prompt is open")
        if question_id not in self.answers:
            raise KeyError(f"Unknown question: {question_id}")

    def set_answer(self, question_id: str, value: Any) -> None:
        self._require_question(question_id)
        self.answers.set_answer(question_id, value)

    def toggle_option(self, question_id: str, option: str) -> List[str]:
        self._require_question(question_id)
        return self.answers.toggle_option(question_id, option)

    def unmet_requirement(self) -> Optional[Question]:
        return first_unmet_requirement(self.questions, self.answers.snapshot())

    def build_payload(self) -> Dict[str, Any]:
        """Answers in question order, each with its type and label"""
        answers = self.answers.snapshot()
        return {
            "answers": [
                {
                    "questionId": q.id,
                    "type": q.type,
                    "label": q.text,
                    "value": answers.get(q.id),
                }
                for q in self.questions
            ]
        }

    # ==================== Submit ====================

    def _is_stale(self, generation: int, survey_id: str) -> bool:
        return (
            generation != self.generation
            or self.survey is None
            or self.survey.id != survey_id
        )

    async def submit(self) -> SubmitOutcome:
        """Validate, send and close; answers survive a failed send"""
        if self.state != PromptState.OPEN or self.survey is None:
            return SubmitOutcome.IGNORED

        missing = self.unmet_requirement()
        if missing is not None:
            self.missing = missing
            self.error = missing_answer_message(missing)
            self.notify("error", self.error)
            return SubmitOutcome.INVALID

        survey_id = self.survey.id
        generation = self.generation
        payload = self.build_payload()

        self.state = PromptState.SUBMITTING
        self.error = None
        self.missing = None

        try:
            await self.submit_fn(survey_id, payload)
        except Exception as e:
            if self._is_stale(generation, survey_id):
                logger.debug("Dropping stale submit failure for %s", survey_id)
                return SubmitOutcome.STALE
            self.state = PromptState.OPEN
            self.error = failure_message(e)
            logger.warning("Survey %s submission failed: %s", survey_id, self.error)
            self.notify("error", self.error)
            return SubmitOutcome.FAILED

        if self._is_stale(generation, survey_id):
            logger.debug("Dropping stale submit result for %s", survey_id)
            return SubmitOutcome.STALE

        logger.info("Submitted response to survey %s", survey_id)
        self.notify("success", SUBMIT_SUCCESS_MESSAGE)
        self._close()
        if self.on_submitted is not None:
            self.on_submitted()
        return SubmitOutcome.SUBMITTED


class HostDrivenPrompt:
    """Adapter for hosts that decide themselves which survey is shown"""

    def __init__(self, controller: PromptController):
        self.controller = controller

    def show(self, survey: Union[Survey, Dict[str, Any]]) -> None:
        self.controller.open(survey)

    def hide(self) -> bool:
        return self.controller.dismiss()

    async def submit(self) -> SubmitOutcome:
        return await self.controller.submit()


class AutoPrompt:
    """Adapter that opens the controller on the first eligible survey"""

    def __init__(
        self,
        controller: PromptController,
        prober: EligibilityProber,
        fetch_survey: Callable[[str], Awaitable[Dict[str, Any]]]
    ):
        self.controller = controller
        self.prober = prober
        self.fetch_survey = fetch_survey

    async def run(self) -> bool:
        """Probe once; returns True when a survey was opened"""
        stub = await self.prober.probe()
        if stub is None:
            return False

        generation = self.controller.generation
        try:
            data = await self.fetch_survey(stub.id)
        except Exception as e:
            logger.warning("Could not load survey %s: %s", stub.id, e)
            return False

        if self.controller.generation != generation or self.controller.is_open:
            logger.debug("Prompt changed while loading survey %s, skipping", stub.id)
            return False

        survey = Survey.coerce(data)
        if not survey.id:
            survey.id = stub.id
        self.controller.open(survey)
        return True
