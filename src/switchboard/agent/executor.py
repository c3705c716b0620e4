"""
Sequential execution of multi-step plans.

Steps run strictly in plan order.  Before each call the executor resolves placeholders against the
facts gathered so far, injects deferred content into message bodies, evaluates the step's
condition and checks required parameters; after it, facts are extracted from the result and a
forecast may veto the flight search that follows it.
"""

import logging
import re
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

from switchboard.agent.context import ExecutionContext
from switchboard.agent.extractors import (
    extract_city,
    extract_db_rows,
    extract_meeting_ids,
    extract_timezone,
    is_envelope,
)
from switchboard.agent.iata import (
    IataResolver,
    normalize_city,
)
from switchboard.agent.injection import (
    DATABASE_AGENT,
    inject_email_body,
    inject_teams_message,
)
from switchboard.agent.invoker import (
    AgentInvoker,
    missing_required,
)
from switchboard.agent.weather import (
    assess_forecast,
    find_next_sunny_day,
    weather_is_good,
)
from switchboard.common import (
    Clock,
    system_clock,
    today_iso,
    tomorrow_iso,
)
from switchboard.config import settings
from switchboard.core.errors import (
    AgentInvocationError,
    MissingRequiredParameterError,
    PlaceholderResolutionError,
    UnknownToolError,
)
from switchboard.core.placeholders import (
    CITY_TOKENS,
    CONTEXT_KEYS,
    DELETE_ALL_MEETING_TOKENS,
    INDEXED_MEETING_ID,
    START_TIME_TOKENS,
    TEMPLATE,
    TIMEZONE_TOKENS,
    WEATHER_DATE_HINT,
    Token,
    contains_any,
    is_meeting_id_placeholder,
)
from switchboard.core.schema import (
    AgentResult,
    ConversationTurn,
    ExecutionReport,
    MissingParameters,
    PlanStep,
    StepResult,
    StepStatus,
)
from switchboard.formatting.summaries import (
    FLIGHT_SKIP_PREFIX,
    gate_message,
    summarize,
)
from switchboard.tools import find_tool

logger = logging.getLogger(__name__)

FORECAST_TOOL = "get_weather_forecast_by_city"
CURRENT_WEATHER_TOOLS = ("get_location_weather", "get_current_weather_by_city")
WEATHER_CONDITION = "weather is good"
CONDITION_NOT_MET = "Condition not met: weather is not good"
LIVE_LOCATION_CITY_ERROR = "Could not extract city from live location result. Please try again."
MEETING_START_HOUR = "14:00:00"

_RELATIVE_DATES = {
    "today": today_iso,
    Token.TODAY_DATE.value: today_iso,
    "tomorrow": tomorrow_iso,
    Token.TOMORROW_DATE.value: tomorrow_iso,
}

# Flight destination tokens filled from the first database row: token -> row column.
_DESTINATION_COLUMNS = {
    Token.FOUND_REGION_CODE.value: "region",
    Token.FOUND_REGION_IATA_CODE.value: "region",
    Token.FOUND_CODE.value: "iata_code",
    Token.FOUND_CITY_CODE.value: "city",
}

# Tokens filled in place when they appear inside longer text such as a subject or message.
_INLINE_TOKENS = re.compile(
    r"\b(" + "|".join(map(re.escape, START_TIME_TOKENS + TIMEZONE_TOKENS + CITY_TOKENS)) + r")\b"
)


def display_agent_name(agent_name: str | None, tool_name: str) -> str | None:
    """Agent label shown in step details."""
    if tool_name.startswith("zoom_"):
        return "ZoomAgent"
    if tool_name == "outlook_send_email":
        return "EmailAgent"
    if tool_name.startswith("teams_"):
        return "TeamsAgent"
    return agent_name


def _is_placeholder(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, str) and ("FOUND_" in value or "INCLUDE_" in value or "{{" in value)


class MultiStepExecutor:
    """
    Run a multi-step plan against the agents.

    The executor owns no state between runs; every :meth:`execute` call starts with an empty
    :class:`ExecutionContext`.
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        iata_resolver: IataResolver | None = None,
        clock: Clock = system_clock,
        default_timezone: str | None = None,
    ) -> None:
        self.invoker = invoker
        self.iata = iata_resolver or IataResolver(invoker)
        self.clock = clock
        self.default_timezone = default_timezone or settings.DEFAULT_TIMEZONE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def execute(
        self, steps: Sequence[PlanStep], history: Sequence[ConversationTurn] = ()
    ) -> ExecutionReport:
        """Run *steps* in order and return the audit trail."""
        plan: List[PlanStep] = [step.model_copy(deep=True) for step in steps]
        ctx = ExecutionContext()
        report = ExecutionReport(total_steps=len(plan))
        logger.info("Executing %d-step plan: %s", len(plan), [s.tool_name for s in plan])

        index = 0
        while index < len(plan):
            step = plan[index]
            number = index + 1

            reused = self._reuse_from_history(step, history, ctx)
            if reused:
                self._skip(report, number, step, reused)
                index += 1
                continue

            if step.condition and not self._condition_holds(step.condition, ctx):
                logger.info("Skipping step %d (%s): %s", number, step.tool_name, CONDITION_NOT_MET)
                self._skip(report, number, step, CONDITION_NOT_MET)
                index += 1
                continue

            try:
                if step.tool_name == "zoom_delete_meeting" and is_meeting_id_placeholder(
                    step.parameters.get("meetingId")
                ):
                    if not self._expand_meeting_ids(plan, index, ctx):
                        self._skip(report, number, step, "No meetings found to delete")
                        index += 1
                        continue
                    report.total_steps = len(plan)
                params = await self._resolve_parameters(plan, index, ctx)
            except PlaceholderResolutionError as exc:
                logger.warning(
                    "Step %d (%s) could not be prepared: %s", number, step.tool_name, exc
                )
                report.results.append(f"Error: {exc}")
                report.step_details.append(
                    self._detail(number, step, StepStatus.FAILED, error=str(exc))
                )
                index += 1
                continue

            tool = find_tool(step.tool_name)
            if tool is None:
                error = str(UnknownToolError(step.tool_name))
                logger.warning("Step %d: %s", number, error)
                report.results.append(f"Error: {error}")
                report.step_details.append(
                    self._detail(number, step, StepStatus.FAILED, params, error=error)
                )
                index += 1
                continue

            missing = missing_required(tool, params)
            if missing:
                self._abort(report, step, missing)
                break

            logger.debug("Step %d: %s with %s", number, step.tool_name, params)
            try:
                result = await self.invoker.invoke(step.tool_name, params)
            except MissingRequiredParameterError as exc:
                self._abort(report, step, exc.missing)
                break
            except AgentInvocationError as exc:
                logger.warning("Step %d (%s) failed: %s", number, step.tool_name, exc)
                report.results.append(f"Error: {exc.user_message}")
                report.step_details.append(
                    self._detail(number, step, StepStatus.FAILED, params, error=exc.user_message)
                )
                index += 1
                continue

            ctx.record(step.tool_name, tool.agent_name, result)
            report.results.append(result.text)
            detail = self._detail(
                number,
                step,
                StepStatus.SUCCESS,
                params,
                result=result.text,
                summary=summarize(step.tool_name, result),
            )
            report.step_details.append(detail)

            if step.tool_name == FORECAST_TOOL:
                assessment = assess_forecast(result.text)
                detail.weather_assessment = assessment
                report.weather_assessment = assessment
                logger.info("Forecast assessment for %s: %s", params.get("city"), assessment)
                following = plan[index + 1] if index + 1 < len(plan) else None
                if assessment == "bad" and following and following.tool_name == "search_flights":
                    reason = (
                        f"{FLIGHT_SKIP_PREFIX}: Weather conditions in "
                        f"{params.get('city', 'the destination')} are not suitable for travel on "
                        "the requested date. Consider alternative dates or check weather updates."
                    )
                    logger.info("Skipping flight search after bad forecast")
                    report.results.append(reason)
                    self._skip(report, index + 2, following, reason)
                    index += 2
                    continue

            index += 1

        logger.info(
            "Plan finished: %d succeeded, %d failed, %d skipped%s",
            report.completed_steps,
            report.failed_steps,
            report.skipped_steps,
            ", aborted for missing parameters" if report.aborted else "",
        )
        return report

    # ------------------------------------------------------------------
    # Step bookkeeping
    # ------------------------------------------------------------------
    @staticmethod
    def _detail(
        number: int,
        step: PlanStep,
        status: StepStatus,
        params: Dict[str, Any] | None = None,
        **fields: Any,
    ) -> StepResult:
        return StepResult(
            step_number=number,
            tool_name=step.tool_name,
            agent_name=display_agent_name(step.agent_name, step.tool_name),
            parameters=dict(step.parameters if params is None else params),
            status=status,
            condition=step.condition,
            **fields,
        )

    def _skip(self, report: ExecutionReport, number: int, step: PlanStep, reason: str) -> None:
        report.step_details.append(
            self._detail(number, step, StepStatus.SKIPPED, skip_reason=reason)
        )

    @staticmethod
    def _abort(report: ExecutionReport, step: PlanStep, missing: Sequence[str]) -> None:
        logger.info("Stopping plan at %s: missing %s", step.tool_name, list(missing))
        report.missing = MissingParameters(
            tool_name=step.tool_name,
            agent_name=step.agent_name,
            missing=list(missing),
            message=gate_message(step.tool_name, missing),
        )

    # ------------------------------------------------------------------
    # Redundancy and conditions
    # ------------------------------------------------------------------
    @staticmethod
    def _reuse_from_history(
        step: PlanStep, history: Sequence[ConversationTurn], ctx: ExecutionContext
    ) -> str | None:
        """
        Return a skip reason when *history* already answers *step*.

        The earlier answer is recorded in *ctx* so later steps can still reference it.
        """
        answers = [turn.content for turn in history if turn.role == "assistant"]
        if step.tool_name == "get_live_location":
            for content in reversed(answers):
                if extract_city(content):
                    ctx.record(step.tool_name, step.agent_name, AgentResult(text=content))
                    return "Location already retrieved earlier in this conversation"
            return None

        if step.tool_name in CURRENT_WEATHER_TOOLS:
            city = step.parameters.get("city")
            if not city or _is_placeholder(city):
                city = ctx.get("previous_result_city")
            if not city:
                return None
            for content in reversed(answers):
                if "Current Weather in" in content and city.lower() in content.lower():
                    ctx.record(step.tool_name, step.agent_name, AgentResult(text=content))
                    return (
                        f"Current weather for {city} already retrieved earlier in this conversation"
                    )
        return None

    @staticmethod
    def _condition_holds(condition: str, ctx: ExecutionContext) -> bool:
        if WEATHER_CONDITION in condition.lower():
            last = ctx.last_result
            return weather_is_good(last.text if last else None)
        logger.debug("Unrecognised condition %r; running step", condition)
        return True

    # ------------------------------------------------------------------
    # Meeting ids
    # ------------------------------------------------------------------
    @staticmethod
    def _expand_meeting_ids(plan: List[PlanStep], index: int, ctx: ExecutionContext) -> bool:
        """
        Replace the meeting-id placeholder of ``plan[index]`` with real ids.

        ``PLACEHOLDER_FOR_MEETING_ID_<n>`` picks the n-th listed meeting; the delete-all tokens
        turn the step into one delete per listed meeting.  Returns False when no listing is known.
        """
        step = plan[index]
        ids: List[str] = ctx.get("meeting_ids") or []
        if not ids:
            listing = ctx.latest("zoom_list_meetings", "zoom_list_today_meetings")
            ids = extract_meeting_ids(listing) if listing is not None else []
        if not ids:
            logger.warning("No meeting ids available for %s", step.parameters.get("meetingId"))
            return False

        placeholder = step.parameters["meetingId"]
        indexed = INDEXED_MEETING_ID.search(placeholder)
        if indexed:
            position = int(indexed.group(1)) - 1
            step.parameters["meetingId"] = ids[position] if 0 <= position < len(ids) else ids[0]
            return True

        step.parameters["meetingId"] = ids[0]
        if contains_any(placeholder, DELETE_ALL_MEETING_TOKENS):
            extra = [
                PlanStep(
                    tool_name=step.tool_name,
                    agent_name=step.agent_name,
                    parameters={**step.parameters, "meetingId": meeting_id},
                )
                for meeting_id in ids[1:]
            ]
            plan[index + 1 : index + 1] = extra
            logger.info("Expanded meeting deletion into %d steps", len(ids))
        return True

    # ------------------------------------------------------------------
    # Parameter resolution
    # ------------------------------------------------------------------
    async def _resolve_parameters(
        self, plan: Sequence[PlanStep], index: int, ctx: ExecutionContext
    ) -> Dict[str, Any]:
        step = plan[index]
        params = dict(step.parameters)

        for key, value in params.items():
            if isinstance(value, str):
                params[key] = self._resolve_value(key, value, ctx)

        if step.tool_name == "search_flights":
            previous = plan[index - 1].tool_name if index > 0 else None
            await self._resolve_flight_airports(params, ctx, previous)

        if step.tool_name == "outlook_send_email":
            if "to" in params and "to_email" not in params:
                recipients = params.pop("to")
                params["to_email"] = recipients if isinstance(recipients, list) else [recipients]
            if isinstance(params.get("body"), str):
                params["body"] = inject_email_body(params["body"], ctx)

        if step.tool_name == "teams_send_message" and isinstance(params.get("message"), str):
            params["message"] = inject_teams_message(params["message"], ctx, self.clock())

        return params

    def _resolve_value(self, key: str, value: str, ctx: ExecutionContext) -> Any:
        """Substitute one string parameter; unknown placeholders are returned unchanged."""
        relative = _RELATIVE_DATES.get(value.strip().lower())
        if relative is not None:
            return relative(self.clock)

        template = TEMPLATE.match(value)
        if template:
            resolved = self._resolve_template(template.group(1), ctx)
            return value if resolved is None else resolved

        if value in CONTEXT_KEYS and ctx.get(CONTEXT_KEYS[value]) is not None:
            return ctx.get(CONTEXT_KEYS[value])

        if key == "date" and WEATHER_DATE_HINT.search(value):
            return self._good_weather_day(ctx)

        if value in START_TIME_TOKENS or (
            key == "start_time" and contains_any(value, START_TIME_TOKENS)
        ):
            return self._meeting_start(ctx)

        if value in TIMEZONE_TOKENS or (key == "timezone" and contains_any(value, TIMEZONE_TOKENS)):
            return self._user_timezone(ctx)

        if value in CITY_TOKENS or (key == "city" and contains_any(value, CITY_TOKENS)):
            city = self._live_city(ctx)
            if city:
                return city

        return self._fill_inline(value, ctx)

    def _fill_inline(self, text: str, ctx: ExecutionContext) -> str:
        """Swap city/time/timezone tokens embedded in free text, leaving the rest of it intact."""

        def fill(match: re.Match) -> str:
            token = match.group(1)
            if token in START_TIME_TOKENS:
                found = self._meeting_start(ctx)
            elif token in TIMEZONE_TOKENS:
                found = self._user_timezone(ctx)
            else:
                found = self._live_city(ctx)
            return found or token

        return _INLINE_TOKENS.sub(fill, text)

    def _meeting_start(self, ctx: ExecutionContext) -> str:
        return f"{self._good_weather_day(ctx)}T{MEETING_START_HOUR}"

    def _user_timezone(self, ctx: ExecutionContext) -> str:
        location = ctx.latest("get_live_location")
        return (extract_timezone(location.text) if location else None) or self.default_timezone

    @staticmethod
    def _resolve_template(name: str, ctx: ExecutionContext) -> Any:
        value = ctx.get(name)
        if value is not None:
            return value
        if "location" in name.lower():
            value = ctx.get("previous_result_city") or ctx.get("previous_result_iata")
            if value is not None:
                return value

        last = ctx.last_result
        if last is None:
            return None
        if isinstance(last.raw, dict) and not is_envelope(last.raw) and name in last.raw:
            return last.raw[name]
        match = re.search(rf"{re.escape(name)}:?\s*([\w \t-]+)", last.text, re.IGNORECASE)
        return match.group(1).strip() if match else None

    def _good_weather_day(self, ctx: ExecutionContext) -> str:
        sunny = ctx.get("previous_result_sunny_day")
        if sunny:
            return sunny
        weather = ctx.latest(FORECAST_TOOL, *CURRENT_WEATHER_TOOLS)
        found = find_next_sunny_day(weather.text if weather else None, self.clock)
        return found or tomorrow_iso(self.clock)

    @staticmethod
    def _live_city(ctx: ExecutionContext) -> str | None:
        location = ctx.latest("get_live_location")
        city = extract_city(location.text) if location else None
        return city or ctx.get("previous_result_city")

    async def _resolve_flight_airports(
        self, params: Dict[str, Any], ctx: ExecutionContext, previous_tool: str | None
    ) -> None:
        """Turn flight endpoints into IATA codes, resolving references to earlier results."""
        source = params.get("source")
        if previous_tool == "get_live_location" and _is_placeholder(source):
            city = self._live_city(ctx)
            if not city:
                raise PlaceholderResolutionError(LIVE_LOCATION_CITY_ERROR)
            params["source"] = city
        elif source == Token.FOUND_CITY_CODE.value:
            city = self._live_city(ctx)
            if city:
                params["source"] = city

        destination = params.get("destination")
        if isinstance(destination, str) and destination in _DESTINATION_COLUMNS:
            db_result = ctx.latest_from_agent(DATABASE_AGENT)
            rows = extract_db_rows(db_result) if db_result is not None else []
            column = _DESTINATION_COLUMNS[destination]
            if rows and rows[0].get(column):
                params["destination"] = str(rows[0][column])
            elif destination == Token.FOUND_CITY_CODE.value and self._live_city(ctx):
                params["destination"] = self._live_city(ctx)

        for key in ("source", "destination"):
            place = params.get(key)
            if not isinstance(place, str) or _is_placeholder(place):
                continue
            code = await self.iata.resolve(normalize_city(place))
            if code:
                params[key] = code
            elif key == "source" and previous_tool == "get_live_location":
                raise PlaceholderResolutionError(
                    f"Could not find an airport code for {place}. Please try again."
                )
