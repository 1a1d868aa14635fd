"""Rule execution orchestration shared by the event path and the scheduled scan."""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from taskrules.actions.dispatcher import ActionDispatcher
from taskrules.core.config import Settings, get_settings
from taskrules.core.exceptions import OrchestrationError
from taskrules.core.logging import get_logger
from taskrules.engine.conditions import ConditionEvaluator, get_condition_evaluator
from taskrules.engine.templates import interpolate
from taskrules.engine.validator import RuleValidator, ValidationResult, get_rule_validator
from taskrules.models.context import TriggerContext
from taskrules.models.execution import ActionOutcome, ExecutionRecord, ExecutionStatus
from taskrules.models.rule import AutomationRule, TriggerEvent
from taskrules.observability.metrics import (
    ACTIONS_EXECUTED,
    RULE_EXECUTIONS,
    RULE_EXECUTIONS_DEDUPLICATED,
    RULES_EVALUATED,
    TRIGGERS_RECEIVED,
)
from taskrules.storage.base import ExecutionGuard, RuleRepository

logger = get_logger(__name__)


@dataclass
class RuleOutcome:
    """What happened to one candidate rule."""

    rule_id: str
    matched: bool
    record: ExecutionRecord | None = None
    skipped_reason: str | None = None
    error: str | None = None

    @property
    def executed(self) -> bool:
        return self.record is not None and self.record.status != ExecutionStatus.FAILED


@dataclass
class ProcessResult:
    """Outcome of processing one trigger."""

    trigger: TriggerEvent
    task_id: str
    outcomes: list[RuleOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def records(self) -> list[ExecutionRecord]:
        return [outcome.record for outcome in self.outcomes if outcome.record is not None]

    @property
    def executed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.executed)


@dataclass
class DryRunResult:
    """Outcome of testing a rule without side effects."""

    rule_id: str
    matched: bool
    validation: ValidationResult
    planned_actions: list[dict[str, Any]] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


def dedup_key(rule: AutomationRule, context: TriggerContext) -> str:
    """Key allowing one scheduled execution per rule, task, trigger and day."""
    day = context.occurred_at.date().isoformat()
    return f"{rule.id}:{context.task.id}:{context.event.value}:{day}"


class ExecutionOrchestrator:
    """Runs candidate rules for a trigger and records their executions.

    Each rule moves through matching, condition evaluation, sequential action
    execution and recording. Action failures are folded into the record and
    never abort the remaining actions or rules.
    """

    def __init__(
        self,
        rules: RuleRepository,
        dispatcher: ActionDispatcher,
        guard: ExecutionGuard | None = None,
        evaluator: ConditionEvaluator | None = None,
        validator: RuleValidator | None = None,
        settings: Settings | None = None,
    ):
        """Initialize orchestrator.

        Args:
            rules: Rule repository
            dispatcher: Action dispatcher
            guard: Dedup guard for scheduled executions
            evaluator: Condition evaluator
            validator: Rule validator used by dry runs
            settings: Application settings
        """
        self._rules = rules
        self._dispatcher = dispatcher
        self._guard = guard
        self._evaluator = evaluator or get_condition_evaluator()
        self._validator = validator or get_rule_validator()
        self._settings = settings or get_settings()

    async def process(self, context: TriggerContext, *, dedup: bool = False) -> ProcessResult:
        """Load the task owner's active rules for the trigger and run them.

        Args:
            context: Trigger context
            dedup: Claim a per-day dedup key before acting (scheduled scans)

        Returns:
            Processing result; ``error`` is set when rules could not be loaded
        """
        source = "scan" if dedup else "event"
        TRIGGERS_RECEIVED.labels(trigger=context.event.value, source=source).inc()

        try:
            rules = await self._rules.list_active_rules_by_trigger(context.task.user_id, context.event)
        except Exception as e:
            error = OrchestrationError(f"Failed to load rules: {e}")
            logger.error(
                "Error loading rules",
                trigger=context.event.value,
                user_id=context.task.user_id,
                error=str(e),
                exc_info=True,
            )
            return ProcessResult(trigger=context.event, task_id=context.task.id, error=str(error))

        return await self.run_rules(rules, context, dedup=dedup)

    async def run_rules(
        self,
        rules: list[AutomationRule],
        context: TriggerContext,
        dedup: bool = False,
    ) -> ProcessResult:
        """Run a list of candidate rules sequentially."""
        start_time = time.time()
        result = ProcessResult(trigger=context.event, task_id=context.task.id)

        for rule in rules:
            if not rule.is_active or not rule.matches_trigger(context.event):
                continue
            try:
                outcome = await self.execute_rule(rule, context, dedup=dedup)
            except Exception as e:
                logger.error(
                    "Error executing rule",
                    rule_id=rule.id,
                    task_id=context.task.id,
                    error=str(e),
                    exc_info=True,
                )
                outcome = RuleOutcome(rule_id=rule.id, matched=True, error=str(e))
            result.outcomes.append(outcome)

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Trigger processed",
            trigger=context.event.value,
            task_id=context.task.id,
            candidates=len(rules),
            executed=result.executed_count,
            elapsed_ms=elapsed_ms,
        )
        return result

    async def execute_rule(
        self,
        rule: AutomationRule,
        context: TriggerContext,
        *,
        dedup: bool = False,
    ) -> RuleOutcome:
        """Evaluate one rule and, if it matches, run its actions.

        Args:
            rule: Rule to execute
            context: Trigger context
            dedup: Claim the per-day dedup key before acting

        Returns:
            Rule outcome; unmatched rules carry no record
        """
        task = context.task
        ctx_map = context.to_context()

        try:
            matched = self._evaluator.evaluate_conditions(rule.conditions, task, ctx_map)
        except Exception as e:
            logger.error("Error evaluating conditions", rule_id=rule.id, error=str(e), exc_info=True)
            record = self._build_record(
                rule,
                context,
                [],
                status=ExecutionStatus.FAILED,
                error_message=f"Condition evaluation failed: {e}",
            )
            await self._record(record)
            return RuleOutcome(rule_id=rule.id, matched=False, record=record, error=record.error_message)

        RULES_EVALUATED.labels(trigger=context.event.value, matched=str(matched).lower()).inc()
        if not matched:
            logger.debug("Rule conditions not met", rule_id=rule.id, task_id=task.id)
            return RuleOutcome(rule_id=rule.id, matched=False)

        if dedup and self._guard is not None and self._settings.scan_dedup_enabled:
            if not await self._guard.claim(dedup_key(rule, context)):
                RULE_EXECUTIONS_DEDUPLICATED.labels(trigger=context.event.value).inc()
                logger.debug("Rule already executed today", rule_id=rule.id, task_id=task.id)
                return RuleOutcome(rule_id=rule.id, matched=True, skipped_reason="Already executed today")

        outcomes = await self._run_actions(rule, context, ctx_map)

        status = ExecutionRecord.status_for(outcomes)
        failures = [f"{outcome.type}: {outcome.error}" for outcome in outcomes if not outcome.succeeded]
        record = self._build_record(
            rule,
            context,
            outcomes,
            status=status,
            error_message="; ".join(failures) or None,
        )
        await self._record(record)

        logger.info(
            "Rule executed",
            rule_id=rule.id,
            task_id=task.id,
            trigger=context.event.value,
            status=status.value,
            actions=len(outcomes),
        )
        return RuleOutcome(rule_id=rule.id, matched=True, record=record)

    async def test_rule(self, rule: AutomationRule, context: TriggerContext) -> DryRunResult:
        """Evaluate a rule and preview its interpolated actions without side effects."""
        validation = self._validator.validate(rule)
        ctx_map = context.to_context()

        try:
            matched = self._evaluator.evaluate_conditions(rule.conditions, context.task, ctx_map)
        except Exception as e:
            return DryRunResult(
                rule_id=rule.id,
                matched=False,
                validation=validation,
                context=ctx_map,
                error=f"Condition evaluation failed: {e}",
            )

        planned = []
        if matched:
            planned = [
                {"type": action.type, "parameters": interpolate(action.parameters, context.task, ctx_map)}
                for action in rule.actions
            ]

        return DryRunResult(
            rule_id=rule.id,
            matched=matched,
            validation=validation,
            planned_actions=planned,
            context=ctx_map,
        )

    async def _run_actions(
        self,
        rule: AutomationRule,
        context: TriggerContext,
        ctx_map: dict[str, Any],
    ) -> list[ActionOutcome]:
        run_context = dict(ctx_map)
        outcomes: list[ActionOutcome] = []

        for action in rule.actions:
            try:
                result = await self._dispatcher.execute(
                    action,
                    context.task,
                    run_context,
                    rule=rule,
                    now=context.occurred_at,
                )
            except Exception as e:
                logger.warning(
                    "Action failed",
                    rule_id=rule.id,
                    action_type=action.type,
                    task_id=context.task.id,
                    error=str(e),
                )
                ACTIONS_EXECUTED.labels(action_type=action.type, status="failed").inc()
                outcomes.append(ActionOutcome(type=action.type, parameters=action.parameters, error=str(e)))
                continue

            ACTIONS_EXECUTED.labels(action_type=action.type, status="success").inc()
            outcomes.append(ActionOutcome(type=action.type, parameters=action.parameters, result=result))
            run_context["last_result"] = result

        return outcomes

    def _build_record(
        self,
        rule: AutomationRule,
        context: TriggerContext,
        outcomes: list[ActionOutcome],
        status: ExecutionStatus,
        error_message: str | None = None,
    ) -> ExecutionRecord:
        return ExecutionRecord(
            id=f"exec_{uuid.uuid4().hex[:12]}",
            rule_id=rule.id,
            user_id=rule.user_id,
            task_id=context.task.id,
            trigger_event=context.event.value,
            executed_actions=outcomes,
            status=status,
            error_message=error_message,
            executed_at=datetime.now(timezone.utc),
        )

    async def _record(self, record: ExecutionRecord) -> None:
        await self._rules.record_execution(record)
        await self._rules.increment_execution(record.rule_id, record.executed_at)
        RULE_EXECUTIONS.labels(trigger=record.trigger_event, status=record.status.value).inc()
