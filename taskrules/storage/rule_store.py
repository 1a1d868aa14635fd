"""Rule storage operations."""

from datetime import datetime, timezone

from redis.asyncio import Redis

from taskrules.core.config import get_settings
from taskrules.models.execution import ExecutionRecord
from taskrules.models.rule import AutomationRule, TriggerEvent
from taskrules.storage.base import RuleRepository
from taskrules.storage.redis_client import RedisKeys, get_redis


class RuleStore(RuleRepository):
    """Rule and execution history storage using Redis.

    Each rule lives in a hash: ``config`` holds the rule JSON while
    ``execution_count``, ``last_executed`` and ``is_active`` are kept as
    separate fields so the counter can be incremented atomically.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis
        self._settings = get_settings()

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def create(self, rule: AutomationRule) -> AutomationRule:
        """Create a new rule.

        Args:
            rule: Rule to create

        Returns:
            Created rule
        """
        await self.redis.hset(
            RedisKeys.rule_detail(rule.id),
            mapping={
                "config": rule.model_dump_json(),
                "is_active": str(rule.is_active).lower(),
                "execution_count": str(rule.execution_count),
                "last_executed": rule.last_executed.isoformat() if rule.last_executed else "",
            },
        )
        await self.redis.sadd(RedisKeys.RULE_ALL, rule.id)
        await self.redis.sadd(RedisKeys.rule_user(rule.user_id), rule.id)
        await self.redis.sadd(RedisKeys.rule_trigger(rule.trigger.value), rule.id)
        return rule

    async def get(self, rule_id: str) -> AutomationRule | None:
        """Get a rule by ID.

        Args:
            rule_id: Rule ID

        Returns:
            Rule if found, None otherwise
        """
        data = await self.redis.hgetall(RedisKeys.rule_detail(rule_id))
        if not data or "config" not in data:
            return None

        rule = AutomationRule.model_validate_json(data["config"])
        last_executed = data.get("last_executed") or None
        return rule.model_copy(
            update={
                "is_active": data.get("is_active", "true") == "true",
                "execution_count": int(data.get("execution_count") or 0),
                "last_executed": datetime.fromisoformat(last_executed) if last_executed else None,
            }
        )

    async def update(self, rule_id: str, rule: AutomationRule) -> AutomationRule | None:
        """Replace a rule's definition, keeping its identity and counters.

        Args:
            rule_id: Rule ID to update
            rule: Updated rule data

        Returns:
            Updated rule if found, None otherwise
        """
        existing = await self.get(rule_id)
        if not existing:
            return None

        updated = rule.model_copy(
            update={
                "id": rule_id,
                "user_id": existing.user_id,
                "created_at": existing.created_at,
                "updated_at": datetime.now(timezone.utc),
                "execution_count": existing.execution_count,
                "last_executed": existing.last_executed,
            }
        )

        if existing.trigger != updated.trigger:
            await self.redis.srem(RedisKeys.rule_trigger(existing.trigger.value), rule_id)
            await self.redis.sadd(RedisKeys.rule_trigger(updated.trigger.value), rule_id)

        await self.redis.hset(
            RedisKeys.rule_detail(rule_id),
            mapping={
                "config": updated.model_dump_json(),
                "is_active": str(updated.is_active).lower(),
            },
        )
        return updated

    async def delete(self, rule_id: str) -> bool:
        """Delete a rule; its execution history is kept.

        Returns:
            True if deleted, False if not found
        """
        existing = await self.get(rule_id)
        if not existing:
            return False

        await self.redis.srem(RedisKeys.rule_trigger(existing.trigger.value), rule_id)
        await self.redis.srem(RedisKeys.rule_user(existing.user_id), rule_id)
        await self.redis.srem(RedisKeys.RULE_ALL, rule_id)
        await self.redis.delete(RedisKeys.rule_detail(rule_id))
        return True

    async def set_active(self, rule_id: str, is_active: bool) -> AutomationRule | None:
        """Enable or disable a rule.

        Returns:
            Updated rule, or None if not found
        """
        rule = await self.get(rule_id)
        if not rule:
            return None

        rule = rule.model_copy(update={"is_active": is_active, "updated_at": datetime.now(timezone.utc)})
        await self.redis.hset(
            RedisKeys.rule_detail(rule_id),
            mapping={
                "config": rule.model_dump_json(),
                "is_active": str(is_active).lower(),
            },
        )
        return rule

    async def _load(self, rule_ids: set[str] | list[str]) -> list[AutomationRule]:
        rules = []
        for rule_id in rule_ids:
            rule = await self.get(rule_id)
            if rule:
                rules.append(rule)
        rules.sort(key=lambda r: r.created_at)
        return rules

    async def list_all(self) -> list[AutomationRule]:
        return await self._load(await self.redis.smembers(RedisKeys.RULE_ALL))

    async def list_by_user(self, user_id: str) -> list[AutomationRule]:
        return await self._load(await self.redis.smembers(RedisKeys.rule_user(user_id)))

    async def list_active_rules_by_trigger(self, user_id: str, trigger: TriggerEvent) -> list[AutomationRule]:
        """Active rules of a user for one trigger, oldest first."""
        rule_ids = await self.redis.sinter(
            RedisKeys.rule_user(user_id),
            RedisKeys.rule_trigger(TriggerEvent(trigger).value),
        )
        return [rule for rule in await self._load(rule_ids) if rule.is_active]

    async def list_users_with_active_rules(self, triggers: list[TriggerEvent]) -> list[str]:
        keys = [RedisKeys.rule_trigger(TriggerEvent(trigger).value) for trigger in triggers]
        if not keys:
            return []
        rule_ids = await self.redis.sunion(*keys)
        users = {rule.user_id for rule in await self._load(rule_ids) if rule.is_active}
        return sorted(users)

    async def increment_execution(self, rule_id: str, executed_at: datetime) -> None:
        key = RedisKeys.rule_detail(rule_id)
        if not await self.redis.exists(key):
            return
        await self.redis.hincrby(key, "execution_count", 1)
        await self.redis.hset(key, "last_executed", executed_at.isoformat())

    async def record_execution(self, record: ExecutionRecord) -> None:
        """Append an execution record to the rule and user history lists."""
        data = record.model_dump_json()
        limit = self._settings.execution_history_limit
        for key in (RedisKeys.executions_rule(record.rule_id), RedisKeys.executions_user(record.user_id)):
            await self.redis.lpush(key, data)
            await self.redis.ltrim(key, 0, limit - 1)

    async def list_executions(
        self,
        rule_id: str | None = None,
        user_id: str | None = None,
    ) -> list[ExecutionRecord]:
        """Execution records for a rule or a user, newest first.

        Raises:
            ValueError: If neither rule_id nor user_id is given
        """
        if rule_id:
            key = RedisKeys.executions_rule(rule_id)
        elif user_id:
            key = RedisKeys.executions_user(user_id)
        else:
            raise ValueError("rule_id or user_id is required")

        items = await self.redis.lrange(key, 0, -1)
        return [ExecutionRecord.model_validate_json(item) for item in items]
