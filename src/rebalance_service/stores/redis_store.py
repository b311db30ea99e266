"""
Redis-backed PortfolioStore
Handles owner, portfolio, target and plan persistence in Redis
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

import redis.asyncio as redis

from app_config import StoreConfig
from wallet_connector_base import (
    PortfolioStore,
    OwnerRecord,
    PortfolioSnapshot,
    PortfolioEntry,
    TargetAllocation,
    RebalancePlan,
    PlanStatus,
    TransactionLogEntry,
    StoreError,
)


class RedisPortfolioStore(PortfolioStore):
    """
    Store for wallet data in Redis.

    Keys (all under the configured prefix):
        owner:{owner}            OwnerRecord JSON
        portfolio:{owner}        hash token_id -> PortfolioEntry JSON (upserted rows)
        snapshot:{owner}         latest snapshot header and token list
        targets:{owner}          TargetAllocation list JSON
        owners_with_targets      set of owners with a non-empty target set
        plan:{plan_id}           RebalancePlan JSON
        plans:{owner}            sorted set of plan ids by creation time
        txlog:{owner}            list of TransactionLogEntry JSON
        attention:{owner}        last sweep verdict
    """

    def __init__(self, store_config: StoreConfig, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.redis_url = f"redis://{store_config.redis_host}:{store_config.redis_port}/{store_config.redis_db}"
        self.prefix = store_config.key_prefix
        self.max_retries = store_config.max_retries
        self.retry_delay_seconds = store_config.retry_delay_seconds
        self._client: Optional[redis.Redis] = None

    def _key(self, *parts: str) -> str:
        return ":".join((self.prefix,) + parts)

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
        return self._client

    async def execute_with_retry(self, operation: Callable[[redis.Redis], Awaitable[Any]]) -> Any:
        """
        Run an operation, retrying on connection and timeout errors.

        Raises:
            StoreError: When retries are exhausted or Redis rejects the operation
        """
        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                client = await self._get_client()
                return await operation(client)
            except (redis.ConnectionError, redis.TimeoutError) as e:
                last_error = e
                self.logger.warning(f"Redis operation failed (attempt {attempt}/{self.max_retries}): {e}")
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay_seconds)
            except redis.RedisError as e:
                self.logger.error(f"Redis operation failed: {e}")
                raise StoreError(f"Store operation failed: {e}") from e

        raise StoreError(f"Store unavailable after {self.max_retries} attempts: {last_error}") from last_error

    # Owners
    async def ensure_owner(self, owner_id: str) -> OwnerRecord:
        record = OwnerRecord(owner_id=owner_id, created_at=datetime.now(timezone.utc))
        key = self._key("owner", owner_id)

        async def ensure_operation(client):
            created = await client.set(key, record.model_dump_json(), nx=True)
            return created, await client.get(key)

        created, data = await self.execute_with_retry(ensure_operation)
        if created:
            self.logger.info(f"Registered new wallet {owner_id}")
        return OwnerRecord.model_validate_json(data)

    async def get_owner(self, owner_id: str) -> Optional[OwnerRecord]:
        async def get_operation(client):
            return await client.get(self._key("owner", owner_id))

        data = await self.execute_with_retry(get_operation)
        return OwnerRecord.model_validate_json(data) if data else None

    async def list_owners_with_targets(self) -> List[str]:
        async def members_operation(client):
            return await client.smembers(self._key("owners_with_targets"))

        return sorted(await self.execute_with_retry(members_operation))

    # Portfolio
    async def upsert_portfolio(self, snapshot: PortfolioSnapshot):
        header = {
            "owner_id": snapshot.owner_id,
            "as_of": snapshot.as_of.isoformat(),
            "total_value_usd": snapshot.total_value_usd,
            "token_ids": [entry.token_id for entry in snapshot.entries],
        }
        rows = {entry.token_id: entry.model_dump_json() for entry in snapshot.entries}

        async def upsert_operation(client):
            pipe = client.pipeline(transaction=True)
            if rows:
                pipe.hset(self._key("portfolio", snapshot.owner_id), mapping=rows)
            pipe.set(self._key("snapshot", snapshot.owner_id), json.dumps(header))
            return await pipe.execute()

        await self.execute_with_retry(upsert_operation)
        self.logger.debug(f"Upserted {len(rows)} portfolio rows for {snapshot.owner_id}")

    async def get_portfolio(self, owner_id: str) -> Optional[PortfolioSnapshot]:
        async def get_operation(client):
            header = await client.get(self._key("snapshot", owner_id))
            if not header:
                return None, {}
            return header, await client.hgetall(self._key("portfolio", owner_id))

        header, rows = await self.execute_with_retry(get_operation)
        if not header:
            return None

        header = json.loads(header)
        entries = [
            PortfolioEntry.model_validate_json(rows[token_id])
            for token_id in header["token_ids"] if token_id in rows
        ]
        return PortfolioSnapshot(
            owner_id=header["owner_id"],
            as_of=datetime.fromisoformat(header["as_of"]),
            total_value_usd=header["total_value_usd"],
            entries=entries
        )

    # Targets
    async def replace_targets(self, owner_id: str, targets: List[TargetAllocation]):
        payload = json.dumps([t.model_dump(mode="json") for t in targets])

        async def replace_operation(client):
            pipe = client.pipeline(transaction=True)
            pipe.set(self._key("targets", owner_id), payload)
            if targets:
                pipe.sadd(self._key("owners_with_targets"), owner_id)
            else:
                pipe.srem(self._key("owners_with_targets"), owner_id)
            return await pipe.execute()

        await self.execute_with_retry(replace_operation)

    async def get_targets(self, owner_id: str) -> List[TargetAllocation]:
        async def get_operation(client):
            return await client.get(self._key("targets", owner_id))

        data = await self.execute_with_retry(get_operation)
        if not data:
            return []
        return [TargetAllocation.model_validate(item) for item in json.loads(data)]

    # Plans
    async def save_plan(self, plan: RebalancePlan):
        async def save_operation(client):
            pipe = client.pipeline(transaction=True)
            pipe.set(self._key("plan", plan.plan_id), plan.model_dump_json())
            pipe.zadd(self._key("plans", plan.owner_id), {plan.plan_id: plan.created_at.timestamp()})
            return await pipe.execute()

        await self.execute_with_retry(save_operation)

    async def get_plan(self, plan_id: str) -> Optional[RebalancePlan]:
        async def get_operation(client):
            return await client.get(self._key("plan", plan_id))

        data = await self.execute_with_retry(get_operation)
        return RebalancePlan.model_validate_json(data) if data else None

    async def list_plans(self, owner_id: str, status: Optional[PlanStatus] = None) -> List[RebalancePlan]:
        async def list_operation(client):
            plan_ids = await client.zrange(self._key("plans", owner_id), 0, -1)
            if not plan_ids:
                return []
            return await client.mget([self._key("plan", plan_id) for plan_id in plan_ids])

        plans = [RebalancePlan.model_validate_json(d) for d in await self.execute_with_retry(list_operation) if d]
        if status is not None:
            plans = [p for p in plans if p.status == status]
        return plans

    async def _update_plan(self, plan_id: str, mutate: Callable[[RebalancePlan], bool]) -> bool:
        """WATCH/MULTI read-modify-write of one plan; mutate returns False to abort"""
        key = self._key("plan", plan_id)

        async def cas(pipe):
            data = await pipe.get(key)
            if not data:
                return False
            plan = RebalancePlan.model_validate_json(data)
            if not mutate(plan):
                return False
            pipe.multi()
            pipe.set(key, plan.model_dump_json())
            return True

        async def transaction_operation(client):
            return await client.transaction(cas, key, value_from_callable=True)

        return await self.execute_with_retry(transaction_operation)

    async def transition_plan_status(self, plan_id: str, expected: PlanStatus, new_status: PlanStatus) -> bool:
        def mutate(plan: RebalancePlan) -> bool:
            if plan.status != expected:
                return False
            plan.status = new_status
            return True

        return await self._update_plan(plan_id, mutate)

    async def record_swap_confirmation(self, plan_id: str, swap_index: int,
                                       tx_signature: str, confirmed_at: datetime) -> bool:
        def mutate(plan: RebalancePlan) -> bool:
            if plan.status != PlanStatus.PENDING or not 0 <= swap_index < len(plan.swaps):
                return False
            if plan.swaps[swap_index].is_confirmed or plan.swap_for_signature(tx_signature) is not None:
                return False
            plan.swaps[swap_index].execution_signature = tx_signature
            plan.swaps[swap_index].confirmed_at = confirmed_at
            return True

        return await self._update_plan(plan_id, mutate)

    # Audit and signals
    async def append_transaction_log(self, entry: TransactionLogEntry):
        async def append_operation(client):
            return await client.rpush(self._key("txlog", entry.owner_id), entry.model_dump_json())

        await self.execute_with_retry(append_operation)

    async def get_transaction_log(self, owner_id: str) -> List[TransactionLogEntry]:
        async def get_operation(client):
            return await client.lrange(self._key("txlog", owner_id), 0, -1)

        return [TransactionLogEntry.model_validate_json(d) for d in await self.execute_with_retry(get_operation)]

    async def set_attention(self, owner_id: str, needs_rebalance: bool, checked_at: datetime):
        payload = json.dumps({"needs_rebalance": needs_rebalance, "checked_at": checked_at.isoformat()})

        async def set_operation(client):
            return await client.set(self._key("attention", owner_id), payload)

        await self.execute_with_retry(set_operation)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
