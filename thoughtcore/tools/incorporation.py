"""Incorporation system: folds cached results of related tools into a tool's result.

Only a single hop is supported: candidates are the target's direct
``interacts_with`` neighbours and their cached results are never themselves
re-incorporated.
"""
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from ..errors import NotFoundError
from .conditions import holds
from .executor import ToolInteractionLayer
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class IncorporationRecord:
    source: str
    target: str
    success: bool
    incorporated_count: int = 0
    time_spent: float = 0.0  # ms
    custom_rule: bool = False
    error: Optional[str] = None


@dataclass
class IncorporationStats:
    total: int = 0
    successful: int = 0
    skipped: int = 0
    depth: int = 1
    time_spent: float = 0.0  # ms


@dataclass
class IncorporationBatch:
    result: Any
    stats: IncorporationStats
    incorporations: List[IncorporationRecord] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)


class IncorporationSystem:
    def __init__(self, registry: ToolRegistry, interaction: ToolInteractionLayer):
        self.registry = registry
        self.interaction = interaction

    async def process_incorporation(
        self,
        target: str,
        target_result: Any,
        context: Optional[Mapping[str, Any]] = None,
    ) -> IncorporationBatch:
        t0 = time.monotonic()
        if not self.registry.has(target):
            raise NotFoundError(f"Tool not found: {target}")
        context = dict(context or {})

        candidates = self.registry.interacts_with(target)
        batch = IncorporationBatch(result=target_result, stats=IncorporationStats(total=len(candidates)))

        for source in candidates:
            cached = self.interaction.cached_results(source)
            if not cached:
                logger.debug(f"Incorporation {source} -> {target}: no cached results, skipped")
                batch.skipped.append(source)
                continue

            rule = self.registry.get_incorporation_rule(source, target)
            if rule is not None and rule.conditions:
                cached = [
                    r for r in cached
                    if all(holds(cond, {"result": r, "context": context}) for cond in rule.conditions)
                ]
                if not cached:
                    logger.debug(f"Incorporation {source} -> {target}: conditions rejected all results, skipped")
                    batch.skipped.append(source)
                    continue

            s0 = time.monotonic()
            record = IncorporationRecord(source=source, target=target, success=False,
                                         custom_rule=rule is not None and rule.merge is not None)
            try:
                if record.custom_rule:
                    merged = rule.merge(batch.result, cached, context)
                    if inspect.isawaitable(merged):
                        merged = await merged
                    if merged is not None:
                        batch.result = merged
                # Without a custom merge the pair is accepted as-is
                record.success = True
                record.incorporated_count = len(cached)
            except Exception as e:
                logger.warning(f"Incorporation {source} -> {target} failed: {e}", exc_info=True)
                record.error = str(e) or type(e).__name__
                batch.errors.append(e)
            record.time_spent = (time.monotonic() - s0) * 1000
            batch.incorporations.append(record)
            if record.success:
                batch.stats.successful += 1

        batch.stats.skipped = len(batch.skipped)
        batch.stats.time_spent = (time.monotonic() - t0) * 1000
        if candidates:
            logger.info(
                f"Incorporation into {target}: {batch.stats.successful}/{batch.stats.total} merged, "
                f"{batch.stats.skipped} skipped, {len(batch.errors)} errors"
            )
        return batch
