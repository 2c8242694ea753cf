"""Tool interaction layer: dispatches tool calls with result caching and pre-call incorporation."""
import asyncio
import inspect
import json
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..config import Settings, settings as default_settings
from ..errors import NotFoundError
from .conditions import Predicate, holds
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[Any, Awaitable[Any]]]


@dataclass
class ToolResult:
    tool: str
    result: Any = None
    success: bool = True
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    execution_time: float = 0.0  # ms

    @property
    def from_cache(self) -> bool:
        return bool(self.metadata.get("from_cache"))


@dataclass
class CacheEntry:
    tool: str
    result: Any
    created_at: float  # monotonic seconds
    ttl_ms: int

    def expired(self, now: float) -> bool:
        return (now - self.created_at) * 1000 > self.ttl_ms


def cache_key(tool: str, params: Any) -> str:
    """Deterministic key: tool name plus canonical JSON of the parameters."""
    try:
        serialized = json.dumps(params, sort_keys=True, separators=(",", ":"), default=repr, ensure_ascii=False)
    except TypeError:
        # Mixed-type dict keys cannot be sorted
        serialized = repr(params)
    return f"{tool}:{serialized}"


class ResultCache:
    """TTL cache of successful tool results; expired entries are evicted on read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def set(self, key: str, tool: str, result: Any, ttl_ms: int):
        self._entries[key] = CacheEntry(tool=tool, result=result, created_at=self._clock(), ttl_ms=ttl_ms)

    def results_for(self, tool: str) -> List[Any]:
        """Live cached results of one tool, oldest first."""
        now = self._clock()
        results = []
        for key, entry in list(self._entries.items()):
            if entry.tool != tool:
                continue
            if entry.expired(now):
                del self._entries[key]
                continue
            results.append(entry.result)
        return results

    def clear(self):
        self._entries.clear()

    def clear_tool(self, tool: str) -> int:
        keys = [k for k, e in self._entries.items() if e.tool == tool]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)


class IncorporationMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


@dataclass
class IncorporationOptions:
    """Pre-call enrichment: which related tools to run before the target tool."""
    tools: List[str] = field(default_factory=list)
    mode: IncorporationMode = IncorporationMode.SEQUENTIAL
    pure_mode: bool = False
    # Conditional mode: tool name -> predicate over {"context", "params"}
    conditions: Dict[str, Predicate] = field(default_factory=dict)
    enabled: bool = True


@dataclass
class CallOptions:
    cache: bool = True
    cache_ttl_ms: Optional[int] = None
    incorporation: Optional[IncorporationOptions] = None
    context: Dict[str, Any] = field(default_factory=dict)


class ToolHandlerTable:
    """Default tool-execution collaborator: tool name -> sync or async callable.

    Handlers receive the (possibly enriched) parameters as their only argument.
    """

    def __init__(self, handlers: Optional[Mapping[str, Handler]] = None):
        self._handlers: Dict[str, Handler] = dict(handlers or {})

    def register(self, name: str, handler: Handler):
        self._handlers[name] = handler
        logger.info(f"Registered handler: {name}")

    def handler(self, name: str):
        """Decorator to register a tool function."""
        def decorator(func):
            self.register(name, func)
            return func
        return decorator

    def has(self, name: str) -> bool:
        return name in self._handlers

    async def execute(self, name: str, params: Any) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise NotFoundError(f"No handler registered for tool: {name}")
        result = handler(params)
        if inspect.isawaitable(result):
            result = await result
        return result


def _elapsed_ms(t0: float) -> float:
    return (time.monotonic() - t0) * 1000


class ToolInteractionLayer:
    def __init__(
        self,
        registry: ToolRegistry,
        executor: ToolHandlerTable,
        settings: Optional[Settings] = None,
        cache: Optional[ResultCache] = None,
    ):
        self.registry = registry
        self.executor = executor
        self.settings = settings or default_settings
        self.cache = cache if cache is not None else ResultCache()
        self._inflight: Dict[str, "asyncio.Future[ToolResult]"] = {}

    async def call_tool(self, name: str, params: Any, options: Optional[CallOptions] = None) -> ToolResult:
        """Execute a registered tool. Never raises for tool failures; check ``success``."""
        options = options or CallOptions()
        t0 = time.monotonic()

        if not self.registry.has(name):
            logger.warning(f"Unknown tool: {name}")
            return ToolResult(tool=name, success=False, error=f'Tool "{name}" not found',
                              execution_time=_elapsed_ms(t0))

        if not options.cache:
            return await self._execute(name, params, options, t0)

        key = cache_key(name, params)
        entry = self.cache.get(key)
        if entry is not None:
            logger.debug(f"Cache hit: {name}")
            return ToolResult(tool=name, result=entry.result, success=True,
                              metadata={"from_cache": True}, execution_time=0)

        # Single flight: identical concurrent calls share one execution
        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight call: {name}")
            shared = await asyncio.shield(pending)
            return replace(shared, metadata={**shared.metadata, "coalesced": True})

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._execute(name, params, options, t0)
            if result.success:
                ttl = options.cache_ttl_ms if options.cache_ttl_ms is not None else self.settings.cache_ttl_ms
                self.cache.set(key, name, result.result, ttl)
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)
            if not future.done():
                # Leader was cancelled; followers get a failed result, not the cancellation
                future.set_result(ToolResult(tool=name, success=False, error=f"Call to {name} was cancelled",
                                             execution_time=_elapsed_ms(t0)))

    async def _execute(self, name: str, params: Any, options: CallOptions, t0: float) -> ToolResult:
        metadata: Dict[str, Any] = {}
        try:
            enriched = params
            if options.incorporation is not None and options.incorporation.enabled:
                enriched, used = await self._incorporate(name, params, options.incorporation, options.context)
                if used:
                    metadata["incorporated"] = list(used)
            value = await self.executor.execute(name, enriched)
        except Exception as e:
            elapsed = _elapsed_ms(t0)
            logger.error(f"Tool {name} failed after {elapsed:.0f}ms: {e}", exc_info=True)
            return ToolResult(tool=name, success=False, error=str(e) or type(e).__name__,
                              metadata=metadata, execution_time=elapsed)

        elapsed = _elapsed_ms(t0)
        logger.info(f"Tool {name}: {elapsed:.0f}ms -> ok")
        return ToolResult(tool=name, result=value, success=True, metadata=metadata, execution_time=elapsed)

    async def _incorporate(
        self,
        name: str,
        params: Any,
        incorporation: IncorporationOptions,
        context: Mapping[str, Any],
    ) -> Tuple[Any, Dict[str, Any]]:
        related = self.registry.interacts_with(name)
        tools = [t for t in incorporation.tools if t in related]
        if not tools:
            return params, {}
        if not isinstance(params, Mapping):
            logger.warning(f"Skipping incorporation for {name}: parameters are not a mapping")
            return params, {}

        enriched = dict(params)
        results: Dict[str, Any] = {}

        def absorb(tool: str, sub: ToolResult):
            nonlocal enriched
            if not sub.success:
                logger.info(f"Incorporation source {tool} failed for {name}: {sub.error}")
                return
            results[tool] = sub.result
            if not incorporation.pure_mode:
                enriched = {**enriched, "enrichments": {**enriched.get("enrichments", {}), tool: sub.result}}

        mode = IncorporationMode(incorporation.mode)
        if mode is IncorporationMode.SEQUENTIAL:
            for tool in tools:
                absorb(tool, await self.call_tool(tool, {"context": dict(context), "params": enriched}))

        elif mode is IncorporationMode.PARALLEL:
            snapshot = dict(enriched)
            subs = await asyncio.gather(*(
                self.call_tool(tool, {"context": dict(context), "params": snapshot}) for tool in tools
            ))
            # Merge in declared order regardless of completion order
            for tool, sub in zip(tools, subs):
                absorb(tool, sub)

        else:
            scope = {"context": context, "params": params}
            for tool in tools:
                condition = incorporation.conditions.get(tool)
                if condition is None or not holds(condition, scope):
                    logger.debug(f"Condition not met, skipping {tool} for {name}")
                    continue
                absorb(tool, await self.call_tool(tool, {"context": dict(context), "params": enriched}))

        if incorporation.pure_mode:
            return {**params, "incorporation_results": results}, results
        return enriched, results

    def cached_results(self, name: str) -> List[Any]:
        return self.cache.results_for(name)

    def clear_cache(self):
        self.cache.clear()
        logger.info("Result cache cleared")

    def clear_tool_cache(self, name: str) -> int:
        removed = self.cache.clear_tool(name)
        logger.info(f"Result cache cleared for {name}: {removed} entries")
        return removed
