"""Thought orchestrator: owns sessions and drives the per-step route/call/incorporate loop."""
import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Mapping, Optional

from .config import Settings, settings as default_settings
from .errors import NotFoundError, SessionStateError, ThinkingTimeoutError, ToolExecutionError
from .session import HistoryItem, IncorporationSummary, ThinkingSession, utc_now
from .tools.executor import CallOptions, Handler, IncorporationOptions, ToolHandlerTable, ToolInteractionLayer
from .tools.incorporation import IncorporationSystem
from .tools.registry import ThinkingLevel, ToolRegistry
from .tools.router import RoutingOptions, ThoughtRouter

logger = logging.getLogger(__name__)


@dataclass
class ProcessOptions:
    session_id: Optional[str] = None
    force_tool: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    max_steps: Optional[int] = None
    timeout: Optional[float] = None  # ms
    enable_incorporation: bool = True
    preferred_level: Optional[ThinkingLevel] = None
    # Pre-call enrichment handed to every tool call
    incorporation: Optional[IncorporationOptions] = None
    cache: bool = True


def _log_abandoned(session_id: str, task: "asyncio.Task"):
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"[{session_id}] Step loop failed after timeout: {type(exc).__name__}: {exc}")
    else:
        logger.info(f"[{session_id}] Step loop finished after timeout; result discarded")


class ThoughtOrchestrator:
    def __init__(
        self,
        registry: ToolRegistry,
        executor: Optional[ToolHandlerTable] = None,
        settings: Optional[Settings] = None,
        router: Optional[ThoughtRouter] = None,
        interaction: Optional[ToolInteractionLayer] = None,
        incorporation: Optional[IncorporationSystem] = None,
    ):
        self.registry = registry
        self.settings = settings or default_settings
        self.executor = executor or ToolHandlerTable()
        self.interaction = interaction or ToolInteractionLayer(registry, self.executor, self.settings)
        self.router = router or ThoughtRouter(registry, settings=self.settings)
        self.incorporation = incorporation or IncorporationSystem(registry, self.interaction)
        self._sessions: Dict[str, ThinkingSession] = {}

    # ── Sessions ─────────────────────────────────────────

    def get_session(self, session_id: str) -> Optional[ThinkingSession]:
        return self._sessions.get(session_id)

    def all_sessions(self) -> List[ThinkingSession]:
        return list(self._sessions.values())

    def delete_session(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def register_tool(self, name: str, handler: Handler):
        """Make ``name`` executable; its descriptor must be registered separately."""
        self.executor.register(name, handler)

    def _get_or_create_session(self, request: Any, options: ProcessOptions) -> ThinkingSession:
        if options.session_id and options.session_id in self._sessions:
            session = self._sessions[options.session_id]
            if session.is_terminal:
                raise SessionStateError(f"Session {session.id} is already {session.status.value}")
            session.context.update(options.context)
            return session

        session = ThinkingSession(request, context=options.context, session_id=options.session_id)
        self._sessions[session.id] = session
        logger.info(f"[{session.id}] Session created")
        return session

    # ── Processing ───────────────────────────────────────

    async def process_request(self, request: Any, options: Optional[ProcessOptions] = None) -> ThinkingSession:
        """Run the step loop for ``request`` and return the finished session.

        Step failures mark the session ``error`` and are re-raised.
        """
        options = options or ProcessOptions()
        session = self._get_or_create_session(request, options)

        try:
            if options.timeout:
                result = await self._run_with_timeout(session, request, options)
            else:
                result = await self.execute_thinking_process(session, request, options)
        except Exception as e:
            if not session.is_terminal:
                session.fail(str(e) or type(e).__name__)
            logger.error(f"[{session.id}] Session failed: {type(e).__name__}: {e}")
            raise

        session.complete(result)
        logger.info(f"[{session.id}] Session completed in {len(session.history)} steps")
        return session

    async def _run_with_timeout(self, session: ThinkingSession, request: Any, options: ProcessOptions) -> Any:
        # Only the wait is abandoned on timeout; the step task keeps running.
        task = asyncio.ensure_future(self.execute_thinking_process(session, request, options))
        done, _ = await asyncio.wait({task}, timeout=options.timeout / 1000)
        if task in done:
            return task.result()
        task.add_done_callback(partial(_log_abandoned, session.id))
        raise ThinkingTimeoutError(session.id, options.timeout)

    async def execute_thinking_process(self, session: ThinkingSession, request: Any,
                                       options: ProcessOptions) -> Any:
        current = request
        max_steps = options.max_steps or self.settings.max_steps

        for step in range(max_steps):
            step_context = {**session.context, "step_number": step}
            item = HistoryItem(timestamp=utc_now(), tool=options.force_tool or "", input=current)

            try:
                decision = self.router.route(current, RoutingOptions(
                    force_tool=options.force_tool,
                    preferred_level=options.preferred_level,
                    context=step_context,
                ))
                item.tool = decision.tool
                item.input = decision.params
                item.confidence = decision.confidence
                item.alternatives = decision.alternatives

                call = await self.interaction.call_tool(decision.tool, decision.params, CallOptions(
                    cache=options.cache,
                    incorporation=options.incorporation,
                    context=step_context,
                ))
                if not call.success:
                    if not self.registry.has(decision.tool):
                        raise NotFoundError(f"Tool not found: {decision.tool}")
                    raise ToolExecutionError(decision.tool, f"Tool {decision.tool} failed: {call.error}", call.error)

                output = call.result
                if options.enable_incorporation:
                    batch = await self.incorporation.process_incorporation(decision.tool, output, step_context)
                    output = batch.result
                    item.incorporated = [
                        IncorporationSummary(source=r.source, incorporated_count=r.incorporated_count, success=r.success)
                        for r in batch.incorporations
                    ]
                item.output = output
            except Exception as e:
                item.error = str(e) or type(e).__name__
                session.append(item)
                raise

            session.append(item)
            logger.info(f"[{session.id}] Step {step + 1}/{max_steps}: {decision.tool} "
                        f"(confidence={decision.confidence:.2f})")

            if self.is_processing_complete(decision.tool, output):
                return output
            current = output

        logger.info(f"[{session.id}] Step budget of {max_steps} exhausted, returning last output")
        return current

    def is_processing_complete(self, tool_name: str, output: Any) -> bool:
        descriptor = self.registry.get(tool_name)
        if descriptor is None:
            return True
        if descriptor.level == ThinkingLevel.INTEGRATED:
            return True
        flag = self.settings.completion_flag
        if isinstance(output, Mapping) and flag in output:
            return bool(output[flag])
        return False
