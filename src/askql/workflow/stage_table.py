"""
Stage table for the AskQL workflow.

The workflow is an ordered list of (stage, handler) steps plus a separate
routing table that says where each stage goes next. A routing entry is a
fixed next stage, a router whose Route is looked up in a route map, or
FINISH. The table is checked once at construction and read-only after.

Usage:
    table = StageTable(
        steps=[(StageName.SCHEMA_LOADING, stages.load_schema), ...],
        routing={StageName.SCHEMA_LOADING: goto(StageName.NL_TO_SQL), ...},
        error_stage=StageName.ERROR_HANDLING,
    )
    next_stage = table.next_stage(StageName.SCHEMA_LOADING, state)
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..domain.base_enums import Route, StageName
from ..domain.errors import WorkflowConfigurationError
from ..domain.pipeline import PipelineState
from ..domain.types import StateUpdate

StageHandler = Callable[[PipelineState], Awaitable[StateUpdate]]
Router = Callable[[PipelineState], Route]


@dataclass(frozen=True)
class Next:
    """Routing entry of one stage. With neither stage nor router the run ends."""

    stage: Optional[StageName] = None
    router: Optional[Router] = None
    routes: Optional[Mapping[Route, StageName]] = None

    def targets(self) -> List[StageName]:
        if self.routes is not None:
            return list(self.routes.values())
        return [self.stage] if self.stage is not None else []


FINISH = Next()


def goto(stage: StageName) -> Next:
    return Next(stage=stage)


def routed(router: Router, routes: Mapping[Route, StageName]) -> Next:
    if not routes:
        raise WorkflowConfigurationError("A routed entry needs at least one route")
    return Next(router=router, routes=MappingProxyType(dict(routes)))


class StageTable:
    """
    Immutable stage order and routing.

    The entry stage is the first step. error_stage is where the
    orchestrator jumps when a stage raises.

    Raises:
        WorkflowConfigurationError: If a stage is listed twice, has no
            routing entry, routes to an unlisted stage, or the routing
            contains a cycle
    """

    def __init__(
        self,
        steps: Sequence[Tuple[StageName, StageHandler]],
        routing: Mapping[StageName, Next],
        error_stage: StageName,
    ):
        if not steps:
            raise WorkflowConfigurationError("Stage table needs at least one step")

        handlers: Dict[StageName, StageHandler] = {}
        for stage, handler in steps:
            if stage in handlers:
                raise WorkflowConfigurationError(f"Stage '{stage.value}' listed twice")
            handlers[stage] = handler

        if error_stage not in handlers:
            raise WorkflowConfigurationError(f"Error stage '{error_stage.value}' is not listed")

        extra = [stage.value for stage in routing if stage not in handlers]
        if extra:
            raise WorkflowConfigurationError(
                f"Routing for unlisted stage(s): {', '.join(extra)}",
                details={"stages": extra},
            )

        for stage in handlers:
            if stage not in routing:
                raise WorkflowConfigurationError(
                    f"Stage '{stage.value}' has no routing entry",
                    details={"stage": stage.value},
                )
            for target in routing[stage].targets():
                if target not in handlers:
                    raise WorkflowConfigurationError(
                        f"Stage '{stage.value}' routes to unlisted stage '{target.value}'",
                        details={"source": stage.value, "target": target.value},
                    )

        self._entry = steps[0][0]
        self._error_stage = error_stage
        self._handlers = MappingProxyType(handlers)
        self._routing = MappingProxyType(dict(routing))
        self._check_acyclic()

    @property
    def entry(self) -> StageName:
        return self._entry

    @property
    def error_stage(self) -> StageName:
        return self._error_stage

    @property
    def stages(self) -> List[StageName]:
        return list(self._handlers)

    def handler(self, stage: StageName) -> StageHandler:
        return self._handlers[stage]

    def routing(self, stage: StageName) -> Next:
        return self._routing[stage]

    def next_stage(self, stage: StageName, state: PipelineState) -> Optional[StageName]:
        """
        Stage that follows `stage` for this state, or None when the run ends.

        Raises:
            WorkflowConfigurationError: If a router returns a route with no target
        """
        entry = self._routing[stage]
        if entry.router is None:
            return entry.stage

        route = entry.router(state)
        if route not in (entry.routes or {}):
            route_name = getattr(route, "value", str(route))
            raise WorkflowConfigurationError(
                f"Router for stage '{stage.value}' returned unmapped route '{route_name}'",
                details={"stage": stage.value, "route": route_name},
            )
        return entry.routes[route]

    def _check_acyclic(self) -> None:
        # stages on the current path and stages fully explored
        on_path: List[StageName] = []
        done = set()

        def visit(stage: StageName) -> None:
            on_path.append(stage)
            for target in self._routing[stage].targets():
                if target in on_path:
                    cycle = [s.value for s in on_path[on_path.index(target):]] + [target.value]
                    raise WorkflowConfigurationError(
                        f"Stage routing contains a cycle: {' -> '.join(cycle)}",
                        details={"cycle": cycle},
                    )
                if target not in done:
                    visit(target)
            on_path.pop()
            done.add(stage)

        for stage in self._handlers:
            if stage not in done:
                visit(stage)
