"""
Routing functions evaluated after Translate, Validate and Execute.

Each one inspects the state and returns a Route; the stage table maps
the route to the next stage. Experiment has no router: it always
continues to Execute.
"""

from ..config_constants import CONFIDENCE_THRESHOLD
from ..domain.base_enums import Route
from ..domain.pipeline import PipelineState


def route_after_translate(state: PipelineState) -> Route:
    if state.has_error:
        return Route.ERROR
    return Route.VALIDATE


def route_after_validate(state: PipelineState) -> Route:
    """
    Decide between executing the query as-is and looking for alternatives.

    Any doubt (invalid, not recommended for execution, or low confidence)
    sends the query through Experiment first.
    """
    if state.has_error or state.validation is None:
        return Route.ERROR

    validation = state.validation
    low_confidence = state.confidence is not None and state.confidence < CONFIDENCE_THRESHOLD

    if not validation.is_valid or not validation.should_execute or low_confidence:
        return Route.EXPERIMENT

    return Route.EXECUTE


def route_after_execute(state: PipelineState) -> Route:
    if state.has_error:
        return Route.ERROR
    if state.execution_result is None or not state.execution_result.success:
        return Route.ERROR
    return Route.INTERPRET
