"""Developer-driven composition patterns.

Each function takes agent *classes*, instantiates them for the duration of
the call and closes them afterwards:

* :func:`chain`             - prompt chaining: output of one agent feeds the next
* :func:`route`             - classify with a JSON-mode router, dispatch to one handler
* :func:`parallel`          - concurrent fan-out, results in input order
* :func:`aggregate`         - fan-out then one aggregation call over all outputs
* :func:`orchestrate`       - planner splits work, workers run concurrently, synthesizer merges
* :func:`evaluate_optimize` - generate / evaluate loop until the evaluator accepts
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Sequence

from pydantic import BaseModel

from agentpipes.core.exceptions import OutputParseError, RoutingError

__all__ = ["chain", "route", "parallel", "aggregate", "orchestrate", "evaluate_optimize", ]

logger = logging.getLogger(__name__)

ACCEPTED = "ACCEPTED"
DEFAULT_MAX_ITERATIONS = 5

AGGREGATE_TEMPLATE = "{outputs}"
WORKER_TEMPLATE = "Overall task:\n{input}\n\nYour subtask:\n{task}"
SYNTHESIS_TEMPLATE = "Original task:\n{input}\n\nResults of the subtasks:\n{outputs}"
REVISION_TEMPLATE = ("{input}\n\nYour previous attempt:\n{draft}\n\n"
                     "Reviewer feedback:\n{feedback}\n\nRevise the attempt to address the feedback.")
EVALUATION_TEMPLATE = ("Task:\n{input}\n\nCandidate answer:\n{draft}\n\n"
                       "Reply with exactly {accept} if the answer is complete and correct, "
                       "otherwise give specific feedback.")


def _is_agent_class(obj: Any) -> bool:
    """True for concrete agent classes (the ones set up by ``__init_subclass__``)."""
    return isinstance(obj, type) and hasattr(obj, "__agent_name__") and "_abstract_agent" not in obj.__dict__


def _check_agents(func_name: str, agents: Sequence[Any]) -> None:
    if not agents:
        raise ValueError(f"{func_name}() requires at least one agent")
    for i, agent_cls in enumerate(agents):
        if not _is_agent_class(agent_cls):
            raise TypeError(f"{func_name}() agents[{i}] must be an agent subclass, got {type(agent_cls).__name__}")


def _check_agent(func_name: str, role: str, agent_cls: Any) -> None:
    if not _is_agent_class(agent_cls):
        raise TypeError(f"{func_name}() {role} must be an agent subclass, got {type(agent_cls).__name__}")


def _sum_tokens(results: Sequence[dict]) -> Dict[str, int]:
    totals = {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}
    for result in results:
        for key in totals:
            totals[key] += result.get("tokens", {}).get(key, 0)
    return totals


def _field(parsed: Any, key: str) -> Any:
    if isinstance(parsed, BaseModel):
        return getattr(parsed, key, None)
    if isinstance(parsed, Mapping):
        return parsed.get(key)
    return None


def _label(agent_cls: type) -> str:
    return agent_cls.__agent_name__


async def _run(agent_cls: type, input: str) -> dict:
    agent = agent_cls()
    try:
        return await agent.process(input)
    finally:
        await agent.aclose()


async def chain(agents: Sequence[type], *, input: str) -> dict:
    """Run agents sequentially, each agent's output becoming the next agent's input.

    Returns:
        The last agent's result with token counts summed over the chain and
        ``steps_output`` holding every intermediate output in order.

    Example::

        result = await chain([Summarizer, FeatureExtractor, CopyWriter], input=product_text)
    """
    _check_agents("chain", agents)

    current_input = input
    results: List[dict] = []
    for agent_cls in agents:
        result = await _run(agent_cls, current_input)
        results.append(result)
        logger.debug("chain: %s produced %d chars", _label(agent_cls), len(result["output"]))
        current_input = result["output"]

    final = dict(results[-1])
    final["tokens"] = _sum_tokens(results)
    final["steps_output"] = [result["output"] for result in results]
    return final


async def route(router: type, routes: Mapping[str, type], *, input: str, key: str = "route") -> dict:
    """Classify ``input`` with ``router`` and dispatch it to the chosen handler.

    The router must run in JSON mode and answer with an object whose ``key``
    field names one of ``routes``.

    Raises:
        RoutingError: If the router's choice is missing or not in ``routes``.
    """
    _check_agent("route", "router", router)
    if not routes:
        raise ValueError("route() requires at least one route")
    _check_agents("route", list(routes.values()))

    decision = await _run(router, input)
    choice = _field(decision["output_parsed"], key)
    if isinstance(choice, str):
        choice = choice.strip()
    # Lists and objects are not route names (and are unhashable)
    if not isinstance(choice, str) or choice not in routes:
        raise RoutingError(agent_name=_label(router), route=choice, choices=tuple(routes))

    logger.info("route: %s chose '%s'", _label(router), choice)
    result = dict(await _run(routes[choice], input))
    result["route"] = choice
    result["tokens"] = _sum_tokens([decision, result])
    return result


async def parallel(agents: Sequence[type], *, input: str) -> List[dict]:
    """Run agents concurrently on the same input.

    If any agent raises, the others are still awaited, then the first
    exception (in the order of ``agents``) is re-raised.

    Returns:
        One result dict per agent, in the order of ``agents``.
    """
    _check_agents("parallel", agents)
    results = await asyncio.gather(*(_run(agent_cls, input) for agent_cls in agents), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


async def aggregate(agents: Sequence[type], aggregator: type, *, input: str,
                    template: str = AGGREGATE_TEMPLATE) -> dict:
    """Fan ``input`` out to ``agents`` concurrently, then join their outputs with one ``aggregator`` call.

    ``template`` receives ``{input}`` and ``{outputs}``; outputs are labelled
    with the producing agent's class name.
    """
    _check_agents("aggregate", agents)
    _check_agent("aggregate", "aggregator", aggregator)

    results = await parallel(agents, input=input)
    outputs = "\n\n".join(f"{_label(agent_cls)}:\n{result['output']}" for agent_cls, result in zip(agents, results))
    final = dict(await _run(aggregator, template.format(input=input, outputs=outputs)))
    final["parallel_outputs"] = {_label(agent_cls): result["output"] for agent_cls, result in zip(agents, results)}
    final["tokens"] = _sum_tokens([*results, final])
    return final


def _subtasks(plan: Any, key: str) -> List[str]:
    tasks = _field(plan, key)
    if not isinstance(tasks, list):
        return []
    subtasks: List[str] = []
    for task in tasks:
        if isinstance(task, str):
            text = task
        elif isinstance(task, BaseModel):
            text = task.model_dump_json()
        elif isinstance(task, Mapping):
            text = str(task.get("description") or task.get("task") or dict(task))
        else:
            text = str(task)
        if text.strip():
            subtasks.append(text.strip())
    return subtasks


async def orchestrate(orchestrator: type, worker: type, synthesizer: type, *, input: str, key: str = "tasks") -> dict:
    """Planner / worker / synthesizer fan-out.

    ``orchestrator`` runs in JSON mode and returns ``{key: [subtask, ...]}``
    where each subtask is a string or an object with a ``description``. One
    ``worker`` run per subtask executes concurrently; ``synthesizer`` merges
    the results into the final answer.
    """
    for role, agent_cls in (("orchestrator", orchestrator), ("worker", worker), ("synthesizer", synthesizer)):
        _check_agent("orchestrate", role, agent_cls)

    plan = await _run(orchestrator, input)
    subtasks = _subtasks(plan["output_parsed"], key)
    if not subtasks:
        raise OutputParseError(agent_name=_label(orchestrator), output=plan["output"],
                               reason=f"expected a non-empty list under '{key}'")
    logger.info("orchestrate: %s planned %d subtask(s)", _label(orchestrator), len(subtasks))

    worker_results = list(await asyncio.gather(
        *(_run(worker, WORKER_TEMPLATE.format(input=input, task=task)) for task in subtasks)))

    outputs = "\n\n".join(f"Subtask {index}: {task}\n{result['output']}"
                          for index, (task, result) in enumerate(zip(subtasks, worker_results), start=1))
    final = dict(await _run(synthesizer, SYNTHESIS_TEMPLATE.format(input=input, outputs=outputs)))
    final["subtasks"] = [{"task": task, "output": result["output"]} for task, result in zip(subtasks, worker_results)]
    final["tokens"] = _sum_tokens([plan, *worker_results, final])
    return final


async def evaluate_optimize(generator: type, evaluator: type, *, input: str,
                            max_iterations: int = DEFAULT_MAX_ITERATIONS, accept: str = ACCEPTED) -> dict:
    """Generate, evaluate, revise; stop as soon as the evaluator answers exactly ``accept``.

    The loop is bounded by ``max_iterations``. Running out of iterations is
    not an error: the last draft is returned with ``accepted`` set to False.

    Returns:
        The generator's last result plus ``accepted``, ``iterations`` and
        ``feedback`` (the evaluator's replies, in order).
    """
    _check_agent("evaluate_optimize", "generator", generator)
    _check_agent("evaluate_optimize", "evaluator", evaluator)
    if max_iterations <= 0:
        raise ValueError("evaluate_optimize() max_iterations must be > 0")

    feedback: List[str] = []
    results: List[dict] = []
    draft_result: dict = {}
    accepted = False
    iteration = 0

    for iteration in range(1, max_iterations + 1):
        prompt = input if not feedback else REVISION_TEMPLATE.format(
            input=input, draft=draft_result["output"], feedback=feedback[-1])
        draft_result = await _run(generator, prompt)
        evaluation = await _run(evaluator, EVALUATION_TEMPLATE.format(
            input=input, draft=draft_result["output"], accept=accept))
        results.extend((draft_result, evaluation))

        verdict = evaluation["output"].strip()
        feedback.append(verdict)
        if verdict == accept:
            accepted = True
            break
        logger.debug("evaluate_optimize: iteration %d rejected", iteration)

    if not accepted:
        logger.warning("evaluate_optimize: no accepted answer after %d iteration(s); returning last draft",
                       max_iterations)

    final = dict(draft_result)
    final["accepted"] = accepted
    final["iterations"] = iteration
    final["feedback"] = feedback
    final["tokens"] = _sum_tokens(results)
    return final
