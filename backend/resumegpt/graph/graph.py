from typing import Any, Callable, Dict

from langgraph.graph import StateGraph, END

from ..core.agent import Agent
from .node import GenerateNode, RepairNode
from .state import TurnGraphState


class TurnGraph:
    """
    Bounded generate/repair state machine for one model exchange.

        generate --accept--> END
        generate --repair--> repair --> generate
        generate --fail----> END

    A reply that cannot be parsed earns one "repair" per unit of retry budget;
    after that the turn ends with `error` set. ModelUnavailable raised inside
    the generate node propagates to the caller untouched.
    """
    def __init__(
        self,
        agent: Agent,
        parser: Callable[[str], Any],
        instruction: str,
        strict_instruction: str,
        retry_budget: int = 1,
    ):
        self.agent = agent
        self.instruction = instruction
        self.retry_budget = retry_budget

        graph = StateGraph(TurnGraphState)
        graph.add_node("generate", GenerateNode(agent=agent, parser=parser))
        graph.add_node("repair", RepairNode(strict_instruction=strict_instruction))
        graph.set_entry_point("generate")

        graph.add_conditional_edges(
            "generate",
            self.route,
            {"accept": END, "repair": "repair", "fail": END},
        )
        graph.add_edge("repair", "generate")

        self.graph = graph.compile()

    def route(self, state: TurnGraphState) -> str:
        if state.get("error") is None:
            return "accept"
        if state["attempts"] <= self.retry_budget:
            return "repair"
        return "fail"

    def invoke(self, inputs: Dict[str, Any]) -> TurnGraphState:
        initial: TurnGraphState = {
            "inputs": inputs,
            "system_instruction": self.instruction,
            "attempts": 0,
            "raw_output": None,
            "parsed": None,
            "error": None,
            "latency_metrics": {},
        }
        # Each repair costs two steps
        config = {"recursion_limit": 2 * self.retry_budget + 5}
        return self.graph.invoke(initial, config=config)
