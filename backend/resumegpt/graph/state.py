from typing import TypedDict, Dict, Any

class TurnGraphState(TypedDict):
    # Prompt variables for the agent, minus the system instruction
    inputs: Dict[str, Any]
    system_instruction: str

    # Generation bookkeeping
    attempts: int
    raw_output: str | None
    parsed: Any
    error: str | None
    latency_metrics: Dict[str, Any]
