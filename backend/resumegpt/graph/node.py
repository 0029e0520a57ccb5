import time

from typing import Any, Callable, Dict

import httpx
import openai
from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.outputs import LLMResult

from ..core.agent import Agent
from ..core.errors import MalformedOutput, ModelUnavailable
from .state import TurnGraphState

# Failures of the model service itself. Anything else is a bug and propagates as is.
MODEL_ERRORS = (openai.APIError, httpx.HTTPError, TimeoutError, ConnectionError)


class LatencyMonitorCallback(BaseCallbackHandler):
    def __init__(self):
        self.start_time = 0.0
        self.first_token_time = 0.0
        self.token_count = 0
        self.metrics = {}

    def on_llm_start(self, serialized, prompts, **kwargs):
        self.start_time = time.time()

    def on_chat_model_start(self, serialized, messages, **kwargs):
        self.start_time = time.time()

    def on_llm_new_token(self, token: str, **kwargs):
        if self.token_count == 0:
            self.first_token_time = time.time()
            self.metrics["ttft"] = self.first_token_time - self.start_time
        self.token_count += 1

    def on_llm_end(self, response: LLMResult, **kwargs):
        end_time = time.time()
        self.metrics["total_time"] = end_time - self.start_time
        self.metrics["token_count"] = self.token_count

        if self.first_token_time > 0:
            gen_time = end_time - self.first_token_time
            self.metrics["generation_time"] = gen_time
            self.metrics["tokens_per_second"] = (
                self.token_count / gen_time if gen_time > 0 else 0.0
            )
        else:
            self.metrics["generation_time"] = None
            self.metrics["tokens_per_second"] = None


class GenerateNode:
    """Calls the model once and tries to parse the reply into the expected shape."""

    def __init__(self, agent: Agent, parser: Callable[[str], Any]):
        self.agent = agent
        self.parser = parser

    def __call__(self, state: TurnGraphState) -> Dict[str, Any]:
        attempt = state["attempts"] + 1
        print(f'\t* Invoking model: {self.agent.name} (attempt {attempt})')

        callback = LatencyMonitorCallback()
        start_time = time.time()
        try:
            raw_output = self.agent.invoke(
                {**state["inputs"], "system_instruction": state["system_instruction"]},
                callbacks=lambda: callback,
            )
        except MODEL_ERRORS as e:
            raise ModelUnavailable(f"Model call failed: {e}") from e
        print(f"\t* Model call took {time.time() - start_time:.2f} seconds")

        update = {
            "attempts": attempt,
            "raw_output": raw_output,
            "latency_metrics": callback.metrics,
        }
        try:
            update["parsed"] = self.parser(raw_output)
            update["error"] = None
        except MalformedOutput as e:
            print(f"\t* Unparseable reply from {self.agent.name}: {e}")
            update["parsed"] = None
            update["error"] = str(e)
        return update


class RepairNode:
    """Swaps in the stricter instruction before the next generate attempt."""

    def __init__(self, strict_instruction: str):
        self.strict_instruction = strict_instruction

    def __call__(self, state: TurnGraphState) -> Dict[str, Any]:
        return {"system_instruction": self.strict_instruction}
