from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI

from ..core.agent import Agent
from ..spec.models import ModelConfig
from .prompt_factory import PromptFactory


def build_chat_model(config: ModelConfig) -> Runnable:
    """ChatOpenAI in JSON mode with a bounded wait and no client-side retries."""
    llm = ChatOpenAI(
        model=config.model_name,
        temperature=config.temperature,
        top_p=config.top_p,
        max_tokens=config.max_output_tokens,
        timeout=config.timeout_seconds,
        max_retries=0,
    )
    return llm.bind(response_format={"type": "json_object"})


class SpecialisedAgentFactory:
    def __init__(self, llm: Runnable):
        self.llm = llm
        self.prompt_factory = PromptFactory()

    def create_agent(self, name: str) -> Agent:
        return Agent(
            name=name,
            prompt=self.prompt_factory.create_prompt(name),
            llm=self.llm,
        )
