from typing import Any, Callable, Dict, Optional
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable


class Agent:
    """A prompt bound to a chat model. Returns the raw text of the reply."""

    def __init__(
        self,
        name: str,
        prompt: ChatPromptTemplate,
        llm: Runnable,
    ) -> None:
        self.name = name
        self.prompt = prompt
        self.llm = llm
        self.chain = self.prompt | self.llm

    def invoke(self, input_data: Dict[str, Any], callbacks: Optional[Callable] = None) -> str:
        config = {"callbacks": [callbacks()]} if callbacks else {}
        result = self.chain.invoke(input_data, config=config)
        return message_text(result)


def message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        # Content blocks: keep only the text parts
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return "" if content is None else str(content)
