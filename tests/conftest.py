import json

import pytest
from langchain_core.messages import AIMessage
from langchain_core.runnables import RunnableLambda

from resumegpt.core.store import InMemorySessionStore
from resumegpt.factories.agent_factory import SpecialisedAgentFactory
from resumegpt.spec.models import ChatConfig
from resumegpt.utils.logger import JSONLLogger
from resumegpt.workflows.conversation import ResumeConversation
from resumegpt.workflows.cover_letter import CoverLetterWriter
from resumegpt.workflows.sync import DocumentSession


class ScriptedModel:
    """Stands in for the chat model: replays canned replies and records every prompt."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.prompts = []

    def respond(self, prompt_value):
        self.prompts.append(prompt_value.to_messages())
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return AIMessage(content=reply)

    @property
    def calls(self):
        return len(self.prompts)

    def as_runnable(self):
        return RunnableLambda(self.respond)


def envelope(acknowledgement="Done.", **updated):
    return json.dumps({"acknowledgement": acknowledgement, "updatedSection": updated})


@pytest.fixture
def reply():
    return envelope


@pytest.fixture
def config(tmp_path):
    return ChatConfig(
        data_path=str(tmp_path / "sessions"),
        log_path=str(tmp_path / "logs" / "test.jsonl"),
    )


@pytest.fixture
def logger(config):
    return JSONLLogger(log_path=config.log_path)


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def session(store, logger):
    return DocumentSession("session-1", "user-1", store=store, logger=logger)


@pytest.fixture
def scripted():
    def _make(*replies):
        return ScriptedModel(replies)
    return _make


@pytest.fixture
def make_conversation(config, logger):
    def _make(model):
        factory = SpecialisedAgentFactory(llm=model.as_runnable())
        return ResumeConversation(factory, config, logger=logger)
    return _make


@pytest.fixture
def make_writer(config, logger):
    def _make(model):
        factory = SpecialisedAgentFactory(llm=model.as_runnable())
        return CoverLetterWriter(factory, config, logger=logger)
    return _make


def read_log(logger):
    return [json.loads(line) for line in logger.read().splitlines() if line.strip()]


@pytest.fixture
def log_entries(logger):
    return lambda: read_log(logger)
