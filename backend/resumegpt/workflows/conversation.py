import json
import traceback
from typing import Optional

from ..core.errors import MalformedOutput, ModelUnavailable
from ..core.validator import PatchValidator
from ..factories.agent_factory import SpecialisedAgentFactory
from ..graph.graph import TurnGraph
from ..spec.document_models import Resume
from ..spec.models import ChatConfig
from ..spec.output_models import PatchWarning, Turn, TurnResult
from ..utils.logger import JSONLLogger
from .processor import parse_chat_envelope, to_plain_text, turns_to_messages
from .prompts.system_prompts import (
    ApologyMessage,
    DefaultAcknowledgement,
    UnavailableMessage,
)
from .sync import DocumentSession


class MessageTooLong(ValueError):
    pass


class ResumeConversation:
    """
    Runs chat turns: user message in, acknowledgement and merged resume out.

    The document only changes after the reply has been parsed and validated;
    any failure leaves it exactly as it was and resolves to an apology turn.
    """

    def __init__(
        self,
        agent_factory: SpecialisedAgentFactory,
        config: ChatConfig,
        logger: Optional[JSONLLogger] = None,
        validator: Optional[PatchValidator] = None,
    ):
        self.config = config
        self.logger = logger
        self.validator = validator or PatchValidator(Resume, logger=logger)

        prompts = agent_factory.prompt_factory
        document_fields = list(Resume.model_fields)
        self.graph = TurnGraph(
            agent=agent_factory.create_agent("Resume_Chat"),
            parser=lambda raw: parse_chat_envelope(raw, document_fields),
            instruction=prompts.system_instruction("Resume_Chat"),
            strict_instruction=prompts.system_instruction("Resume_Chat", strict=True),
            retry_budget=config.model.retry_budget,
        )

    def run_turn(self, session: DocumentSession, message: str) -> TurnResult:
        message = (message or "").strip()
        if not message:
            raise ValueError("Missing message")
        if len(message) > self.config.max_message_length:
            raise MessageTooLong(
                f"Message exceeds {self.config.max_message_length} characters"
            )

        with session.generation():
            print(f'{"="*60}\nChat turn: session {session.session_id}\n{"="*60}')
            document = session.document
            window = session.history[-self.config.context_turns:]
            user_turn = Turn.from_text("user", message)
            session.append_turns(user_turn)

            inputs = {
                "history": turns_to_messages(window),
                "message": message,
                "document": json.dumps(document.model_dump(), ensure_ascii=False),
            }

            try:
                final_state = self.graph.invoke(inputs)
            except ModelUnavailable as e:
                return self._fail(session, message, e, UnavailableMessage, retryable=True)

            if final_state["error"] is not None:
                error = MalformedOutput(final_state["error"], raw_output=final_state["raw_output"])
                return self._fail(session, message, error, ApologyMessage, retryable=False)

            envelope = final_state["parsed"]
            validation = self.validator.validate(envelope.updatedSection)
            updated = session.apply_patch(validation.patch, origin="chat")

            acknowledgement = to_plain_text(envelope.acknowledgement) or DefaultAcknowledgement
            session.append_turns(Turn.from_text("model", acknowledgement))
            saved = session.persist()

            warnings = [w.to_dict() for w in validation.warnings]
            if self.logger is not None:
                self.logger.log_turn(
                    session_id=session.session_id,
                    owner_id=session.owner_id,
                    input_message=message,
                    output_message=final_state["raw_output"],
                    attempts=final_state["attempts"],
                    warnings=warnings,
                    latency_metrics=final_state["latency_metrics"],
                )

            return TurnResult(
                status="ok",
                acknowledgement=acknowledgement,
                document=updated,
                warnings=[PatchWarning(**w) for w in warnings],
                saved=saved,
            )

    def _fail(
        self,
        session: DocumentSession,
        message: str,
        error: Exception,
        apology: str,
        retryable: bool,
    ) -> TurnResult:
        print(f"{'='*60}\nTurn failed for session {session.session_id}: {error}\n{'='*60}")
        if self.logger is not None:
            self.logger.log_turn_error(
                session_id=session.session_id,
                owner_id=session.owner_id,
                error_kind=type(error).__name__,
                error_message=str(error),
                traceback="".join(traceback.format_exception(error)),
            )

        session.append_turns(Turn.from_text("model", apology))
        saved = session.persist()
        return TurnResult(
            status="failed",
            acknowledgement=apology,
            document=session.document,
            saved=saved,
            retryable=retryable,
            error=type(error).__name__,
        )
