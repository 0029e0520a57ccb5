# Terminal front end for the chat engine. Builds the same components as the
# API server, then loops: read a message, run a turn, print the reply.
import argparse
import json
import uuid

from dotenv import load_dotenv

from .core.errors import GenerationInProgress, RenderError
from .core.store import JSONFileSessionStore
from .core.validator import PatchValidator
from .factories.agent_factory import SpecialisedAgentFactory, build_chat_model
from .render.latex import compile_latex, render_resume_latex
from .spec.document_models import Resume
from .spec.models import TEMPLATES, ChatConfig
from .utils.file import write_to_file
from .utils.logger import JSONLLogger
from .workflows.conversation import ResumeConversation
from .workflows.sync import SessionRegistry

USER_ID = "local"

COMMANDS = """Commands:
  /show           print the current resume as JSON
  /pdf [template] compile the resume to output/<session>.pdf
  /quit           exit
"""


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description="Build a resume by chatting with the model")
    parser.add_argument("--config", default="config/chat.yml")
    parser.add_argument("--session", default=None, help="Resume an existing session id")
    args = parser.parse_args()

    config = ChatConfig.from_yaml(args.config)
    logger = JSONLLogger(log_path=config.log_path)
    store = JSONFileSessionStore(data_path=config.data_path)

    validator = PatchValidator(Resume, logger=logger)
    registry = SessionRegistry(
        store=store,
        validator=validator,
        logger=logger,
        max_history_turns=config.max_history_turns,
        max_sessions=config.max_live_sessions,
    )
    agent_factory = SpecialisedAgentFactory(llm=build_chat_model(config.model))
    conversation = ResumeConversation(agent_factory, config, logger=logger, validator=validator)

    session_id = args.session or uuid.uuid4().hex
    session = registry.get(session_id, USER_ID)

    print("\n" + "="*60)
    print(f"RESUMEGPT - session {session_id}")
    print("="*60)
    print(COMMANDS)

    while True:
        try:
            message = input("you> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not message:
            continue
        if message == "/quit":
            break
        if message == "/show":
            print(json.dumps(session.document.model_dump(), indent=2, ensure_ascii=False))
            continue
        if message.startswith("/pdf"):
            template = message[len("/pdf"):].strip() or config.default_template
            if template not in TEMPLATES:
                print(f"Unknown template {template!r}, choose one of {', '.join(TEMPLATES)}")
                continue
            try:
                pdf = compile_latex(
                    render_resume_latex(session.document, template),
                    timeout=config.latex_timeout_seconds,
                )
            except RenderError as e:
                print(f"[Error: {e}]")
                continue
            print(f"Saved {write_to_file(pdf, f'{session_id}.pdf')}")
            continue

        try:
            result = conversation.run_turn(session, message)
        except (ValueError, GenerationInProgress) as e:
            print(f"[Error: {e}]")
            continue

        print(f"resumegpt> {result.acknowledgement}")
        for warning in result.warnings:
            print(f"  (ignored {warning.field}: {warning.reason})")
        if not result.saved:
            print("  (changes were not saved)")

    print("="*60, f"\nSession saved as {session_id}. Resume it with --session {session_id}")


if __name__ == "__main__":
    main()
