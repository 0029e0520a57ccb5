import json
from datetime import date
from typing import List, Literal, Optional, Tuple

from ..core.errors import InvalidPatchField, MalformedOutput
from ..core.merge import merge
from ..core.validator import PatchValidator
from ..factories.agent_factory import SpecialisedAgentFactory
from ..graph.graph import TurnGraph
from ..spec.document_models import CoverLetter, Resume
from ..spec.models import ChatConfig
from ..utils.logger import JSONLLogger
from .processor import parse_cover_letter_envelope

Tone = Literal["professional", "friendly", "enthusiastic"]


class CoverLetterWriter:
    """Drafts a full cover letter from a resume and a job description."""

    def __init__(
        self,
        agent_factory: SpecialisedAgentFactory,
        config: ChatConfig,
        logger: Optional[JSONLLogger] = None,
    ):
        self.logger = logger
        self.validator = PatchValidator(CoverLetter, logger=logger)

        prompts = agent_factory.prompt_factory
        self.graph = TurnGraph(
            agent=agent_factory.create_agent("Cover_Letter_Writer"),
            parser=parse_cover_letter_envelope,
            instruction=prompts.system_instruction("Cover_Letter_Writer"),
            strict_instruction=prompts.system_instruction("Cover_Letter_Writer", strict=True),
            retry_budget=config.model.retry_budget,
        )

    def generate(
        self,
        resume: Resume,
        job_description: str,
        company_name: str,
        job_title: str,
        recipient_name: Optional[str] = None,
        tone: Tone = "professional",
        owner_id: Optional[str] = None,
    ) -> Tuple[CoverLetter, List[InvalidPatchField]]:
        if not company_name or not job_title:
            raise ValueError("Company name and job title are required")

        d = date.today()
        today = f"{d:%B} {d.day}, {d.year}"
        final_state = self.graph.invoke({
            "resume": json.dumps(resume.model_dump(), ensure_ascii=False),
            "job_title": job_title,
            "company_name": company_name,
            "recipient_name": recipient_name or "Hiring Manager",
            "tone": tone,
            "today": today,
            "job_description": job_description or "(not provided)",
        })
        if final_state["error"] is not None:
            raise MalformedOutput(final_state["error"], raw_output=final_state["raw_output"])

        validation = self.validator.validate(final_state["parsed"])
        letter = merge(CoverLetter(), validation.patch)

        # Fill what the model left blank from data we already know
        fallback = {
            "companyName": company_name,
            "jobTitle": job_title,
            "recipientName": recipient_name or "Hiring Manager",
            "senderName": resume.name,
            "senderEmail": resume.contact.email,
            "senderPhone": resume.contact.phone,
            "senderAddress": resume.contact.location,
            "signature": resume.name,
            "date": today,
            "closing": "Sincerely,",
        }
        blanks = {k: v for k, v in fallback.items() if not getattr(letter, k) and v}
        letter = merge(letter, blanks)

        if self.logger is not None:
            self.logger.log_event(
                event_name="cover_letter_generated",
                event_metadata={
                    "owner_id": owner_id,
                    "company_name": company_name,
                    "job_title": job_title,
                    "attempts": final_state["attempts"],
                    "warnings": [w.to_dict() for w in validation.warnings],
                },
            )
        return letter, validation.warnings
