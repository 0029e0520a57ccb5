from langchain_core.prompts import(
    ChatPromptTemplate,
    HumanMessagePromptTemplate,
    MessagesPlaceholder,
    SystemMessagePromptTemplate
)

from ..workflows.prompts.cover_letter_prompts import CoverLetterWriterPrompt, StrictCoverLetterPrompt
from ..workflows.prompts.system_prompts import ResumeBuilderPrompt, StrictJSONPrompt

# The instruction text is passed in as a variable rather than baked into the
# template, so the literal JSON braces in it are never parsed as placeholders.
SYSTEM_INSTRUCTIONS = {
    "Resume_Chat": (ResumeBuilderPrompt, StrictJSONPrompt),
    "Cover_Letter_Writer": (CoverLetterWriterPrompt, StrictCoverLetterPrompt),
}


class PromptFactory:
    def __init__(self):
        pass

    def system_instruction(self, prompt_type: str, strict: bool = False) -> str:
        base, repair = SYSTEM_INSTRUCTIONS[prompt_type]
        return base + "\n" + repair if strict else base

    def create_prompt(self, prompt_type: str) -> ChatPromptTemplate:
        prompt = None

        if prompt_type == "Resume_Chat":
            prompt = ChatPromptTemplate(
                messages=[
                    SystemMessagePromptTemplate.from_template("{system_instruction}"),
                    MessagesPlaceholder(variable_name="history"),
                    HumanMessagePromptTemplate.from_template(
                        "{message}\n\nResume Data: {document}"
                    ),
                ],
                input_variables=[
                    'system_instruction',
                    'history',
                    'message',
                    'document',
                ],
            )

        elif prompt_type == "Cover_Letter_Writer":
            prompt = ChatPromptTemplate(
                messages=[
                    SystemMessagePromptTemplate.from_template("{system_instruction}"),
                    HumanMessagePromptTemplate.from_template(
                        "Resume Data: {resume}\n\n"
                        "Job title: {job_title}\n"
                        "Company: {company_name}\n"
                        "Recipient: {recipient_name}\n"
                        "Tone: {tone}\n"
                        "Today's date: {today}\n\n"
                        "Job description:\n{job_description}"
                    ),
                ],
                input_variables=[
                    'system_instruction',
                    'resume',
                    'job_title',
                    'company_name',
                    'recipient_name',
                    'tone',
                    'today',
                    'job_description',
                ],
            )

        if prompt is None:
            raise ValueError(f"Unknown prompt type: {prompt_type}")
        return prompt
