"""
AI drafting of the summary and of work experience entries.

Both calls go through the OpenAI chat completions API. An empty answer is
treated as a transient failure (``GenerationError``) the user can retry.
"""

import logging
import re
from typing import Optional

from openai import AsyncOpenAI

from resume_builder.core.config import settings
from resume_builder.core.exceptions import GenerationError, GenerationUnavailableError
from resume_builder.editor.models import WorkExperience
from resume_builder.editor.validation import GenerateSummaryInput, GenerateWorkExperienceInput

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = """
You are a job resume generator AI. Your task is to write a professional introduction summary for a resume given the user's provided data.
Only return the summary and do not include any other information in the response. Keep it concise and professional.
""".strip()

WORK_EXPERIENCE_SYSTEM_PROMPT = """
You are a job resume generator AI. Your task is to generate a single work experience entry based on the user input.
Your response must adhere to the following structure. You can omit fields if they can't be inferred from the provided data, but don't add any new ones.

Job title: <job title>
Company: <company name>
Start date: <format: YYYY-MM-DD> (only if provided)
End date: <format: YYYY-MM-DD> (only if provided)
Description: <an optimized description in bullet format, might be inferred from the job title>
""".strip()


_client: Optional[AsyncOpenAI] = None


def get_openai_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        if not settings.OPENAI_API_KEY:
            raise GenerationUnavailableError()
        _client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    return _client


def build_summary_prompt(data: GenerateSummaryInput) -> str:
    work = "\n\n".join(
        f"Position: {exp.position or 'N/A'} at {exp.company or 'N/A'} "
        f"from {exp.start_date or 'N/A'} to {exp.end_date or 'Present'}\n\n"
        f"Description:\n{exp.description or 'N/A'}"
        for exp in data.work_experiences
    )
    education = "\n\n".join(
        f"Degree: {edu.degree or 'N/A'} at {edu.school or 'N/A'} "
        f"from {edu.start_date or 'N/A'} to {edu.end_date or 'N/A'}"
        for edu in data.educations
    )
    return (
        "Please generate a professional resume summary from this data:\n\n"
        f"Job title: {data.job_title or 'N/A'}\n\n"
        f"Work experience:\n{work}\n\n"
        f"Education:\n{education}\n\n"
        f"Skills:\n{', '.join(data.skills)}"
    )


def build_work_experience_prompt(data: GenerateWorkExperienceInput) -> str:
    return f"Please provide a work experience entry from this description:\n{data.description}"


_JOB_TITLE_RE = re.compile(r"Job title: (.*)")
_COMPANY_RE = re.compile(r"Company: (.*)")
_START_RE = re.compile(r"Start date: (\d{4}-\d{2}-\d{2})")
_END_RE = re.compile(r"End date: (\d{4}-\d{2}-\d{2})")
_DESCRIPTION_RE = re.compile(r"Description:([\s\S]*)")


def parse_work_experience(text: str) -> WorkExperience:
    """Pull the template fields out of a model answer; missing ones stay empty."""

    def first(pattern: re.Pattern) -> Optional[str]:
        m = pattern.search(text)
        return m.group(1).strip() if m else None

    start, end = first(_START_RE), first(_END_RE)
    try:
        return WorkExperience(
            position=first(_JOB_TITLE_RE),
            company=first(_COMPANY_RE),
            start_date=start,
            end_date=end,
            description=first(_DESCRIPTION_RE),
        )
    except ValueError:
        # e.g. "2023-02-30": looks like a date but isn't one
        logger.info("Dropping unparseable dates from generated work experience: %s / %s", start, end)
        return WorkExperience(
            position=first(_JOB_TITLE_RE),
            company=first(_COMPANY_RE),
            description=first(_DESCRIPTION_RE),
        )


async def _complete(client: AsyncOpenAI, system_prompt: str, user_prompt: str) -> str:
    completion = await client.chat.completions.create(
        model=settings.OPENAI_MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    )
    content = completion.choices[0].message.content if completion.choices else None
    if not content:
        raise GenerationError()
    return content


async def generate_summary(data: GenerateSummaryInput, client: AsyncOpenAI = None) -> str:
    client = client or get_openai_client()
    logger.info("Generating summary for job title %r", data.job_title)
    return (await _complete(client, SUMMARY_SYSTEM_PROMPT, build_summary_prompt(data))).strip()


async def generate_work_experience(data: GenerateWorkExperienceInput, client: AsyncOpenAI = None) -> WorkExperience:
    client = client or get_openai_client()
    logger.info("Generating work experience from %d characters of input", len(data.description))
    text = await _complete(client, WORK_EXPERIENCE_SYSTEM_PROMPT, build_work_experience_prompt(data))
    return parse_work_experience(text)
