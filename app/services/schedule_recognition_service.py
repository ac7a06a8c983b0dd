"""
Schedule Recognition Service
Turns a voice transcript or a medicine package / prescription photo into
candidate medication schedules using the OpenAI API.

Any failure returns None so the caller can fall back to manual entry.
"""

import base64
import json
import logging
from datetime import date
from typing import Any, List, Optional

from openai import AsyncOpenAI
from pydantic import ValidationError

from app.config import get_openai_client, settings
from app.schemas.medication_schemas import CandidateSchedule

logger = logging.getLogger(__name__)


SCHEDULE_FORMAT = """Return a JSON object of the form:
{{
    "medications": [
        {{
            "medicine_name": "string",
            "dosage": "string",
            "frequency_per_day": 1,
            "intake_times": ["morning"],
            "duration_days": 1,
            "start_date": "YYYY-MM-DD",
            "end_date": "YYYY-MM-DD",
            "notes": "string"
        }}
    ]
}}

INTAKE TIME MAPPING:
- "once a day" or "daily": ["morning"]
- "twice a day": ["morning", "evening"]
- "three times a day": ["morning", "afternoon", "evening"]
- "at bedtime": ["bedtime"]
- If specific times are mentioned, use them directly (e.g. ["10:00", "22:00"]).
"""

TRANSCRIPT_PROMPT = """You are a precise medication scheduling assistant. Convert the user's
voice transcript into structured medication schedules.

TRANSCRIPT:
"{transcript}"

CURRENT DATE: {current_date}

RULES:
1. If the transcript is ambiguous, conversational, or has no clear medication
   instruction, return {{"medications": []}}.
2. Every entry needs a non-empty medicine_name and dosage. Keep unusual names
   exactly as heard. Use "1 dose" when the dosage is unclear.
3. Resolve relative dates ("starting tomorrow") against the current date.

""" + SCHEDULE_FORMAT

PACKAGE_PROMPT = """You are reading a photo of a medicine package or a prescription.
List every medication you can read with its dosing instructions.

CURRENT DATE: {current_date}

Dosing abbreviations: "od" = once daily, "bd" = twice daily,
"tds" = three times daily, "qds" = four times daily, "nocte" = at bedtime.
If the duration is not stated, use 7 days. Return {{"medications": []}} when
nothing legible is found.

""" + SCHEDULE_FORMAT


class ScheduleRecognitionService:

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = settings.OPENAI_MODEL
    ):
        self.client = client if client is not None else get_openai_client()
        self.model = model

    async def schedule_from_transcript(
        self,
        transcript: str,
        current_date: Optional[date] = None
    ) -> Optional[List[CandidateSchedule]]:
        if not transcript or not transcript.strip():
            return []

        prompt = TRANSCRIPT_PROMPT.format(
            transcript=transcript.strip(),
            current_date=(current_date or date.today()).isoformat()
        )
        return await self._recognize([{"role": "user", "content": prompt}])

    async def recognize_package_image(
        self,
        image_data: bytes,
        current_date: Optional[date] = None,
        mime_type: str = "image/jpeg"
    ) -> Optional[List[CandidateSchedule]]:
        base64_image = base64.b64encode(image_data).decode('utf-8')
        prompt = PACKAGE_PROMPT.format(current_date=(current_date or date.today()).isoformat())

        return await self._recognize([
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{base64_image}"}}
                ]
            }
        ])

    async def _recognize(self, messages: List[Any]) -> Optional[List[CandidateSchedule]]:
        if self.client is None:
            logger.warning("OPENAI_API_KEY not configured, schedule recognition unavailable")
            return None

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You extract medication schedules. You never give medical advice."
                    },
                    *messages
                ],
                response_format={"type": "json_object"},
                temperature=0,
                max_tokens=1000
            )
            content = response.choices[0].message.content
        except Exception as e:
            logger.error(f"Schedule recognition request failed: {e}")
            return None

        return parse_candidates(content)


def parse_candidates(content: Optional[str]) -> Optional[List[CandidateSchedule]]:
    """Parse model output; invalid entries are dropped, unreadable output gives None"""
    if not content:
        return None

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Schedule recognition returned invalid JSON: {e}")
        return None

    entries = parsed.get("medications") if isinstance(parsed, dict) else parsed
    if not isinstance(entries, list):
        logger.error("Schedule recognition returned an unexpected structure")
        return None

    candidates = []
    for entry in entries:
        try:
            candidates.append(CandidateSchedule.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Dropping unusable schedule candidate: {e.error_count()} errors")

    logger.info(f"Recognized {len(candidates)} medication schedules")
    return candidates
