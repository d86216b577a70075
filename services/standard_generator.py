"""Standard generation — ask the completion endpoint to author a rubric."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from config.llm_config import ConnectionConfig
from config.prompts.standard import STANDARD_SYSTEM_PROMPT, build_standard_prompt
from errors.exceptions import ConfigurationError, MalformedResultError
from models.rubric import Rubric
from services.rubric_service import rubric_from_document
from services.scoring_client import ScoringClient, extract_json_object

logger = logging.getLogger(__name__)


async def generate_standard(
    client: ScoringClient,
    system_name: str,
    system_description: str,
    connection: ConnectionConfig,
) -> Rubric:
    """Generate a full evaluation standard and flatten it into a :class:`Rubric`.

    Raises:
        ConfigurationError: Missing name or incomplete connection.
        NetworkError / EmptyResponseError: Transport-level failures.
        MalformedResultError: The reply holds no usable standard document.
    """
    if not system_name.strip():
        raise ConfigurationError("Give the standard a name.", title="No name")
    if not connection.is_complete():
        raise ConfigurationError(
            "Complete the connection settings before generating a standard.",
            title="Connection not configured",
        )

    messages = [
        {"role": "system", "content": STANDARD_SYSTEM_PROMPT},
        {"role": "user", "content": build_standard_prompt(system_name, system_description)},
    ]
    text = await client.complete(messages, connection)
    document = extract_json_object(text)

    try:
        rubric = rubric_from_document(document)
    except (ValueError, ValidationError) as exc:
        logger.warning("Generated standard for %r is unusable: %s", system_name, exc)
        raise MalformedResultError(
            f"Generated standard could not be read: {exc}",
            raw_text=text,
        ) from exc

    if not document.get("name") and rubric.name == rubric.id:
        rubric = rubric.model_copy(update={"name": system_name})
    logger.info("Generated standard %s with %d criteria", rubric.id, len(rubric.criteria))
    return rubric
