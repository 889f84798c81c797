"""
Shared helpers for the stage executors: one participant call, and a
concurrent fan-out over a group of roles.
"""
import sys, os, asyncio, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from langchain_core.messages import HumanMessage, SystemMessage
from libs.domain_models.workflow import AgentConfig, AgentRole
from libs.errors import StageExecutionError
from libs.llm import get_llm

logger = logging.getLogger(__name__)


def _content_text(response) -> str:
    content = response.content
    # Some providers return a list of content parts
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part)
            for part in content
        ).strip()
    return str(content).strip()


def format_reports(outputs: dict, configs: dict, roles: list[AgentRole] | None = None) -> str:
    """Render prior reports as labelled sections, in role order."""
    sections = []
    for role in roles or list(AgentRole):
        text = outputs.get(role)
        if not text:
            continue
        config = configs.get(role)
        label = config.title if config else role.value
        sections.append(f"=== {label} ===\n{text}")
    return "\n\n".join(sections) if sections else "No prior reports."


async def run_participant(role: AgentRole, config: AgentConfig, api_keys: dict, prompt: str) -> str:
    """Ask one council member; failures are re-raised with the member's name."""
    try:
        llm = get_llm(config.model_name, temperature=config.temperature, api_keys=api_keys)
        response = await llm.ainvoke([
            SystemMessage(content=config.system_prompt),
            HumanMessage(content=prompt),
        ])
    except Exception as e:
        logger.error(f"{role.value} ({config.model_name}) failed: {e}")
        raise StageExecutionError(f"{config.name} ({config.model_name}) failed: {e}") from e
    return _content_text(response)


async def run_participants(
    roles: list[AgentRole],
    agent_configs: dict,
    api_keys: dict,
    build_prompt,
) -> dict[AgentRole, str]:
    """Run every role concurrently; the first failure cancels the rest and fails the group."""
    if not roles:
        return {}

    tasks = [
        asyncio.create_task(run_participant(role, agent_configs[role], api_keys, build_prompt(role)))
        for role in roles
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()

    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info(f"Cancelled {len(pending)} participant call(s) after a failure")

    errors = [task.exception() for task in tasks if task in done and not task.cancelled()]
    failures = [e for e in errors if e is not None]
    if failures:
        raise failures[0]
    return {role: task.result() for role, task in zip(roles, tasks)}
