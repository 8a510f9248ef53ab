# plan_scaffold/planner.py
from __future__ import annotations

import os
from typing import Dict, List, Optional

from tools.llm_client import LLMClient, LLMError, LLMHTTPError, LLMTimeoutError, extract_content
from tools.log_sink import LogFn, log

__all__ = ["Planner", "PlanGenerationError", "plan_max_tokens"]


class PlanGenerationError(RuntimeError):
    """A plan could not be produced; the message is fit to show to the user."""


SYSTEM_PLAN = """You are a senior AI/ML engineer who writes concise, buildable project plans.
Follow the user's exact requirements. Never add files or features they did not ask for."""

USER_PLAN_TEMPLATE = """Create a project plan.

Project Name: {project_name}
User Request: {instruction}

RULES:
1. If the user lists the files they want, plan ONLY those files (plus the folders they mention).
2. Do not add "helpful" extra utilities, configs or scripts.
3. Start with a section titled "PROJECT STRUCTURE" that draws the full tree with
   Unicode box characters, one entry per line, folders ending in "/", for example:

{project_name}/
├── README.md          # project documentation
└── src/
    └── main.py        # entry point

4. After the tree, describe the implementation of each file and the technical choices.
"""

USER_REVISE_TEMPLATE = """Improve the AI project plan based on the user's feedback.

Project: {project_name}
Original Instruction: {instruction}
User Feedback: {feedback}

- Implement exactly the changes the feedback asks for (add, remove or swap features and technologies).
- Keep the rest of the project structure intact.
- Be specific about how each requested change is implemented.
- Keep the "PROJECT STRUCTURE" section with the full Unicode tree of the revised project.
"""

USER_ALTERNATIVE_TEMPLATE = """Generate an alternative AI project plan with a different approach.

Project: {project_name}
Instruction: {instruction}

- Use a different architecture, framework or methodology while meeting the same requirements.
- Include the complete folder and file organization in a "PROJECT STRUCTURE" section drawn as a Unicode tree.
- Focus on practical implementation.
"""


def plan_max_tokens() -> int:
    try:
        return int(os.getenv("LLM_PLAN_MAX_TOKENS", "4000").strip())
    except ValueError:
        return 4000


def _friendly(e: LLMError) -> str:
    if isinstance(e, LLMTimeoutError):
        return "Request timeout - please try again"
    if isinstance(e, LLMHTTPError):
        return str(e)
    if type(e) is LLMError:
        return "Connection lost to AI service - please check your internet connection and try again"
    return str(e)


class Planner:
    def __init__(self, client: Optional[LLMClient] = None, logger: Optional[LogFn] = None) -> None:
        self.client = client or LLMClient(logger=logger)
        self.logger = logger

    def _ask(self, user: str, *, model: Optional[str], tag: str, **kwargs) -> str:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": SYSTEM_PLAN},
            {"role": "user", "content": user},
        ]
        try:
            resp = self.client.chat(messages, model=model, tag=tag, **kwargs)
            text = extract_content(resp)
        except LLMError as e:
            log(f"[plan:error] {tag}: {type(e).__name__}: {e}", self.logger)
            raise PlanGenerationError(_friendly(e)) from e
        if not text.strip():
            raise PlanGenerationError("Failed to generate plan: the model returned an empty response")
        log(f"[plan] {tag}: {len(text)} chars", self.logger)
        return text.strip()

    def generate_plan(self, project_name: str, instruction: str, model: Optional[str] = None) -> str:
        user = USER_PLAN_TEMPLATE.format(project_name=project_name, instruction=instruction)
        return self._ask(user, model=model, tag="plan", max_tokens=plan_max_tokens(), temperature=0.7)

    def rethink_plan(
        self,
        project_name: str,
        instruction: str,
        feedback: Optional[str] = None,
        model: Optional[str] = None,
    ) -> str:
        """Revise the plan from user feedback, or propose an alternative when there is none."""
        if feedback and feedback.strip():
            user = USER_REVISE_TEMPLATE.format(
                project_name=project_name, instruction=instruction, feedback=feedback.strip()
            )
            tag = "plan:revise"
        else:
            user = USER_ALTERNATIVE_TEMPLATE.format(project_name=project_name, instruction=instruction)
            tag = "plan:alternative"
        return self._ask(user, model=model, tag=tag)
