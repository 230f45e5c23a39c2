"""
FILE: Agents/report_narrator.py
---------------------------------
Report Narrator agent — writes the interpretation section of the
final report from the finished analysis.

Runs only when the configuration asks for narration. Any failure of the
LLM call is logged and an empty interpretation is returned, so the
report keeps its deterministic conclusions.

Imports:
  - LLM model (ChatGroq, built on first use — needs GROQ_API_KEY)
  - Prompt   ← Prompts/report_narrator_prompt.py
  - Tools    ← Tools/report_narrator.py
"""

import logging

from langchain_groq import ChatGroq
from langchain_core.messages import HumanMessage
from langgraph.prebuilt import create_react_agent

from Prompts.report_narrator_prompt import REPORT_NARRATOR_SYSTEM_PROMPT
from Tools.report_narrator import REPORT_NARRATOR_TOOLS, init_narrator_store
from constants.analysis import DEFAULT_LLM_MODEL

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# AGENT FACTORY
# ─────────────────────────────────────────────

def create_report_narrator_agent(llm_model: str = DEFAULT_LLM_MODEL):
    """Create and return the Report Narrator ReAct agent."""
    model = ChatGroq(
        model=llm_model,
        temperature=0,
    )
    return create_react_agent(
        model=model,
        tools=REPORT_NARRATOR_TOOLS,
        prompt=REPORT_NARRATOR_SYSTEM_PROMPT,
    )


# ─────────────────────────────────────────────
# PUBLIC ENTRY POINT
# ─────────────────────────────────────────────

def run_report_narrator(
    report_output: dict,
    comparison_output: dict,
    diagnostics: dict[str, dict],
    model_fits: list[dict],
    llm_model: str = DEFAULT_LLM_MODEL,
) -> str:
    """
    Entry point called by the final_report node in main.py.

    Returns:
        The interpretation text written by the agent, or "" if the
        agent could not be built or invoked.
    """
    init_narrator_store(
        report_output=report_output,
        comparison_output=comparison_output,
        diagnostics=diagnostics,
        model_fits=model_fits,
    )

    try:
        agent = create_report_narrator_agent(llm_model)
        result = agent.invoke({
            "messages": [HumanMessage(content="Please write the interpretation for this salinity analysis.")]
        })
    except Exception as e:
        logger.warning("Narrator failed, keeping deterministic conclusions: %s", e)
        return ""

    # ── Extract final human-readable response ──
    for msg in reversed(result["messages"]):
        if hasattr(msg, "content") and msg.__class__.__name__ == "AIMessage" and msg.content:
            return str(msg.content).strip()
    return ""
