# detail_service/protocol/prompts.py
"""
Prompt construction for the search-then-answer pipeline.

The model is asked to reply with a "Step-by-step reasoning:" section followed
by a "Final Answer:" section; `detail_service.protocol.sections` splits the
reply back apart.
"""
import json
from typing import Any, Dict, List, Optional

REASONING_SYSTEM_PROMPT = """You are an AI assistant that specializes in step-by-step reasoning and providing well-supported answers.
Your response must follow this exact format:

Step-by-step reasoning:
[Your detailed reasoning process, including:
1. Analysis of the question
2. Key points from the search results
3. Logical connections and deductions
4. Consideration of different perspectives
5. Final synthesis]

Final Answer:
[Your concise, well-supported answer based on the reasoning above]

Guidelines:
1. Break down your reasoning into clear, logical steps
2. Use specific information from the search results to support your reasoning
3. Consider multiple perspectives when relevant
4. Provide a clear, concise final answer that directly addresses the question
5. Always maintain this exact format with the headers "Step-by-step reasoning:" and "Final Answer:"
6. Keep the reasoning section detailed but organized
7. Make the final answer concise and actionable"""

USER_PROMPT_TEMPLATE = """Based on the following search results, please provide a comprehensive and detailed response.

First, carefully analyze the information and provide your step-by-step reasoning process. Consider different aspects, verify facts from multiple sources, and explain your thought process thoroughly.

Then, provide a comprehensive final answer that synthesizes all the relevant information. Make sure the answer is detailed, well-structured, and addresses the question completely.

Question: {query}

Search Results:
{results}

Please structure your response as follows:

Step-by-step reasoning:
[Your detailed reasoning process here - analyze the search results, compare information, verify facts, and explain your thinking]

Final Answer:
[Your comprehensive and detailed answer here - synthesize the information into a complete response]"""


def build_user_prompt(query: str, results: List[Dict[str, Any]]) -> str:
    return USER_PROMPT_TEMPLATE.format(
        query=query,
        results=json.dumps(results, indent=2, ensure_ascii=False),
    )


def build_messages(
    query: str,
    results: List[Dict[str, Any]],
    history: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, str]]:
    """
    Chat messages for one turn: earlier turns as plain question/answer pairs
    (their search results are not repeated), then the new prompt.
    """
    messages: List[Dict[str, str]] = []
    for turn in history or []:
        if not turn.get("assistant_message"):
            continue
        messages.append({"role": "user", "content": turn.get("query", "")})
        messages.append({"role": "assistant", "content": turn["assistant_message"]})
    messages.append({"role": "user", "content": build_user_prompt(query, results)})
    return messages
