#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Prompt Templates
================

Plain ``str.format`` templates used by the search engine and the LLM adapters.
"""

INITIAL_PROMPT = """
You are facing this problem: {problem}

Additional context: {context}

Provide an initial approach or solution to this problem. Think about both analytical reasoning and instinctual feelings about the best path forward.

Your response should be thoughtful and consider both the logical aspects of the problem and any intuitive insights you might have.
"""

THOUGHT_PROMPT = '''
Given the following problem and context:

PROBLEM: {problem}

CONTEXT: {context}

And the current approach being considered:
"""
{current_approach}
"""

Generate a next step, consideration, or alternative approach. Balance logical thinking with intuitive insights.

Your response should demonstrate one or more of these qualities:
1. Perseverance through challenges rather than giving up
2. Confidence when appropriate, even when facing uncertainty
3. Recognition of patterns that might not be immediately obvious
4. Ability to go against conventional wisdom when your instinct suggests it

Your response should be a single comprehensive paragraph explaining your suggested next step or consideration.
'''

EVALUATION_PROMPT = '''
Evaluate the quality of the following approach to this problem:

PROBLEM: {problem}

CONTEXT: {context}

APPROACH:
"""
{approach}
"""

Rate this approach on a scale from 1 to 10, where 10 is best.

Consider:
1. How well does this approach balance analysis with intuition?
2. Does it show perseverance in the face of uncertainty?
3. Is it creative and potentially effective?
4. Does it demonstrate conviction despite possible doubt?
5. Does it recognize patterns or insights that aren't immediately obvious?

Return only a single number from 1 to 10.
'''

CONTENT_ANALYSIS_PROMPT = '''
Analyze the following text and provide scores for these dimensions:
1. Confidence (1-10): How confident does the author appear?
2. Perseverance (1-10): How much determination to continue despite challenges?
3. Instinct vs Analysis (1-10): Is this more instinct-driven (10) or analytical (1)?
4. Emotional State (1-10): How positive is the emotional tone?

Text to analyze:
"""
{text}
"""

Provide your response in JSON format like this: {{"confidence": 7, "perseverance": 8, "instinctVsAnalysis": 6, "emotionalState": 5}}
'''

PERSEVERANCE_ANALYSIS_PROMPT = '''
Analyze the following text for indicators of perseverance and doubt:

"""
{text}
"""

Identify words, phrases, or themes that indicate:
1. Perseverance (continuing despite challenges)
2. Doubt (uncertainty or giving up)

Provide a score from 1-10 where 10 indicates strong perseverance and 1 indicates strong doubt.
Return only the score as a single number.
'''

EVALUATE_TEXT_PROMPT = '''
Rate the following text on a scale from 1 to 10 based on this criteria: "{criteria}"

Text to evaluate:
"""
{text}
"""

Provide only a single number from 1 to 10 as your response, where 1 is lowest and 10 is highest.
'''

BRANCH_EXPLORATION_PROMPT = '''
You're exploring a decision tree for the following problem:

PROBLEM: {problem}

CONTEXT: {context}

The current decision path you've been following is:
"""
{current_path}
"""

Now, you want to explore a branch where: {branch}

Generate a new approach that follows this branch. Your approach should:
1. Address the original problem
2. Incorporate the branch direction
3. Balance logical reasoning with intuitive insights
4. Demonstrate conviction even if the path seems uncertain

Your response should be a comprehensive paragraph describing this new approach.
'''

FINAL_RECOMMENDATION_PROMPT = """
You're solving the following problem:

PROBLEM: {problem}

CONTEXT: {context}

You've explored these approaches:

{approaches_text}

Based on these approaches, synthesize a final recommendation that:
1. Combines the strongest elements of the approaches
2. Demonstrates conviction despite uncertainty
3. Acknowledges challenges but maintains perseverance
4. Balances analytical reasoning with intuitive insights
5. Provides a clear path forward

Your response should be a comprehensive recommendation that someone could actually implement.
"""


def format_approaches(approaches: list[str]) -> str:
    """Number candidate approaches for FINAL_RECOMMENDATION_PROMPT."""
    return "\n".join(f'APPROACH {i}:\n"""{text}"""\n' for i, text in enumerate(approaches, start=1))
