"""Recommendation engine: tool-calling place suggestions.

Modules:
    config              Centralized limits and LLM parameters
    tool_executor       Runs model tool calls against the candidate cache and scoring
    orchestrator        Bounded tool-calling conversation with the model
    response_validator  Parses the final JSON answer and enriches suggestions
    suggestion_service  Wires one request through the pipeline

Pipeline:
    SuggestionService → ConversationOrchestrator ⇄ ToolExecutor
    → parse_agent_response → SuggestionEnricher
"""
