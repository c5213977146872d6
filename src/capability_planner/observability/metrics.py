from prometheus_client import Counter, Histogram


LLM_TOKEN_USAGE_TOTAL = Counter(
    "llm_token_usage_total",
    "Tokens consumed by language collaborator calls.",
    ["model"],
)

PLAN_PARSE_FAILURES_TOTAL = Counter(
    "planner_parse_failures_total",
    "Plan responses that could not be parsed as a step list.",
)

PLAN_OUTCOMES_TOTAL = Counter(
    "plan_outcomes_total",
    "Requests by terminal plan state.",
    ["state"],
)

STEP_RESULTS_TOTAL = Counter(
    "plan_step_results_total",
    "Executed plan steps by capability and status.",
    ["capability", "status"],
)

STEP_DURATION_SECONDS = Histogram(
    "plan_step_duration_seconds",
    "Backend dispatch latency per capability.",
    ["capability"],
)
