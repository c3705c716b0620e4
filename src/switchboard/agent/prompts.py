"""
Prompt construction for the intent planner.

The system prompt lists every registered agent and tool, the SQL authoring rules for the sales
database, the placeholder vocabulary the executor understands, and the email formatting rules.
When a session has history, a short summary of already-known facts is prepended to the transcript
so the model reuses them instead of calling the same tools again.
"""

import json
import re
from datetime import datetime
from typing import (
    List,
    Sequence,
    Tuple,
)

from switchboard.config import settings
from switchboard.core.schema import ConversationTurn
from switchboard.tools import (
    AGENT_REGISTRY,
    tools_by_agent,
)

INSTRUCTION_MARKER = "{{instruction}}"

# ---------------------------------------------------------------------------
# Sales database schema
# ---------------------------------------------------------------------------
SALES_TABLE = "sales_deal_data"

# (column, type, description, usage)
SALES_COLUMNS: List[Tuple[str, str, str, str]] = [
    ("deal_id", "integer", "Unique identifier for each deal", "Primary key, use for identifying specific deals"),
    ("customer_name", "varchar", "Name of the customer organization", "Use for customer analysis, filtering by customer"),
    ("sales_rep", "varchar", "Sales representative handling the deal", "Use for sales rep performance analysis, filtering by rep"),
    ("deal_value", "numeric", "Value of the deal in currency", "Use for financial analysis, aggregations (SUM, AVG, MAX, MIN)"),
    ("discount_applied", "numeric", "Percentage discount applied to the quote", "Use for discount analysis, filtering deals with/without discounts"),
    ("quote_date", "date", "Date when the quote was provided", "Use for time-based analysis, date filtering, trend analysis"),
    ("month", "varchar", "Month when the quote was issued", "Use for monthly analysis, grouping by month"),
    ("product_category", "varchar", "Category of the product or service quoted", "Use for product analysis, filtering by category"),
    ("region", "varchar", "Geographic region (e.g., 'delhi')", "Use for regional analysis, filtering by region"),
    ("revenue_type", "varchar", "Type of revenue, e.g., 'One Time'", "Use for revenue type analysis, filtering by revenue type"),
    ("customer_type", "varchar", "Type of customer (e.g., 'Existing')", "Use for customer type analysis, filtering by customer type"),
    ("quote_amount", "numeric", "Total quoted amount before discounts", "Use for quote analysis, financial calculations"),
    ("outcome", "varchar", "Status of the deal (e.g., 'Won', 'Lost', 'Pending')", "Use for deal outcome analysis, win/loss analysis"),
    ("close_date", "date", "Date the deal was closed (if applicable)", "Use for closed deal analysis, time to close calculations"),
    ("mrr_contribution", "numeric", "Monthly recurring revenue contribution", "Use for MRR analysis, recurring revenue calculations"),
    ("is_recurring_revenue", "varchar", "Indicates if the revenue is recurring ('Yes' or 'No')", "Use for recurring vs one-time revenue analysis"),
]  # fmt: skip

SALES_COMMON_QUERIES: List[Tuple[str, str]] = [
    (
        "Find top performing regions by deal value",
        "SELECT region, SUM(deal_value) as total_deal_value FROM sales_deal_data GROUP BY region "
        "ORDER BY total_deal_value DESC",
    ),
    (
        "Analyze win rate by sales representative",
        "SELECT sales_rep, COUNT(*) as total_deals, COUNT(CASE WHEN outcome = 'Won' THEN 1 END) as "
        "won_deals, ROUND(COUNT(CASE WHEN outcome = 'Won' THEN 1 END) * 100.0 / COUNT(*), 2) as "
        "win_rate FROM sales_deal_data GROUP BY sales_rep ORDER BY win_rate DESC",
    ),
    (
        "Monthly deal value trends",
        "SELECT month, SUM(deal_value) as monthly_deal_value FROM sales_deal_data GROUP BY month "
        "ORDER BY month",
    ),
    (
        "Product category performance",
        "SELECT product_category, COUNT(*) as deal_count, AVG(deal_value) as avg_deal_value FROM "
        "sales_deal_data GROUP BY product_category ORDER BY avg_deal_value DESC",
    ),
    (
        "Customer type analysis",
        "SELECT customer_type, COUNT(*) as deal_count, SUM(deal_value) as total_value FROM "
        "sales_deal_data GROUP BY customer_type ORDER BY total_value DESC",
    ),
]

SALES_KEYWORDS = (
    "sales", "deal", "revenue", "customer", "region", "product", "quote", "outcome", "mrr",
    "recurring",
)  # fmt: skip

SALES_GUIDELINES = """\
**SALES DEAL DATA SPECIFIC GUIDELINES:**
When analyzing sales data, consider these common patterns:
- For regional performance: Use region, deal_value, outcome
- For sales rep analysis: Use sales_rep, deal_value, outcome, win rate calculations
- For product analysis: Use product_category, deal_value, revenue_type
- For customer analysis: Use customer_name, customer_type, deal_value
- For time-based analysis: Use quote_date, close_date, month
- For financial analysis: Use deal_value, quote_amount, mrr_contribution
- For recurring revenue: Use is_recurring_revenue, mrr_contribution
"""


def _quarter_bounds(now: datetime) -> Tuple[int, str, str, str, str]:
    """Return (quarter, start, end, previous start, previous end) for the quarter containing *now*."""
    quarter = (now.month - 1) // 3 + 1
    ends = {1: "03-31", 2: "06-30", 3: "09-30", 4: "12-31"}
    start = f"{now.year}-{3 * (quarter - 1) + 1:02d}-01"
    end = f"{now.year}-{ends[quarter]}"
    prev_q, prev_year = (quarter - 1, now.year) if quarter > 1 else (4, now.year - 1)
    prev_start = f"{prev_year}-{3 * (prev_q - 1) + 1:02d}-01"
    prev_end = f"{prev_year}-{ends[prev_q]}"
    return quarter, start, end, prev_start, prev_end


def sql_guide(now: datetime) -> str:
    """SQL authoring rules for the sales table, with quarter examples relative to *now*."""
    quarter, start, end, prev_start, prev_end = _quarter_bounds(now)
    columns = "\n".join(
        f"- {name} ({type_}): {desc} - Use for: {usage}" for name, type_, desc, usage in SALES_COLUMNS
    )
    queries = "\n".join(f"- {desc}: {query}" for desc, query in SALES_COMMON_QUERIES)
    return f"""\
**DATABASE SCHEMA - SALES DEAL DATA TABLE:**
Table: {SALES_TABLE}
Description: Contains information about sales deals. Each row represents a unique sales deal.

**Available Columns:**
{columns}

**Common Analysis Patterns:**
{queries}

**When generating SQL queries for PostgreSQL:**
- Use only one GROUP BY clause per query. If grouping by multiple columns, list them all in a single GROUP BY, separated by commas.
- Do not repeat GROUP BY or any other SQL clause.
- If using aggregate functions (AVG, SUM, COUNT, etc.), ensure all non-aggregate columns in the SELECT are included in the GROUP BY.
- CRITICAL: If you use an aggregate function in ORDER BY, you MUST also include it in the SELECT clause.
- Carefully review the query for syntax correctness.

**Good Examples:**
SELECT region, AVG(deal_value) FROM sales_deal_data GROUP BY region ORDER BY AVG(deal_value) DESC;
SELECT region, COUNT(*) FROM sales_deal_data GROUP BY region ORDER BY COUNT(*) DESC;

**Bad Examples (do NOT do this):**
SELECT region FROM sales_deal_data GROUP BY region GROUP BY deal_value ORDER BY AVG(deal_value) DESC;
SELECT region FROM sales_deal_data GROUP BY region ORDER BY AVG(deal_value) DESC;  -- Missing AVG(deal_value) in SELECT

**QUARTERLY DATA HANDLING:**
- Quarters are Q1 (Jan-Mar), Q2 (Apr-Jun), Q3 (Jul-Sep), Q4 (Oct-Dec)
- When analyzing "this quarter" or "current quarter", first check if data exists for the current quarter
- If no data exists for the current quarter, use the most recent quarter with data and say so
- For quarterly comparisons, ensure both quarters have data before comparing
- Use EXTRACT(QUARTER FROM quote_date::date) and EXTRACT(YEAR FROM quote_date::date) when needed
- Current date: {now.strftime("%Y-%m-%d")}
- Current quarter: Q{quarter} {now.year}

**Quarterly Query Examples:**
-- Current quarter (Q{quarter}: {start} to {end})
SELECT region, SUM(deal_value) as total_sales FROM sales_deal_data
WHERE quote_date >= '{start}' AND quote_date <= '{end}'
GROUP BY region ORDER BY SUM(deal_value) DESC;

-- Previous quarter ({prev_start} to {prev_end})
SELECT region, SUM(deal_value) as total_sales FROM sales_deal_data
WHERE quote_date >= '{prev_start}' AND quote_date <= '{prev_end}'
GROUP BY region ORDER BY SUM(deal_value) DESC;

**IMPORTANT: Available Columns Only:**
- Use deal_value (numeric) for sales amounts - NOT total_sales
- Use quote_date for date filtering - NOT quarter
- Calculate totals using SUM(deal_value) and alias as total_sales
"""


# ---------------------------------------------------------------------------
# Static prompt sections
# ---------------------------------------------------------------------------
HISTORY_RULES = """\
CONVERSATION HISTORY INTELLIGENCE:
- ⚠️ CRITICAL: You have access to previous conversation history and results
- ⚠️ ALWAYS analyze the conversation history before making decisions
- ⚠️ DO NOT re-execute steps that were already completed successfully
- ⚠️ Use available data to build complete payloads instead of asking for missing parameters
- ⚠️ Examples of information to extract from history:
  • Location data: "City: Mumbai" → use "Mumbai" for weather queries
  • Weather data: "Temperature: 26.45°C" → use for context, don't re-query
  • Flight data: "BOM → DEL" → use IATA codes for future queries
  • Date information: "2025-07-15" → use for flight searches if missing
- ⚠️ AVOID REDUNDANT CALLS:
  • Don't call get_live_location if location is already known
  • Don't call weather APIs if weather data is recent and relevant
  • Don't search for IATA codes if they're already available
"""

PLACEHOLDER_RULES = """\
PLACEHOLDERS (the system replaces these before each step runs):
- FOUND_CITY: the city found by a previous location step
- FOUND_CODE, FOUND_REGION_CODE, FOUND_REGION_IATA_CODE, FOUND_CITY_CODE: IATA codes derived from previous location or database results
- FOUND_NEXT_GOOD_WEATHER_DATE, FOUND_SUNNY_DAY, FOUND_GOOD_WEATHER_DATE: a date with good weather from a previous forecast
- {{today_date}}, {{tomorrow_date}}: today's or tomorrow's date
- INCLUDE_FLIGHT_RESULTS_HERE: flight search results table
- INCLUDE_DATABASE_RESULTS_TABLE_HERE: database query results table
- INCLUDE_MEETING_DETAILS_HERE, INCLUDE_MEETING_LINK_HERE: details or join link of a meeting created earlier
- INCLUDE_WEATHER_RESULTS_HERE, INCLUDE_LOCATION_RESULTS_HERE: weather or location results
- INCLUDE_<FIELD>_HERE: a single field of the first database row (e.g. INCLUDE_MAXIMUM_PRICE_HERE)
- When the user asks to "send weather in Teams" or "email weather results", ALWAYS use a multi-step plan: get the data first, then send the message with the placeholder.
  Example: {"status": 3, "steps": [{"agent_name": "WeatherAgent", "tool_name": "get_current_weather_by_city", "parameters": {"city": "Mumbai"}}, {"agent_name": "TeamsAgent", "tool_name": "teams_send_message", "parameters": {"message": "Weather report:\\n\\nINCLUDE_WEATHER_RESULTS_HERE"}}]}
- A step may carry a "condition" such as "if weather is good"; the system skips it when the previous result does not report good weather.

ZOOM MEETING OPERATIONS:
- For Zoom operations (create, list, delete meetings) ALWAYS use FlightSearchAgent
- For "cancel all meetings" or "delete all meetings": step 1 is zoom_list_meetings, step 2 is zoom_delete_meeting with meetingId "INCLUDE_MEETING_ID_HERE"; the system expands it into one delete per meeting
- To delete the N-th listed meeting use meetingId "PLACEHOLDER_FOR_MEETING_ID_N"
- NEVER use meeting IDs from conversation history; always list meetings first
"""

RESPONSE_FORMAT = """\
RESPONSE FORMAT - reply with exactly one of these JSON objects:
1. SINGLE TOOL CALL (all required parameters known):
{"status": 1, "agent_name": "<agent>", "tool_name": "<tool>", "parameters": {...}}
2. MISSING PARAMETERS (a required parameter cannot be found in the request or the history):
{"status": 2, "agent_name": "<agent>", "tool_name": "<tool>", "missing_parameters": ["<param>", ...], "suggestions": ["<hint>", ...]}
3. MULTI-STEP (the request needs several actions, executed in order):
{"status": 3, "steps": [{"agent_name": "<agent>", "tool_name": "<tool>", "parameters": {...}, "condition": "<optional>"}, ...]}
4. DIRECT ANSWER (no tool is needed):
{"status": 0, "response": "<natural language answer>"}

INSTRUCTIONS:
- You MUST respond with ONLY a single valid JSON object, and nothing else.
- Do NOT include any markdown, code blocks, triple backticks, or extra text.
- Use ONLY the fields "status", "agent_name", "tool_name", "parameters", "missing_parameters", "suggestions", "response" and "steps".
- ⚠️ CRITICAL: Before calling any agent, check that ALL required parameters are available from the user's request or the history.
- ⚠️ For flight searches, always convert city names to IATA codes when possible (e.g., "bangalore" → "BLR", "chennai" → "MAA", "hyderabad" → "HYD").
- ⚠️ For flight searches, if the date is missing, ask the user for the date.
- ⚠️ For email requests, if no email address is provided, ask for it. Do NOT invent addresses.
- ⚠️ When writing SQL, use a single GROUP BY listing every non-aggregate column, and include any aggregate used in ORDER BY in the SELECT clause.
"""

EMAIL_RULES = """\
EMAIL FORMATTING (outlook_send_email bodies):
- ALWAYS start with a polite greeting ("Dear User," or "Dear Team,"; use the recipient's name when it is known)
- ALWAYS add a blank line after the greeting
- Separate each paragraph or section with a blank line
- ALWAYS add a blank line before the closing
- ALWAYS put "Best regards," on its own line, followed by the signature on a new line
- NEVER put "Best regards," on the same line as the signature

EMAIL BODY EXAMPLES (MUST FOLLOW THESE EXACTLY):
- Flight results: "Dear User,\\n\\nHere are the flight search results from [source] to [destination] on [date]:\\n\\nINCLUDE_FLIGHT_RESULTS_HERE\\n\\nBest regards,\\nYour Travel Assistant"
- Weather report: "Dear Team,\\n\\nHere is the weather report for Mumbai:\\n\\nINCLUDE_WEATHER_RESULTS_HERE\\n\\nBest regards,\\nYour Weather Assistant"
- General email: "Dear User,\\n\\n[Your message content here]\\n\\nBest regards,\\nYour Assistant"
"""


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
def render_catalog() -> str:
    """Render every agent and its tools as ``Agent (url) - description`` blocks."""
    blocks = []
    for agent_name, tools in tools_by_agent().items():
        agent = AGENT_REGISTRY.get(agent_name)
        header = (
            f"{agent.name} ({agent.base_url}) - {agent.description}" if agent else agent_name
        )
        lines = []
        for tool in tools:
            parts = []
            required = [n for n, spec in tool.parameters.items() if spec.required]
            if required:
                parts.append(f"Required: {', '.join(required)}")
            if tool.optional_params:
                parts.append(f"Optional: {', '.join(tool.optional_params)}")
            lines.append(f"    • {tool.name} - {tool.description} ({'; '.join(parts)})")
        blocks.append(f"{header}\n  Capabilities:\n" + "\n".join(lines))
    return "\n\n".join(blocks)


def is_sales_related(user_input: str) -> bool:
    lowered = user_input.lower()
    return any(keyword in lowered for keyword in SALES_KEYWORDS)


def build_system_prompt(user_input: str, now: datetime) -> str:
    """Assemble the full planner prompt for *user_input*."""
    sql = sql_guide(now)
    if is_sales_related(user_input):
        sql = f"**SALES DATA ANALYSIS - ENHANCED SCHEMA:**\n{sql}\n{SALES_GUIDELINES}"

    sections = [
        f"Current system date and time: {now.isoformat()}",
        "You have access to the following agents and their capabilities:",
        render_catalog(),
        f"User request: {INSTRUCTION_MARKER}",
        sql,
        HISTORY_RULES,
        PLACEHOLDER_RULES,
        RESPONSE_FORMAT,
        EMAIL_RULES,
    ]
    if settings.SELF_EMAIL_ADDRESSES:
        sections.append(
            'If the user asks to "send an email to me" (or "email me", "notify me"), use these '
            f"recipients: {json.dumps(settings.SELF_EMAIL_ADDRESSES)}"
        )
    return "\n\n".join(sections).replace(INSTRUCTION_MARKER, user_input)


def _extract_facts(content: str) -> str:
    facts = ""
    city = re.search(r"City:\s*([^\n]+)", content)
    if city:
        facts += f"Location: {city.group(1).strip()}\n"
    temperature = re.search(r"Temperature:\s*([^\n]+)", content)
    if temperature:
        facts += f"Weather: {temperature.group(1).strip()}\n"
    if "Found" in content and "flights:" in content:
        facts += "Flight search results available\n"
    routes = re.findall(r"[A-Z]{3}\s*→\s*[A-Z]{3}", content)
    if routes:
        facts += f"IATA routes: {', '.join(routes)}\n"
    return facts


def build_history_block(
    history: Sequence[ConversationTurn], last_request: str | None
) -> str:
    """
    Summarize a session's transcript for the planner.

    The "previous context" summary is only added once the session holds a completed request and more
    than one turn; the transcript itself is always included.
    """
    text = ""
    if last_request and len(history) > 1:
        text += "📋 PREVIOUS CONVERSATION CONTEXT:\n"
        facts = [
            _extract_facts(turn.content)
            for turn in history
            if turn.role == "assistant" and turn.content
        ]
        joined = "\n".join(f for f in facts if f)
        if joined:
            text += joined + "\n\n"

    text += "💬 CONVERSATION HISTORY:\n"
    text += "\n".join(
        f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}" for turn in history
    )
    return text


def build_prompt(
    user_input: str,
    now: datetime,
    history: Sequence[ConversationTurn] | None = None,
    last_request: str | None = None,
) -> str:
    """Full prompt: system prompt, then (for sessions) the history block and the open user turn."""
    prompt = build_system_prompt(user_input, now)
    if history is None:
        return prompt
    return f"{prompt}\n{build_history_block(history, last_request)}\nUser: {user_input}\nAssistant:"
